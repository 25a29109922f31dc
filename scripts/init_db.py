#!/usr/bin/env python3
"""
MongoDB Database Initialization Script for ClipCast.

Creates the videos collection with JSON schema validation and the indexes
the API relies on. Safe to run repeatedly: existing collections get their
validation rules updated and existing indexes are skipped.

Usage:
    python scripts/init_db.py [--drop] [--verbose]

Connection settings come from the same environment variables and .env file
as the API (MONGODB_URI, MONGODB_DB_NAME).
"""

import argparse
import sys
import time

from datetime import UTC, datetime
from typing import Any

from pymongo import ASCENDING, DESCENDING, IndexModel, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import CollectionInvalid, ConnectionFailure, OperationFailure, PyMongoError

from app.config import Settings
from app.core.database import VIDEOS_COLLECTION


CONNECTION_TIMEOUT_MS = 5000
CONNECT_MAX_RETRIES = 3

VIDEOS_VALIDATOR: dict[str, Any] = {
    "$jsonSchema": {
        "bsonType": "object",
        "required": ["_id", "user_id", "created_at", "updated_at"],
        "properties": {
            "_id": {"bsonType": "string", "description": "Video identifier"},
            "user_id": {"bsonType": "string", "description": "Owning user identity"},
            "title": {"bsonType": "string", "maxLength": 255},
            "description": {"bsonType": ["string", "null"], "maxLength": 5000},
            "thumbnail_url": {"bsonType": ["string", "null"]},
            "video_url": {"bsonType": ["string", "null"]},
            "created_at": {"bsonType": "date"},
            "updated_at": {"bsonType": "date"},
        },
    }
}

VIDEOS_INDEXES = [
    IndexModel([("user_id", ASCENDING)], name="user_id_1"),
    IndexModel([("user_id", ASCENDING), ("created_at", DESCENDING)], name="user_id_1_created_at_-1"),
]


class DatabaseInitializer:
    """Creates the ClipCast collections and indexes."""

    def __init__(self, settings: Settings, verbose: bool = False):
        self.settings = settings
        self.verbose = verbose
        self.client: MongoClient | None = None
        self.db: Database | None = None

    def log(self, message: str, level: str = "INFO") -> None:
        if level == "DEBUG" and not self.verbose:
            return
        timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S UTC")
        print(f"[{timestamp}] [{level}] {message}")

    def connect(self) -> bool:
        """Connect with exponential backoff. Returns False when all attempts fail."""
        self.log(f"Connecting to MongoDB at {self._mask_uri(self.settings.mongodb_uri)}...")
        retry_delay = 2

        for attempt in range(1, CONNECT_MAX_RETRIES + 1):
            try:
                self.client = MongoClient(
                    self.settings.mongodb_uri,
                    serverSelectionTimeoutMS=CONNECTION_TIMEOUT_MS,
                    connectTimeoutMS=CONNECTION_TIMEOUT_MS,
                )
                self.client.admin.command("ping")
                self.db = self.client[self.settings.mongodb_db_name]
                self.log(f"Connected, using database: {self.settings.mongodb_db_name}")
                return True
            except ConnectionFailure as e:
                self.log(f"Connection attempt {attempt}/{CONNECT_MAX_RETRIES} failed: {e}", "WARNING")
                if attempt < CONNECT_MAX_RETRIES:
                    time.sleep(retry_delay)
                    retry_delay *= 2

        self.log("Failed to connect after all retry attempts", "ERROR")
        return False

    def _mask_uri(self, uri: str) -> str:
        """Hide credentials embedded in a MongoDB URI."""
        if "@" in uri:
            protocol_end = uri.find("://") + 3
            return f"{uri[:protocol_end]}***:***{uri[uri.find('@'):]}"
        return uri

    def drop_videos(self) -> None:
        self.db.drop_collection(VIDEOS_COLLECTION)
        self.log(f"Dropped collection: {VIDEOS_COLLECTION}", "WARNING")

    def create_collection_with_validation(self, name: str, validator: dict[str, Any]) -> Collection:
        """Create a validated collection, or update the rules on an existing one."""
        if name in self.db.list_collection_names():
            self.log(f"Collection {name} already exists, updating validation rules", "DEBUG")
            self.db.command("collMod", name, validator=validator, validationLevel="moderate")
            return self.db[name]

        try:
            self.db.create_collection(name, validator=validator, validationLevel="moderate")
            self.log(f"Created collection: {name}")
        except CollectionInvalid as e:
            self.log(f"Collection {name} already exists: {e}", "DEBUG")
        return self.db[name]

    def _create_indexes_safely(self, collection: Collection, indexes: list[IndexModel]) -> None:
        existing = collection.index_information()
        for index in indexes:
            index_name = index.document["name"]
            if index_name in existing:
                self.log(f"  Index '{index_name}' already exists, skipping", "DEBUG")
                continue
            try:
                collection.create_indexes([index])
                self.log(f"  Created index: {index_name}", "DEBUG")
            except OperationFailure as e:
                self.log(f"  Error creating index {index_name}: {e}", "WARNING")

    def create_videos_collection(self) -> None:
        videos = self.create_collection_with_validation(VIDEOS_COLLECTION, VIDEOS_VALIDATOR)
        self._create_indexes_safely(videos, VIDEOS_INDEXES)
        self.log(f"Collection {VIDEOS_COLLECTION} ready")

    def close(self) -> None:
        if self.client:
            self.client.close()
            self.log("MongoDB connection closed", "DEBUG")


def parse_arguments() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Initialize the ClipCast MongoDB database")
    parser.add_argument(
        "--drop",
        action="store_true",
        help="Drop the videos collection first (WARNING: destructive operation)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Display detailed operation logs")
    return parser.parse_args()


def main() -> int:
    args = parse_arguments()

    print("\n" + "=" * 60)
    print("ClipCast - MongoDB Database Initialization")
    print("=" * 60 + "\n")

    initializer = DatabaseInitializer(Settings(), verbose=args.verbose)
    try:
        if not initializer.connect():
            return 1

        if args.drop:
            confirmation = input("\nWARNING: This will DELETE ALL video records.\nType 'yes' to confirm: ")
            if confirmation.lower() != "yes":
                print("Operation cancelled.")
                return 0
            initializer.drop_videos()

        initializer.create_videos_collection()
        return 0

    except KeyboardInterrupt:
        print("\n\nInitialization interrupted by user.")
        return 130

    except PyMongoError as e:
        print(f"\nMongoDB error: {e}")
        return 1

    finally:
        initializer.close()


if __name__ == "__main__":
    sys.exit(main())
