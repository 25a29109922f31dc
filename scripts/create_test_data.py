#!/usr/bin/env python3
"""
Test Data Generation Script for ClipCast.

Seeds video records for a development user and prints a bearer token for
that user, so the upload endpoints can be exercised by hand:

    python scripts/create_test_data.py --user-id dev-user --count 3

    curl -H "Authorization: Bearer <token>" \\
         -F "thumbnail=@cover.png;type=image/png" \\
         http://localhost:8091/api/v1/upload/thumbnail/<video_id>

Connection and signing settings come from the same environment variables
and .env file as the API.
"""

import argparse
import random
import sys
import uuid

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from app.config import Settings
from app.core.auth import create_access_token
from app.core.database import VIDEOS_COLLECTION
from app.models.video import Video


CONNECTION_TIMEOUT_MS = 5000

SAMPLE_TITLES = [
    "Boot sequence",
    "Morning standup recap",
    "Drone flyover",
    "Unboxing the prototype",
    "Release walkthrough",
    "Conference keynote",
]


def generate_videos(user_id: str, count: int, rng: random.Random) -> list[Video]:
    """Build count empty video records owned by user_id."""
    return [
        Video(
            _id=str(uuid.UUID(int=rng.getrandbits(128), version=4)),
            user_id=user_id,
            title=rng.choice(SAMPLE_TITLES),
            description="Seeded by create_test_data.py",
        )
        for _ in range(count)
    ]


def parse_arguments() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed ClipCast video records for manual testing")
    parser.add_argument("--user-id", default="dev-user", help="Owner of the seeded videos")
    parser.add_argument("--count", type=int, default=3, help="Number of videos to create")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible ids")
    parser.add_argument("--clean", action="store_true", help="Delete this user's videos first")
    return parser.parse_args()


def main() -> int:
    args = parse_arguments()
    settings = Settings()
    rng = random.Random(args.seed)

    client = MongoClient(settings.mongodb_uri, serverSelectionTimeoutMS=CONNECTION_TIMEOUT_MS)
    try:
        videos = client[settings.mongodb_db_name][VIDEOS_COLLECTION]

        if args.clean:
            deleted = videos.delete_many({"user_id": args.user_id}).deleted_count
            print(f"Deleted {deleted} existing videos for {args.user_id}")

        seeded = generate_videos(args.user_id, args.count, rng)
        if seeded:
            videos.insert_many([video.to_document() for video in seeded])

    except PyMongoError as e:
        print(f"MongoDB error: {e}")
        return 1

    finally:
        client.close()

    print(f"\nSeeded {len(seeded)} videos for user {args.user_id}:")
    for video in seeded:
        print(f"  {video.id}  {video.title}")

    print("\nBearer token:")
    print(create_access_token(args.user_id, settings))
    return 0


if __name__ == "__main__":
    sys.exit(main())
