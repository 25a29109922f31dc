"""
Pytest Configuration and Test Fixtures for the ClipCast Backend

This module provides the fixtures shared by the test suite:
- Settings rooted in a per-test temporary directory
- An in-memory stand-in for the MongoDB videos collection
- A mocked S3 StorageService
- Bearer tokens for the owning user and for another user
- Real PNG payloads generated with Pillow
- Multipart form loaders built from Starlette UploadFile parts
- A FastAPI TestClient with dependency overrides
"""

import copy

from collections.abc import Awaitable, Callable, Generator
from io import BytesIO
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from fastapi.testclient import TestClient
from PIL import Image
from pymongo.errors import PyMongoError
from starlette.datastructures import FormData, Headers, UploadFile

from app.api.v1.upload import get_storage_service, get_video_repository
from app.config import Settings, get_settings
from app.core.auth import create_access_token
from app.main import app
from app.models.video import Video
from app.services.record_service import VideoRepository
from app.services.storage_service import StorageService


OWNER_ID = "user-owner"
OTHER_USER_ID = "user-intruder"
VIDEO_ID = "video-1"
TEST_BUCKET = "clipcast-test"
TEST_SECRET_KEY = "test-secret-key-for-jwt-signing-minimum-32-chars"


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as endpoint-level test")


# ==============================================================================
# Settings Fixtures
# ==============================================================================


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings whose asset and staging roots live under tmp_path."""
    return Settings(
        app_env="testing",
        app_name="ClipCast-Test",
        secret_key=TEST_SECRET_KEY,
        public_host="assets.test",
        port=8091,
        mongodb_db_name="clipcast_test",
        s3_bucket_name=TEST_BUCKET,
        s3_region="us-east-1",
        assets_root=tmp_path / "assets",
        staging_root=tmp_path / "staging",
        max_thumbnail_size_mb=1,
        max_video_size_mb=5,
        probe_timeout_seconds=5.0,
    )


# ==============================================================================
# Record Store Fixtures
# ==============================================================================


class FakeUpdateResult:
    def __init__(self, matched_count: int) -> None:
        self.matched_count = matched_count


class FakeVideosCollection:
    """
    In-memory stand-in for the Motor videos collection.

    Supports the find_one/update_one calls VideoRepository makes. Setting
    fail_reads or fail_writes makes the matching call raise PyMongoError.
    """

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, Any]] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.update_calls = 0

    def insert(self, video: Video) -> None:
        self.documents[video.id] = video.to_document()

    async def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        if self.fail_reads:
            raise PyMongoError("read failed")
        document = self.documents.get(query["_id"])
        return copy.deepcopy(document) if document is not None else None

    async def update_one(self, query: dict[str, Any], update: dict[str, Any]) -> FakeUpdateResult:
        self.update_calls += 1
        if self.fail_writes:
            raise PyMongoError("write failed")
        document = self.documents.get(query["_id"])
        if document is None:
            return FakeUpdateResult(0)
        document.update(copy.deepcopy(update["$set"]))
        return FakeUpdateResult(1)


@pytest.fixture
def owned_video() -> Video:
    return Video(_id=VIDEO_ID, user_id=OWNER_ID, title="Boot sequence")


@pytest.fixture
def videos_collection(owned_video: Video) -> FakeVideosCollection:
    collection = FakeVideosCollection()
    collection.insert(owned_video)
    return collection


@pytest.fixture
def video_repository(videos_collection: FakeVideosCollection) -> VideoRepository:
    return VideoRepository(videos_collection)


# ==============================================================================
# Storage Fixtures
# ==============================================================================


@pytest.fixture
def mock_storage_service() -> MagicMock:
    """StorageService with a no-op async upload and the real URL scheme."""
    storage = MagicMock(spec=StorageService)
    storage.bucket_name = TEST_BUCKET
    storage.upload_file = AsyncMock(
        side_effect=lambda object_key, **_: {"object_key": object_key, "bucket": TEST_BUCKET}
    )
    storage.public_url.side_effect = (
        lambda key: f"https://{TEST_BUCKET}.s3.us-east-1.amazonaws.com/{key}"
    )
    return storage


# ==============================================================================
# Auth Fixtures
# ==============================================================================


@pytest.fixture
def owner_headers(test_settings: Settings) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(OWNER_ID, test_settings)}"}


@pytest.fixture
def other_user_headers(test_settings: Settings) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(OTHER_USER_ID, test_settings)}"}


# ==============================================================================
# Payload Fixtures
# ==============================================================================


@pytest.fixture
def png_bytes() -> bytes:
    """A real 64x36 PNG image."""
    img = Image.new("RGB", (64, 36), color="red")
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def mp4_bytes() -> bytes:
    """Bytes standing in for an MP4 file; the probe is always mocked."""
    return b"\x00\x00\x00\x18ftypmp42\x00\x00\x00\x00mp42isom" + b"\x00" * 256


FormLoaderFactory = Callable[..., Callable[[], Awaitable[FormData]]]


@pytest.fixture
def make_form_loader() -> FormLoaderFactory:
    """
    Build a form loader returning a multipart form with one file part.

    declared_size overrides the part's declared size, so an oversized upload
    can be simulated without a large payload.
    """

    def factory(
        field: str,
        data: bytes,
        content_type: str,
        declared_size: int | None = None,
        filename: str = "upload.bin",
    ) -> Callable[[], Awaitable[FormData]]:
        part = UploadFile(
            file=BytesIO(data),
            size=len(data) if declared_size is None else declared_size,
            filename=filename,
            headers=Headers({"content-type": content_type}),
        )
        form = FormData([(field, part)])

        async def load() -> FormData:
            return form

        return load

    return factory


# ==============================================================================
# FastAPI Client Fixtures
# ==============================================================================


@pytest.fixture
def client(
    test_settings: Settings,
    video_repository: VideoRepository,
    mock_storage_service: MagicMock,
) -> Generator[TestClient, None, None]:
    """
    TestClient with settings, record store and object storage overridden.

    The lifespan is not run, so no MongoDB connection is attempted.
    """
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_video_repository] = lambda: video_repository
    app.dependency_overrides[get_storage_service] = lambda: mock_storage_service

    yield TestClient(app)

    app.dependency_overrides.clear()
