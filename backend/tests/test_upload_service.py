"""
Upload orchestrator tests for ClipCast.

Covers the pipeline guarantees end to end at the service level:
- Oversized and unsupported uploads are rejected before anything is staged
- Non-owners are rejected without the record changing
- The staged file is released exactly once on every exit path
- Repeated identical uploads produce distinct staged names and asset URLs
- A record update failure after publishing is logged as an orphaned asset
"""

import asyncio
import json
import logging
import re

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from starlette.datastructures import FormData

from app.config import Settings
from app.core.exceptions import (
    BadRequest,
    Forbidden,
    MissingField,
    NotFound,
    ProbeProcessError,
    PublishIOError,
    PublishUploadError,
    RecordPersistError,
    SizeExceeded,
    Unauthenticated,
    UnsupportedType,
)
from app.models.video import AspectRatio, AssetKind
from app.services.probe_service import StreamProber
from app.services.publish_service import AssetPublisher
from app.services.record_service import VideoRepository
from app.services.staging_service import StagingStore
from app.services.upload_service import UploadService


OWNER_ID = "user-owner"
OTHER_USER_ID = "user-intruder"
VIDEO_ID = "video-1"


def staged_files(settings: Settings) -> list[Path]:
    root = Path(settings.staging_root)
    return list(root.iterdir()) if root.exists() else []


@pytest.fixture
def staging(test_settings: Settings) -> StagingStore:
    return StagingStore(test_settings)


@pytest.fixture
def prober(test_settings: Settings) -> StreamProber:
    prober = StreamProber(test_settings)
    prober.probe = AsyncMock(return_value=AspectRatio.LANDSCAPE)
    return prober


@pytest.fixture
def publisher(test_settings: Settings, mock_storage_service: MagicMock) -> AssetPublisher:
    return AssetPublisher(test_settings, mock_storage_service)


@pytest.fixture
def make_service(
    test_settings: Settings,
    video_repository: VideoRepository,
    staging: StagingStore,
    prober: StreamProber,
    publisher: AssetPublisher,
):
    def factory(**overrides: Any) -> UploadService:
        kwargs: dict[str, Any] = {
            "settings": test_settings,
            "repository": video_repository,
            "staging": staging,
            "prober": prober,
            "publisher": publisher,
        }
        kwargs.update(overrides)
        return UploadService(**kwargs)

    return factory


@pytest.fixture
def service(make_service) -> UploadService:
    return make_service()


class TestThumbnailUpload:
    @pytest.mark.asyncio
    async def test_owner_upload_sets_thumbnail_url(
        self,
        service: UploadService,
        make_form_loader,
        png_bytes: bytes,
        test_settings: Settings,
        videos_collection: Any,
    ) -> None:
        loader = make_form_loader("thumbnail", png_bytes, "image/png")

        video = await service.upload_thumbnail(VIDEO_ID, OWNER_ID, loader)

        assert video.thumbnail_url.startswith("http://assets.test:8091/assets/")
        assert video.thumbnail_url.endswith(".png")
        filename = video.thumbnail_url.rsplit("/", 1)[1]
        assert (test_settings.assets_root / filename).read_bytes() == png_bytes
        assert videos_collection.documents[VIDEO_ID]["thumbnail_url"] == video.thumbnail_url
        assert staged_files(test_settings) == []

    @pytest.mark.asyncio
    async def test_thumbnail_is_never_probed(
        self, service: UploadService, make_form_loader, png_bytes: bytes, prober: StreamProber
    ) -> None:
        await service.upload_thumbnail(
            VIDEO_ID, OWNER_ID, make_form_loader("thumbnail", png_bytes, "image/png")
        )

        prober.probe.assert_not_called()

    @pytest.mark.asyncio
    async def test_repeated_identical_uploads_are_distinct(
        self,
        service: UploadService,
        staging: StagingStore,
        make_form_loader,
        png_bytes: bytes,
    ) -> None:
        with patch.object(staging, "release", wraps=staging.release) as release:
            first = await service.upload_thumbnail(
                VIDEO_ID, OWNER_ID, make_form_loader("thumbnail", png_bytes, "image/png")
            )
            second = await service.upload_thumbnail(
                VIDEO_ID, OWNER_ID, make_form_loader("thumbnail", png_bytes, "image/png")
            )

        staged_names = {c.args[0].name for c in release.call_args_list}
        assert len(staged_names) == 2
        assert first.thumbnail_url != second.thumbnail_url


class TestVideoUpload:
    @pytest.mark.asyncio
    async def test_repeated_identical_uploads_are_distinct(
        self,
        service: UploadService,
        staging: StagingStore,
        make_form_loader,
        mp4_bytes: bytes,
        mock_storage_service: MagicMock,
    ) -> None:
        with patch.object(staging, "release", wraps=staging.release) as release:
            first = await service.upload_video(
                VIDEO_ID, OWNER_ID, make_form_loader("video", mp4_bytes, "video/mp4")
            )
            second = await service.upload_video(
                VIDEO_ID, OWNER_ID, make_form_loader("video", mp4_bytes, "video/mp4")
            )

        staged_names = {c.args[0].name for c in release.call_args_list}
        object_keys = [c.args[0] for c in mock_storage_service.upload_file.call_args_list]
        assert len(staged_names) == 2
        assert len(set(object_keys)) == 2
        for key in object_keys:
            prefix, filename = key.split("/")
            assert prefix == "landscape"
            assert re.fullmatch(r"[0-9a-f]{64}\.mp4", filename)
        assert first.video_url != second.video_url

    @pytest.mark.asyncio
    async def test_landscape_video_key_prefix(
        self,
        service: UploadService,
        make_form_loader,
        mp4_bytes: bytes,
        mock_storage_service: MagicMock,
        test_settings: Settings,
    ) -> None:
        video = await service.upload_video(
            VIDEO_ID, OWNER_ID, make_form_loader("video", mp4_bytes, "video/mp4")
        )

        object_key = mock_storage_service.upload_file.call_args.args[0]
        assert object_key.startswith("landscape/")
        assert object_key.endswith(".mp4")
        assert video.video_url == f"https://clipcast-test.s3.us-east-1.amazonaws.com/{object_key}"
        assert staged_files(test_settings) == []

    @pytest.mark.asyncio
    async def test_probe_runs_against_staged_bytes(
        self, service: UploadService, make_form_loader, mp4_bytes: bytes, prober: StreamProber
    ) -> None:
        seen: list[bytes] = []

        async def probe(staged_file):
            seen.append(staged_file.path.read_bytes())
            return AspectRatio.PORTRAIT

        prober.probe = AsyncMock(side_effect=probe)

        video = await service.upload_video(
            VIDEO_ID, OWNER_ID, make_form_loader("video", mp4_bytes, "video/mp4")
        )

        assert seen == [mp4_bytes]
        assert "/portrait/" in video.video_url

    @pytest.mark.asyncio
    async def test_end_to_end_with_patched_ffprobe(
        self,
        make_service,
        test_settings: Settings,
        make_form_loader,
        mp4_bytes: bytes,
        mock_storage_service: MagicMock,
    ) -> None:
        process = MagicMock()
        process.communicate = AsyncMock(
            return_value=(json.dumps({"streams": [{"width": 1920, "height": 1080}]}).encode(), b"")
        )
        process.returncode = 0
        service = make_service(prober=StreamProber(test_settings))

        with patch(
            "app.services.probe_service.asyncio.create_subprocess_exec",
            AsyncMock(return_value=process),
        ):
            await service.upload_video(
                VIDEO_ID, OWNER_ID, make_form_loader("video", mp4_bytes, "video/mp4")
            )

        assert mock_storage_service.upload_file.call_args.args[0].startswith("landscape/")


class TestRejections:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("authorize_first", [True, False])
    async def test_oversized_upload_writes_nothing(
        self,
        make_service,
        make_form_loader,
        png_bytes: bytes,
        test_settings: Settings,
        authorize_first: bool,
    ) -> None:
        service = make_service(authorize_before_staging=authorize_first)
        loader = make_form_loader(
            "thumbnail",
            png_bytes,
            "image/png",
            declared_size=test_settings.max_thumbnail_size_bytes + 1,
        )

        with pytest.raises(SizeExceeded) as exc_info:
            await service.upload_thumbnail(VIDEO_ID, OWNER_ID, loader)

        assert isinstance(exc_info.value, BadRequest)
        assert staged_files(test_settings) == []

    @pytest.mark.asyncio
    async def test_actual_size_is_rechecked_after_reading(
        self, make_form_loader, make_service, test_settings: Settings
    ) -> None:
        oversized = b"\x00" * (test_settings.max_thumbnail_size_bytes + 1)
        loader = make_form_loader("thumbnail", oversized, "image/png", declared_size=0)

        with pytest.raises(SizeExceeded):
            await make_service().upload_thumbnail(VIDEO_ID, OWNER_ID, loader)

        assert staged_files(test_settings) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("kind", "content_type"),
        [
            (AssetKind.THUMBNAIL, "application/pdf"),
            (AssetKind.THUMBNAIL, "video/mp4"),
            (AssetKind.VIDEO, "video/quicktime"),
            (AssetKind.VIDEO, "image/png"),
        ],
    )
    async def test_unsupported_type(
        self,
        service: UploadService,
        make_form_loader,
        test_settings: Settings,
        kind: AssetKind,
        content_type: str,
    ) -> None:
        loader = make_form_loader(kind.value, b"data", content_type)

        with pytest.raises(UnsupportedType):
            await service.upload(kind, VIDEO_ID, OWNER_ID, loader)

        assert staged_files(test_settings) == []

    @pytest.mark.asyncio
    async def test_missing_field(self, service: UploadService, make_form_loader, png_bytes: bytes) -> None:
        loader = make_form_loader("image", png_bytes, "image/png")

        with pytest.raises(MissingField):
            await service.upload_thumbnail(VIDEO_ID, OWNER_ID, loader)

    @pytest.mark.asyncio
    async def test_non_file_field(self, service: UploadService) -> None:
        async def loader() -> FormData:
            return FormData([("video", "just a string")])

        with pytest.raises(MissingField):
            await service.upload_video(VIDEO_ID, OWNER_ID, loader)

    @pytest.mark.asyncio
    async def test_unknown_video(self, service: UploadService, make_form_loader, png_bytes: bytes) -> None:
        with pytest.raises(NotFound):
            await service.upload_thumbnail(
                "missing", OWNER_ID, make_form_loader("thumbnail", png_bytes, "image/png")
            )

    @pytest.mark.asyncio
    async def test_missing_identity(self, service: UploadService, make_form_loader, png_bytes: bytes) -> None:
        with pytest.raises(Unauthenticated):
            await service.upload_thumbnail(
                VIDEO_ID, "", make_form_loader("thumbnail", png_bytes, "image/png")
            )


class TestOwnership:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", list(AssetKind))
    async def test_non_owner_is_forbidden_before_reading_the_form(
        self,
        service: UploadService,
        videos_collection: Any,
        test_settings: Settings,
        kind: AssetKind,
    ) -> None:
        loader = AsyncMock()
        before = dict(videos_collection.documents[VIDEO_ID])

        with pytest.raises(Forbidden):
            await service.upload(kind, VIDEO_ID, OTHER_USER_ID, loader)

        loader.assert_not_called()
        assert videos_collection.documents[VIDEO_ID] == before
        assert videos_collection.update_calls == 0
        assert staged_files(test_settings) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", list(AssetKind))
    async def test_ownership_after_staging_still_forbids_and_cleans_up(
        self,
        make_service,
        staging: StagingStore,
        publisher: AssetPublisher,
        videos_collection: Any,
        test_settings: Settings,
        make_form_loader,
        kind: AssetKind,
    ) -> None:
        service = make_service(authorize_before_staging=False)
        content_type = "image/png" if kind is AssetKind.THUMBNAIL else "video/mp4"
        loader = make_form_loader(kind.value, b"payload", content_type)
        before = dict(videos_collection.documents[VIDEO_ID])

        with (
            patch.object(staging, "release", wraps=staging.release) as release,
            patch.object(publisher, "publish", AsyncMock()) as publish,
        ):
            with pytest.raises(Forbidden):
                await service.upload(kind, VIDEO_ID, OTHER_USER_ID, loader)

        release.assert_called_once()
        publish.assert_not_called()
        assert videos_collection.documents[VIDEO_ID] == before
        assert staged_files(test_settings) == []

    def test_policy_defaults_to_authorize_first(self, service: UploadService) -> None:
        assert service.authorize_before_staging is True


class TestCleanupOnEveryPath:
    @pytest.mark.asyncio
    async def test_release_once_on_success(
        self, service: UploadService, staging: StagingStore, make_form_loader, mp4_bytes: bytes
    ) -> None:
        with patch.object(staging, "release", wraps=staging.release) as release:
            await service.upload_video(
                VIDEO_ID, OWNER_ID, make_form_loader("video", mp4_bytes, "video/mp4")
            )

        release.assert_called_once()

    @pytest.mark.asyncio
    async def test_release_once_when_probe_fails(
        self,
        service: UploadService,
        staging: StagingStore,
        prober: StreamProber,
        publisher: AssetPublisher,
        make_form_loader,
        mp4_bytes: bytes,
        test_settings: Settings,
        videos_collection: Any,
    ) -> None:
        prober.probe = AsyncMock(side_effect=ProbeProcessError("exit 1", returncode=1, stderr="bad"))

        with (
            patch.object(staging, "release", wraps=staging.release) as release,
            patch.object(publisher, "publish", AsyncMock()) as publish,
        ):
            with pytest.raises(ProbeProcessError):
                await service.upload_video(
                    VIDEO_ID, OWNER_ID, make_form_loader("video", mp4_bytes, "video/mp4")
                )

        release.assert_called_once()
        publish.assert_not_called()
        assert videos_collection.update_calls == 0
        assert staged_files(test_settings) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("kind", "content_type", "error"),
        [
            (AssetKind.THUMBNAIL, "image/png", PublishIOError("disk full")),
            (AssetKind.VIDEO, "video/mp4", PublishUploadError("access denied")),
        ],
    )
    async def test_release_once_when_publish_fails(
        self,
        service: UploadService,
        staging: StagingStore,
        publisher: AssetPublisher,
        make_form_loader,
        test_settings: Settings,
        videos_collection: Any,
        kind: AssetKind,
        content_type: str,
        error: Exception,
    ) -> None:
        with (
            patch.object(staging, "release", wraps=staging.release) as release,
            patch.object(publisher, "publish", AsyncMock(side_effect=error)),
        ):
            with pytest.raises(type(error)):
                await service.upload(
                    kind, VIDEO_ID, OWNER_ID, make_form_loader(kind.value, b"bytes", content_type)
                )

        release.assert_called_once()
        assert videos_collection.update_calls == 0
        assert staged_files(test_settings) == []

    @pytest.mark.asyncio
    async def test_release_once_when_record_update_fails_and_orphan_is_logged(
        self,
        service: UploadService,
        staging: StagingStore,
        make_form_loader,
        png_bytes: bytes,
        test_settings: Settings,
        videos_collection: Any,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        videos_collection.fail_writes = True

        with patch.object(staging, "release", wraps=staging.release) as release:
            with caplog.at_level(logging.ERROR, logger="app.services.upload_service"):
                with pytest.raises(RecordPersistError):
                    await service.upload_thumbnail(
                        VIDEO_ID, OWNER_ID, make_form_loader("thumbnail", png_bytes, "image/png")
                    )

        release.assert_called_once()
        assert "Orphaned published asset http://assets.test:8091/assets/" in caplog.text
        assert staged_files(test_settings) == []

    @pytest.mark.asyncio
    async def test_release_once_when_cancelled(
        self,
        service: UploadService,
        staging: StagingStore,
        prober: StreamProber,
        make_form_loader,
        mp4_bytes: bytes,
        test_settings: Settings,
    ) -> None:
        prober.probe = AsyncMock(side_effect=asyncio.CancelledError())

        with patch.object(staging, "release", wraps=staging.release) as release:
            with pytest.raises(asyncio.CancelledError):
                await service.upload_video(
                    VIDEO_ID, OWNER_ID, make_form_loader("video", mp4_bytes, "video/mp4")
                )

        release.assert_called_once()
        assert staged_files(test_settings) == []

    @pytest.mark.asyncio
    async def test_cleanup_failure_does_not_change_outcome(
        self,
        service: UploadService,
        make_form_loader,
        png_bytes: bytes,
    ) -> None:
        with patch.object(Path, "unlink", side_effect=PermissionError("denied")):
            video = await service.upload_thumbnail(
                VIDEO_ID, OWNER_ID, make_form_loader("thumbnail", png_bytes, "image/png")
            )

        assert video.thumbnail_url is not None
