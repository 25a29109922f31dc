"""
Staging store for ClipCast uploads.

Validated upload bytes are written to a private file under the configured
staging root before they are probed and published. Each staged file belongs
to exactly one request and is removed when that request's pipeline exits,
whatever the outcome.

Staged names come from 32 bytes of cryptographically strong randomness, so
concurrent uploads never collide and one user cannot guess another user's
staged file. Files are created exclusively; an existing name is never
overwritten.
"""

import contextlib
import logging
import os
import secrets

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path

import aiofiles

from pydantic import BaseModel, ConfigDict

from app.config import Settings
from app.core.exceptions import StagingIOError
from app.models.video import AssetKind


logger = logging.getLogger(__name__)

# Bytes of randomness per staged name
STAGED_NAME_ENTROPY_BYTES = 32

STAGED_FILE_PREFIX = "temp_"
PARTIAL_SUFFIX = ".part"

# Thumbnail names end up in URLs; video names end up in object keys
NAME_GENERATORS: dict[AssetKind, Callable[[int], str]] = {
    AssetKind.THUMBNAIL: secrets.token_urlsafe,
    AssetKind.VIDEO: secrets.token_hex,
}


class StagedFile(BaseModel):
    """
    Handle to a staged upload.

    Attributes:
        name: Random token identifying this upload; reused for the published asset
        path: Location of the staged bytes
        size: Number of bytes staged
    """

    name: str
    path: Path
    size: int

    model_config = ConfigDict(frozen=True)


class StagingStore:
    """
    Writes upload payloads to the staging root and removes them again.

    Example:
        ```python
        store = StagingStore(settings)
        async with store.staged(data, AssetKind.VIDEO) as staged_file:
            await prober.probe(staged_file)
        # staged_file.path no longer exists here
        ```
    """

    def __init__(self, settings: Settings) -> None:
        self.root = Path(settings.staging_root)

    def _generate_name(self, kind: AssetKind) -> str:
        return NAME_GENERATORS[kind](STAGED_NAME_ENTROPY_BYTES)

    async def stage(self, data: bytes, kind: AssetKind) -> StagedFile:
        """
        Write the full payload to a newly named staged file.

        The payload is written to a partial file and renamed into place, so
        the staged path only ever holds a complete payload.

        Raises:
            StagingIOError: If the payload cannot be written in full.
        """
        name = self._generate_name(kind)
        path = self.root / f"{STAGED_FILE_PREFIX}{name}"
        partial_path = path.with_name(path.name + PARTIAL_SUFFIX)

        try:
            self.root.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(partial_path, "xb") as staged:
                await staged.write(data)
            os.replace(partial_path, path)
        except OSError as e:
            logger.exception("Failed to stage %d bytes at %s", len(data), path)
            with contextlib.suppress(OSError):
                partial_path.unlink(missing_ok=True)
            raise StagingIOError(f"Could not stage upload: {e}") from e

        logger.debug("Staged %d bytes at %s", len(data), path)
        return StagedFile(name=name, path=path, size=len(data))

    def release(self, staged_file: StagedFile) -> None:
        """
        Remove a staged file.

        Idempotent and best-effort: a file that is already gone is fine, and
        any other failure is logged and swallowed so it cannot change the
        outcome of the request that owned the file.
        """
        try:
            staged_file.path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Failed to clean up staged file %s", staged_file.path, exc_info=True)
            return
        logger.debug("Released staged file %s", staged_file.path)

    @asynccontextmanager
    async def staged(self, data: bytes, kind: AssetKind) -> AsyncIterator[StagedFile]:
        """Stage data for the duration of the block, releasing it on every exit path."""
        staged_file = await self.stage(data, kind)
        try:
            yield staged_file
        finally:
            self.release(staged_file)
