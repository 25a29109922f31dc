"""
Stream Prober for ClipCast video uploads.

Runs ffprobe against a staged file and classifies the first video stream
into an aspect-ratio bucket. ffprobe is treated as an opaque external
capability: every way it can fail maps to a typed error so callers can tell
"the process could not do its job" (ProbeProcessError) apart from "the file
has no usable video stream" (NoStreamFound).

Invocation:
    ffprobe -v error -select_streams v:0 -show_entries stream=width,height -of json <path>
"""

import asyncio
import json
import logging

from typing import Any

from app.config import Settings
from app.core.exceptions import NoStreamFound, ProbeProcessError
from app.models.video import AspectRatio
from app.services.staging_service import StagedFile


logger = logging.getLogger(__name__)

# ffprobe arguments preceding the input path
PROBE_ARGS: tuple[str, ...] = (
    "-v",
    "error",
    "-select_streams",
    "v:0",
    "-show_entries",
    "stream=width,height",
    "-of",
    "json",
)

# Longest stderr excerpt kept in error messages
MAX_STDERR_IN_MESSAGE = 500


def classify_aspect_ratio(width: int, height: int, tolerance: int = 0) -> AspectRatio:
    """
    Classify stream dimensions against 16:9 in either orientation.

    With the default tolerance of 0 this is an exact rule: landscape iff
    ``width == 16 * height // 9``, portrait iff ``height == 16 * width // 9``.
    A positive tolerance accepts that many pixels of difference.

    Example:
        >>> classify_aspect_ratio(1920, 1080)
        <AspectRatio.LANDSCAPE: 'landscape'>
        >>> classify_aspect_ratio(1000, 1000)
        <AspectRatio.OTHER: 'other'>
    """
    if abs(width - 16 * height // 9) <= tolerance:
        return AspectRatio.LANDSCAPE
    if abs(height - 16 * width // 9) <= tolerance:
        return AspectRatio.PORTRAIT
    return AspectRatio.OTHER


def parse_probe_output(output: bytes) -> tuple[int, int]:
    """
    Extract width and height of the first stream from ffprobe JSON output.

    Raises:
        ProbeProcessError: If the output is not a JSON document.
        NoStreamFound: If there is no stream with integer dimensions.
    """
    try:
        document: Any = json.loads(output or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProbeProcessError(f"Unparseable probe output: {e}") from e

    streams = document.get("streams") if isinstance(document, dict) else None
    if not streams:
        raise NoStreamFound("No video stream found in upload")

    first = streams[0]
    width = first.get("width") if isinstance(first, dict) else None
    height = first.get("height") if isinstance(first, dict) else None
    # bool is an int subclass and never a real dimension
    if not all(isinstance(v, int) and not isinstance(v, bool) for v in (width, height)):
        raise NoStreamFound("Video stream has no usable dimensions")

    return width, height


class StreamProber:
    """
    Classifies staged videos by running ffprobe as a subprocess.

    Example:
        ```python
        prober = StreamProber(settings)
        aspect_ratio = await prober.probe(staged_file)
        ```
    """

    def __init__(self, settings: Settings) -> None:
        self.ffprobe_path = settings.ffprobe_path
        self.timeout = settings.probe_timeout_seconds
        self.tolerance = settings.aspect_ratio_tolerance

    async def _run(self, path: str) -> bytes:
        try:
            process = await asyncio.create_subprocess_exec(
                self.ffprobe_path,
                *PROBE_ARGS,
                path,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error("Could not start probe process %s: %s", self.ffprobe_path, e)
            raise ProbeProcessError(f"Probe process unavailable: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except TimeoutError as e:
            logger.error("Probe of %s timed out after %.1f seconds", path, self.timeout)
            raise ProbeProcessError(
                f"Probe timed out after {self.timeout:.1f} seconds"
            ) from e
        finally:
            # timeout or cancellation leaves the child running
            if process.returncode is None:
                process.kill()
                await process.wait()

        if process.returncode != 0:
            diagnostics = stderr.decode(errors="replace").strip() if stderr else ""
            logger.error(
                "Probe of %s exited with code %s: %s", path, process.returncode, diagnostics
            )
            raise ProbeProcessError(
                f"Probe exited with code {process.returncode}: "
                f"{diagnostics[:MAX_STDERR_IN_MESSAGE] or 'no diagnostics'}",
                returncode=process.returncode,
                stderr=diagnostics,
            )

        return stdout

    async def probe(self, staged_file: StagedFile) -> AspectRatio:
        """
        Classify the first video stream of a staged file.

        Raises:
            ProbeProcessError: If ffprobe cannot start, times out, exits non-zero
                or prints something other than JSON.
            NoStreamFound: If the output lists no video stream with dimensions.
        """
        output = await self._run(str(staged_file.path))
        width, height = parse_probe_output(output)
        aspect_ratio = classify_aspect_ratio(width, height, self.tolerance)

        logger.info(
            "Probed %s: %dx%d classified as %s",
            staged_file.name,
            width,
            height,
            aspect_ratio.value,
        )
        return aspect_ratio
