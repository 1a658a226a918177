"""Source video intake: type, size and duration checks."""

import logging
import math
import mimetypes
import subprocess
from pathlib import Path

from cliptrim import ffutil
from cliptrim.errors import FileAccessError, FileTooLarge, InvalidMedia, UnsupportedFormat
from cliptrim.models import SourceMedia

logger = logging.getLogger(__name__)

SUPPORTED_MIME_TYPES = ("video/mp4", "video/webm")
SUPPORTED_FORMATS = tuple(t.split("/")[1] for t in SUPPORTED_MIME_TYPES)
MAX_FILE_SIZE = 1024 * 1024 * 1024  # 1 GiB

mimetypes.add_type("video/webm", ".webm")


def check_type(mime_type: str | None) -> str:
    if mime_type not in SUPPORTED_MIME_TYPES:
        raise UnsupportedFormat("Please upload a video in either MP4 or webm format.")
    return mime_type


def check_size(size: int) -> int:
    if size > MAX_FILE_SIZE:
        raise FileTooLarge("Oops! The file size exceeds 1GB. Try uploading a smaller one.")
    return size


def load_source(path: Path, mime_type: str | None = None) -> SourceMedia:
    """Validate a video file and measure its duration.

    The MIME type is guessed from the file name when not given.
    """
    path = Path(path)
    if mime_type is None:
        mime_type, _ = mimetypes.guess_type(path.name)
    check_type(mime_type)
    try:
        size = path.stat().st_size
    except OSError as e:
        raise FileAccessError(f"Cannot read the video file {path.name}.") from e
    check_size(size)

    try:
        info = ffutil.probe(path)
    except (subprocess.CalledProcessError, ValueError, KeyError) as e:
        logger.warning("Probe failed for %s: %s", path, e)
        raise InvalidMedia(
            "Video file is corrupted or unreadable. Please upload a valid video."
        ) from e

    if not math.isfinite(info.duration) or info.duration <= 0:
        raise InvalidMedia("Video file is corrupted or invalid. Please upload a valid video.")

    return SourceMedia(
        path=path,
        mime_type=mime_type,
        size=size,
        duration=info.duration,
    )
