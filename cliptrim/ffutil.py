"""FFmpeg/ffprobe subprocess helpers."""

import json
import shutil
import subprocess
from pathlib import Path

from cliptrim.models import ProbeResult


class FFmpegNotFoundError(RuntimeError):
    pass


def check_ffmpeg() -> dict[str, str]:
    """Return the resolved ffmpeg/ffprobe paths.

    Raises FFmpegNotFoundError if either is missing from PATH.
    """
    found: dict[str, str] = {}
    for cmd in ("ffmpeg", "ffprobe"):
        path = shutil.which(cmd)
        if path is None:
            raise FFmpegNotFoundError(f"{cmd} not found on PATH")
        found[cmd] = path
    return found


def probe(input_path: Path) -> ProbeResult:
    """Extract the container duration via ffprobe.

    Raises ValueError when the file has no video stream.
    """
    cmd = [
        "ffprobe",
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(input_path),
    ]
    result = subprocess.run(cmd, capture_output=True, text=True, check=True)
    data = json.loads(result.stdout)

    video_stream = next(
        (s for s in data.get("streams", []) if s.get("codec_type") == "video"), None
    )
    if video_stream is None:
        raise ValueError(f"No video stream found in {input_path}")

    fmt = data.get("format", {})
    return ProbeResult(duration=float(fmt.get("duration", 0.0)))


def trim_args(
    fmt: str, input_name: str, output_name: str, start: int, end: int
) -> list[str]:
    """Build the stream-copy trim arguments for one clip.

    WebM is cut by range after opening the input, with timestamps shifted to
    zero; MP4 seeks before the input and cuts by duration. Neither re-encodes.
    """
    if fmt == "webm":
        return [
            "-i", input_name,
            "-ss", str(start),
            "-to", str(end),
            "-c", "copy",
            "-avoid_negative_ts", "make_zero",
            output_name,
        ]
    return [
        "-ss", str(start),
        "-i", input_name,
        "-t", str(end - start),
        "-c", "copy",
        output_name,
    ]
