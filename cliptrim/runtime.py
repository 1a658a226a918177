"""Transcoder runtime capability and its ffmpeg-backed implementation.

The engine only relies on these operations: a loader that loads its script
once and creates instances, and an instance that can be loaded, owns a flat
working namespace of files, and runs commands against it.
"""

import logging
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from cliptrim import ffutil

logger = logging.getLogger(__name__)


class TranscoderInstance(Protocol):
    def is_loaded(self) -> bool: ...

    def load(self) -> None: ...

    def write_file(self, name: str, data: bytes) -> None: ...

    def read_file(self, name: str) -> bytes: ...

    def unlink(self, name: str) -> None: ...

    def run(self, *argv: str) -> None: ...

    def measure(self, name: str) -> float: ...

    def close(self) -> None: ...


class TranscoderLoader(Protocol):
    def load_script(self) -> None: ...

    def create_instance(self, config: "RuntimeConfig") -> TranscoderInstance: ...


@dataclass
class RuntimeConfig:
    """Settings for a transcoder instance."""

    work_root: Path | None = None
    log: bool = False
    ffmpeg_path: str = "ffmpeg"


class FFmpegInstance:
    """Runs the ffmpeg binary inside a private temporary directory."""

    def __init__(self, config: RuntimeConfig):
        self.config = config
        self.work_dir: Path | None = None

    def is_loaded(self) -> bool:
        return self.work_dir is not None and self.work_dir.is_dir()

    def load(self) -> None:
        subprocess.run(
            [self.config.ffmpeg_path, "-version"], capture_output=True, check=True
        )
        root = self.config.work_root
        if root is not None:
            root.mkdir(parents=True, exist_ok=True)
        self.work_dir = Path(tempfile.mkdtemp(prefix="cliptrim_", dir=root))
        logger.debug("ffmpeg runtime ready in %s", self.work_dir)

    def _path(self, name: str) -> Path:
        if self.work_dir is None:
            raise RuntimeError("Runtime is not loaded")
        if not name or Path(name).name != name:
            raise ValueError(f"Invalid working file name: {name!r}")
        return self.work_dir / name

    def write_file(self, name: str, data: bytes) -> None:
        self._path(name).write_bytes(data)

    def read_file(self, name: str) -> bytes:
        return self._path(name).read_bytes()

    def unlink(self, name: str) -> None:
        self._path(name).unlink()

    def run(self, *argv: str) -> None:
        if self.work_dir is None:
            raise RuntimeError("Runtime is not loaded")
        cmd = [self.config.ffmpeg_path, "-y", "-hide_banner"]
        if not self.config.log:
            cmd += ["-loglevel", "error"]
        cmd += list(argv)
        subprocess.run(cmd, cwd=self.work_dir, capture_output=True, check=True)

    def measure(self, name: str) -> float:
        """Duration in seconds of a working file, as ffprobe reports it."""
        return ffutil.probe(self._path(name)).duration

    def close(self) -> None:
        if self.work_dir is not None:
            shutil.rmtree(self.work_dir, ignore_errors=True)
            self.work_dir = None


class FFmpegLoader:
    """Locates the ffmpeg binaries once, then hands out instances."""

    def __init__(self) -> None:
        self.binaries: dict[str, str] = {}

    def load_script(self) -> None:
        if not self.binaries:
            self.binaries = ffutil.check_ffmpeg()

    def create_instance(self, config: RuntimeConfig) -> FFmpegInstance:
        if "ffmpeg" in self.binaries and config.ffmpeg_path == "ffmpeg":
            config.ffmpeg_path = self.binaries["ffmpeg"]
        return FFmpegInstance(config)
