"""Shared data types used across cliptrim."""

import enum
from dataclasses import dataclass, field
from pathlib import Path

from cliptrim.durations import format_clock


class SiteMode(str, enum.Enum):
    """Controls default artifact names: ``video{n}`` or ``lesson{n}``."""

    NORMAL = "normal"
    LESSON = "lesson"

    @property
    def name_prefix(self) -> str:
        return "lesson" if self is SiteMode.LESSON else "video"


class Edge(str, enum.Enum):
    START = "start"
    END = "end"


@dataclass
class ClipRange:
    """A start/end time pair in seconds."""

    start: float
    end: float

    @property
    def length(self) -> float:
        return self.end - self.start

    def is_valid(self, duration: float) -> bool:
        return 0 <= self.start < self.end <= duration


@dataclass
class SourceMedia:
    """A validated source video awaiting trimming."""

    path: Path
    mime_type: str
    size: int
    duration: float

    @property
    def format(self) -> str:
        return self.mime_type.split("/")[-1]


@dataclass
class TrimmedArtifact:
    """One transcoded output, produced from the range at ``source_range_index``."""

    name: str
    source_range_index: int
    duration_seconds: float
    mime_type: str
    data: bytes = field(repr=False)
    editable_name: str = ""

    def __post_init__(self) -> None:
        if not self.editable_name:
            self.editable_name = self.name

    @property
    def extension(self) -> str:
        return self.mime_type.split("/")[-1] or "mp4"

    @property
    def filename(self) -> str:
        return f"{self.editable_name}.{self.extension}"

    @property
    def duration_label(self) -> str:
        return format_clock(self.duration_seconds)


@dataclass
class ProgressUpdate:
    """Cumulative progress of a batch: ``completed`` of ``total`` items."""

    completed: int
    total: int
    percent: int
    message: str = ""


@dataclass
class ProbeResult:
    """Metadata extracted from a media file via ffprobe."""

    duration: float
