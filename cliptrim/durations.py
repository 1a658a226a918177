"""Clock-string formatting and lesson duration classification."""

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class DurationClass:
    """A coarse lesson length: ``value`` hours or minutes."""

    value: int
    unit: str

    def as_payload(self) -> dict:
        return {"duration": self.value, "duration_type": self.unit}


def format_clock(seconds: float) -> str:
    """Format seconds as ``MM:SS``, or ``HH:MM:SS`` once an hour is reached."""
    total = round(float(seconds))
    h = total // 3600
    m = (total % 3600) // 60
    s = total % 60
    if h == 0:
        return f"{m:02d}:{s:02d}"
    return f"{h:02d}:{m:02d}:{s:02d}"


def parse_clock(text: str) -> float:
    """Parse ``SS``, ``MM:SS`` or ``HH:MM:SS`` (seconds may be fractional).

    Raises ValueError on anything else.
    """
    parts = text.strip().split(":")
    if not 1 <= len(parts) <= 3 or any(p == "" for p in parts):
        raise ValueError(f"Invalid time: {text!r}")
    seconds = float(parts[-1])
    for i, part in enumerate(reversed(parts[:-1]), 1):
        seconds += int(part) * 60**i
    if seconds < 0 or not math.isfinite(seconds):
        raise ValueError(f"Invalid time: {text!r}")
    return seconds


def classify_duration(text: str) -> DurationClass:
    """Classify a ``HH:MM:SS`` or ``MM:SS`` string as whole hours or minutes.

    An hour or more rounds down to hours; anything shorter rounds up to
    minutes. Unparseable input classifies as zero minutes.
    """
    try:
        parts = [int(p) for p in text.split(":")]
    except (AttributeError, ValueError):
        return DurationClass(0, "minute")

    if len(parts) == 2:
        minutes, seconds = parts
        total = minutes * 60 + seconds
    elif len(parts) == 3:
        hours, minutes, seconds = parts
        total = hours * 3600 + minutes * 60 + seconds
    else:
        return DurationClass(0, "minute")

    if total >= 3600:
        return DurationClass(total // 3600, "hour")
    return DurationClass(math.ceil(total / 60), "minute")
