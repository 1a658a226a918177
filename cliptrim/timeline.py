"""Clip timeline: the ordered set of ranges cut from the source video."""

import logging
import math

from cliptrim.errors import EmptyTimeline, InvalidClip, InvalidMedia
from cliptrim.models import ClipRange, Edge

logger = logging.getLogger(__name__)


def propose_boundary(
    current: ClipRange, edge: Edge, proposed: float, duration: float
) -> ClipRange | None:
    """Return ``current`` with one edge moved to ``proposed``, or None if rejected.

    ``proposed`` is clamped to ``[0, duration]``; the move is rejected when it
    would leave ``start >= end``.
    """
    t = min(max(proposed, 0.0), duration)
    if edge is Edge.START:
        if t >= current.end:
            return None
        return ClipRange(start=t, end=current.end)
    if t <= current.start:
        return None
    return ClipRange(start=current.start, end=t)


class ClipTimeline:
    """Ordered clip ranges over a fixed media duration.

    Ranges are identified by position; order is display order.
    """

    def __init__(self) -> None:
        self.duration: float = 0.0
        self._ranges: list[ClipRange] = []

    def __len__(self) -> int:
        return len(self._ranges)

    def __getitem__(self, index: int) -> ClipRange:
        return self._ranges[index]

    @property
    def ranges(self) -> list[ClipRange]:
        return [ClipRange(r.start, r.end) for r in self._ranges]

    def initialize(self, duration: float) -> None:
        """Start over with one range spanning the whole media."""
        if not isinstance(duration, (int, float)) or not math.isfinite(duration) or duration <= 0:
            raise InvalidMedia(f"Invalid media duration: {duration!r}")
        self.duration = float(duration)
        self._ranges = [ClipRange(start=0.0, end=self.duration)]

    def reset(self) -> None:
        self.duration = 0.0
        self._ranges = []

    def add(self, start: float, end: float) -> ClipRange:
        """Append an explicit range, validated against the media duration."""
        clip = ClipRange(start=float(start), end=float(end))
        if not clip.is_valid(self.duration):
            raise InvalidClip(len(self._ranges))
        self._ranges.append(clip)
        return clip

    def add_by_split(self) -> ClipRange:
        """Append a new range covering the middle half of the longest range."""
        if not self._ranges:
            raise EmptyTimeline("No clips selected. Please add at least one clip marker.")

        # max() keeps the first of equal keys, so ties go to the lowest index
        longest = max(self._ranges, key=lambda r: r.length)
        mid = (longest.start + longest.end) / 2
        quarter = 0.25 * longest.length
        clip = ClipRange(start=mid - quarter, end=mid + quarter)
        self._ranges.append(clip)
        logger.debug("Split clip [%.2f, %.2f] -> new clip [%.2f, %.2f]",
                     longest.start, longest.end, clip.start, clip.end)
        return clip

    def remove(self, index: int) -> None:
        """Drop the range at ``index``; out-of-range indices are ignored."""
        if 0 <= index < len(self._ranges):
            del self._ranges[index]

    def set_boundary(self, index: int, edge: Edge, proposed: float) -> bool:
        """Move one edge of a range. Invalid moves are silently dropped.

        Returns True when the range changed.
        """
        if not 0 <= index < len(self._ranges):
            return False
        current = self._ranges[index]
        updated = propose_boundary(current, Edge(edge), proposed, self.duration)
        if updated is None:
            return False
        current.start, current.end = updated.start, updated.end
        return True
