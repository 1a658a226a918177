"""Pointer-drag adapter that turns track offsets into boundary moves."""

import logging
from typing import Callable, Protocol

from cliptrim.models import Edge
from cliptrim.timeline import ClipTimeline

logger = logging.getLogger(__name__)


class Player(Protocol):
    """The playback surface a preview drives."""

    def seek(self, seconds: float) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def add_position_listener(self, callback: Callable[[float], None]) -> None: ...

    def remove_position_listener(self, callback: Callable[[float], None]) -> None: ...


def proposed_time(offset_x: float, track_width: float, duration: float) -> float:
    """Map a pixel offset within the track to a time by linear interpolation."""
    if track_width <= 0:
        raise ValueError(f"track_width must be positive, got {track_width}")
    return (offset_x / track_width) * duration


class PreviewPlayback:
    """Plays one clip once, then pauses and rewinds to its start.

    The position watch detaches on completion, on :meth:`cancel`, or as soon
    as the clip's end time differs from the one the preview started with.
    """

    def __init__(self, player: Player, timeline: ClipTimeline, index: int):
        self.player = player
        self.timeline = timeline
        self.index = index
        self.active = False
        self._end = 0.0

    def start(self) -> None:
        clip = self.timeline[self.index]
        self._end = clip.end
        self.player.seek(clip.start)
        self.player.play()
        self.player.add_position_listener(self._on_position)
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.player.remove_position_listener(self._on_position)
            self.active = False

    def _on_position(self, position: float) -> None:
        if not self.active:
            return
        if self.index >= len(self.timeline) or self.timeline[self.index].end != self._end:
            logger.debug("Clip %d changed during preview; detaching", self.index + 1)
            self.cancel()
            return
        if position >= self._end:
            self.player.pause()
            self.player.seek(self.timeline[self.index].start)
            self.cancel()


class DragSession:
    """State of one press-move-release interaction on a clip edge."""

    def __init__(self, controller: "BoundaryDragController", index: int, edge: Edge):
        self.controller = controller
        self.index = index
        self.edge = edge
        self.is_dragging = True

    def move(self, offset_x: float) -> bool:
        if not self.is_dragging:
            return False
        timeline = self.controller.timeline
        t = proposed_time(offset_x, self.controller.track_width, timeline.duration)
        changed = timeline.set_boundary(self.index, self.edge, t)
        if changed and self.edge is Edge.START and self.controller.player is not None:
            self.controller.player.seek(timeline[self.index].start)
        return changed

    def release(self) -> None:
        self.is_dragging = False


class BoundaryDragController:
    """Owns transient interaction state only; the timeline owns the ranges."""

    def __init__(
        self,
        timeline: ClipTimeline,
        track_width: float = 1000.0,
        player: Player | None = None,
    ):
        self.timeline = timeline
        self.track_width = track_width
        self.player = player
        self._preview: PreviewPlayback | None = None

    def begin(self, index: int, edge: Edge | str) -> DragSession:
        # A new drag supersedes any running preview.
        self.cancel_preview()
        return DragSession(self, index, Edge(edge))

    def preview(self, index: int) -> PreviewPlayback:
        if self.player is None:
            raise RuntimeError("No player attached for preview")
        self.cancel_preview()
        self._preview = PreviewPlayback(self.player, self.timeline, index)
        self._preview.start()
        return self._preview

    def cancel_preview(self) -> None:
        if self._preview is not None:
            self._preview.cancel()
            self._preview = None
