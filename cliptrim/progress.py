"""Progress channel shared by the transcode and upload batches."""

from typing import Callable

from cliptrim.models import ProgressUpdate

ProgressSink = Callable[[ProgressUpdate], None]


def percent(completed: int, total: int) -> int:
    if total <= 0:
        return 100
    return completed * 100 // total


class ProgressChannel:
    """Wraps an optional sink so callers can report without None checks."""

    def __init__(self, sink: ProgressSink | None = None):
        self.sink = sink
        self.last: ProgressUpdate | None = None

    def report(self, completed: int, total: int, message: str = "") -> ProgressUpdate:
        update = ProgressUpdate(
            completed=completed,
            total=total,
            percent=percent(completed, total),
            message=message,
        )
        self.last = update
        if self.sink:
            self.sink(update)
        return update
