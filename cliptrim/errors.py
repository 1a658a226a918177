"""Error taxonomy shared by the trimming pipeline."""


class ClipTrimError(Exception):
    """Base class for errors surfaced to the user."""


class InvalidMedia(ClipTrimError):
    """The source media is corrupt or has no usable duration."""


class UnsupportedFormat(ClipTrimError):
    pass


class FileTooLarge(ClipTrimError):
    pass


class FileAccessError(ClipTrimError):
    """The source file can no longer be read (deleted or moved)."""


class EmptyTimeline(ClipTrimError):
    pass


class InvalidName(ClipTrimError):
    pass


class IllegalTransition(ClipTrimError):
    pass


class EngineUnavailable(ClipTrimError):
    """The transcoder runtime could not be acquired."""


class ClipError(ClipTrimError):
    """An error tied to one clip of the batch."""

    def __init__(self, index: int, message: str | None = None):
        self.index = index
        super().__init__(message or self.default_message())

    def default_message(self) -> str:
        return f"Failed to process clip {self.index + 1}. Please try again."


class InvalidClip(ClipError):
    def default_message(self) -> str:
        return f"Invalid clip {self.index + 1}: Start time must be before end time."


class EmptyOutput(ClipError):
    def default_message(self) -> str:
        return f"Clip {self.index + 1} is empty or corrupted"


class TrimFailed(ClipError):
    pass


class UploadFailed(ClipTrimError):
    """An upload request failed; ``index`` is the offending item when known."""

    def __init__(self, message: str, index: int | None = None):
        self.index = index
        super().__init__(message)


class MalformedMediaResponse(UploadFailed):
    pass
