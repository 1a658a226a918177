"""Transcode engine: acquires the runtime and cuts one artifact per clip."""

import enum
import logging
import math
import threading
from pathlib import Path

from cliptrim import ffutil
from cliptrim.errors import (
    EmptyOutput,
    EmptyTimeline,
    EngineUnavailable,
    FileAccessError,
    InvalidClip,
    TrimFailed,
    UnsupportedFormat,
)
from cliptrim.media import SUPPORTED_FORMATS
from cliptrim.models import ClipRange, SiteMode, SourceMedia, TrimmedArtifact
from cliptrim.progress import ProgressChannel, ProgressSink
from cliptrim.retry import RetryPolicy, retry
from cliptrim.runtime import (
    FFmpegLoader,
    RuntimeConfig,
    TranscoderInstance,
    TranscoderLoader,
)

logger = logging.getLogger(__name__)


class EngineState(enum.Enum):
    UNLOADED = "unloaded"
    SCRIPT_FETCHING = "script_fetching"
    SCRIPT_READY = "script_ready"
    RUNTIME_LOADING = "runtime_loading"
    READY = "ready"
    FAILED = "failed"


def truncate_ranges(ranges: list[ClipRange]) -> list[tuple[int, int]]:
    """Drop sub-second precision; the transcoder is driven in whole seconds."""
    return [(int(r.start), int(r.end)) for r in ranges]


def validate_truncated(bounds: list[tuple[int, int]]) -> None:
    for i, (start, end) in enumerate(bounds):
        if start >= end:
            raise InvalidClip(i)


class TranscodeEngine:
    """Lazily loads a transcoder runtime and trims clips with it.

    Args:
        loader: Runtime loader; defaults to the ffmpeg binaries on PATH.
        config: Settings passed to ``loader.create_instance``.
        retry_policy: Used only by :meth:`preload`.
    """

    def __init__(
        self,
        loader: TranscoderLoader | None = None,
        config: RuntimeConfig | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep=None,
    ):
        self.loader = loader or FFmpegLoader()
        self.config = config or RuntimeConfig()
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self.state = EngineState.UNLOADED
        self.failure_reason: str | None = None
        self.instance: TranscoderInstance | None = None
        self._script_loaded = False
        # Preload and on-demand acquisition may run on different threads.
        self._lock = threading.Lock()

    def _fail(self, reason: str, exc: Exception) -> EngineUnavailable:
        self.state = EngineState.FAILED
        self.failure_reason = reason
        logger.error("%s (%s)", reason, exc)
        return EngineUnavailable(reason)

    def acquire(self) -> None:
        """Make the runtime ready with a single attempt.

        Raises EngineUnavailable on failure.
        """
        with self._lock:
            self._acquire()

    def _acquire(self) -> None:
        if self.state is EngineState.READY and self.instance and self.instance.is_loaded():
            return

        if not self._script_loaded:
            self.state = EngineState.SCRIPT_FETCHING
            try:
                self.loader.load_script()
            except Exception as e:
                raise self._fail(
                    "Failed to load the video processing library. "
                    "Please check your installation and try again.", e
                ) from e
            self._script_loaded = True
        self.state = EngineState.SCRIPT_READY

        if self.instance is None:
            self.instance = self.loader.create_instance(self.config)

        if not self.instance.is_loaded():
            self.state = EngineState.RUNTIME_LOADING
            try:
                self.instance.load()
            except Exception as e:
                raise self._fail(
                    "Video processing library failed to initialize. Please try again.", e
                ) from e

        self.state = EngineState.READY
        self.failure_reason = None

    def close(self) -> None:
        """Release the runtime and its working files. Safe to call twice."""
        with self._lock:
            if self.instance is not None:
                self.instance.close()
                self.instance = None
            if self.state is not EngineState.FAILED:
                self.state = EngineState.UNLOADED

    def preload(self) -> bool:
        """Proactively acquire the runtime with retries. Never raises.

        Returns False when every attempt failed; trimming then loads on demand.
        """
        kwargs = {"sleep": self._sleep} if self._sleep else {}
        try:
            retry(self.acquire, self.retry_policy, retry_on=(EngineUnavailable,), **kwargs)
        except EngineUnavailable:
            logger.warning(
                "Runtime preload failed after %d attempts. Will load on demand when needed.",
                self.retry_policy.max_attempts,
            )
            return False
        return True

    def ensure_ready(self) -> TranscoderInstance:
        """On-demand acquisition: one attempt, failure surfaced to the caller."""
        retry(self.acquire, RetryPolicy(max_attempts=1), retry_on=(EngineUnavailable,))
        return self.instance

    def trim(
        self,
        source: SourceMedia,
        ranges: list[ClipRange],
        site_mode: SiteMode = SiteMode.NORMAL,
        on_progress: ProgressSink | None = None,
    ) -> list[TrimmedArtifact]:
        """Cut every range out of ``source``, in order.

        Any failing clip aborts the whole batch; no partial results are
        returned.
        """
        if not ranges:
            raise EmptyTimeline("No clips selected. Please add at least one clip marker.")

        instance = self.ensure_ready()
        data = _read_source(source.path)

        fmt = source.format
        if fmt not in SUPPORTED_FORMATS:
            raise UnsupportedFormat("Unsupported video format. Please use MP4 or WebM.")

        bounds = truncate_ranges(ranges)
        validate_truncated(bounds)

        total = len(bounds)
        progress = ProgressChannel(on_progress)
        progress.report(0, total, f"Overall Progress: 0 of {total}")

        artifacts: list[TrimmedArtifact] = []
        for i, (start, end) in enumerate(bounds):
            n = i + 1
            logger.info("Processing clip %d of %d (%ds-%ds)", n, total, start, end)
            artifacts.append(
                self._trim_one(instance, data, fmt, i, start, end, source.mime_type, site_mode)
            )
            if n == total:
                progress.report(n, total, f"Processing Complete! All {total} clips finished.")
            else:
                progress.report(n, total, f"Overall Progress: {n} of {total}")

        return artifacts

    def _trim_one(
        self,
        instance: TranscoderInstance,
        data: bytes,
        fmt: str,
        index: int,
        start: int,
        end: int,
        mime_type: str,
        site_mode: SiteMode,
    ) -> TrimmedArtifact:
        n = index + 1
        input_name = f"input_{n}.{fmt}"
        output_name = f"video_{n}.{fmt}"
        written: list[str] = []

        try:
            try:
                instance.write_file(input_name, data)
            except Exception as e:
                raise TrimFailed(index, f"Failed to prepare video file for clip {n}") from e
            written.append(input_name)

            try:
                instance.run(*ffutil.trim_args(fmt, input_name, output_name, start, end))
            except Exception as e:
                logger.error("Error processing clip %d: %s", n, e)
                raise TrimFailed(
                    index, f"Failed to trim clip {n}. The video segment may be corrupted."
                ) from e
            written.append(output_name)

            try:
                output = instance.read_file(output_name)
            except Exception as e:
                raise TrimFailed(index, f"Failed to read processed clip {n}") from e

            if not output:
                raise EmptyOutput(index)

            unplayable = f"Clip {n} could not be loaded. The output may be corrupted."
            try:
                duration = instance.measure(output_name)
            except Exception as e:
                logger.error("Could not measure clip %d: %s", n, e)
                raise TrimFailed(index, unplayable) from e
            if not math.isfinite(duration) or duration <= 0:
                raise TrimFailed(index, unplayable)
        finally:
            for name in written:
                try:
                    instance.unlink(name)
                except Exception as e:
                    logger.warning(
                        "Failed to clean up temporary file %s for clip %d: %s", name, n, e
                    )

        return TrimmedArtifact(
            name=f"{site_mode.name_prefix}{n}",
            source_range_index=index,
            duration_seconds=duration,
            mime_type=mime_type,
            data=output,
        )


def _read_source(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise FileAccessError(
            "Cannot access the video file. It may have been deleted or moved. Please re-upload."
        ) from e
