"""TrimmerSession: sequences timeline, engine and uploads through the phases."""

import logging
import threading
from pathlib import Path
from typing import Callable

from cliptrim.drag import BoundaryDragController, DragSession, Player
from cliptrim.engine import TranscodeEngine
from cliptrim.errors import (
    ClipTrimError,
    FileAccessError,
    IllegalTransition,
    InvalidName,
    UploadFailed,
)
from cliptrim.lifecycle import ModalLifecycle, PipelinePhase, Trigger
from cliptrim.manifest import Manifest
from cliptrim.media import load_source
from cliptrim.models import ClipRange, Edge, SourceMedia, TrimmedArtifact
from cliptrim.progress import ProgressSink
from cliptrim.timeline import ClipTimeline
from cliptrim.upload import UploadOrchestrator, UploadOutcome

logger = logging.getLogger(__name__)

Scheduler = Callable[[float, Callable[[], None]], None]


def timer_scheduler(delay: float, fn: Callable[[], None]) -> None:
    t = threading.Timer(delay, fn)
    t.daemon = True
    t.start()


class TrimmerSession:
    """One pipeline run: source video, its clips, their artifacts and uploads."""

    def __init__(
        self,
        manifest: Manifest | None = None,
        engine: TranscodeEngine | None = None,
        orchestrator: UploadOrchestrator | None = None,
        player: Player | None = None,
        scheduler: Scheduler = timer_scheduler,
    ):
        self.manifest = manifest or Manifest()
        self.engine = engine or TranscodeEngine(retry_policy=self.manifest.retry)
        self.orchestrator = orchestrator or UploadOrchestrator(
            timeout=self.manifest.request_timeout
        )
        self.scheduler = scheduler
        self.lifecycle = ModalLifecycle()
        self.timeline = ClipTimeline()
        self.drag = BoundaryDragController(self.timeline, player=player)
        self.source: SourceMedia | None = None
        self.artifacts: list[TrimmedArtifact] = []
        self.last_error: ClipTrimError | None = None
        # Bumped on every reset; work started under an older run is dropped.
        self._run = 0

    @property
    def phase(self) -> PipelinePhase:
        return self.lifecycle.phase

    @property
    def records(self):
        return self.orchestrator.records

    # --- Media and timeline ---

    def open_media(self, path: Path, mime_type: str | None = None) -> SourceMedia:
        """Validate the source video and start editing with one full-length clip."""
        self.lifecycle.require(PipelinePhase.AWAITING_UPLOAD, PipelinePhase.RESET)
        source = load_source(path, mime_type)
        self.timeline.initialize(source.duration)
        self.source = source
        self.artifacts = []
        self.lifecycle.fire(Trigger.MEDIA_VALIDATED)
        logger.info("Loaded %s (%.1fs)", source.path.name, source.duration)
        return source

    def add_marker(self) -> ClipRange:
        self.lifecycle.require(PipelinePhase.EDITING_TIMELINE)
        return self.timeline.add_by_split()

    def remove_clip(self, index: int) -> None:
        self.lifecycle.require(PipelinePhase.EDITING_TIMELINE)
        self.timeline.remove(index)

    def begin_drag(self, index: int, edge: Edge | str) -> DragSession:
        self.lifecycle.require(PipelinePhase.EDITING_TIMELINE)
        return self.drag.begin(index, edge)

    # --- Transcoding ---

    def trim(self, on_progress: ProgressSink | None = None) -> list[TrimmedArtifact]:
        """Cut every clip. Failures return to editing, with the ranges kept.

        A source that can no longer be read resets the session instead. If
        the session is closed while the engine runs, the result is dropped.
        """
        self.lifecycle.require(PipelinePhase.EDITING_TIMELINE)
        self.lifecycle.fire(Trigger.TRIM_REQUESTED)
        run = self._run
        self.artifacts = []
        self.last_error = None
        try:
            artifacts = self.engine.trim(
                self.source, self.timeline.ranges, self.manifest.site_mode, on_progress
            )
        except Exception as e:
            if run != self._run:
                logger.info("Trim of a closed session failed: %s", e)
                raise
            self.last_error = e if isinstance(e, ClipTrimError) else None
            if isinstance(e, FileAccessError):
                self.lifecycle.fire(Trigger.FILE_ACCESS_FAILED)
                self._clear()
            elif isinstance(e, ClipTrimError):
                logger.error("Trimming failed: %s", e)
                self.lifecycle.fire(Trigger.FAILED)
            else:
                logger.exception("Unexpected error while trimming")
                self.lifecycle.fire(Trigger.FAILED)
            raise

        self._check_current(run, "trimming")
        self.artifacts = artifacts
        self.lifecycle.fire(Trigger.TRANSCODE_SUCCEEDED)
        return artifacts

    # --- Review ---

    def back_to_edit(self) -> None:
        """Leave the results and return to the timeline with its clips intact."""
        self.lifecycle.require(PipelinePhase.REVIEWING_RESULTS)
        self.lifecycle.fire(Trigger.BACK_TO_EDIT)
        self.artifacts = []

    def rename_artifact(self, index: int, name: str) -> TrimmedArtifact:
        self.lifecycle.require(PipelinePhase.REVIEWING_RESULTS)
        name = name.strip()
        if not name:
            raise InvalidName("Please enter a valid video name.")
        artifact = self.artifacts[index]
        artifact.editable_name = name
        return artifact

    def remove_artifact(self, index: int) -> None:
        """Drop an artifact together with the clip it was cut from."""
        self.lifecycle.require(PipelinePhase.REVIEWING_RESULTS)
        if 0 <= index < len(self.artifacts):
            del self.artifacts[index]
            self.timeline.remove(index)

    # --- Upload ---

    def submit(self, on_progress: ProgressSink | None = None) -> UploadOutcome:
        """Upload the artifacts; success schedules a reset after a short delay."""
        self.lifecycle.require(PipelinePhase.REVIEWING_RESULTS)
        target = self.manifest.target
        if target is None:
            raise UploadFailed("No upload target configured.")
        if not self.artifacts:
            raise UploadFailed("There are no trimmed videos to upload.")

        self.lifecycle.fire(Trigger.SUBMIT_REQUESTED)
        run = self._run
        try:
            outcome = self.orchestrator.upload(self.artifacts, target, on_progress)
        except UploadFailed as e:
            if run != self._run:
                logger.info("Upload for a closed session failed: %s", e)
                raise
            self.last_error = e
            self.lifecycle.fire(Trigger.UPLOAD_FAILED)
            self._clear()
            raise

        self._check_current(run, "uploading")
        self.lifecycle.fire(Trigger.UPLOAD_SUCCEEDED)
        self.scheduler(self.manifest.reset_delay, self._finish)
        return outcome

    def _finish(self) -> None:
        if self.lifecycle.phase is PipelinePhase.COMPLETED:
            self.lifecycle.fire(Trigger.DISPLAY_ELAPSED)
            self._clear()

    # --- Reset ---

    def close(self) -> None:
        """Discard everything from any phase and release the transcoder.

        Work still in flight is not awaited; its results are dropped.
        """
        self.lifecycle.fire(Trigger.CLOSED)
        self._clear()
        self.engine.close()

    def _check_current(self, run: int, activity: str) -> None:
        if run != self._run:
            logger.info("Session was closed while %s; discarding the result", activity)
            raise IllegalTransition(f"The session was closed while {activity}.")

    def _clear(self) -> None:
        self._run += 1
        self.drag.cancel_preview()
        self.artifacts = []
        self.timeline.reset()
        self.source = None
        self.orchestrator.reset()
