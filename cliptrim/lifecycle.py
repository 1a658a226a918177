"""Top-level phase machine for one trimming pipeline run."""

import enum
import logging

from cliptrim.errors import IllegalTransition

logger = logging.getLogger(__name__)


class PipelinePhase(enum.Enum):
    AWAITING_UPLOAD = "awaiting_upload"
    EDITING_TIMELINE = "editing_timeline"
    TRANSCODING = "transcoding"
    REVIEWING_RESULTS = "reviewing_results"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    RESET = "reset"


class Trigger(enum.Enum):
    MEDIA_VALIDATED = "media_validated"
    TRIM_REQUESTED = "trim_requested"
    TRANSCODE_SUCCEEDED = "transcode_succeeded"
    SUBMIT_REQUESTED = "submit_requested"
    BACK_TO_EDIT = "back_to_edit"
    UPLOAD_SUCCEEDED = "upload_succeeded"
    DISPLAY_ELAPSED = "display_elapsed"
    FAILED = "failed"
    FILE_ACCESS_FAILED = "file_access_failed"
    UPLOAD_FAILED = "upload_failed"
    CLOSED = "closed"


P = PipelinePhase

TRANSITIONS: dict[tuple[PipelinePhase, Trigger], PipelinePhase] = {
    (P.AWAITING_UPLOAD, Trigger.MEDIA_VALIDATED): P.EDITING_TIMELINE,
    (P.RESET, Trigger.MEDIA_VALIDATED): P.EDITING_TIMELINE,
    (P.EDITING_TIMELINE, Trigger.TRIM_REQUESTED): P.TRANSCODING,
    (P.TRANSCODING, Trigger.TRANSCODE_SUCCEEDED): P.REVIEWING_RESULTS,
    (P.TRANSCODING, Trigger.FAILED): P.EDITING_TIMELINE,
    (P.TRANSCODING, Trigger.FILE_ACCESS_FAILED): P.RESET,
    (P.REVIEWING_RESULTS, Trigger.SUBMIT_REQUESTED): P.UPLOADING,
    (P.REVIEWING_RESULTS, Trigger.BACK_TO_EDIT): P.EDITING_TIMELINE,
    (P.UPLOADING, Trigger.UPLOAD_SUCCEEDED): P.COMPLETED,
    (P.UPLOADING, Trigger.FAILED): P.EDITING_TIMELINE,
    (P.UPLOADING, Trigger.UPLOAD_FAILED): P.RESET,
    (P.COMPLETED, Trigger.DISPLAY_ELAPSED): P.RESET,
}


class ModalLifecycle:
    """Holds the single active phase and applies the transition table.

    Closing is legal from every phase and always lands in RESET.
    """

    def __init__(self) -> None:
        self.phase = PipelinePhase.AWAITING_UPLOAD

    def can(self, trigger: Trigger) -> bool:
        return trigger is Trigger.CLOSED or (self.phase, trigger) in TRANSITIONS

    def fire(self, trigger: Trigger) -> PipelinePhase:
        if trigger is Trigger.CLOSED:
            target = PipelinePhase.RESET
        else:
            target = TRANSITIONS.get((self.phase, trigger))
            if target is None:
                raise IllegalTransition(
                    f"Cannot {trigger.value.replace('_', ' ')} while {self.phase.value.replace('_', ' ')}"
                )
        logger.debug("Phase %s -> %s (%s)", self.phase.value, target.value, trigger.value)
        self.phase = target
        return target

    def require(self, *phases: PipelinePhase) -> None:
        if self.phase not in phases:
            raise IllegalTransition(
                f"Not allowed while {self.phase.value.replace('_', ' ')}"
            )
