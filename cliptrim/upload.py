"""Upload strategies for trimmed artifacts.

Two mutually exclusive strategies, chosen by the shape of the target:

* bulk: every artifact in one multipart POST; all-or-nothing.
* two-phase: for each artifact in order, create the media, then create a
  record that references it. The first failure stops the sequence; items
  already committed stay committed.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

import requests
from blinker import signal

from cliptrim.durations import classify_duration
from cliptrim.errors import MalformedMediaResponse, UploadFailed
from cliptrim.manifest import BulkTarget, TwoPhaseTarget, UploadTarget
from cliptrim.models import TrimmedArtifact
from cliptrim.progress import ProgressChannel, ProgressSink

logger = logging.getLogger(__name__)

# Broadcast once per successful batch; receivers query the sender for details.
records_ready = signal("records-ready")

GENERIC_FAILURE = "Something went wrong while uploading. Please try again later."


@dataclass
class RecordResult:
    """A record committed by the two-phase strategy."""

    id: Any
    name: str
    media: dict = field(default_factory=dict, repr=False)


@dataclass
class UploadOutcome:
    strategy: str
    uploaded: int
    records: list[RecordResult] = field(default_factory=list)


def _json_body(resp: requests.Response) -> dict:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _title_text(title: Any, *keys: str) -> str | None:
    if isinstance(title, dict):
        for key in keys:
            if title.get(key):
                return str(title[key])
        return None
    return str(title) if title else None


class UploadOrchestrator:
    """Pushes artifacts to an upload target and tracks committed records."""

    def __init__(self, session: requests.Session | None = None, timeout: float = 600.0):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.records: list[RecordResult] = []
        # Bumped by reset(); batches started before a reset no longer record.
        self._generation = 0

    def upload(
        self,
        artifacts: list[TrimmedArtifact],
        target: UploadTarget,
        on_progress: ProgressSink | None = None,
    ) -> UploadOutcome:
        generation = self._generation
        if isinstance(target, BulkTarget):
            outcome = self.upload_bulk(artifacts, target, on_progress)
        elif isinstance(target, TwoPhaseTarget):
            outcome = self.upload_two_phase(artifacts, target, on_progress)
        else:
            raise TypeError(f"Unknown upload target: {target!r}")
        if generation == self._generation:
            records_ready.send(self)
        else:
            logger.info("Upload finished after a reset; not announcing records")
        return outcome

    def reset(self) -> None:
        self._generation += 1
        self.records = []

    # --- Bulk ---

    def upload_bulk(
        self,
        artifacts: list[TrimmedArtifact],
        target: BulkTarget,
        on_progress: ProgressSink | None = None,
    ) -> UploadOutcome:
        progress = ProgressChannel(on_progress)
        total = len(artifacts)
        progress.report(0, total, f"Uploading {total} videos")

        files = [
            (f"video-{i + 1}", (a.filename, a.data, a.mime_type))
            for i, a in enumerate(artifacts)
        ]
        try:
            resp = self.session.post(
                target.endpoint, files=files, headers=target.headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error("Error uploading videos: %s", e)
            raise UploadFailed(f"Upload failed: {e}") from e

        if not resp.ok:
            logger.error("Bulk upload rejected with %s %s", resp.status_code, resp.reason)
            raise UploadFailed(f"Upload failed: {resp.reason}")

        logger.info("Uploaded %d videos to %s", total, target.endpoint)
        progress.report(total, total, "Videos uploaded successfully!")
        return UploadOutcome(strategy="bulk", uploaded=total)

    # --- Two-phase ---

    def upload_two_phase(
        self,
        artifacts: list[TrimmedArtifact],
        target: TwoPhaseTarget,
        on_progress: ProgressSink | None = None,
    ) -> UploadOutcome:
        progress = ProgressChannel(on_progress)
        total = len(artifacts)
        progress.report(0, total, f"Uploading 0 of {total}")
        generation = self._generation

        committed: list[RecordResult] = []
        for i, artifact in enumerate(artifacts):
            try:
                media = self._create_media(artifact, target)
                record = self._create_record(artifact, media, target)
            except UploadFailed as e:
                e.index = i
                logger.error("Upload of item %d of %d failed: %s", i + 1, total, e)
                raise
            except requests.RequestException as e:
                logger.error("Upload of item %d of %d failed: %s", i + 1, total, e)
                raise UploadFailed(GENERIC_FAILURE, index=i) from e

            committed.append(record)
            if generation == self._generation:
                self.records.append(record)
            progress.report(i + 1, total, f"Uploading {i + 1} of {total}")

        progress.report(total, total, "All uploads completed!")
        return UploadOutcome(strategy="two_phase", uploaded=total, records=committed)

    def _create_media(self, artifact: TrimmedArtifact, target: TwoPhaseTarget) -> dict:
        resp = self.session.post(
            target.media_endpoint,
            files={"file": (artifact.filename, artifact.data, artifact.mime_type)},
            headers=target.headers,
            timeout=self.timeout,
        )
        data = _json_body(resp)
        if not resp.ok:
            raise UploadFailed(data.get("message") or "Failed to upload video.")

        media_id = data.get("id") or data.get("video_id")
        title = _title_text(data.get("title"), "raw")
        if not media_id:
            raise MalformedMediaResponse("No video_id returned from media API.")
        if not title:
            raise MalformedMediaResponse("No title found in media response.")
        return {**data, "id": media_id, "title_text": title}

    def _create_record(
        self, artifact: TrimmedArtifact, media: dict, target: TwoPhaseTarget
    ) -> RecordResult:
        meta: dict[str, Any] = {
            target.media_meta_key: {"media_type": "video", "video_id": media["id"]},
            target.settings_meta_key: classify_duration(artifact.duration_label).as_payload(),
        }
        if target.parent_id:
            meta[target.parent_meta_key] = int(target.parent_id)

        resp = self.session.post(
            target.record_endpoint,
            json={"title": media["title_text"], "status": "publish", "meta": meta},
            headers=target.headers,
            timeout=self.timeout,
        )
        data = _json_body(resp)
        if not resp.ok:
            raise UploadFailed(data.get("message") or "Failed to create lesson.")

        name = _title_text(data.get("title"), "rendered", "raw")
        if not data.get("id") or not name:
            raise UploadFailed("Record response is missing an id or title.")
        return RecordResult(id=data["id"], name=name, media=media)
