"""Tests for the session that sequences a whole pipeline run."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from cliptrim.engine import TranscodeEngine
from cliptrim.errors import (
    EngineUnavailable,
    FileAccessError,
    IllegalTransition,
    InvalidClip,
    InvalidName,
    TrimFailed,
    UploadFailed,
)
from cliptrim.lifecycle import PipelinePhase
from cliptrim.manifest import BulkTarget, Manifest, TwoPhaseTarget
from cliptrim.models import ClipRange, Edge, SiteMode
from cliptrim.session import TrimmerSession
from cliptrim.upload import UploadOrchestrator, records_ready

from conftest import FakeLoader, make_response


class Scheduled:
    def __init__(self):
        self.calls = []

    def __call__(self, delay, fn):
        self.calls.append((delay, fn))

    def run_all(self):
        for _, fn in self.calls:
            fn()


@pytest.fixture
def http():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def scheduler():
    return Scheduled()


def _session(source, http, scheduler, target=None, loader=None, site_mode=SiteMode.NORMAL):
    manifest = Manifest(site_mode=site_mode, target=target)
    s = TrimmerSession(
        manifest=manifest,
        engine=TranscodeEngine(loader=loader or FakeLoader()),
        orchestrator=UploadOrchestrator(session=http),
        scheduler=scheduler,
    )
    with patch("cliptrim.session.load_source", return_value=source):
        s.open_media(source.path)
    return s


class TestEditing:
    def test_open_media(self, source, http, scheduler):
        s = _session(source, http, scheduler)
        assert s.phase is PipelinePhase.EDITING_TIMELINE
        assert s.timeline.ranges == [ClipRange(0.0, 100.0)]

    def test_markers_and_drag(self, source, http, scheduler):
        s = _session(source, http, scheduler)
        s.add_marker()
        drag = s.begin_drag(1, Edge.END)
        s.drag.track_width = 1000
        drag.move(700)
        drag.release()
        assert s.timeline.ranges == [ClipRange(0.0, 100.0), ClipRange(37.5, 70.0)]
        s.remove_clip(0)
        assert len(s.timeline) == 1

    def test_editing_requires_media(self, http, scheduler):
        s = TrimmerSession(orchestrator=UploadOrchestrator(session=http), scheduler=scheduler)
        with pytest.raises(IllegalTransition):
            s.add_marker()


class TestTrim:
    def test_success_moves_to_review(self, source, http, scheduler):
        s = _session(source, http, scheduler, site_mode=SiteMode.LESSON)
        s.add_marker()
        artifacts = s.trim()
        assert s.phase is PipelinePhase.REVIEWING_RESULTS
        assert [a.name for a in artifacts] == ["lesson1", "lesson2"]

    def test_invalid_clip_returns_to_editing(self, source, http, scheduler):
        s = _session(source, http, scheduler)
        s.timeline.set_boundary(0, Edge.START, 2.9)
        s.timeline.set_boundary(0, Edge.END, 2.95)
        with pytest.raises(InvalidClip):
            s.trim()
        assert s.phase is PipelinePhase.EDITING_TIMELINE
        assert s.timeline.ranges == [ClipRange(2.9, 2.95)]
        assert s.artifacts == []

    def test_engine_unavailable_allows_retry(self, source, http, scheduler):
        s = _session(source, http, scheduler, loader=FakeLoader(script_failures=1))
        with pytest.raises(EngineUnavailable):
            s.trim()
        assert s.phase is PipelinePhase.EDITING_TIMELINE
        s.trim()
        assert s.phase is PipelinePhase.REVIEWING_RESULTS

    def test_lost_source_resets(self, source, http, scheduler):
        s = _session(source, http, scheduler)
        source.path.unlink()
        with pytest.raises(FileAccessError):
            s.trim()
        assert s.phase is PipelinePhase.RESET
        assert s.source is None
        assert len(s.timeline) == 0


class TestReview:
    def test_rename(self, source, http, scheduler):
        s = _session(source, http, scheduler)
        s.trim()
        s.rename_artifact(0, "  Intro  ")
        assert s.artifacts[0].filename == "Intro.mp4"
        with pytest.raises(InvalidName):
            s.rename_artifact(0, "   ")

    def test_remove_artifact_drops_clip(self, source, http, scheduler):
        s = _session(source, http, scheduler)
        s.add_marker()
        s.trim()
        s.remove_artifact(0)
        assert [a.name for a in s.artifacts] == ["video2"]
        assert s.timeline.ranges == [ClipRange(37.5, 62.5)]


    def test_back_to_edit_keeps_clips(self, source, http, scheduler):
        s = _session(source, http, scheduler)
        s.add_marker()
        s.trim()
        s.remove_artifact(0)
        s.back_to_edit()
        assert s.phase is PipelinePhase.EDITING_TIMELINE
        assert s.artifacts == []
        assert s.timeline.ranges == [ClipRange(37.5, 62.5)]
        assert [a.name for a in s.trim()] == ["video1"]

    def test_back_to_edit_only_from_results(self, source, http, scheduler):
        s = _session(source, http, scheduler)
        with pytest.raises(IllegalTransition):
            s.back_to_edit()


class TestSubmit:
    def test_bulk_success_then_delayed_reset(self, source, http, scheduler):
        http.post.return_value = make_response(200)
        s = _session(source, http, scheduler, target=BulkTarget(endpoint="https://x/upload"))
        s.trim()
        s.submit()
        assert s.phase is PipelinePhase.COMPLETED
        assert [delay for delay, _ in scheduler.calls] == [0.8]

        scheduler.run_all()
        assert s.phase is PipelinePhase.RESET
        assert s.artifacts == [] and s.source is None and len(s.timeline) == 0

    def test_bulk_failure_resets(self, source, http, scheduler):
        http.post.return_value = make_response(503, reason="Service Unavailable")
        s = _session(source, http, scheduler, target=BulkTarget(endpoint="https://x/upload"))
        s.trim()
        with pytest.raises(UploadFailed):
            s.submit()
        assert s.phase is PipelinePhase.RESET
        assert s.artifacts == []
        assert scheduler.calls == []

    def test_two_phase_partial_failure(self, source, http, scheduler):
        http.post.side_effect = [
            make_response(201, {"id": 1, "title": {"raw": "video1"}}),
            make_response(201, {"id": 11, "title": {"rendered": "Video 1"}}),
            make_response(201, {"id": 2, "title": {"raw": "video2"}}),
            make_response(500, {"message": "Database error"}),
        ]
        target = TwoPhaseTarget(media_endpoint="https://x/media", record_endpoint="https://x/rec")
        s = _session(source, http, scheduler, target=target)
        s.add_marker()
        s.add_marker()
        s.trim()

        updates = []
        with pytest.raises(UploadFailed, match="Database error"):
            s.submit(on_progress=updates.append)
        assert (updates[-1].completed, updates[-1].total) == (1, 3)
        assert http.post.call_count == 4
        assert s.phase is PipelinePhase.RESET

    def test_no_target(self, source, http, scheduler):
        s = _session(source, http, scheduler)
        s.trim()
        with pytest.raises(UploadFailed, match="No upload target"):
            s.submit()
        assert s.phase is PipelinePhase.REVIEWING_RESULTS


class TestClose:
    def test_close_clears_everything(self, source, http, scheduler):
        s = _session(source, http, scheduler)
        s.trim()
        s.close()
        assert s.phase is PipelinePhase.RESET
        assert s.artifacts == [] and s.source is None

    def test_reopen_after_reset(self, source, http, scheduler):
        s = _session(source, http, scheduler)
        s.close()
        with patch("cliptrim.session.load_source", return_value=source):
            s.open_media(source.path)
        assert s.phase is PipelinePhase.EDITING_TIMELINE

    def test_close_releases_transcoder(self, source, http, scheduler):
        loader = FakeLoader()
        s = _session(source, http, scheduler, loader=loader)
        s.trim()
        s.close()
        assert loader.instance.closed == 1
        assert s.engine.instance is None


class TestCloseDuringWork:
    def test_trim_result_dropped(self, source, http, scheduler):
        s = _session(source, http, scheduler)
        s.add_marker()

        def on_progress(update):
            if update.completed == 1:
                s.close()

        with pytest.raises(IllegalTransition, match="closed while trimming"):
            s.trim(on_progress=on_progress)
        assert s.phase is PipelinePhase.RESET
        assert s.artifacts == []

    def test_trim_result_kept_out_of_new_media(self, source, http, scheduler):
        s = _session(source, http, scheduler)
        s.add_marker()

        def on_progress(update):
            if update.completed == 1:
                s.close()
                with patch("cliptrim.session.load_source", return_value=source):
                    s.open_media(source.path)

        with pytest.raises(IllegalTransition):
            s.trim(on_progress=on_progress)
        assert s.phase is PipelinePhase.EDITING_TIMELINE
        assert s.artifacts == []
        assert s.timeline.ranges == [ClipRange(0.0, 100.0)]

    def test_upload_records_dropped(self, source, http, scheduler):
        http.post.side_effect = [
            make_response(201, {"id": 1, "title": {"raw": "video1"}}),
            make_response(201, {"id": 11, "title": {"rendered": "Video 1"}}),
            make_response(201, {"id": 2, "title": {"raw": "video2"}}),
            make_response(201, {"id": 12, "title": {"rendered": "Video 2"}}),
        ]
        target = TwoPhaseTarget(media_endpoint="https://x/media", record_endpoint="https://x/rec")
        s = _session(source, http, scheduler, target=target)
        s.add_marker()
        s.trim()

        received = []

        def on_progress(update):
            if update.completed == 1:
                s.close()

        with records_ready.connected_to(lambda sender: received.append(sender)):
            with pytest.raises(IllegalTransition, match="closed while uploading"):
                s.submit(on_progress=on_progress)
        assert s.phase is PipelinePhase.RESET
        assert s.records == []
        assert received == []
        assert scheduler.calls == []

    def test_failure_after_close_keeps_reset(self, source, http, scheduler):
        loader = FakeLoader()
        loader.instance.fail_run_on = {2}
        s = _session(source, http, scheduler, loader=loader)
        s.add_marker()

        def on_progress(update):
            if update.completed == 1:
                s.close()

        with pytest.raises(TrimFailed):
            s.trim(on_progress=on_progress)
        assert s.phase is PipelinePhase.RESET
        assert s.last_error is None
