"""Web API routes for cliptrim."""

import io
import json
import logging
import queue
import threading
from dataclasses import asdict
from pathlib import Path
from typing import Callable

from flask import Blueprint, Response, current_app, jsonify, request, send_file

from cliptrim.errors import ClipTrimError, IllegalTransition
from cliptrim.lifecycle import PipelinePhase
from cliptrim.media import SUPPORTED_MIME_TYPES
from cliptrim.models import ProgressUpdate

bp = Blueprint("web", __name__)

logger = logging.getLogger(__name__)


def _state():
    return current_app.extensions["cliptrim"]


def _session_json(session) -> dict:
    source = session.source
    return {
        "phase": session.phase.value,
        "site_mode": session.manifest.site_mode.value,
        "source": None if source is None else {
            "filename": source.path.name,
            "mime_type": source.mime_type,
            "size": source.size,
            "duration": source.duration,
        },
        "clips": [asdict(r) for r in session.timeline.ranges],
        "artifacts": [
            {
                "name": a.editable_name,
                "filename": a.filename,
                "duration": a.duration_label,
                "mime_type": a.mime_type,
                "size": len(a.data),
            }
            for a in session.artifacts
        ],
        "records": [{"id": r.id, "name": r.name} for r in session.records],
        "error": str(session.last_error) if session.last_error else None,
    }


def _start_job(name: str, job: Callable[[Callable[[ProgressUpdate], None]], object]):
    """Run ``job`` on a worker thread, streaming its progress through a queue."""
    state = _state()
    with state.lock:
        if state.worker is not None and state.worker.is_alive():
            raise IllegalTransition("Another operation is already running")

        progress_queue: queue.Queue = queue.Queue()
        state.progress_queue = progress_queue
        result: dict = {"stage": name}

        def run():
            try:
                def on_progress(update: ProgressUpdate):
                    progress_queue.put({"stage": name, **asdict(update)})

                job(on_progress)
            except ClipTrimError as e:
                result["error"] = str(e)
                result["code"] = type(e).__name__
            except Exception as e:
                logger.exception("%s failed", name)
                result["error"] = str(e) or "An unexpected error occurred."
                result["code"] = type(e).__name__
            finally:
                progress_queue.put(result)
                progress_queue.put(None)  # sentinel

        state.worker = threading.Thread(target=run, daemon=True)
        state.worker.start()
    return jsonify({"status": "started"})


@bp.route("/api/media", methods=["POST"])
def upload_media():
    if "file" not in request.files:
        return jsonify({"error": "No file provided"}), 400

    f = request.files["file"]
    if not f.filename:
        return jsonify({"error": "Empty filename"}), 400

    session = _state().session
    session.lifecycle.require(PipelinePhase.AWAITING_UPLOAD, PipelinePhase.RESET)

    work_dir = Path(current_app.config["WORK_DIR"])
    work_dir.mkdir(parents=True, exist_ok=True)
    ext = Path(f.filename).suffix or ".mp4"
    input_path = work_dir / f"source{ext}"
    f.save(input_path)

    mime_type = f.mimetype if f.mimetype in SUPPORTED_MIME_TYPES else None
    session.open_media(input_path, mime_type)
    return jsonify(_session_json(session))


@bp.route("/api/session")
def session_state():
    return jsonify(_session_json(_state().session))


@bp.route("/api/timeline/markers", methods=["POST"])
def add_marker():
    session = _state().session
    clip = session.add_marker()
    return jsonify({"clip": asdict(clip), "clips": [asdict(r) for r in session.timeline.ranges]})


@bp.route("/api/timeline/clips/<int:index>", methods=["DELETE"])
def remove_clip(index: int):
    session = _state().session
    session.remove_clip(index)
    return jsonify({"clips": [asdict(r) for r in session.timeline.ranges]})


@bp.route("/api/timeline/clips/<int:index>/boundary", methods=["POST"])
def move_boundary(index: int):
    body = request.get_json(silent=True) or {}
    try:
        edge = body["edge"]
        offset_x = float(body["offset_x"])
        track_width = float(body.get("track_width", 0)) or None
    except (KeyError, TypeError, ValueError):
        return jsonify({"error": "edge and offset_x are required"}), 400
    if edge not in ("start", "end"):
        return jsonify({"error": "edge must be 'start' or 'end'"}), 400

    session = _state().session
    if track_width is not None:
        session.drag.track_width = track_width
    drag = session.begin_drag(index, edge)
    try:
        changed = drag.move(offset_x)
    finally:
        drag.release()
    return jsonify({
        "changed": changed,
        "clips": [asdict(r) for r in session.timeline.ranges],
    })


@bp.route("/api/trim", methods=["POST"])
def start_trim():
    session = _state().session
    session.lifecycle.require(PipelinePhase.EDITING_TIMELINE)
    return _start_job("trim", lambda on_progress: session.trim(on_progress))


@bp.route("/api/progress")
def progress_stream():
    state = _state()
    q = state.progress_queue

    if q is None:
        return jsonify({"error": "No processing in progress"}), 409

    def generate():
        while True:
            try:
                msg = q.get(timeout=120)
            except queue.Empty:
                yield "data: {\"error\": \"timeout\"}\n\n"
                break
            if msg is None:
                data = json.dumps({"stage": "complete", "phase": state.session.phase.value})
                yield f"data: {data}\n\n"
                break
            yield f"data: {json.dumps(msg)}\n\n"

    return Response(generate(), mimetype="text/event-stream")


@bp.route("/api/edit", methods=["POST"])
def back_to_edit():
    session = _state().session
    session.back_to_edit()
    return jsonify(_session_json(session))


@bp.route("/api/artifacts/<int:index>", methods=["GET"])
def download_artifact(index: int):
    session = _state().session
    if not 0 <= index < len(session.artifacts):
        return jsonify({"error": "Artifact not found"}), 404
    artifact = session.artifacts[index]
    return send_file(
        io.BytesIO(artifact.data),
        mimetype=artifact.mime_type,
        as_attachment=False,
        download_name=artifact.filename,
    )


@bp.route("/api/artifacts/<int:index>", methods=["PATCH"])
def rename_artifact(index: int):
    session = _state().session
    if not 0 <= index < len(session.artifacts):
        return jsonify({"error": "Artifact not found"}), 404
    body = request.get_json(silent=True) or {}
    artifact = session.rename_artifact(index, str(body.get("name", "")))
    return jsonify({"name": artifact.editable_name, "filename": artifact.filename})


@bp.route("/api/artifacts/<int:index>", methods=["DELETE"])
def remove_artifact(index: int):
    session = _state().session
    session.remove_artifact(index)
    return jsonify(_session_json(session))


@bp.route("/api/submit", methods=["POST"])
def submit():
    session = _state().session
    session.lifecycle.require(PipelinePhase.REVIEWING_RESULTS)
    return _start_job("submit", lambda on_progress: session.submit(on_progress))


@bp.route("/api/close", methods=["POST"])
def close():
    session = _state().session
    session.close()
    return jsonify(_session_json(session))
