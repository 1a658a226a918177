"""Flask application factory for the cliptrim web API."""

import logging
import tempfile
import threading
from pathlib import Path

from flask import Flask, jsonify

from cliptrim.errors import ClipTrimError, EngineUnavailable, FileTooLarge, IllegalTransition
from cliptrim.manifest import Manifest
from cliptrim.media import MAX_FILE_SIZE
from cliptrim.session import TrimmerSession

logger = logging.getLogger(__name__)


class WebState:
    """The single active session plus the background worker feeding progress."""

    def __init__(self, session: TrimmerSession, work_dir: Path):
        self.session = session
        self.work_dir = work_dir
        self.lock = threading.Lock()
        self.worker: threading.Thread | None = None
        self.progress_queue = None


def create_app(
    work_dir: Path | None = None,
    manifest: Manifest | None = None,
    session: TrimmerSession | None = None,
    preload: bool = True,
) -> Flask:
    app = Flask(__name__)
    work_dir = Path(work_dir or tempfile.mkdtemp(prefix="cliptrim_"))
    app.config["WORK_DIR"] = work_dir
    # Leave room for the multipart envelope around a maximum-size video.
    app.config["MAX_CONTENT_LENGTH"] = MAX_FILE_SIZE + 1024 * 1024

    session = session or TrimmerSession(manifest=manifest)
    app.extensions["cliptrim"] = WebState(session, work_dir)

    if preload:
        threading.Thread(target=session.engine.preload, daemon=True).start()

    from cliptrim.web.routes import bp
    app.register_blueprint(bp)

    @app.errorhandler(413)
    def request_entity_too_large(error):
        return jsonify({
            "error": "Oops! The file size exceeds 1GB. Try uploading a smaller one.",
            "code": FileTooLarge.__name__,
        }), 413

    @app.errorhandler(ClipTrimError)
    def clip_trim_error(error: ClipTrimError):
        status = 400
        body = {"error": str(error), "code": type(error).__name__}
        if isinstance(error, IllegalTransition):
            status = 409
        elif isinstance(error, FileTooLarge):
            status = 413
        elif isinstance(error, EngineUnavailable):
            status = 503
            body["retry"] = True
        if getattr(error, "index", None) is not None:
            body["index"] = error.index
        return jsonify(body), status

    return app
