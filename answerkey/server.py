"""
HTTP Microservice
=================
Flask-based HTTP API for the answer-key scorer.

Endpoints:
    POST   /api/score                      → Score an answer-key URL
    GET    /api/saved-keys                 → List archived sanitized keys
    GET    /api/saved-keys/<file>          → Download an archived key
    POST   /api/saved-keys/<file>/delete   → Delete an archived key
    GET    /api/proxy-image?url=...        → Fetch an image as a data URI
    GET    /api/health                     → Health check
"""

from __future__ import annotations

import logging
import os

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from . import __version__
from .engine import ScoreConfig, ScoreEngine
from .errors import AnswerKeyError, FileNotAllowedError
from .fetcher import DEFAULT_TIMEOUT, fetch_image_data_uri
from .storage import FileSystemStorage, SavedKeyArchive

logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)


def create_app(config: dict = None) -> Flask:
    """Create and configure the Flask app."""
    if config:
        app.config.update(config)

    app.config.setdefault(
        "SAVED_KEYS_DIR", os.environ.get("ANSWERKEY_SAVED_KEYS_DIR")
    )
    app.config.setdefault(
        "FETCH_TIMEOUT",
        float(os.environ.get("ANSWERKEY_FETCH_TIMEOUT", DEFAULT_TIMEOUT)),
    )
    app.config.setdefault("ARCHIVE_ENABLED", True)
    app.config.setdefault("BACKGROUND_ARCHIVE", True)
    app.config.setdefault("LOG_LEVEL", "INFO")

    return app


def _archive() -> SavedKeyArchive:
    return SavedKeyArchive(FileSystemStorage(app.config.get("SAVED_KEYS_DIR")))


# ─── Error Handling ───────────────────────────────────────────────────────────


@app.errorhandler(AnswerKeyError)
def handle_answer_key_error(error: AnswerKeyError):
    return jsonify({"error": error.message}), error.status_code


# ─── Health Check ─────────────────────────────────────────────────────────────


@app.route("/api/health", methods=["GET"])
def health():
    """Health check endpoint."""
    return jsonify({
        "status": "healthy",
        "service": "answer-key-scorer",
        "version": __version__,
    })


# ─── Score Endpoint ──────────────────────────────────────────────────────────


@app.route("/api/score", methods=["POST"])
def score():
    """
    Score an answer-key page.

    JSON body: {"url": "https://..."}
    Returns totals, per-section tallies, detected sections and meta.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}

    config = ScoreConfig(
        fetch_timeout=app.config.get("FETCH_TIMEOUT", DEFAULT_TIMEOUT),
        archive_enabled=app.config.get("ARCHIVE_ENABLED", True),
        background_archive=app.config.get("BACKGROUND_ARCHIVE", True),
        saved_keys_dir=app.config.get("SAVED_KEYS_DIR"),
        log_level=app.config.get("LOG_LEVEL", "INFO"),
    )

    try:
        result = ScoreEngine(config).score_url(data.get("url"))
    except AnswerKeyError:
        raise
    except Exception:
        logger.exception("Unexpected scoring failure")
        return jsonify({"error": "Unknown error"}), 500

    return jsonify(result.to_response())


# ─── Saved Keys ───────────────────────────────────────────────────────────────


@app.route("/api/saved-keys", methods=["GET"])
def list_saved_keys():
    """List archived keys, newest first."""
    try:
        files = _archive().list_files()
    except OSError:
        return jsonify({"files": [], "error": "Unable to read saved keys"})
    return jsonify({"files": [f.model_dump() for f in files]})


@app.route("/api/saved-keys/<file>", methods=["GET"])
def get_saved_key(file: str):
    """Download an archived key as an HTML attachment."""
    try:
        data = _archive().read(file)
    except FileNotAllowedError:
        raise
    except OSError:
        return jsonify({"error": "File not found"}), 404

    return Response(
        data,
        status=200,
        headers={
            "Content-Type": "text/html; charset=utf-8",
            "Content-Disposition": f'attachment; filename="{file}"',
        },
    )


@app.route("/api/saved-keys/<file>/delete", methods=["POST"])
def delete_saved_key(file: str):
    """Delete an archived key."""
    try:
        _archive().delete(file)
    except FileNotAllowedError:
        raise
    except OSError:
        return jsonify({"error": "Delete failed"}), 404
    return jsonify({"ok": True})


# ─── Image Proxy ──────────────────────────────────────────────────────────────


@app.route("/api/proxy-image", methods=["GET"])
def proxy_image():
    """Return a remote image as a data URI to sidestep cross-origin limits."""
    url = request.args.get("url")
    if not url:
        return jsonify({"error": "Missing url"}), 400

    data_url = fetch_image_data_uri(
        url, timeout=app.config.get("FETCH_TIMEOUT", DEFAULT_TIMEOUT)
    )
    return jsonify({"dataUrl": data_url})


# ─── Run Server ──────────────────────────────────────────────────────────────


def run_server(
    host: str = "0.0.0.0",
    port: int = 5000,
    debug: bool = False,
):
    """Start the microservice server."""
    create_app()
    app.run(host=host, port=port, debug=debug)


if __name__ == "__main__":
    run_server(debug=True)
