"""HTTP surface for blockcheck (Flask).

`POST /api/check` runs one batch through the engine and answers
`{"results": [...]}`; `GET /` serves the dashboard.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from flask import Blueprint, Flask, current_app, jsonify, render_template, request

from .config import load_effective_settings
from .engine.runtime import STATUS_BLOCKED, InvalidInput, _run_coro_sync, parse_domains_payload, run_checks
from .engine.settings import CheckSettings
from .version import __version__

logger = logging.getLogger("blockcheck")

bp = Blueprint("blockcheck", __name__)


def _settings() -> CheckSettings:
    return current_app.config["BLOCKCHECK_SETTINGS"]


@bp.route("/", methods=["GET"])
def dashboard():
    return render_template("index.html", version=__version__)


@bp.route("/api/health", methods=["GET"])
def health():
    return jsonify({"status": "ok", "version": __version__})


@bp.route("/api/check", methods=["POST"])
def check():
    payload = request.get_json(silent=True)
    try:
        domains = parse_domains_payload(payload)
    except InvalidInput:
        return jsonify({"error": "Invalid input"}), 400

    detail = bool(payload.get("detail"))
    started = time.perf_counter()
    results = _run_coro_sync(run_checks(domains, _settings()))
    elapsed_ms = int((time.perf_counter() - started) * 1000)
    blocked = sum(1 for r in results if r.status == STATUS_BLOCKED)
    logger.info(
        "/api/check inputs=%d results=%d blocked=%d elapsed_ms=%d",
        len(domains),
        len(results),
        blocked,
        elapsed_ms,
    )
    return jsonify({"results": [r.to_dict(detail=detail) for r in results]})


def create_app(settings: Optional[CheckSettings] = None) -> Flask:
    app = Flask(__name__)
    app.config["BLOCKCHECK_SETTINGS"] = settings or load_effective_settings()
    app.json.sort_keys = False
    app.register_blueprint(bp)
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    return app


def serve(settings: CheckSettings, host: Optional[str] = None, port: Optional[int] = None) -> None:
    app = create_app(settings)
    bind_host = host or settings.host
    bind_port = port or settings.port
    logger.info("blockcheck v%s dashboard at http://%s:%d", __version__, bind_host, bind_port)
    app.run(host=bind_host, port=bind_port, debug=False, use_reloader=False, threaded=True)
