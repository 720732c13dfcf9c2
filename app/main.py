from __future__ import annotations

import os
import threading
from typing import Any, Dict, Optional

from flask import Flask, Response, jsonify, request

from app.harvester import config, db
from app.harvester.config_validation import validate_runtime_config
from app.harvester.healthcheck import run_health_checks
from app.harvester.loop import LoopConfig
from app.harvester.run import harvest_reviews
from app.harvester.utils import ensure_dirs, log_line

app = Flask(__name__)

# Initialise storage paths and SQLite schema on import so WSGI entrypoints
# also have the expected environment ready. Idempotent.
ensure_dirs()
db.initialize_schema()

_HARVEST_LOCK = threading.Lock()
_CANCEL_EVENT = threading.Event()
_ACTIVE: Dict[str, Any] = {"thread": None, "owner_id": None}


def _optional_int(payload: Dict[str, Any], key: str) -> Optional[int]:
    value = payload.get(key)
    if value is None or value == "":
        return None
    return int(value)


def _harvest_running() -> bool:
    thread = _ACTIVE.get("thread")
    return thread is not None and thread.is_alive()


@app.post("/api/harvest")
def api_harvest() -> Response:
    """Start a background harvest for one product."""

    payload = request.get_json(silent=True) or request.form.to_dict()
    owner_id = str(payload.get("owner_id") or "").strip()
    product_url = str(payload.get("product_url") or "").strip()
    if not owner_id or not product_url:
        return jsonify({"ok": False, "error": "owner_id and product_url are required"}), 400

    try:
        loop_config = LoopConfig.from_config(
            max_iterations=_optional_int(payload, "max_iterations"),
            post_trigger_delay_ms=_optional_int(payload, "post_trigger_delay_ms"),
            growth_timeout_ms=_optional_int(payload, "growth_timeout_ms"),
        )
    except (TypeError, ValueError):
        return jsonify({"ok": False, "error": "invalid_params"}), 400

    try:
        validate_runtime_config("ui", loop_config=loop_config)
    except ValueError as exc:
        return jsonify({"ok": False, "error": "config_invalid", "details": str(exc)}), 400

    with _HARVEST_LOCK:
        if _harvest_running():
            return (
                jsonify({"ok": False, "error": "harvest_running", "owner_id": _ACTIVE["owner_id"]}),
                409,
            )
        _CANCEL_EVENT.clear()

        def _run() -> None:
            with app.app_context():
                try:
                    result = harvest_reviews(
                        owner_id,
                        product_url,
                        loop_config=loop_config,
                        trigger="ui",
                        entrypoint="ui",
                        cancel_signal=_CANCEL_EVENT,
                    )
                    app.config["LAST_SUMMARY"] = result.summary()
                except Exception as exc:  # noqa: BLE001
                    log_line(f"Harvest thread failed: {exc}")

        thread = threading.Thread(target=_run, daemon=True)
        _ACTIVE.update(thread=thread, owner_id=owner_id)
        thread.start()

    return jsonify({"ok": True, "owner_id": owner_id, "status": "started"}), 202


@app.post("/api/harvest/cancel")
def api_harvest_cancel() -> Response:
    """Ask the running harvest to stop at its next iteration boundary."""

    if not _harvest_running():
        return jsonify({"ok": False, "error": "no_harvest_running"}), 404
    _CANCEL_EVENT.set()
    return jsonify({"ok": True, "owner_id": _ACTIVE["owner_id"], "status": "cancelling"})


@app.get("/api/health")
def api_health() -> Response:
    """Return a JSON health summary for configuration, filesystem, and DB."""

    result = run_health_checks(entrypoint="ui")
    status = 200 if result.ok else 503
    return jsonify({"ok": result.ok, "checks": result.checks}), status


@app.get("/api/runs/latest")
def api_runs_latest() -> Response:
    run_id = db.latest_run_id()
    if run_id is None:
        return jsonify({"ok": False, "error": "no runs"}), 404
    return jsonify({"ok": True, "run": db.get_run(run_id)})


@app.get("/api/runs/<int:run_id>")
def api_run(run_id: int) -> Response:
    run = db.get_run(run_id)
    if run is None:
        return jsonify({"ok": False, "error": "run_not_found", "run_id": run_id}), 404
    return jsonify({"ok": True, "run": run})


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    log_line(f"Serving harvester API on port {port} (data dir {config.DATA_DIR})")
    app.run(host="0.0.0.0", port=port)
