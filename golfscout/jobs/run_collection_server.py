"""HTTP entrypoint for collection commands and continuation ticks (Cloud Run friendly)."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from golfscout.core.config import get_settings
from golfscout.core.errors import MissingCredentialError, NoActiveRunError
from golfscout.jobs.run_collection import CollectionRunner, build_runner
from golfscout.models import CollectionState
from golfscout.vendors.google_places import GooglePlacesError

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App ----------
app = Flask(__name__)
_runner: Optional[CollectionRunner] = None


def get_runner() -> CollectionRunner:
    global _runner
    if _runner is None:
        _runner = build_runner()
    return _runner


def _state_payload(state: CollectionState) -> Dict[str, Any]:
    return {
        "phase": state.phase.value,
        "center_index": state.center_index,
        "keyword_index": state.keyword_index,
        "has_cursor": bool(state.continuation_cursor),
        "batch_processed_count": state.batch_processed_count,
    }


@app.errorhandler(NoActiveRunError)
def _no_active_run(exc: NoActiveRunError) -> Any:
    return jsonify({"error": str(exc)}), 409


@app.errorhandler(MissingCredentialError)
def _missing_credential(exc: MissingCredentialError) -> Any:
    return jsonify({"error": str(exc)}), 400


@app.errorhandler(GooglePlacesError)
def _provider_error(exc: GooglePlacesError) -> Any:
    return jsonify({"error": str(exc), "provider_status": exc.status_code}), 502


# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "worker_port_config": settings.worker_port,
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.post("/collection/start")
def start_collection() -> Any:
    state = get_runner().start_collection()
    return jsonify({"data": _state_payload(state)}), 200


@app.post("/collection/continue")
def continue_collection() -> Any:
    state = get_runner().continue_collection()
    return jsonify({"data": _state_payload(state)}), 200


@app.post("/tasks/tick")
def tick() -> Any:
    ran = get_runner().tick()
    return jsonify({"data": {"continuations_run": ran}}), 200


@app.post("/collection/export")
def export() -> Any:
    path = get_runner().export(get_settings().export_dir)
    return jsonify({"data": {"path": str(path)}}), 200


@app.post("/collection/clear")
def clear() -> Any:
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    clear_all = payload.get("all", False)
    if not isinstance(clear_all, bool):
        return jsonify({"error": "all must be a boolean"}), 400

    runner = get_runner()
    if clear_all:
        runner.clear_all()
    else:
        runner.clear_progress()
    return jsonify({"data": {"cleared": "all" if clear_all else "progress"}}), 200


@app.get("/collection/status")
def status() -> Any:
    return jsonify({"data": get_runner().status()}), 200


def main() -> None:
    env_port = os.getenv("PORT")
    port = int(env_port or get_settings().worker_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
