from __future__ import annotations

from flask import Blueprint, jsonify

from flask_app.deps import get_state


admin_bp = Blueprint("admin", __name__)


@admin_bp.get("/health")
def health_check():
    app_state = get_state()
    if app_state.init_state != "Ready" or app_state.service is None:
        payload = {"status": "not_ready", "init_state": app_state.init_state}
        if app_state.init_error:
            payload["error"] = app_state.init_error
        return jsonify(payload), 503
    return jsonify({"status": "OK", "started_at": app_state.started_at.isoformat()}), 200
