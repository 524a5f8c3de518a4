from __future__ import annotations

from flask import Blueprint, current_app, jsonify


bp = Blueprint("health", __name__, url_prefix="/health")


@bp.get("/")
def health():
    return jsonify({"status": "ok"})


@bp.get("/backend")
def backend_status():
    backend = current_app.extensions["shipdesk"]["backend"]
    return jsonify(
        {
            "status": "configured" if getattr(backend, "base_url", None) else "UNKNOWN",
            "base_url": getattr(backend, "base_url", None),
            "timeout": getattr(backend, "timeout", None),
        }
    )
