from flask import Blueprint, current_app

bp = Blueprint("routes", __name__)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON, including the schema check result once it has run."""
    return {"ok": True, "schema_ok": current_app.config.get("_schema_health_ok")}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for container probes. No DB access, minimal overhead.
    """
    return "ok", 200
