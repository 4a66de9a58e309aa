# backend/erp/routes/system.py
"""
System health endpoint (no authentication).
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from erp.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "response_time_ms": round(elapsed_ms, 2)}
    except Exception as e:
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {"status": "unhealthy", "error": type(e).__name__}


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    body = {
        "status": "ok" if healthy else "degraded",
        "checks": {"database": database},
        "timestamp": to_utc_z(utcnow()),
    }
    return body, (200 if healthy else 503)
