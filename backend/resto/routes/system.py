# Overview: Flask API routes for health checks; reports database and broker status.

"""
System health endpoint.

Public. Reports database connectivity with latency and whether real-time
dispatch is enabled.
"""

import time
from flask import Blueprint, current_app

from ..extensions import db
from ..models import Restaurant
from ..responses import success, failure
from resto.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        restaurant_count = db.session.query(Restaurant).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"restaurants": restaurant_count},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    data = {
        "timestamp": to_utc_z(utcnow()),
        "database": database,
        "realtime": {"enabled": bool(current_app.config.get("REALTIME_ENABLED", True))},
    }
    if database["status"] != "healthy":
        return failure("Service unhealthy", 503)
    return success(data, "Service is healthy")
