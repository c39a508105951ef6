# Overview: Flask API route for closing out the business day.

from flask import Blueprint, current_app, g

from ..extensions import db
from ..responses import success, failure
from ..services import day_service
from ..services.realtime_service import dispatch
from ..decorators import require_auth, require_role


day_bp = Blueprint("day", __name__, url_prefix="/api/day")


@day_bp.post("/end")
@require_auth
@require_role("admin", "manager")
def end_day_route():
    """
    Archive today's activity.

    Stores today's revenue as a full-day cash-close record and soft-deletes
    every active order of the restaurant.
    """
    try:
        data, events = day_service.end_day(restaurant_id=g.restaurant_id, user_id=g.current_user.id)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to end the day")
        return failure("Internal server error while ending the day", 500)

    dispatch(events)
    return success(data, "Day ended successfully. Orders were archived and totals saved.")
