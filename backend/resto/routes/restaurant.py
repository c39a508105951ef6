# Overview: Flask API routes for the caller's restaurant profile and settings.

from flask import Blueprint, request, current_app, g

from ..extensions import db
from ..errors import DomainError
from ..responses import success, error_response, internal_error
from ..services import restaurant_service
from ..services.realtime_service import dispatch
from ..decorators import require_auth, require_role
from ..validation import require_json_object


restaurant_bp = Blueprint("restaurant", __name__, url_prefix="/api/restaurant")


@restaurant_bp.get("")
@require_auth
def get_restaurant_route():
    try:
        restaurant = restaurant_service.get_restaurant(restaurant_id=g.restaurant_id)
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get restaurant")
        return internal_error()

    return success({"restaurant": restaurant.to_dict()})


@restaurant_bp.put("/settings")
@require_auth
@require_role("admin")
def update_settings_route():
    """
    Partial update.

    Request body (all optional):
    {
        "name": "...",
        "address": {"street", "city", "state", "zip_code", "country"},
        "contact": {"phone", "email"},
        "settings": {"currency", "timezone", "tax_rate", "business_hours": {"monday": {...}}}
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        restaurant, events = restaurant_service.update_settings(data, restaurant_id=g.restaurant_id)
    except DomainError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update restaurant settings")
        return internal_error()

    dispatch(events)
    return success({"restaurant": restaurant.to_dict()}, "Settings updated successfully")
