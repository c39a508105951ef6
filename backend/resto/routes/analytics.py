# Overview: Flask API routes for analytics; read-only reports and projections.

from flask import Blueprint, request, current_app, g

from ..errors import DomainError
from ..responses import success, error_response, internal_error
from ..services import analytics_service
from ..decorators import require_auth
from ..validation import parse_choice_arg, parse_date_range


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


@analytics_bp.get("/dashboard")
@require_auth
def dashboard_route():
    try:
        data = analytics_service.dashboard(restaurant_id=g.restaurant_id)
    except Exception:
        current_app.logger.exception("Failed to build dashboard")
        return internal_error()

    return success(data)


@analytics_bp.get("/sales")
@require_auth
def sales_route():
    """Query: start, end (ISO-8601, required), group_by (day|week|month, default day)."""
    try:
        start, end = parse_date_range(request.args)
        group_by = parse_choice_arg(request.args, "group_by", tuple(analytics_service.GROUP_FORMATS)) or "day"
        data = analytics_service.sales_report(
            restaurant_id=g.restaurant_id, start=start, end=end, group_by=group_by
        )
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build sales report")
        return internal_error()

    return success(data)


@analytics_bp.get("/inventory")
@require_auth
def inventory_route():
    try:
        data = analytics_service.inventory_report(restaurant_id=g.restaurant_id)
    except Exception:
        current_app.logger.exception("Failed to build inventory report")
        return internal_error()

    return success(data)


@analytics_bp.get("/orders")
@require_auth
def orders_route():
    """Query: start, end (ISO-8601, required)."""
    try:
        start, end = parse_date_range(request.args)
        data = analytics_service.orders_report(restaurant_id=g.restaurant_id, start=start, end=end)
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build orders report")
        return internal_error()

    return success(data)


@analytics_bp.get("/projections")
@require_auth
def projections_route():
    """Query: period (week|month|quarter, default week)."""
    try:
        period = parse_choice_arg(request.args, "period", analytics_service.PROJECTION_PERIODS) or "week"
        data = analytics_service.projections(restaurant_id=g.restaurant_id, period=period)
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build projections")
        return internal_error()

    return success(data)
