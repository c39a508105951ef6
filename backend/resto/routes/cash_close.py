# Overview: Flask API routes for cash-close operations; parses input and returns JSON responses.

"""
Cash-Close API Routes

Shift lifecycle: open -> close -> verify, with restore back to open.
Any role may open, close, add expenses and restore; only admin/manager
may verify.
"""

from flask import Blueprint, request, current_app, g

from ..extensions import db
from ..errors import DomainError
from ..models.cash import SHIFTS, CASH_CLOSE_STATUSES
from ..responses import success, error_response, internal_error
from ..services import cash_close_service
from ..services.realtime_service import dispatch
from ..decorators import require_auth, require_role
from ..validation import (
    parse_positive_int_arg,
    parse_choice_arg,
    parse_date_arg,
    parse_date_range,
    require_json_object,
)


cash_close_bp = Blueprint("cash_close", __name__, url_prefix="/api/cash-close")


@cash_close_bp.get("")
@require_auth
def list_cash_closes_route():
    """Query: page, limit, status, shift, start_date, end_date."""
    try:
        page = parse_positive_int_arg(request.args, "page", 1)
        limit = parse_positive_int_arg(request.args, "limit", 20, maximum=100)
        status = parse_choice_arg(request.args, "status", CASH_CLOSE_STATUSES)
        shift = parse_choice_arg(request.args, "shift", SHIFTS)
        start, end = parse_date_range(request.args, "start_date", "end_date", required=False)

        records, pagination = cash_close_service.list_cash_closes(
            restaurant_id=g.restaurant_id,
            page=page,
            limit=limit,
            status=status,
            shift=shift,
            start=start,
            end=end,
        )
        summary = cash_close_service.daily_summary(restaurant_id=g.restaurant_id)
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list cash closes")
        return internal_error()

    return success({
        "cash_closes": [record.to_dict() for record in records],
        "pagination": pagination,
        "summary": summary,
    })


@cash_close_bp.get("/current")
@require_auth
def current_cash_close_route():
    """The restaurant's open cash close, or null."""
    try:
        record = cash_close_service.get_current(restaurant_id=g.restaurant_id)
    except Exception:
        current_app.logger.exception("Failed to get current cash close")
        return internal_error()

    return success({"cash_close": record.to_dict() if record else None})


@cash_close_bp.get("/summary/daily")
@require_auth
def daily_summary_route():
    try:
        day = parse_date_arg(request.args, "date")
        summary = cash_close_service.daily_summary(restaurant_id=g.restaurant_id, day=day)
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build cash close summary")
        return internal_error()

    return success({"summary": summary})


@cash_close_bp.get("/<int:cash_close_id>")
@require_auth
def get_cash_close_route(cash_close_id: int):
    try:
        record = cash_close_service.get_cash_close(cash_close_id, restaurant_id=g.restaurant_id)
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get cash close")
        return internal_error()

    return success({"cash_close": record.to_dict()})


@cash_close_bp.post("")
@require_auth
def open_cash_close_route():
    """
    Open a shift.

    Request body: {"shift": "morning", "opening_cash_cents": 5000000, "notes": "..."}
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        record, events = cash_close_service.open_cash_close(
            data, restaurant_id=g.restaurant_id, user_id=g.current_user.id
        )
    except DomainError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to open cash close")
        return internal_error()

    dispatch(events)
    return success({"cash_close": record.to_dict()}, "Cash close opened successfully", 201)


@cash_close_bp.put("/<int:cash_close_id>/close")
@require_auth
def close_cash_close_route(cash_close_id: int):
    """
    Close a shift and reconcile the drawer.

    Request body:
    {
        "closing_cash_cents": 13800000,
        "card_sales_cents": 3000000,
        "expenses": [{"description": "Ice", "amount_cents": 20000, "category": "supplies"}],
        "notes": "..."
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        record, events = cash_close_service.close_cash_close(
            cash_close_id, data, restaurant_id=g.restaurant_id, user_id=g.current_user.id
        )
    except DomainError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to close cash close")
        return internal_error()

    dispatch(events)
    return success({"cash_close": record.to_dict()}, "Cash close completed successfully")


@cash_close_bp.put("/<int:cash_close_id>/verify")
@require_auth
@require_role("admin", "manager")
def verify_cash_close_route(cash_close_id: int):
    try:
        record, events = cash_close_service.verify_cash_close(
            cash_close_id, restaurant_id=g.restaurant_id, user_id=g.current_user.id
        )
    except DomainError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to verify cash close")
        return internal_error()

    dispatch(events)
    return success({"cash_close": record.to_dict()}, "Cash close verified successfully")


@cash_close_bp.post("/<int:cash_close_id>/expenses")
@require_auth
def add_expense_route(cash_close_id: int):
    """Request body: {"description": "...", "amount_cents": 20000, "category": "other", "receipt": "..."}"""
    try:
        data = require_json_object(request.get_json(silent=True))
        record, events = cash_close_service.add_expense(
            cash_close_id, data, restaurant_id=g.restaurant_id
        )
    except DomainError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to add cash close expense")
        return internal_error()

    dispatch(events)
    return success({"cash_close": record.to_dict()}, "Expense added successfully", 201)


@cash_close_bp.put("/<int:cash_close_id>/restore")
@require_auth
def restore_cash_close_route(cash_close_id: int):
    try:
        record, events = cash_close_service.restore_cash_close(
            cash_close_id, restaurant_id=g.restaurant_id
        )
    except DomainError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to restore cash close")
        return internal_error()

    dispatch(events)
    return success({"cash_close": record.to_dict()}, "Cash close restored successfully")
