# Overview: Flask API routes for order operations; parses input and returns JSON responses.

"""
Order API Routes

Lifecycle side effects (stock decrement/restore, completion time) live in
order_service; routes only parse input, call the service and dispatch the
returned events.
"""

from flask import Blueprint, request, current_app, g

from ..extensions import db
from ..errors import DomainError
from ..models.orders import ORDER_STATUSES, ORDER_TYPES
from ..responses import success, error_response, internal_error
from ..services import order_service
from ..services.realtime_service import dispatch
from ..decorators import require_auth, require_role
from ..validation import (
    parse_positive_int_arg,
    parse_choice_arg,
    parse_date_arg,
    require_json_object,
)


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.get("")
@require_auth
def list_orders_route():
    """
    List active orders, newest first, with today's summary.

    Query: page, limit (1..100), status, type, date (calendar day), search
    (order number, customer name or phone)
    """
    try:
        page = parse_positive_int_arg(request.args, "page", 1)
        limit = parse_positive_int_arg(request.args, "limit", 20, maximum=100)
        status = parse_choice_arg(request.args, "status", ORDER_STATUSES)
        order_type = parse_choice_arg(request.args, "type", ORDER_TYPES)
        day = parse_date_arg(request.args, "date")
        search = (request.args.get("search") or "").strip()[:100] or None

        orders, pagination = order_service.list_orders(
            restaurant_id=g.restaurant_id,
            page=page,
            limit=limit,
            status=status,
            order_type=order_type,
            day=day,
            search=search,
        )
        summary = order_service.daily_summary(restaurant_id=g.restaurant_id)
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return internal_error()

    return success({
        "orders": [order.to_dict() for order in orders],
        "pagination": pagination,
        "summary": summary,
    })


@orders_bp.get("/summary/daily")
@require_auth
def daily_summary_route():
    """Query: date (defaults to today)."""
    try:
        day = parse_date_arg(request.args, "date")
        summary = order_service.daily_summary(restaurant_id=g.restaurant_id, day=day)
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build daily order summary")
        return internal_error()

    return success({"summary": summary})


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id, restaurant_id=g.restaurant_id)
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get order")
        return internal_error()

    return success({"order": order.to_dict()})


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Create an order.

    Request body:
    {
        "customer": {"name": "Ana", "phone": "...", "email": "...",
                     "address": {"street": "...", "city": "...", "notes": "..."}},
        "type": "dine-in" | "takeout" | "delivery",
        "table_number": "5",                        (optional)
        "items": [{"inventory_item_id": 1, "quantity": 2}],
        "payment_method": "cash",                   (optional)
        "notes": "...",                             (optional)
        "tax_cents": 0, "discount_cents": 0         (optional)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        order, events = order_service.create_order(
            data, restaurant_id=g.restaurant_id, created_by_id=g.current_user.id
        )
    except DomainError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create order")
        return internal_error()

    dispatch(events)
    return success({"order": order.to_dict()}, "Order created successfully", 201)


@orders_bp.put("/<int:order_id>")
@require_auth
def update_order_route(order_id: int):
    try:
        data = require_json_object(request.get_json(silent=True))
        order, events = order_service.update_order(order_id, data, restaurant_id=g.restaurant_id)
    except DomainError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update order")
        return internal_error()

    dispatch(events)
    return success({"order": order.to_dict()}, "Order updated successfully")


@orders_bp.put("/<int:order_id>/status")
@require_auth
def update_status_route(order_id: int):
    """Request body: {"status": "preparing"}"""
    try:
        data = require_json_object(request.get_json(silent=True))
        order, events = order_service.update_status(
            order_id, data.get("status"), restaurant_id=g.restaurant_id
        )
    except DomainError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update order status")
        return internal_error()

    dispatch(events)
    return success({"order": order.to_dict()}, "Order status updated successfully")


@orders_bp.delete("/<int:order_id>")
@require_auth
@require_role("admin", "manager")
def delete_order_route(order_id: int):
    try:
        _, events = order_service.delete_order(order_id, restaurant_id=g.restaurant_id)
    except DomainError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete order")
        return internal_error()

    dispatch(events)
    return success(message="Order deleted successfully")
