# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

"""
Inventory API Routes

- reads are open to every authenticated role
- create/update/delete require admin or manager
- update-quantity is open to every role (stock counts at the counter)
"""

from flask import Blueprint, request, current_app, g

from ..extensions import db
from ..errors import DomainError
from ..models.inventory import CATEGORIES
from ..responses import success, error_response, internal_error
from ..services import inventory_service
from ..services.realtime_service import dispatch
from ..decorators import require_auth, require_role
from ..validation import (
    parse_positive_int_arg,
    parse_choice_arg,
    parse_bool_arg,
    require_json_object,
)


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_auth
def list_items_route():
    """
    List active items sorted by name.

    Query: page, limit (1..100), category, search (name/description/sku),
    low_stock=true
    """
    try:
        page = parse_positive_int_arg(request.args, "page", 1)
        limit = parse_positive_int_arg(request.args, "limit", 20, maximum=100)
        category = parse_choice_arg(request.args, "category", CATEGORIES)
        low_stock = parse_bool_arg(request.args, "low_stock")
        search = (request.args.get("search") or "").strip()[:100] or None

        items, pagination = inventory_service.list_items(
            restaurant_id=g.restaurant_id,
            page=page,
            limit=limit,
            category=category,
            search=search,
            low_stock=low_stock,
        )
        summary = inventory_service.get_summary(restaurant_id=g.restaurant_id)
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list inventory items")
        return internal_error()

    return success({
        "items": [item.to_dict() for item in items],
        "pagination": pagination,
        "summary": summary,
    })


@inventory_bp.get("/low-stock")
@require_auth
def low_stock_route():
    try:
        items = inventory_service.list_low_stock(restaurant_id=g.restaurant_id)
    except Exception:
        current_app.logger.exception("Failed to list low stock items")
        return internal_error()

    return success({"items": [item.to_dict() for item in items]})


@inventory_bp.get("/summary")
@require_auth
def summary_route():
    try:
        summary = inventory_service.get_summary(restaurant_id=g.restaurant_id)
    except Exception:
        current_app.logger.exception("Failed to build inventory summary")
        return internal_error()

    return success({"summary": summary})


@inventory_bp.get("/<int:item_id>")
@require_auth
def get_item_route(item_id: int):
    try:
        item = inventory_service.get_item(item_id, restaurant_id=g.restaurant_id)
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get inventory item")
        return internal_error()

    return success({"item": item.to_dict()})


@inventory_bp.post("")
@require_auth
@require_role("admin", "manager")
def create_item_route():
    """
    Create an inventory item.

    Request body:
    {
        "name": "Coca-Cola 350ml",
        "category": "Bebidas",
        "quantity": 48,
        "cost_price_cents": 150000,
        "selling_price_cents": 300000,
        "unit": "unidad",
        "min_quantity": 10,                                       (optional)
        "sku": "beb-001",                                         (optional)
        "supplier": {"name": "...", "contact": "...", "email": "..."} (optional)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        item, events = inventory_service.create_item(data, restaurant_id=g.restaurant_id)
    except DomainError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create inventory item")
        return internal_error()

    dispatch(events)
    return success({"item": item.to_dict()}, "Item created successfully", 201)


@inventory_bp.put("/<int:item_id>")
@require_auth
@require_role("admin", "manager")
def update_item_route(item_id: int):
    try:
        data = require_json_object(request.get_json(silent=True))
        item, events = inventory_service.update_item(item_id, data, restaurant_id=g.restaurant_id)
    except DomainError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update inventory item")
        return internal_error()

    dispatch(events)
    return success({"item": item.to_dict()}, "Item updated successfully")


@inventory_bp.delete("/<int:item_id>")
@require_auth
@require_role("admin", "manager")
def delete_item_route(item_id: int):
    try:
        item, events = inventory_service.delete_item(item_id, restaurant_id=g.restaurant_id)
    except DomainError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete inventory item")
        return internal_error()

    dispatch(events)
    return success(message="Item deleted successfully")


@inventory_bp.post("/<int:item_id>/update-quantity")
@require_auth
def update_quantity_route(item_id: int):
    """
    Adjust stock.

    Request body: {"quantity": 5, "operation": "set" | "add" | "subtract"}
    operation defaults to "set".
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        item, events = inventory_service.update_quantity(
            item_id,
            data.get("quantity"),
            data.get("operation"),
            restaurant_id=g.restaurant_id,
        )
    except DomainError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update inventory quantity")
        return internal_error()

    dispatch(events)
    return success({"item": item.to_dict()}, "Quantity updated successfully")
