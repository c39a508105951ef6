# Overview: Service-layer operations for inventory items; derived fields, stock adjustments and summaries.

"""
Inventory Service

DERIVED FIELDS: total_value_cents and is_low_stock are never trusted from
clients. compute_item_derived() is a pure function; recompute_item_derived()
applies it to an item and must be called before every write.

STOCK ADJUSTMENTS:
- set:      quantity = max(0, amount)
- add:      quantity += amount
- subtract: quantity = max(0, quantity - amount)

Order side effects (decrement on preparing/delivered, restore on
cancel/delete) use adjust_stock() so derived fields stay consistent.
"""

import logging

from sqlalchemy import case, func, or_

from ..extensions import db
from ..models import InventoryItem
from ..models.inventory import CATEGORIES, UNITS, QUANTITY_OPERATIONS
from ..errors import NotFoundError, OrderItemNotFoundError, ValidationError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    flatten_payload,
    enforce_rules_inventory_item,
)
from .tenant_service import scoped, get_scoped_or_404, paginate
from .realtime_service import DomainEvent
from resto.time_utils import utcnow


logger = logging.getLogger(__name__)

ITEM_NOT_FOUND = "Inventory item not found"

INVENTORY_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "description", "category", "sku",
        "quantity", "min_quantity", "max_quantity",
        "cost_price_cents", "selling_price_cents", "unit",
        "supplier_name", "supplier_contact", "supplier_email",
    },
    required_on_create={"name", "category", "quantity", "cost_price_cents", "selling_price_cents", "unit"},
    choices={"category": CATEGORIES, "unit": UNITS},
    min_values={
        "quantity": 0,
        "min_quantity": 0,
        "max_quantity": 0,
        "cost_price_cents": 0,
        "selling_price_cents": 0,
    },
)


# =============================================================================
# PURE FUNCTIONS
# =============================================================================

def compute_item_derived(quantity: int, cost_price_cents: int, min_quantity: int) -> dict:
    """total_value = quantity * cost_price; low stock when quantity <= min_quantity."""
    return {
        "total_value_cents": quantity * cost_price_cents,
        "is_low_stock": quantity <= min_quantity,
    }


def apply_quantity_operation(current: int, amount: int, operation: str) -> int:
    if operation == "add":
        return current + amount
    if operation == "subtract":
        return max(0, current - amount)
    if operation == "set":
        return max(0, amount)
    raise ValidationError.single(
        "operation", f"operation must be one of: {', '.join(QUANTITY_OPERATIONS)}"
    )


def recompute_item_derived(item: InventoryItem) -> InventoryItem:
    derived = compute_item_derived(
        item.quantity or 0,
        item.cost_price_cents or 0,
        item.min_quantity if item.min_quantity is not None else 5,
    )
    item.total_value_cents = derived["total_value_cents"]
    item.is_low_stock = derived["is_low_stock"]
    item.last_updated = utcnow()
    return item


def _event(item: InventoryItem, event_type: str, **extra) -> DomainEvent:
    payload = {"item": item.to_dict()}
    payload.update(extra)
    return DomainEvent(item.restaurant_id, event_type, payload)


def _low_stock_events(item: InventoryItem, was_low: bool) -> list[DomainEvent]:
    if item.is_low_stock and not was_low:
        return [DomainEvent(item.restaurant_id, "inventory.low_stock", {
            "item_id": item.id,
            "name": item.name,
            "quantity": item.quantity,
            "min_quantity": item.min_quantity,
        })]
    return []


# =============================================================================
# QUERIES
# =============================================================================

def get_item(item_id, *, restaurant_id: int) -> InventoryItem:
    return get_scoped_or_404(InventoryItem, item_id, restaurant_id=restaurant_id, message=ITEM_NOT_FOUND)


def list_items(
    *,
    restaurant_id: int,
    page: int = 1,
    limit: int = 20,
    category: str | None = None,
    search: str | None = None,
    low_stock: bool | None = None,
) -> tuple[list[InventoryItem], dict]:
    """Active items sorted by name, with category/search/low-stock filters."""
    query = scoped(InventoryItem, restaurant_id=restaurant_id)

    if category:
        query = query.filter(InventoryItem.category == category)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            InventoryItem.name.ilike(pattern),
            InventoryItem.description.ilike(pattern),
            InventoryItem.sku.ilike(pattern),
        ))

    if low_stock:
        query = query.filter(InventoryItem.is_low_stock.is_(True))

    query = query.order_by(InventoryItem.name.asc(), InventoryItem.id.asc())
    return paginate(query, page=page, limit=limit)


def list_low_stock(*, restaurant_id: int) -> list[InventoryItem]:
    return (
        scoped(InventoryItem, restaurant_id=restaurant_id)
        .filter(InventoryItem.is_low_stock.is_(True))
        .order_by(InventoryItem.quantity.asc(), InventoryItem.id.asc())
        .all()
    )


def get_summary(*, restaurant_id: int) -> dict:
    """Item count, total value, low-stock count and distinct categories."""
    base = scoped(InventoryItem, restaurant_id=restaurant_id)

    total_items, total_value, low_stock_items = base.with_entities(
        func.count(InventoryItem.id),
        func.coalesce(func.sum(InventoryItem.total_value_cents), 0),
        func.coalesce(func.sum(
            case((InventoryItem.quantity <= InventoryItem.min_quantity, 1), else_=0)
        ), 0),
    ).one()

    categories = [
        row[0] for row in base.with_entities(InventoryItem.category)
        .distinct()
        .order_by(InventoryItem.category)
        .all()
    ]

    return {
        "total_items": int(total_items or 0),
        "total_value_cents": int(total_value or 0),
        "low_stock_items": int(low_stock_items or 0),
        "categories": categories,
    }


# =============================================================================
# MUTATIONS
# =============================================================================

def create_item(payload: dict, *, restaurant_id: int) -> tuple[InventoryItem, list[DomainEvent]]:
    flat, paths = flatten_payload(payload or {}, {"supplier"})
    patch = validate_payload(
        model=InventoryItem, payload=flat, policy=INVENTORY_POLICY, partial=False, paths=paths
    )
    patch.setdefault("min_quantity", 5)
    patch.setdefault("max_quantity", 1000)
    enforce_rules_inventory_item(patch)

    item = InventoryItem(restaurant_id=restaurant_id, is_active=True, **patch)
    recompute_item_derived(item)

    db.session.add(item)
    db.session.commit()

    return item, [_event(item, "inventory.created")]


def update_item(item_id, payload: dict, *, restaurant_id: int) -> tuple[InventoryItem, list[DomainEvent]]:
    item = get_item(item_id, restaurant_id=restaurant_id)

    flat, paths = flatten_payload(payload or {}, {"supplier"})
    patch = validate_payload(
        model=InventoryItem, payload=flat, policy=INVENTORY_POLICY, partial=True, paths=paths
    )
    enforce_rules_inventory_item(patch)

    lo = patch.get("min_quantity", item.min_quantity)
    hi = patch.get("max_quantity", item.max_quantity)
    if lo is not None and hi is not None and lo > hi:
        raise ValidationError.single("min_quantity", "min_quantity cannot exceed max_quantity")

    was_low = item.is_low_stock
    for key, value in patch.items():
        setattr(item, key, value)
    recompute_item_derived(item)

    db.session.commit()

    return item, [_event(item, "inventory.updated")] + _low_stock_events(item, was_low)


def delete_item(item_id, *, restaurant_id: int) -> tuple[InventoryItem, list[DomainEvent]]:
    """Soft delete. The item keeps its history but disappears from listings."""
    item = get_item(item_id, restaurant_id=restaurant_id)
    item.is_active = False
    item.last_updated = utcnow()
    db.session.commit()

    return item, [DomainEvent(restaurant_id, "inventory.deleted", {"item_id": item.id})]


def update_quantity(item_id, amount, operation: str | None, *, restaurant_id: int) -> tuple[InventoryItem, list[DomainEvent]]:
    """Manual stock adjustment (set/add/subtract, default set)."""
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise ValidationError.single("quantity", "quantity must be a non-negative integer")
    operation = operation or "set"
    if operation not in QUANTITY_OPERATIONS:
        raise ValidationError.single(
            "operation", f"operation must be one of: {', '.join(QUANTITY_OPERATIONS)}"
        )

    item = get_item(item_id, restaurant_id=restaurant_id)
    previous = item.quantity
    was_low = item.is_low_stock

    item.quantity = apply_quantity_operation(item.quantity, amount, operation)
    recompute_item_derived(item)
    db.session.commit()

    events = [_event(
        item, "inventory.quantity_updated",
        operation=operation, previous_quantity=previous,
    )]
    return item, events + _low_stock_events(item, was_low)


def adjust_stock(item_id: int, delta: int, *, restaurant_id: int) -> tuple[InventoryItem | None, list[DomainEvent]]:
    """
    Apply an order side effect to one item and commit it on its own.

    delta is applied as is, with no floor, so a decrement and the matching
    restore always cancel out. Stock can go negative when two orders
    compete for the same units. Items deleted since the order was placed
    are still adjusted; items missing entirely are skipped with a warning.
    """
    item = scoped(InventoryItem, restaurant_id=restaurant_id, active_only=False).filter(
        InventoryItem.id == item_id
    ).first()
    if item is None:
        logger.warning("Skipping stock adjustment for missing item %s (restaurant %s)", item_id, restaurant_id)
        return None, []

    was_low = item.is_low_stock
    item.quantity = (item.quantity or 0) + delta
    recompute_item_derived(item)
    db.session.commit()

    events = [_event(item, "inventory.quantity_updated", delta=delta)]
    return item, events + _low_stock_events(item, was_low)


def category_breakdown(*, restaurant_id: int) -> list[dict]:
    """Per-category count, units and value, sorted by value descending."""
    rows = (
        scoped(InventoryItem, restaurant_id=restaurant_id)
        .with_entities(
            InventoryItem.category,
            func.count(InventoryItem.id),
            func.coalesce(func.sum(InventoryItem.quantity), 0),
            func.coalesce(func.sum(InventoryItem.total_value_cents), 0),
        )
        .group_by(InventoryItem.category)
        .all()
    )
    result = [
        {
            "category": category,
            "count": int(count),
            "total_quantity": int(quantity),
            "total_value_cents": int(value),
        }
        for category, count, quantity, value in rows
    ]
    result.sort(key=lambda r: r["total_value_cents"], reverse=True)
    return result


def recently_updated(*, restaurant_id: int, limit: int = 10) -> list[InventoryItem]:
    return (
        scoped(InventoryItem, restaurant_id=restaurant_id)
        .order_by(InventoryItem.last_updated.desc(), InventoryItem.id.desc())
        .limit(limit)
        .all()
    )


def require_item_for_order(item_id, *, restaurant_id: int) -> InventoryItem:
    """Lookup used by order creation; missing/inactive items are a bad request."""
    try:
        return get_item(item_id, restaurant_id=restaurant_id)
    except NotFoundError:
        raise OrderItemNotFoundError(f"Inventory item {item_id} not found")
