# Overview: Service-layer operations for orders; lifecycle transitions and their inventory side effects.

"""
Order Lifecycle Service

STATES: pending -> confirmed -> preparing -> ready -> delivered, with
cancelled reachable. Any status may be requested from any status.

INVENTORY EFFECT (guarded by inventory_decremented_at):
- entering preparing/delivered with the marker unset: decrement every
  line's item by its quantity, then set the marker
- entering cancelled with the marker set: restore every line, clear the
  marker; cancelled orders also become inactive
- soft delete of a non-delivered order: restore every line unconditionally

Stock adjustments and the order update are separate commits. A failure
between them leaves the marker unset, which is the reconciliation signal.

TOTALS: compute_order_totals() is pure; recompute_order_totals() applies it
and must run before every order write.
"""

import logging
import random
from datetime import date, datetime

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Order, OrderItem, User
from ..models.orders import (
    ORDER_STATUSES,
    ORDER_TYPES,
    PAYMENT_STATUSES,
    PAYMENT_METHODS,
    INVENTORY_DECREMENT_STATUSES,
)
from ..errors import InsufficientStockError, ValidationError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    flatten_payload,
    enforce_rules_order,
)
from . import inventory_service
from .tenant_service import scoped, get_scoped_or_404, paginate
from .realtime_service import DomainEvent
from resto.time_utils import utcnow, day_bounds


logger = logging.getLogger(__name__)

ORDER_NOT_FOUND = "Order not found"

ORDER_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_name", "customer_phone", "customer_email",
        "customer_address_street", "customer_address_city", "customer_address_notes",
        "type", "table_number",
        "payment_status", "payment_method",
        "notes", "tax_cents", "discount_cents",
        "estimated_time", "assigned_to_id",
    },
    required_on_create={"customer_name"},
    choices={
        "type": ORDER_TYPES,
        "payment_status": PAYMENT_STATUSES,
        "payment_method": PAYMENT_METHODS,
    },
    min_values={"tax_cents": 0, "discount_cents": 0, "estimated_time": 0},
)


# =============================================================================
# PURE FUNCTIONS
# =============================================================================

def compute_order_totals(lines: list[tuple[int, int]], tax_cents: int = 0, discount_cents: int = 0) -> dict:
    """
    lines are (quantity, unit_price_cents) pairs.

    Returns line totals, subtotal and total where
    total = subtotal + tax - discount.
    """
    line_totals = [quantity * unit_price for quantity, unit_price in lines]
    subtotal = sum(line_totals)
    return {
        "line_totals": line_totals,
        "subtotal_cents": subtotal,
        "total_cents": subtotal + (tax_cents or 0) - (discount_cents or 0),
    }


def recompute_order_totals(order: Order) -> Order:
    totals = compute_order_totals(
        [(line.quantity, line.unit_price_cents) for line in order.items],
        order.tax_cents or 0,
        order.discount_cents or 0,
    )
    for line, line_total in zip(order.items, totals["line_totals"]):
        line.total_price_cents = line_total
    order.subtotal_cents = totals["subtotal_cents"]
    order.total_cents = totals["total_cents"]
    return order


def generate_order_number(now: datetime | None = None) -> str:
    """YYMMDD followed by a 3-digit random suffix (not guaranteed unique)."""
    now = now or utcnow()
    return f"{now:%y%m%d}{random.randint(0, 999):03d}"


def elapsed_minutes(start: datetime, end: datetime) -> int:
    return max(0, int((end - start).total_seconds() // 60))


def plan_status_change(order: Order, new_status: str) -> dict:
    """
    Decide the side effects of moving an order to new_status.

    Returns flags: decrement, restore, complete, deactivate.
    """
    marker_set = order.inventory_decremented_at is not None
    return {
        "decrement": new_status in INVENTORY_DECREMENT_STATUSES and not marker_set,
        "restore": new_status == "cancelled" and marker_set,
        "complete": new_status == "delivered" and order.completed_at is None,
        "deactivate": new_status == "cancelled",
    }


# =============================================================================
# QUERIES
# =============================================================================

def get_order(order_id, *, restaurant_id: int) -> Order:
    return get_scoped_or_404(Order, order_id, restaurant_id=restaurant_id, message=ORDER_NOT_FOUND)


def list_orders(
    *,
    restaurant_id: int,
    page: int = 1,
    limit: int = 20,
    status: str | None = None,
    order_type: str | None = None,
    day: date | datetime | None = None,
    search: str | None = None,
) -> tuple[list[Order], dict]:
    """Active orders, newest first."""
    query = scoped(Order, restaurant_id=restaurant_id)

    if status:
        query = query.filter(Order.status == status)
    if order_type:
        query = query.filter(Order.type == order_type)
    if day is not None:
        start, end = day_bounds(day)
        query = query.filter(Order.created_at >= start, Order.created_at <= end)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            Order.order_number.ilike(pattern),
            Order.customer_name.ilike(pattern),
            Order.customer_phone.ilike(pattern),
        ))

    query = query.order_by(Order.created_at.desc(), Order.id.desc())
    return paginate(query, page=page, limit=limit)


def daily_summary(*, restaurant_id: int, day: date | datetime | None = None) -> dict:
    """Count, revenue, average and status histogram of a day's non-cancelled orders."""
    start, end = day_bounds(day)
    base = scoped(Order, restaurant_id=restaurant_id).filter(
        Order.created_at >= start,
        Order.created_at <= end,
        Order.status != "cancelled",
    )

    total_orders, total_revenue = base.with_entities(
        func.count(Order.id),
        func.coalesce(func.sum(Order.total_cents), 0),
    ).one()

    breakdown = {
        status: int(count)
        for status, count in base.with_entities(Order.status, func.count(Order.id))
        .group_by(Order.status)
        .all()
    }

    total_orders = int(total_orders or 0)
    total_revenue = int(total_revenue or 0)
    return {
        "date": start.date().isoformat(),
        "total_orders": total_orders,
        "total_revenue_cents": total_revenue,
        "average_order_value_cents": round(total_revenue / total_orders) if total_orders else 0,
        "status_breakdown": breakdown,
    }


def recent_orders(*, restaurant_id: int, limit: int = 5) -> list[Order]:
    return (
        scoped(Order, restaurant_id=restaurant_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .all()
    )


def delivered_sales_total(*, restaurant_id: int, day: date | datetime | None = None) -> int:
    """Sum of totals of the day's active, delivered orders (cash-close system sales)."""
    start, end = day_bounds(day)
    total = scoped(Order, restaurant_id=restaurant_id).filter(
        Order.status == "delivered",
        Order.created_at >= start,
        Order.created_at <= end,
    ).with_entities(func.coalesce(func.sum(Order.total_cents), 0)).scalar()
    return int(total or 0)


# =============================================================================
# MUTATIONS
# =============================================================================

def _validate_assignee(patch: dict, restaurant_id: int) -> None:
    assignee_id = patch.get("assigned_to_id")
    if assignee_id is None:
        return
    user = db.session.query(User).filter_by(
        id=assignee_id, restaurant_id=restaurant_id, is_active=True
    ).first()
    if user is None:
        raise ValidationError.single("assigned_to_id", "assigned_to_id must be an active user of this restaurant")


def _parse_lines(raw_items) -> list[tuple[int, int]]:
    """Validate the requested lines; returns (inventory_item_id, quantity) pairs."""
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError.single("items", "Order must have at least one item")

    errors: list[dict] = []
    lines: list[tuple[int, int]] = []
    for idx, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            errors.append({"field": f"items[{idx}]", "message": f"items[{idx}] must be an object"})
            continue
        item_id = raw.get("inventory_item_id")
        quantity = raw.get("quantity")
        if isinstance(item_id, bool) or not isinstance(item_id, int) or item_id < 1:
            errors.append({
                "field": f"items[{idx}].inventory_item_id",
                "message": f"items[{idx}].inventory_item_id must be a valid id",
            })
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            errors.append({
                "field": f"items[{idx}].quantity",
                "message": f"items[{idx}].quantity must be at least 1",
            })
        if not errors:
            lines.append((item_id, quantity))

    if errors:
        raise ValidationError("Invalid data", errors=errors)
    return lines


def create_order(payload: dict, *, restaurant_id: int, created_by_id: int) -> tuple[Order, list[DomainEvent]]:
    """
    Create an order from inventory snapshots.

    Every line is checked (item exists, is active, has enough stock) before
    anything is written. Stock is not touched until the order enters
    preparing or delivered.
    """
    payload = dict(payload or {})
    raw_items = payload.pop("items", None)

    flat, paths = flatten_payload(payload, {"customer"})
    paths.setdefault("customer_name", "customer.name")
    patch = validate_payload(model=Order, payload=flat, policy=ORDER_POLICY, partial=False, paths=paths)
    enforce_rules_order(patch)
    _validate_assignee(patch, restaurant_id)

    lines = _parse_lines(raw_items)

    snapshots: list[OrderItem] = []
    for item_id, quantity in lines:
        item = inventory_service.require_item_for_order(item_id, restaurant_id=restaurant_id)
        if quantity > item.quantity:
            raise InsufficientStockError(item.name, item.quantity)
        snapshots.append(OrderItem(
            inventory_item_id=item.id,
            name=item.name,
            quantity=quantity,
            unit_price_cents=item.selling_price_cents,
            unit_cost_cents=item.cost_price_cents,
        ))

    now = utcnow()
    patch.setdefault("type", "dine-in")
    patch.setdefault("payment_method", "cash")

    order = Order(
        restaurant_id=restaurant_id,
        created_by_id=created_by_id,
        order_number=generate_order_number(now),
        status="pending",
        is_active=True,
        created_at=now,
        updated_at=now,
        **patch,
    )
    order.items = snapshots
    recompute_order_totals(order)

    db.session.add(order)
    db.session.commit()

    return order, [DomainEvent(restaurant_id, "order.created", {"order": order.to_dict()})]


def update_order(order_id, payload: dict, *, restaurant_id: int) -> tuple[Order, list[DomainEvent]]:
    """Edit customer/type/payment/notes/tax/discount/assignee. Lines and status are not editable here."""
    order = get_order(order_id, restaurant_id=restaurant_id)

    flat, paths = flatten_payload(payload or {}, {"customer"})
    patch = validate_payload(model=Order, payload=flat, policy=ORDER_POLICY, partial=True, paths=paths)
    enforce_rules_order(patch)
    _validate_assignee(patch, restaurant_id)

    for key, value in patch.items():
        setattr(order, key, value)
    recompute_order_totals(order)
    db.session.commit()

    return order, [DomainEvent(restaurant_id, "order.updated", {"order": order.to_dict()})]


def _apply_stock(order: Order, sign: int) -> list[DomainEvent]:
    events: list[DomainEvent] = []
    for line in order.items:
        _, item_events = inventory_service.adjust_stock(
            line.inventory_item_id, sign * line.quantity, restaurant_id=order.restaurant_id
        )
        events.extend(item_events)
    return events


def update_status(order_id, new_status, *, restaurant_id: int) -> tuple[Order, list[DomainEvent]]:
    if new_status not in ORDER_STATUSES:
        raise ValidationError.single("status", f"status must be one of: {', '.join(ORDER_STATUSES)}")

    order = get_order(order_id, restaurant_id=restaurant_id)
    previous = order.status
    plan = plan_status_change(order, new_status)
    now = utcnow()
    events: list[DomainEvent] = []

    if plan["decrement"]:
        events.extend(_apply_stock(order, -1))
        order.inventory_decremented_at = now

    if plan["complete"]:
        order.completed_at = now
        order.actual_time = elapsed_minutes(order.created_at, now)

    if plan["restore"]:
        events.extend(_apply_stock(order, +1))
        order.inventory_decremented_at = None
        logger.info("Restocked cancelled order %s (restaurant %s)", order.id, restaurant_id)

    if plan["deactivate"]:
        order.is_active = False

    order.status = new_status
    recompute_order_totals(order)
    db.session.commit()

    events.append(DomainEvent(restaurant_id, "order.status_updated", {
        "order_id": order.id,
        "order_number": order.order_number,
        "previous_status": previous,
        "status": new_status,
        "order": order.to_dict(),
    }))
    return order, events


def delete_order(order_id, *, restaurant_id: int) -> tuple[Order, list[DomainEvent]]:
    """
    Soft delete.

    Non-delivered orders return their quantities to stock whether or not
    they were ever decremented.
    """
    order = get_order(order_id, restaurant_id=restaurant_id)
    events: list[DomainEvent] = []

    if order.status != "delivered":
        events.extend(_apply_stock(order, +1))

    order.is_active = False
    db.session.commit()

    events.append(DomainEvent(restaurant_id, "order.deleted", {"order_id": order.id}))
    return order, events
