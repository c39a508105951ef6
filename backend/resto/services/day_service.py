# Overview: Service-layer operation for closing out a business day.

"""
End of Day

Totals today's active orders, stores the figure as an automatic full-day
cash-close record and archives (soft-deletes) every active order of the
restaurant. Stock is not touched.
"""

from sqlalchemy import func

from ..extensions import db
from ..models import Order
from . import cash_close_service
from .tenant_service import scoped
from .realtime_service import DomainEvent
from resto.time_utils import day_bounds


def todays_revenue(*, restaurant_id: int) -> tuple[int, int]:
    """(revenue_cents, order_count) over today's active orders."""
    start, end = day_bounds()
    count, revenue = scoped(Order, restaurant_id=restaurant_id).filter(
        Order.created_at >= start,
        Order.created_at <= end,
    ).with_entities(
        func.count(Order.id),
        func.coalesce(func.sum(Order.total_cents), 0),
    ).one()
    return int(revenue or 0), int(count or 0)


def end_day(*, restaurant_id: int, user_id: int) -> tuple[dict, list[DomainEvent]]:
    revenue, count = todays_revenue(restaurant_id=restaurant_id)

    record = cash_close_service.record_end_of_day(
        restaurant_id=restaurant_id,
        user_id=user_id,
        revenue_cents=revenue,
        order_count=count,
    )

    archived = scoped(Order, restaurant_id=restaurant_id).update(
        {Order.is_active: False}, synchronize_session=False
    )
    db.session.commit()

    result = {
        "total_revenue_cents": revenue,
        "total_orders": count,
        "archived_orders": int(archived or 0),
        "end_of_day_record_id": record.id,
    }
    return result, [DomainEvent(restaurant_id, "orders.cleared", result)]
