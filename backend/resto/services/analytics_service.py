# Overview: Read-only reporting over orders, inventory and cash closes, plus revenue projections.

"""
Analytics Service

All reports are tenant-scoped aggregations over active rows. Period grouping
uses SQLite strftime() on created_at, like the rest of the reporting code.

Money is reported in cents. The projection regression runs in major
currency units (cents / 100) so its variance thresholds are expressed in
whole currency.
"""

from datetime import datetime, timedelta

from sqlalchemy import func

from ..models import Order, OrderItem
from ..errors import ValidationError
from . import inventory_service, order_service, cash_close_service
from .tenant_service import scoped
from resto.time_utils import utcnow


GROUP_FORMATS = {
    "day": "%Y-%m-%d",
    "week": "%Y-W%W",
    "month": "%Y-%m",
}

# period -> history window used to fit the projection
PROJECTION_PERIODS = ("week", "month", "quarter")

TREND_BAND = 0.10
TRAILING_POINTS = 7
HIGH_CONFIDENCE_VARIANCE = 10_000
MEDIUM_CONFIDENCE_VARIANCE = 50_000


def _months_back(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 - months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    # Clamp the day for shorter months
    for day in (moment.day, 30, 29, 28):
        try:
            return moment.replace(year=year, month=month, day=day)
        except ValueError:
            continue
    raise ValueError("Could not compute history window")


def projection_window(period: str, now: datetime | None = None) -> tuple[datetime, datetime]:
    now = now or utcnow()
    if period == "week":
        return now - timedelta(days=30), now
    if period == "month":
        return _months_back(now, 6), now
    if period == "quarter":
        return _months_back(now, 12), now
    raise ValidationError.single("period", f"period must be one of: {', '.join(PROJECTION_PERIODS)}")


def calculate_projections(values: list[float]) -> dict:
    """
    Ordinary least squares over (index, value) pairs.

    next_period = max(0, slope * n + intercept). Trend compares the
    trailing-7 average with the average of the points before them (+/-10%
    band, stable when there are no older points or their average is 0).
    Confidence comes from the mean squared residual.
    """
    n = len(values)
    if n < 2:
        average = sum(values) / n if n else 0.0
        return {"next_period": round(average, 2), "trend": "stable", "confidence": "low", "slope": 0.0}

    xs = range(n)
    sum_x = sum(xs)
    sum_y = sum(values)
    sum_xy = sum(x * y for x, y in zip(xs, values))
    sum_xx = sum(x * x for x in xs)

    denominator = n * sum_xx - sum_x * sum_x
    if denominator == 0:
        return {"next_period": round(sum_y / n, 2), "trend": "stable", "confidence": "low", "slope": 0.0}

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n

    recent = values[-TRAILING_POINTS:]
    recent_avg = sum(recent) / len(recent)
    older = values[:max(0, n - TRAILING_POINTS)]
    older_avg = sum(older) / len(older) if older else 0.0

    trend = "stable"
    if older_avg > 0:
        if recent_avg > older_avg * (1 + TREND_BAND):
            trend = "increasing"
        elif recent_avg < older_avg * (1 - TREND_BAND):
            trend = "decreasing"

    next_period = max(0.0, slope * n + intercept)

    variance = sum((y - (slope * x + intercept)) ** 2 for x, y in zip(xs, values)) / n
    if variance < HIGH_CONFIDENCE_VARIANCE:
        confidence = "high"
    elif variance < MEDIUM_CONFIDENCE_VARIANCE:
        confidence = "medium"
    else:
        confidence = "low"

    return {
        "next_period": round(next_period, 2),
        "trend": trend,
        "confidence": confidence,
        "slope": round(slope, 2),
    }


def _orders_in_range(*, restaurant_id: int, start: datetime, end: datetime):
    return scoped(Order, restaurant_id=restaurant_id).filter(
        Order.created_at >= start,
        Order.created_at <= end,
    )


def dashboard(*, restaurant_id: int) -> dict:
    return {
        "orders": order_service.daily_summary(restaurant_id=restaurant_id),
        "inventory": inventory_service.get_summary(restaurant_id=restaurant_id),
        "low_stock_items": [
            item.to_dict() for item in inventory_service.list_low_stock(restaurant_id=restaurant_id)
        ],
        "recent_orders": [
            order.to_dict() for order in order_service.recent_orders(restaurant_id=restaurant_id)
        ],
        "cash_close": cash_close_service.daily_summary(restaurant_id=restaurant_id),
    }


def sales_report(*, restaurant_id: int, start: datetime, end: datetime, group_by: str = "day") -> dict:
    """
    Per-period sales over delivered orders, plus payment-method breakdown and
    top items over non-cancelled orders.
    """
    fmt = GROUP_FORMATS.get(group_by)
    if fmt is None:
        raise ValidationError.single("group_by", "group_by must be one of: day, week, month")

    delivered = _orders_in_range(restaurant_id=restaurant_id, start=start, end=end).filter(
        Order.status == "delivered"
    )

    period_expr = func.strftime(fmt, Order.created_at).label("period")
    order_rows = (
        delivered.with_entities(
            period_expr,
            func.count(Order.id),
            func.coalesce(func.sum(Order.total_cents), 0),
            func.avg(Order.total_cents),
        )
        .group_by("period")
        .order_by("period")
        .all()
    )

    profit_rows = dict(
        delivered.join(OrderItem, OrderItem.order_id == Order.id)
        .with_entities(
            period_expr,
            func.coalesce(func.sum(
                (OrderItem.unit_price_cents - OrderItem.unit_cost_cents) * OrderItem.quantity
            ), 0),
        )
        .group_by("period")
        .all()
    )

    sales_data = [
        {
            "period": period,
            "total_orders": int(count),
            "total_revenue_cents": int(revenue),
            "total_profit_cents": int(profit_rows.get(period, 0) or 0),
            "average_order_value_cents": round(float(avg)) if avg is not None else 0,
        }
        for period, count, revenue, avg in order_rows
    ]

    not_cancelled = _orders_in_range(restaurant_id=restaurant_id, start=start, end=end).filter(
        Order.status != "cancelled"
    )

    payment_breakdown = [
        {"payment_method": method, "total_cents": int(total), "count": int(count)}
        for method, total, count in not_cancelled.with_entities(
            Order.payment_method,
            func.coalesce(func.sum(Order.total_cents), 0),
            func.count(Order.id),
        )
        .group_by(Order.payment_method)
        .order_by(Order.payment_method)
        .all()
    ]

    quantity_sum = func.sum(OrderItem.quantity)
    top_items = [
        {"name": name, "total_quantity": int(quantity), "total_revenue_cents": int(revenue)}
        for name, quantity, revenue in not_cancelled.join(OrderItem, OrderItem.order_id == Order.id)
        .with_entities(
            OrderItem.name,
            quantity_sum,
            func.coalesce(func.sum(OrderItem.total_price_cents), 0),
        )
        .group_by(OrderItem.name)
        .order_by(quantity_sum.desc(), OrderItem.name)
        .limit(10)
        .all()
    ]

    return {
        "group_by": group_by,
        "sales_data": sales_data,
        "payment_breakdown": payment_breakdown,
        "top_items": top_items,
    }


def inventory_report(*, restaurant_id: int) -> dict:
    return {
        "summary": inventory_service.get_summary(restaurant_id=restaurant_id),
        "low_stock_items": [
            item.to_dict() for item in inventory_service.list_low_stock(restaurant_id=restaurant_id)
        ],
        "category_breakdown": inventory_service.category_breakdown(restaurant_id=restaurant_id),
        "recent_updates": [
            {
                "id": item.id,
                "name": item.name,
                "category": item.category,
                "quantity": item.quantity,
                "last_updated": item.to_dict()["last_updated"],
            }
            for item in inventory_service.recently_updated(restaurant_id=restaurant_id)
        ],
    }


def _breakdown(query, column) -> list[dict]:
    return [
        {"key": key, "count": int(count), "total_revenue_cents": int(revenue)}
        for key, count, revenue in query.with_entities(
            column,
            func.count(Order.id),
            func.coalesce(func.sum(Order.total_cents), 0),
        )
        .group_by(column)
        .order_by(column)
        .all()
    ]


def orders_report(*, restaurant_id: int, start: datetime, end: datetime) -> dict:
    base = _orders_in_range(restaurant_id=restaurant_id, start=start, end=end)

    total_orders, total_revenue = base.with_entities(
        func.count(Order.id),
        func.coalesce(func.sum(Order.total_cents), 0),
    ).one()
    total_orders = int(total_orders or 0)
    total_revenue = int(total_revenue or 0)

    hour_expr = func.strftime("%H", Order.created_at).label("hour")
    hourly = [
        {"hour": int(hour), "count": int(count), "total_revenue_cents": int(revenue)}
        for hour, count, revenue in base.with_entities(
            hour_expr,
            func.count(Order.id),
            func.coalesce(func.sum(Order.total_cents), 0),
        )
        .group_by("hour")
        .order_by("hour")
        .all()
    ]

    return {
        "summary": {
            "total_orders": total_orders,
            "total_revenue_cents": total_revenue,
            "average_order_value_cents": round(total_revenue / total_orders) if total_orders else 0,
        },
        "status_breakdown": _breakdown(base, Order.status),
        "type_breakdown": _breakdown(base, Order.type),
        "hourly_distribution": hourly,
    }


def daily_revenue_series(*, restaurant_id: int, start: datetime, end: datetime) -> list[dict]:
    day_expr = func.strftime("%Y-%m-%d", Order.created_at).label("day")
    rows = (
        _orders_in_range(restaurant_id=restaurant_id, start=start, end=end)
        .filter(Order.status != "cancelled")
        .with_entities(
            day_expr,
            func.coalesce(func.sum(Order.total_cents), 0),
            func.count(Order.id),
        )
        .group_by("day")
        .order_by("day")
        .all()
    )
    return [
        {"date": day, "total_revenue_cents": int(revenue), "total_orders": int(count)}
        for day, revenue, count in rows
    ]


def projections(*, restaurant_id: int, period: str = "week", now: datetime | None = None) -> dict:
    start, end = projection_window(period, now)
    history = daily_revenue_series(restaurant_id=restaurant_id, start=start, end=end)

    result = calculate_projections([row["total_revenue_cents"] / 100 for row in history])
    return {
        "period": period,
        "historical_data": history,
        "projections": {
            "next_period_cents": round(result["next_period"] * 100),
            "trend": result["trend"],
            "confidence": result["confidence"],
            "slope": result["slope"],
        },
    }
