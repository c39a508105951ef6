# Overview: Service-layer operations for cash closes; shift open/close/verify/restore and reconciliation.

"""
Cash-Close Reconciliation Service

LIFECYCLE: open -> closed -> verified, with restore() returning a closed or
verified record to open. At most one open record per (restaurant, shift).

RECONCILIATION (close):
1. sales.total    <- system sales (today's active delivered orders)
2. sales.card     <- reported card sales
   sales.cash     <- system sales - card sales
3. expenses       <- replaced by the submitted list
   total_expenses <- sum of expense amounts
4. expected_cash  <- opening_cash + sales.cash - total_expenses
5. difference     <- closing_cash - expected_cash

Negative difference means the drawer is short.

compute_cash_close_totals() and reconcile_close() are pure; every write
goes through recompute_cash_close_totals() first.
"""

import logging
from datetime import date, datetime

from sqlalchemy import case, func

from ..extensions import db
from ..models import CashClose, CashCloseExpense
from ..models.cash import SHIFTS, EXPENSE_CATEGORIES
from ..errors import ConflictError, InvalidStateError, ValidationError
from ..validation import ModelValidationPolicy, validate_payload, MAX_AMOUNT_CENTS
from . import order_service
from .tenant_service import scoped, get_scoped_or_404, paginate
from .realtime_service import DomainEvent
from resto.time_utils import utcnow, day_bounds


logger = logging.getLogger(__name__)

CASH_CLOSE_NOT_FOUND = "Cash close not found"

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"description", "amount_cents", "category", "receipt"},
    required_on_create={"description", "amount_cents"},
    choices={"category": EXPENSE_CATEGORIES},
    min_values={"amount_cents": 0},
)


# =============================================================================
# PURE FUNCTIONS
# =============================================================================

def compute_cash_close_totals(sales_total_cents: int, expense_amounts: list[int]) -> dict:
    """total_expenses = sum(amounts); net_sales = sales.total - total_expenses."""
    total_expenses = sum(expense_amounts)
    return {
        "total_expenses_cents": total_expenses,
        "net_sales_cents": (sales_total_cents or 0) - total_expenses,
    }


def reconcile_close(
    *,
    opening_cash_cents: int,
    closing_cash_cents: int,
    card_sales_cents: int,
    system_sales_cents: int,
    expense_amounts: list[int],
) -> dict:
    """Apply the close arithmetic in order and return every derived figure."""
    sales_cash = system_sales_cents - card_sales_cents
    totals = compute_cash_close_totals(system_sales_cents, expense_amounts)
    expected = opening_cash_cents + sales_cash - totals["total_expenses_cents"]
    return {
        "sales_total_cents": system_sales_cents,
        "sales_card_cents": card_sales_cents,
        "sales_cash_cents": sales_cash,
        "total_expenses_cents": totals["total_expenses_cents"],
        "net_sales_cents": totals["net_sales_cents"],
        "expected_cash_cents": expected,
        "difference_cents": closing_cash_cents - expected,
    }


def recompute_cash_close_totals(cash_close: CashClose) -> CashClose:
    totals = compute_cash_close_totals(
        cash_close.sales_total_cents or 0,
        [expense.amount_cents for expense in cash_close.expenses],
    )
    cash_close.total_expenses_cents = totals["total_expenses_cents"]
    cash_close.net_sales_cents = totals["net_sales_cents"]
    return cash_close


def _require_cents(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError.single(field, f"{field} must be an integer amount in cents")
    if value < 0:
        raise ValidationError.single(field, f"{field} must be >= 0")
    if value > MAX_AMOUNT_CENTS:
        raise ValidationError.single(field, f"{field} cannot exceed {MAX_AMOUNT_CENTS}")
    return value


def _build_expense(raw, prefix: str = "") -> CashCloseExpense:
    if not isinstance(raw, dict):
        raise ValidationError.single(prefix or "expense", f"{prefix or 'expense'} must be an object")
    paths = {key: f"{prefix}{key}" for key in set(raw) | EXPENSE_POLICY.writable_fields}
    patch = validate_payload(
        model=CashCloseExpense, payload=raw, policy=EXPENSE_POLICY, partial=False, paths=paths
    )
    patch.setdefault("category", "other")
    return CashCloseExpense(**patch)


def _event(cash_close: CashClose, event_type: str) -> DomainEvent:
    return DomainEvent(cash_close.restaurant_id, event_type, {"cash_close": cash_close.to_dict()})


# =============================================================================
# QUERIES
# =============================================================================

def get_cash_close(cash_close_id, *, restaurant_id: int) -> CashClose:
    return get_scoped_or_404(
        CashClose, cash_close_id, restaurant_id=restaurant_id, message=CASH_CLOSE_NOT_FOUND
    )


def get_current(*, restaurant_id: int) -> CashClose | None:
    """The restaurant's most recently opened open record, if any."""
    return (
        scoped(CashClose, restaurant_id=restaurant_id)
        .filter(CashClose.status == "open")
        .order_by(CashClose.date.desc(), CashClose.id.desc())
        .first()
    )


def list_cash_closes(
    *,
    restaurant_id: int,
    page: int = 1,
    limit: int = 20,
    status: str | None = None,
    shift: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> tuple[list[CashClose], dict]:
    query = scoped(CashClose, restaurant_id=restaurant_id)
    if status:
        query = query.filter(CashClose.status == status)
    if shift:
        query = query.filter(CashClose.shift == shift)
    if start is not None:
        query = query.filter(CashClose.date >= start)
    if end is not None:
        query = query.filter(CashClose.date <= end)

    query = query.order_by(CashClose.date.desc(), CashClose.id.desc())
    return paginate(query, page=page, limit=limit)


def daily_summary(*, restaurant_id: int, day: date | datetime | None = None) -> dict:
    """Totals over the day's closed records."""
    start, end = day_bounds(day)
    row = scoped(CashClose, restaurant_id=restaurant_id).filter(
        CashClose.status == "closed",
        CashClose.date >= start,
        CashClose.date <= end,
    ).with_entities(
        func.count(CashClose.id),
        func.coalesce(func.sum(CashClose.sales_total_cents), 0),
        func.coalesce(func.sum(CashClose.total_expenses_cents), 0),
        func.coalesce(func.sum(CashClose.net_sales_cents), 0),
        func.avg(CashClose.difference_cents),
        func.coalesce(func.sum(case((CashClose.difference_cents == 0, 1), else_=0)), 0),
    ).one()

    count, sales, expenses, net, avg_difference, perfect = row
    return {
        "date": start.date().isoformat(),
        "total_cash_closes": int(count or 0),
        "total_sales_cents": int(sales or 0),
        "total_expenses_cents": int(expenses or 0),
        "net_sales_cents": int(net or 0),
        "average_difference_cents": round(float(avg_difference)) if avg_difference is not None else 0,
        "perfect_closes": int(perfect or 0),
    }


# =============================================================================
# LIFECYCLE
# =============================================================================

def open_cash_close(payload: dict, *, restaurant_id: int, user_id: int) -> tuple[CashClose, list[DomainEvent]]:
    """Open a shift. Only one open record per shift per restaurant."""
    payload = payload or {}
    shift = payload.get("shift")
    if shift not in SHIFTS:
        raise ValidationError.single("shift", f"shift must be one of: {', '.join(SHIFTS)}")
    if "opening_cash_cents" not in payload:
        raise ValidationError.single("opening_cash_cents", "opening_cash_cents is required")
    opening = _require_cents(payload.get("opening_cash_cents"), "opening_cash_cents")

    notes = payload.get("notes")
    if notes is not None and (not isinstance(notes, str) or len(notes) > 500):
        raise ValidationError.single("notes", "notes must be a string of at most 500 characters")

    existing = scoped(CashClose, restaurant_id=restaurant_id).filter(
        CashClose.shift == shift,
        CashClose.status == "open",
    ).first()
    if existing:
        raise ConflictError("A cash close is already open for this shift")

    now = utcnow()
    cash_close = CashClose(
        restaurant_id=restaurant_id,
        date=now,
        shift=shift,
        status="open",
        opening_cash_cents=opening,
        expected_cash_cents=opening,
        notes=notes.strip() if isinstance(notes, str) else None,
        opened_by_id=user_id,
        is_active=True,
    )
    recompute_cash_close_totals(cash_close)
    db.session.add(cash_close)
    db.session.commit()

    logger.info("Opened %s cash close %s for restaurant %s", shift, cash_close.id, restaurant_id)
    return cash_close, [_event(cash_close, "cash_close.opened")]


def close_cash_close(cash_close_id, payload: dict, *, restaurant_id: int, user_id: int) -> tuple[CashClose, list[DomainEvent]]:
    """
    Count the drawer and reconcile it against today's delivered orders.

    Payload: closing_cash_cents, card_sales_cents, expenses (optional list,
    replaces the current list), notes (optional).
    """
    payload = payload or {}
    closing = _require_cents(payload.get("closing_cash_cents"), "closing_cash_cents")
    card = _require_cents(payload.get("card_sales_cents"), "card_sales_cents")

    raw_expenses = payload.get("expenses") or []
    if not isinstance(raw_expenses, list):
        raise ValidationError.single("expenses", "expenses must be a list")
    expenses = [_build_expense(raw, f"expenses[{idx}].") for idx, raw in enumerate(raw_expenses)]

    notes = payload.get("notes")
    if notes is not None and (not isinstance(notes, str) or len(notes) > 500):
        raise ValidationError.single("notes", "notes must be a string of at most 500 characters")

    cash_close = get_cash_close(cash_close_id, restaurant_id=restaurant_id)
    if cash_close.status != "open":
        raise InvalidStateError("Cash close is not open")

    system_sales = order_service.delivered_sales_total(restaurant_id=restaurant_id)
    figures = reconcile_close(
        opening_cash_cents=cash_close.opening_cash_cents,
        closing_cash_cents=closing,
        card_sales_cents=card,
        system_sales_cents=system_sales,
        expense_amounts=[expense.amount_cents for expense in expenses],
    )

    cash_close.closing_cash_cents = closing
    cash_close.sales_total_cents = figures["sales_total_cents"]
    cash_close.sales_card_cents = figures["sales_card_cents"]
    cash_close.sales_cash_cents = figures["sales_cash_cents"]
    cash_close.expenses = expenses
    cash_close.expected_cash_cents = figures["expected_cash_cents"]
    cash_close.difference_cents = figures["difference_cents"]
    cash_close.notes = notes.strip() if isinstance(notes, str) else ""
    cash_close.closed_by_id = user_id
    cash_close.closed_at = utcnow()
    cash_close.status = "closed"

    recompute_cash_close_totals(cash_close)
    db.session.commit()

    logger.info(
        "Closed cash close %s for restaurant %s (difference %s)",
        cash_close.id, restaurant_id, cash_close.difference_cents,
    )
    return cash_close, [_event(cash_close, "cash_close.closed")]


def verify_cash_close(cash_close_id, *, restaurant_id: int, user_id: int) -> tuple[CashClose, list[DomainEvent]]:
    cash_close = get_cash_close(cash_close_id, restaurant_id=restaurant_id)
    if cash_close.status != "closed":
        raise InvalidStateError("Cash close must be closed before it can be verified")

    cash_close.verified_by_id = user_id
    cash_close.verified_at = utcnow()
    cash_close.status = "verified"

    recompute_cash_close_totals(cash_close)
    db.session.commit()
    return cash_close, [_event(cash_close, "cash_close.verified")]


def add_expense(cash_close_id, payload: dict, *, restaurant_id: int) -> tuple[CashClose, list[DomainEvent]]:
    expense = _build_expense(payload)

    cash_close = get_cash_close(cash_close_id, restaurant_id=restaurant_id)
    if cash_close.status != "open":
        raise InvalidStateError("Expenses can only be added to open cash closes")

    cash_close.expenses.append(expense)
    recompute_cash_close_totals(cash_close)
    db.session.commit()
    return cash_close, [_event(cash_close, "cash_close.expense_added")]


def restore_cash_close(cash_close_id, *, restaurant_id: int) -> tuple[CashClose, list[DomainEvent]]:
    """Return a closed/verified record to open, clearing every closing figure."""
    cash_close = get_cash_close(cash_close_id, restaurant_id=restaurant_id)
    if cash_close.status == "open":
        raise InvalidStateError("Cash close is already open")

    cash_close.closing_cash_cents = None
    cash_close.closed_by_id = None
    cash_close.closed_at = None
    cash_close.verified_by_id = None
    cash_close.verified_at = None
    cash_close.difference_cents = None
    cash_close.sales_card_cents = 0
    cash_close.sales_total_cents = 0
    cash_close.sales_cash_cents = 0
    cash_close.expected_cash_cents = cash_close.opening_cash_cents
    cash_close.status = "open"

    recompute_cash_close_totals(cash_close)
    db.session.commit()

    logger.info("Restored cash close %s for restaurant %s", cash_close.id, restaurant_id)
    return cash_close, [_event(cash_close, "cash_close.restored")]


def record_end_of_day(*, restaurant_id: int, user_id: int, revenue_cents: int, order_count: int) -> CashClose:
    """Write the automatic full-day summary record (already closed)."""
    now = utcnow()
    cash_close = CashClose(
        restaurant_id=restaurant_id,
        date=now,
        shift="full-day",
        status="closed",
        opening_cash_cents=0,
        closing_cash_cents=revenue_cents,
        expected_cash_cents=revenue_cents,
        difference_cents=0,
        sales_total_cents=revenue_cents,
        sales_cash_cents=0,
        sales_card_cents=0,
        sales_transfer_cents=0,
        notes="Automatic end of day.",
        opened_by_id=user_id,
        closed_by_id=user_id,
        closed_at=now,
        is_active=True,
    )
    recompute_cash_close_totals(cash_close)
    db.session.add(cash_close)
    db.session.flush()

    logger.info(
        "End of day for restaurant %s: %s orders, revenue %s",
        restaurant_id, order_count, revenue_cents,
    )
    return cash_close
