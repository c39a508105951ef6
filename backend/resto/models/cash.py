from __future__ import annotations

from ..extensions import db
from resto.time_utils import to_utc_z


SHIFTS = ("morning", "afternoon", "night", "full-day")
CASH_CLOSE_STATUSES = ("open", "closed", "verified")
EXPENSE_CATEGORIES = ("supplies", "utilities", "maintenance", "other")


class CashClose(db.Model):
    """
    Cash-register reconciliation for one shift.

    LIFECYCLE:
    - open: shift running, expenses may be added
    - closed: cash counted, expected vs actual computed
    - verified: a manager confirmed the close
    restore() brings closed/verified records back to open.

    At most one open record per (restaurant, shift).

    DERIVED FIELDS: total_expenses_cents and net_sales_cents are recomputed by
    cash_close_service.recompute_cash_close_totals() before every write.
    """
    __tablename__ = "cash_closes"
    __table_args__ = (
        db.Index("ix_cash_closes_restaurant_date", "restaurant_id", "date"),
        db.Index("ix_cash_closes_restaurant_status", "restaurant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)

    date = db.Column(db.DateTime(timezone=True), nullable=False)
    shift = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="open", index=True)

    # Cash tracking (all amounts in cents)
    opening_cash_cents = db.Column(db.Integer, nullable=False, default=0)
    closing_cash_cents = db.Column(db.Integer, nullable=True)
    expected_cash_cents = db.Column(db.Integer, nullable=True)
    difference_cents = db.Column(db.Integer, nullable=True)  # closing - expected

    sales_cash_cents = db.Column(db.Integer, nullable=False, default=0)
    sales_card_cents = db.Column(db.Integer, nullable=False, default=0)
    sales_transfer_cents = db.Column(db.Integer, nullable=False, default=0)
    sales_total_cents = db.Column(db.Integer, nullable=False, default=0)

    total_expenses_cents = db.Column(db.Integer, nullable=False, default=0)
    net_sales_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.String(500), nullable=True)

    opened_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    closed_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    verified_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    verified_at = db.Column(db.DateTime(timezone=True), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    expenses = db.relationship(
        "CashCloseExpense",
        back_populates="cash_close",
        cascade="all, delete-orphan",
        order_by="CashCloseExpense.id",
        lazy="selectin",
    )
    opened_by = db.relationship("User", foreign_keys=[opened_by_id])
    closed_by = db.relationship("User", foreign_keys=[closed_by_id])
    verified_by = db.relationship("User", foreign_keys=[verified_by_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "date": to_utc_z(self.date),
            "shift": self.shift,
            "status": self.status,
            "opening_cash_cents": self.opening_cash_cents,
            "closing_cash_cents": self.closing_cash_cents,
            "expected_cash_cents": self.expected_cash_cents,
            "difference_cents": self.difference_cents,
            "sales": {
                "cash_cents": self.sales_cash_cents,
                "card_cents": self.sales_card_cents,
                "transfer_cents": self.sales_transfer_cents,
                "total_cents": self.sales_total_cents,
            },
            "expenses": [expense.to_dict() for expense in self.expenses],
            "total_expenses_cents": self.total_expenses_cents,
            "net_sales_cents": self.net_sales_cents,
            "notes": self.notes,
            "opened_by": self.opened_by.to_ref() if self.opened_by else None,
            "closed_by": self.closed_by.to_ref() if self.closed_by else None,
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "verified_by": self.verified_by.to_ref() if self.verified_by else None,
            "verified_at": to_utc_z(self.verified_at) if self.verified_at else None,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CashCloseExpense(db.Model):
    """Expense paid out of the drawer during a shift."""
    __tablename__ = "cash_close_expenses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    cash_close_id = db.Column(db.Integer, db.ForeignKey("cash_closes.id"), nullable=False, index=True)

    description = db.Column(db.String(200), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    category = db.Column(db.String(16), nullable=False, default="other")
    receipt = db.Column(db.String(500), nullable=True)  # URL or path to receipt image

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    cash_close = db.relationship("CashClose", back_populates="expenses")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "amount_cents": self.amount_cents,
            "category": self.category,
            "receipt": self.receipt,
        }
