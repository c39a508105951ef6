from __future__ import annotations

from ..extensions import db
from resto.time_utils import to_utc_z


ORDER_STATUSES = ("pending", "confirmed", "preparing", "ready", "delivered", "cancelled")
ORDER_TYPES = ("dine-in", "takeout", "delivery")
PAYMENT_STATUSES = ("pending", "paid", "refunded", "partially_paid")
PAYMENT_METHODS = ("cash", "card", "transfer", "mixed")

# Entering either of these applies the order's inventory effect (once)
INVENTORY_DECREMENT_STATUSES = ("preparing", "delivered")


class Order(db.Model):
    """
    Customer order.

    LIFECYCLE: pending -> confirmed -> preparing -> ready -> delivered, with
    cancelled reachable. Any status value is accepted as a target; there is
    no transition table.

    INVENTORY MARKER: inventory_decremented_at is set the first time the
    order enters preparing/delivered (stock decremented) and cleared when a
    cancellation restores that stock. It is the only record of whether the
    order currently holds inventory.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_restaurant_status", "restaurant_id", "status"),
        db.Index("ix_orders_restaurant_created", "restaurant_id", "created_at"),
        db.Index("ix_orders_customer_name", "customer_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)

    # YYMMDD + 3 random digits, not guaranteed unique
    order_number = db.Column(db.String(16), nullable=False, index=True)

    customer_name = db.Column(db.String(100), nullable=False)
    customer_phone = db.Column(db.String(20), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_address_street = db.Column(db.String(255), nullable=True)
    customer_address_city = db.Column(db.String(120), nullable=True)
    customer_address_notes = db.Column(db.String(255), nullable=True)

    type = db.Column(db.String(16), nullable=False, default="dine-in")
    table_number = db.Column(db.String(10), nullable=True)

    # Totals in cents, recomputed from lines before every write
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    payment_status = db.Column(db.String(16), nullable=False, default="pending")
    payment_method = db.Column(db.String(16), nullable=False, default="cash")

    notes = db.Column(db.String(500), nullable=True)
    estimated_time = db.Column(db.Integer, nullable=False, default=30)  # minutes
    actual_time = db.Column(db.Integer, nullable=True)  # minutes

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    assigned_to_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    inventory_decremented_at = db.Column(db.DateTime(timezone=True), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    items = db.relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
        lazy="selectin",
    )
    created_by = db.relationship("User", foreign_keys=[created_by_id])
    assigned_to = db.relationship("User", foreign_keys=[assigned_to_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "order_number": self.order_number,
            "customer": {
                "name": self.customer_name,
                "phone": self.customer_phone,
                "email": self.customer_email,
                "address": {
                    "street": self.customer_address_street,
                    "city": self.customer_address_city,
                    "notes": self.customer_address_notes,
                },
            },
            "type": self.type,
            "table_number": self.table_number,
            "items": [line.to_dict() for line in self.items],
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "status": self.status,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "estimated_time": self.estimated_time,
            "actual_time": self.actual_time,
            "created_by": self.created_by.to_ref() if self.created_by else None,
            "assigned_to": self.assigned_to.to_ref() if self.assigned_to else None,
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "inventory_decremented_at": (
                to_utc_z(self.inventory_decremented_at) if self.inventory_decremented_at else None
            ),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OrderItem(db.Model):
    """
    Order line: a snapshot of the inventory item taken when the order was created.

    Later price/cost edits on the inventory item never change existing lines.
    """
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    name = db.Column(db.String(100), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False, default=0)

    order = db.relationship("Order", back_populates="items")
    inventory_item = db.relationship("InventoryItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_item_id": self.inventory_item_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "unit_cost_cents": self.unit_cost_cents,
            "total_price_cents": self.total_price_cents,
        }
