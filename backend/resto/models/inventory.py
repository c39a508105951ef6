from __future__ import annotations

from ..extensions import db
from resto.time_utils import to_utc_z


CATEGORIES = ("Bebidas", "Snacks", "Comida", "Postres", "Ingredientes", "Otros")
UNITS = ("unidad", "kg", "g", "l", "ml", "caja", "paquete")
QUANTITY_OPERATIONS = ("set", "add", "subtract")


class InventoryItem(db.Model):
    """
    Stock-keeping item owned by a restaurant.

    DERIVED FIELDS: total_value_cents and is_low_stock are recomputed by
    inventory_service.recompute_item_derived() before every write. They are
    stored so listings can filter and aggregate on them.

    Soft-deleted via is_active; rows are never removed.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.Index("ix_inventory_items_restaurant_category", "restaurant_id", "category"),
        db.Index("ix_inventory_items_restaurant_active", "restaurant_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)

    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=True)
    category = db.Column(db.String(32), nullable=False, default="Otros")
    sku = db.Column(db.String(20), nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    min_quantity = db.Column(db.Integer, nullable=False, default=5)
    max_quantity = db.Column(db.Integer, nullable=False, default=1000)

    # Money in cents
    cost_price_cents = db.Column(db.Integer, nullable=False)
    selling_price_cents = db.Column(db.Integer, nullable=False)

    unit = db.Column(db.String(16), nullable=False, default="unidad")

    supplier_name = db.Column(db.String(120), nullable=True)
    supplier_contact = db.Column(db.String(120), nullable=True)
    supplier_email = db.Column(db.String(255), nullable=True)

    # Derived
    total_value_cents = db.Column(db.Integer, nullable=False, default=0)
    is_low_stock = db.Column(db.Boolean, nullable=False, default=False, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    last_updated = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    restaurant = db.relationship("Restaurant", backref=db.backref("inventory_items", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "sku": self.sku,
            "quantity": self.quantity,
            "min_quantity": self.min_quantity,
            "max_quantity": self.max_quantity,
            "cost_price_cents": self.cost_price_cents,
            "selling_price_cents": self.selling_price_cents,
            "unit": self.unit,
            "supplier": {
                "name": self.supplier_name,
                "contact": self.supplier_contact,
                "email": self.supplier_email,
            },
            "total_value_cents": self.total_value_cents,
            "is_low_stock": self.is_low_stock,
            "is_active": self.is_active,
            "last_updated": to_utc_z(self.last_updated) if self.last_updated else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
