from __future__ import annotations

from ..extensions import db
from resto.time_utils import to_utc_z


CURRENCIES = ("COP", "USD", "EUR", "MXN")
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def default_business_hours() -> dict:
    weekday = {"open": "08:00", "close": "22:00", "is_open": True}
    return {
        "monday": dict(weekday),
        "tuesday": dict(weekday),
        "wednesday": dict(weekday),
        "thursday": dict(weekday),
        "friday": {"open": "08:00", "close": "23:00", "is_open": True},
        "saturday": {"open": "09:00", "close": "23:00", "is_open": True},
        "sunday": {"open": "10:00", "close": "21:00", "is_open": True},
    }


class Restaurant(db.Model):
    """
    Restaurant (tenant).

    MULTI-TENANT: Every other entity carries restaurant_id and every query
    filters by it. Cross-tenant lookups therefore surface as "not found".
    """
    __tablename__ = "restaurants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, index=True)

    address_street = db.Column(db.String(255), nullable=False)
    address_city = db.Column(db.String(120), nullable=False)
    address_state = db.Column(db.String(120), nullable=False)
    address_zip_code = db.Column(db.String(20), nullable=False)
    address_country = db.Column(db.String(120), nullable=False)

    contact_phone = db.Column(db.String(32), nullable=False)
    contact_email = db.Column(db.String(255), nullable=False, index=True)

    currency = db.Column(db.String(3), nullable=False, default="COP")
    timezone = db.Column(db.String(64), nullable=False, default="America/Bogota")
    business_hours = db.Column(db.JSON, nullable=False, default=default_business_hours)
    tax_rate = db.Column(db.Float, nullable=False, default=0.19)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": {
                "street": self.address_street,
                "city": self.address_city,
                "state": self.address_state,
                "zip_code": self.address_zip_code,
                "country": self.address_country,
            },
            "contact": {
                "phone": self.contact_phone,
                "email": self.contact_email,
            },
            "settings": {
                "currency": self.currency,
                "timezone": self.timezone,
                "business_hours": self.business_hours,
                "tax_rate": self.tax_rate,
            },
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
