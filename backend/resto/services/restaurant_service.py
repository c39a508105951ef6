# Overview: Service-layer operations for the restaurant (tenant) profile and settings.

import re

from ..extensions import db
from ..models import Restaurant
from ..models.tenancy import CURRENCIES, WEEKDAYS
from ..errors import NotFoundError, ValidationError
from ..validation import ModelValidationPolicy, validate_payload, flatten_payload, require_email
from .realtime_service import DomainEvent


RESTAURANT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "address_street", "address_city", "address_state", "address_zip_code", "address_country",
        "contact_phone", "contact_email",
        "currency", "timezone", "business_hours", "tax_rate",
    },
    choices={"currency": CURRENCIES},
    min_values={"tax_rate": 0},
)

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def get_restaurant(*, restaurant_id: int) -> Restaurant:
    restaurant = db.session.get(Restaurant, restaurant_id)
    if restaurant is None or not restaurant.is_active:
        raise NotFoundError("Restaurant not found")
    return restaurant


def _validate_business_hours(value) -> dict:
    if not isinstance(value, dict):
        raise ValidationError.single("settings.business_hours", "business_hours must be an object")

    errors: list[dict] = []
    for day, hours in value.items():
        field = f"settings.business_hours.{day}"
        if day not in WEEKDAYS:
            errors.append({"field": field, "message": f"{day} is not a weekday"})
            continue
        if not isinstance(hours, dict):
            errors.append({"field": field, "message": f"{field} must be an object"})
            continue
        for key in ("open", "close"):
            if key in hours and not (isinstance(hours[key], str) and _HHMM.match(hours[key])):
                errors.append({"field": f"{field}.{key}", "message": f"{field}.{key} must be HH:MM"})
        if "is_open" in hours and not isinstance(hours["is_open"], bool):
            errors.append({"field": f"{field}.is_open", "message": f"{field}.is_open must be a boolean"})
    if errors:
        raise ValidationError("Invalid data", errors=errors)
    return value


def update_settings(payload: dict, *, restaurant_id: int) -> tuple[Restaurant, list[DomainEvent]]:
    """
    Partial update of name, address, contact and settings.

    business_hours entries are merged per weekday into the stored schedule.
    """
    restaurant = get_restaurant(restaurant_id=restaurant_id)

    payload = dict(payload or {})
    settings = payload.pop("settings", None) or {}
    if not isinstance(settings, dict):
        raise ValidationError.single("settings", "settings must be an object")

    business_hours = settings.pop("business_hours", None)
    flat, paths = flatten_payload(payload, {"address", "contact"})
    for key, value in settings.items():
        flat[key] = value
        paths[key] = f"settings.{key}"

    patch = validate_payload(
        model=Restaurant, payload=flat, policy=RESTAURANT_POLICY, partial=True, paths=paths
    )

    if "tax_rate" in patch and patch["tax_rate"] > 1:
        raise ValidationError.single("settings.tax_rate", "settings.tax_rate must be between 0 and 1")
    if patch.get("contact_email"):
        patch["contact_email"] = require_email(patch["contact_email"], "contact.email")

    if business_hours is not None:
        hours = _validate_business_hours(business_hours)
        merged = {day: dict(value) for day, value in (restaurant.business_hours or {}).items()}
        for day, value in hours.items():
            merged.setdefault(day, {}).update(value)
        patch["business_hours"] = merged

    for key, value in patch.items():
        setattr(restaurant, key, value)
    db.session.commit()

    return restaurant, [DomainEvent(restaurant.id, "restaurant.updated", {"restaurant": restaurant.to_dict()})]
