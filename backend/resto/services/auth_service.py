# Overview: Service-layer operations for auth; password hashing, registration and login.

"""
Authentication Service

Every action must be attributable, so users authenticate with email and
password (bcrypt, cost factor 12) and receive an opaque session token (see
session_service.py).

MULTI-TENANT: registration creates a restaurant together with its first
admin user. Every user belongs to exactly one restaurant.

PASSWORD RULES:
- Minimum 8 characters
- Must contain uppercase, lowercase, digit, and special char
"""

import logging
import re

import bcrypt

from ..extensions import db
from ..models import User, Restaurant
from ..models.auth import LANGUAGES, default_preferences
from ..errors import AuthenticationError, ConflictError, ValidationError
from ..validation import require_email
from resto.time_utils import utcnow


logger = logging.getLogger(__name__)

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50
RESTAURANT_NAME_MAX_LENGTH = 100

ADDRESS_FIELDS = ("street", "city", "state", "zip_code", "country")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""

    def __init__(self, message: str, field: str = "password"):
        super().__init__(message, errors=[{"field": field, "message": message}])


def validate_password_strength(password, field: str = "password") -> None:
    """Raises PasswordValidationError if the password is too weak."""
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long", field)

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter", field)

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter", field)

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit", field)

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>?_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character", field)


def hash_password(password: str, field: str = "password") -> str:
    """Validate strength, then hash with bcrypt (cost factor 12)."""
    validate_password_strength(password, field)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe comparison via bcrypt.checkpw()."""
    if not isinstance(password, str) or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def normalize_name(value, field: str = "name", max_length: int = NAME_MAX_LENGTH) -> str:
    if not isinstance(value, str) or not (NAME_MIN_LENGTH <= len(value.strip()) <= max_length):
        raise ValidationError.single(
            field, f"{field} must be between {NAME_MIN_LENGTH} and {max_length} characters"
        )
    return value.strip()


def ensure_email_available(email: str, *, exclude_user_id: int | None = None) -> None:
    """Emails are unique across all restaurants (they identify the login)."""
    query = db.session.query(User).filter(User.email == email)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    if query.first():
        raise ConflictError("A user with this email already exists")


def register_restaurant(payload: dict) -> tuple[Restaurant, User]:
    """
    Create a restaurant and its first admin user.

    Payload:
    {
        "name": "...", "email": "...", "password": "...",
        "restaurant_name": "...",
        "restaurant_address": {"street", "city", "state", "zip_code", "country"},
        "restaurant_contact": {"phone", "email"}
    }

    All field problems are reported together before anything is written.
    """
    errors: list[dict] = []

    def _collect(fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except ValidationError as e:
            errors.extend(e.errors or [{"field": "", "message": e.message}])
            return None

    name = _collect(normalize_name, payload.get("name"))
    email = _collect(require_email, payload.get("email"))
    _collect(validate_password_strength, payload.get("password"))
    restaurant_name = _collect(
        normalize_name, payload.get("restaurant_name"), "restaurant_name", RESTAURANT_NAME_MAX_LENGTH
    )

    address = payload.get("restaurant_address") or {}
    contact = payload.get("restaurant_contact") or {}
    if not isinstance(address, dict):
        address = {}
        errors.append({"field": "restaurant_address", "message": "restaurant_address must be an object"})
    if not isinstance(contact, dict):
        contact = {}
        errors.append({"field": "restaurant_contact", "message": "restaurant_contact must be an object"})

    for key in ADDRESS_FIELDS:
        value = address.get(key)
        if not isinstance(value, str) or not value.strip():
            field = f"restaurant_address.{key}"
            errors.append({"field": field, "message": f"{field} is required"})

    phone = contact.get("phone")
    if not isinstance(phone, str) or not phone.strip():
        errors.append({"field": "restaurant_contact.phone", "message": "restaurant_contact.phone is required"})
    contact_email = _collect(require_email, contact.get("email"), "restaurant_contact.email")

    if errors:
        raise ValidationError("Invalid data", errors=errors)

    ensure_email_available(email)

    restaurant = Restaurant(
        name=restaurant_name,
        address_street=address["street"].strip(),
        address_city=address["city"].strip(),
        address_state=address["state"].strip(),
        address_zip_code=address["zip_code"].strip(),
        address_country=address["country"].strip(),
        contact_phone=phone.strip(),
        contact_email=contact_email,
    )
    db.session.add(restaurant)
    db.session.flush()

    user = User(
        restaurant_id=restaurant.id,
        name=name,
        email=email,
        password_hash=hash_password(payload["password"]),
        role="admin",
        preferences=default_preferences(),
    )
    db.session.add(user)
    db.session.commit()

    logger.info("Registered restaurant %s with admin user %s", restaurant.id, user.id)
    return restaurant, user


def authenticate(email: str, password: str) -> User:
    """
    Verify credentials and stamp last_login_at.

    Raises AuthenticationError for unknown email, wrong password, or a
    deactivated account/restaurant.
    """
    if not isinstance(email, str) or not email.strip():
        raise ValidationError.single("email", "email is required")
    if not isinstance(password, str) or not password:
        raise ValidationError.single("password", "password is required")

    user = db.session.query(User).filter(User.email == email.strip().lower()).first()
    if not user or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid credentials")

    if not user.is_active:
        raise AuthenticationError("User account is inactive")

    restaurant = db.session.get(Restaurant, user.restaurant_id)
    if not restaurant or not restaurant.is_active:
        raise AuthenticationError("Restaurant is not active")

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def update_preferences(user: User, payload: dict) -> User:
    """Merge a partial preferences patch into the user's preferences."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors: list[dict] = []
    patch: dict = {}
    for key, value in payload.items():
        if key in ("notifications", "dark_mode"):
            if not isinstance(value, bool):
                errors.append({"field": key, "message": f"{key} must be a boolean"})
                continue
        elif key == "language":
            if value not in LANGUAGES:
                errors.append({"field": key, "message": f"language must be one of: {', '.join(LANGUAGES)}"})
                continue
        elif key in ("low_stock_threshold", "medium_stock_threshold"):
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                errors.append({"field": key, "message": f"{key} must be a non-negative number"})
                continue
        else:
            errors.append({"field": key, "message": f"{key} is not an allowed field"})
            continue
        patch[key] = value

    if errors:
        raise ValidationError("Invalid data", errors=errors)

    preferences = dict(user.preferences or default_preferences())
    preferences.update(patch)
    # Reassign so the JSON column is flagged dirty
    user.preferences = preferences
    db.session.commit()
    return user


def change_password(user: User, current_password, new_password) -> User:
    """Self-service password change; requires the current password."""
    if not verify_password(current_password or "", user.password_hash):
        raise ValidationError.single("current_password", "Current password is incorrect")

    user.password_hash = hash_password(new_password, "new_password")
    db.session.commit()
    return user
