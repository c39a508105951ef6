# Overview: Service-layer operations for restaurant staff accounts.

"""
User Management

MULTI-TENANT: every lookup is scoped to the caller's restaurant; users of
other restaurants are reported as not found.

ROLE RULES:
- admin/manager may view, create and toggle any user of their restaurant
- employees may only view and edit themselves, and never their own role
  or active flag
- only admins deactivate (delete) users; nobody deactivates themselves
"""

import logging

from ..extensions import db
from ..models import User
from ..models.auth import ROLES, default_preferences
from ..errors import NotFoundError, PermissionDeniedError, ValidationError
from ..validation import require_email
from . import auth_service, session_service
from .tenant_service import paginate
from .realtime_service import DomainEvent


logger = logging.getLogger(__name__)

USER_NOT_FOUND = "User not found"
STAFF_ROLES = ("admin", "manager")


def _scoped_users(restaurant_id: int):
    if restaurant_id is None:
        raise ValueError("restaurant_id is required")
    return db.session.query(User).filter(User.restaurant_id == restaurant_id)


def get_user(user_id, *, restaurant_id: int) -> User:
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        raise NotFoundError(USER_NOT_FOUND)
    user = _scoped_users(restaurant_id).filter(User.id == user_id).first()
    if user is None:
        raise NotFoundError(USER_NOT_FOUND)
    return user


def get_visible_user(user_id, *, actor: User) -> User:
    """Employees can only see themselves; staff can see anyone in the restaurant."""
    target_id = user_id if actor.role in STAFF_ROLES else actor.id
    return get_user(target_id, restaurant_id=actor.restaurant_id)


def list_users(
    *,
    restaurant_id: int,
    page: int = 1,
    limit: int = 20,
    role: str | None = None,
    is_active: bool | None = None,
) -> tuple[list[User], dict]:
    query = _scoped_users(restaurant_id)
    if role:
        query = query.filter(User.role == role)
    if is_active is not None:
        query = query.filter(User.is_active.is_(is_active))
    query = query.order_by(User.created_at.desc(), User.id.desc())
    return paginate(query, page=page, limit=limit)


def _require_role(value) -> str:
    if value not in ROLES:
        raise ValidationError.single("role", f"role must be one of: {', '.join(ROLES)}")
    return value


def create_user(payload: dict, *, restaurant_id: int) -> tuple[User, list[DomainEvent]]:
    payload = payload or {}
    errors: list[dict] = []

    def _collect(fn, *args):
        try:
            return fn(*args)
        except ValidationError as e:
            errors.extend(e.errors)
            return None

    name = _collect(auth_service.normalize_name, payload.get("name"))
    email = _collect(require_email, payload.get("email"))
    _collect(auth_service.validate_password_strength, payload.get("password"))
    role = _collect(_require_role, payload.get("role", "employee"))
    if errors:
        raise ValidationError("Invalid data", errors=errors)

    auth_service.ensure_email_available(email)

    user = User(
        restaurant_id=restaurant_id,
        name=name,
        email=email,
        password_hash=auth_service.hash_password(payload["password"]),
        role=role,
        preferences=default_preferences(),
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()

    return user, [DomainEvent(restaurant_id, "user.created", {"user": user.to_dict()})]


def update_user(user_id, payload: dict, *, actor: User) -> tuple[User, list[DomainEvent]]:
    payload = payload or {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if actor.role == "employee" and ("role" in payload or "is_active" in payload):
        raise PermissionDeniedError("You are not allowed to change role or active status")

    user = get_visible_user(user_id, actor=actor)

    errors: list[dict] = []
    patch: dict = {}
    for key, value in payload.items():
        try:
            if key == "name":
                patch["name"] = auth_service.normalize_name(value)
            elif key == "email":
                patch["email"] = require_email(value)
            elif key == "role":
                patch["role"] = _require_role(value)
            elif key == "is_active":
                if not isinstance(value, bool):
                    raise ValidationError.single("is_active", "is_active must be a boolean")
                patch["is_active"] = value
            else:
                errors.append({"field": key, "message": f"{key} is not an allowed field"})
        except ValidationError as e:
            errors.extend(e.errors)
    if errors:
        raise ValidationError("Invalid data", errors=errors)

    if "email" in patch and patch["email"] != user.email:
        auth_service.ensure_email_available(patch["email"], exclude_user_id=user.id)

    for key, value in patch.items():
        setattr(user, key, value)
    db.session.commit()

    if patch.get("is_active") is False:
        session_service.revoke_all_user_sessions(user.id, "User deactivated")

    return user, [DomainEvent(user.restaurant_id, "user.updated", {"user": user.to_dict()})]


def deactivate_user(user_id, *, actor: User) -> tuple[User, list[DomainEvent]]:
    user = get_user(user_id, restaurant_id=actor.restaurant_id)
    if user.id == actor.id:
        raise ValidationError.single("id", "You cannot delete your own account")

    user.is_active = False
    db.session.commit()
    session_service.revoke_all_user_sessions(user.id, "User deactivated")

    logger.info("User %s deactivated by %s", user.id, actor.id)
    return user, [DomainEvent(user.restaurant_id, "user.deleted", {"user_id": user.id})]


def toggle_status(user_id, *, actor: User) -> tuple[User, list[DomainEvent]]:
    user = get_user(user_id, restaurant_id=actor.restaurant_id)
    if user.id == actor.id:
        raise ValidationError.single("id", "You cannot change your own status")

    user.is_active = not user.is_active
    db.session.commit()
    if not user.is_active:
        session_service.revoke_all_user_sessions(user.id, "User deactivated")

    return user, [DomainEvent(user.restaurant_id, "user.updated", {"user": user.to_dict()})]


def change_user_password(user_id, payload: dict, *, actor: User) -> User:
    """
    Self-service change requires current_password. Admins may reset another
    user's password with new_password only.
    """
    payload = payload or {}
    user = get_user(user_id, restaurant_id=actor.restaurant_id)

    if user.id == actor.id:
        return auth_service.change_password(
            user, payload.get("current_password"), payload.get("new_password")
        )

    if actor.role != "admin":
        raise PermissionDeniedError("Only admins can change other users' passwords")

    user.password_hash = auth_service.hash_password(payload.get("new_password"), "new_password")
    db.session.commit()
    session_service.revoke_all_user_sessions(user.id, "Password reset by admin")
    return user
