# Overview: Flask API routes for staff accounts; parses input and returns JSON responses.

"""
User Management API Routes

- list/create/toggle-status: admin or manager
- get/update: staff see anyone in the restaurant, employees only themselves
- delete (deactivate): admin only, never yourself
- change-password: yourself with current password, or an admin resetting
  someone else's
"""

from flask import Blueprint, request, current_app, g

from ..extensions import db
from ..errors import DomainError
from ..models.auth import ROLES
from ..responses import success, error_response, internal_error
from ..services import user_service
from ..services.realtime_service import dispatch
from ..decorators import require_auth, require_role
from ..validation import (
    parse_positive_int_arg,
    parse_choice_arg,
    parse_bool_arg,
    require_json_object,
)


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_role("admin", "manager")
def list_users_route():
    """Query: page, limit, role, is_active."""
    try:
        page = parse_positive_int_arg(request.args, "page", 1)
        limit = parse_positive_int_arg(request.args, "limit", 20, maximum=100)
        role = parse_choice_arg(request.args, "role", ROLES)
        is_active = parse_bool_arg(request.args, "is_active")

        users, pagination = user_service.list_users(
            restaurant_id=g.restaurant_id, page=page, limit=limit, role=role, is_active=is_active
        )
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list users")
        return internal_error()

    return success({"users": [user.to_dict() for user in users], "pagination": pagination})


@users_bp.get("/<int:user_id>")
@require_auth
def get_user_route(user_id: int):
    try:
        user = user_service.get_visible_user(user_id, actor=g.current_user)
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get user")
        return internal_error()

    return success({"user": user.to_dict()})


@users_bp.post("")
@require_auth
@require_role("admin", "manager")
def create_user_route():
    """Request body: {"name", "email", "password", "role"}"""
    try:
        data = require_json_object(request.get_json(silent=True))
        user, events = user_service.create_user(data, restaurant_id=g.restaurant_id)
    except DomainError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create user")
        return internal_error()

    dispatch(events)
    return success({"user": user.to_dict()}, "User created successfully", 201)


@users_bp.put("/<int:user_id>")
@require_auth
def update_user_route(user_id: int):
    """Request body (all optional): {"name", "email", "role", "is_active"}"""
    try:
        data = require_json_object(request.get_json(silent=True))
        user, events = user_service.update_user(user_id, data, actor=g.current_user)
    except DomainError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update user")
        return internal_error()

    dispatch(events)
    return success({"user": user.to_dict()}, "User updated successfully")


@users_bp.delete("/<int:user_id>")
@require_auth
@require_role("admin")
def delete_user_route(user_id: int):
    try:
        _, events = user_service.deactivate_user(user_id, actor=g.current_user)
    except DomainError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete user")
        return internal_error()

    dispatch(events)
    return success(message="User deactivated successfully")


@users_bp.put("/<int:user_id>/toggle-status")
@require_auth
@require_role("admin", "manager")
def toggle_status_route(user_id: int):
    try:
        user, events = user_service.toggle_status(user_id, actor=g.current_user)
    except DomainError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to toggle user status")
        return internal_error()

    dispatch(events)
    state = "activated" if user.is_active else "deactivated"
    return success({"user": user.to_dict()}, f"User {state} successfully")


@users_bp.put("/<int:user_id>/change-password")
@require_auth
def change_password_route(user_id: int):
    """Request body: {"current_password": "...", "new_password": "..."}"""
    try:
        data = require_json_object(request.get_json(silent=True))
        user_service.change_user_password(user_id, data, actor=g.current_user)
    except DomainError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to change user password")
        return internal_error()

    return success(message="Password updated successfully")
