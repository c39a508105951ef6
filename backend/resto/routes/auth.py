# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

- register: creates a restaurant with its first admin user and logs them in
- login / logout: issue and revoke opaque bearer tokens
- me / preferences / change-password: the caller's own account
"""

from flask import Blueprint, request, current_app, g

from ..extensions import db
from ..errors import DomainError
from ..responses import success, error_response, internal_error
from ..services import auth_service, session_service
from ..decorators import require_auth, bearer_token
from ..validation import require_json_object


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _user_payload(user) -> dict:
    data = user.to_dict()
    data["restaurant"] = {"id": user.restaurant.id, "name": user.restaurant.name}
    return data


def _issue_token(user) -> dict:
    session, token = session_service.create_session(
        user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return {"token": token, "expires_at": session.to_dict()["expires_at"]}


@auth_bp.post("/register")
def register_route():
    """
    Create a restaurant and its admin user.

    Request body:
    {
        "name": "Ana", "email": "ana@example.com", "password": "Password123!",
        "restaurant_name": "La Esquina",
        "restaurant_address": {"street", "city", "state", "zip_code", "country"},
        "restaurant_contact": {"phone", "email"}
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        restaurant, user = auth_service.register_restaurant(data)
        data = {"user": _user_payload(user), **_issue_token(user)}
    except DomainError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to register restaurant")
        return internal_error()

    current_app.logger.info("Restaurant %s registered", restaurant.id)
    return success(data, "User registered successfully", 201)


@auth_bp.post("/login")
def login_route():
    """Authenticate with email/password and return a session token."""
    try:
        data = require_json_object(request.get_json(silent=True))
        user = auth_service.authenticate(data.get("email"), data.get("password"))
        data = {"user": _user_payload(user), **_issue_token(user)}
    except DomainError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to log in")
        return internal_error()

    return success(data, "Login successful")


@auth_bp.get("/me")
@require_auth
def me_route():
    return success({"user": _user_payload(g.current_user)})


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the token used for this request."""
    try:
        session_service.revoke_session(bearer_token())
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to log out")
        return internal_error()

    return success(message="Logged out")


@auth_bp.put("/preferences")
@require_auth
def update_preferences_route():
    """Partial update of notifications, dark_mode, language and stock thresholds."""
    try:
        data = require_json_object(request.get_json(silent=True))
        user = auth_service.update_preferences(g.current_user, data)
    except DomainError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update preferences")
        return internal_error()

    return success({"user": _user_payload(user)}, "Preferences updated")


@auth_bp.post("/change-password")
@require_auth
def change_password_route():
    """
    Change the caller's password.

    Other sessions of the user are revoked; the current one stays valid.
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        user = auth_service.change_password(
            g.current_user, data.get("current_password"), data.get("new_password")
        )
        session_service.revoke_all_user_sessions(
            user.id, "Password changed", except_session_id=g.session_context.session.id
        )
    except DomainError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to change password")
        return internal_error()

    return success(message="Password updated successfully")
