# Overview: Service-layer operations for session tokens; issue, validate and revoke bearer tokens.

"""
Session Token Management Service

Tokens are opaque, cryptographically random and stored only as a SHA-256
hash. Each session captures restaurant_id when it is issued; that value is
the tenant context for every authenticated request.

TIMEOUTS (from config):
- SESSION_ABSOLUTE_TIMEOUT_HOURS: maximum session length
- SESSION_IDLE_TIMEOUT_HOURS: inactivity window before auto-revocation
"""

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User, Restaurant
from ..errors import AuthenticationError
from resto.time_utils import utcnow


logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """Authenticated user plus the tenant captured by the session."""
    user: User
    session: SessionToken
    restaurant_id: int


def _absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", 168))


def _idle_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_IDLE_TIMEOUT_HOURS", 24))


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy). Never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 is sufficient for high-entropy tokens (unlike passwords)."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Issue a new session for an active user of an active restaurant.

    Returns (session_record, plaintext_token). The client receives the
    plaintext token; the database keeps only its hash.
    """
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    restaurant = db.session.query(Restaurant).filter_by(id=user.restaurant_id).first()
    if not restaurant or not restaurant.is_active:
        raise AuthenticationError("Restaurant is not active")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user.id,
        restaurant_id=user.restaurant_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _absolute_timeout(),
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason


def validate_session(token: str) -> SessionContext | None:
    """
    Return the SessionContext for a valid token, or None.

    None when the token is unknown, revoked, past its absolute or idle
    timeout, or when the user or restaurant has been deactivated. Idle and
    deactivation cases also revoke the session. Successful validation
    refreshes last_used_at.
    """
    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()
    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > _idle_timeout():
        _revoke(session, "Idle timeout")
        db.session.commit()
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        db.session.commit()
        return None

    restaurant = session.restaurant
    if not restaurant or not restaurant.is_active:
        _revoke(session, "Restaurant deactivated")
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(user=user, session=session, restaurant_id=session.restaurant_id)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Returns True if an active session was revoked."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()
    if not session:
        return False

    _revoke(session, reason)
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions", *, except_session_id: int | None = None) -> int:
    """Revoke every active session of a user (password change, deactivation)."""
    query = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False)
    if except_session_id is not None:
        query = query.filter(SessionToken.id != except_session_id)

    count = 0
    for session in query.all():
        _revoke(session, reason)
        count += 1

    db.session.commit()
    return count


def cleanup_expired_sessions(older_than_days: int = 30) -> int:
    """Delete expired or revoked sessions created before the cutoff."""
    now = utcnow()
    cutoff = now - timedelta(days=older_than_days)

    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < now,
            SessionToken.is_revoked.is_(True)
        ),
        SessionToken.created_at < cutoff
    ).delete(synchronize_session=False)

    db.session.commit()
    logger.info("Deleted %s stale session tokens", deleted)
    return deleted
