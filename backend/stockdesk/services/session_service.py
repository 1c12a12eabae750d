# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

Tokens are 32 random bytes (hex), stored SHA-256 hashed, with a 24-hour
absolute timeout and a 2-hour idle timeout (both configurable). Sessions
capture the user's company_id at login; ADMIN sessions carry None.
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app, has_app_context

from ..extensions import db
from ..models import SessionToken, User, Company
from ..models.auth import ROLE_ADMIN
from stockdesk.time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)
SESSION_RETENTION = timedelta(days=30)


def _timeouts() -> tuple[timedelta, timedelta]:
    if has_app_context():
        return (
            timedelta(hours=current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24)),
            timedelta(hours=current_app.config.get("SESSION_IDLE_TIMEOUT_HOURS", 2)),
        )
    return SESSION_ABSOLUTE_TIMEOUT, SESSION_IDLE_TIMEOUT


@dataclass
class SessionContext:
    """Identity and tenant context resolved from a valid token."""
    user: User
    session: SessionToken
    company_id: int | None  # None only for ADMIN
    role: str


def generate_token() -> str:
    """64-character hex token; the plaintext is returned to the client and never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _revoke(session: SessionToken, reason: str, now) -> None:
    session.is_revoked = True
    session.revoked_at = now
    session.revoked_reason = reason


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for user with tenant context.

    Returns (session_record, plaintext_token).
    Raises ValueError if a non-ADMIN user has no active company.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    if user.role != ROLE_ADMIN:
        if not user.company_id:
            raise ValueError("User must belong to a company")
        company = db.session.get(Company, user.company_id)
        if not company or not company.is_active:
            raise ValueError("Company is not active")

    plaintext_token = generate_token()
    absolute_timeout, _ = _timeouts()
    now = utcnow()

    session = SessionToken(
        user_id=user.id,
        company_id=user.company_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + absolute_timeout,
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
        is_revoked=False,
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if the token is unknown, expired, revoked, idle too long,
    or its user / company has been deactivated. Idle and deactivation
    cases revoke the session on the way out.
    """
    if not token:
        return None

    now = utcnow()
    absolute_timeout, idle_timeout = _timeouts()

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > idle_timeout:
        _revoke(session, "Idle timeout", now)
        db.session.commit()
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated", now)
        db.session.commit()
        return None

    if user.role != ROLE_ADMIN:
        company = session.company
        if not company or not company.is_active:
            _revoke(session, "Company deactivated", now)
            db.session.commit()
            return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(
        user=user,
        session=session,
        company_id=session.company_id,
        role=user.role,
    )


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Returns True if a live session was revoked, False if not found."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return False

    _revoke(session, reason, utcnow())
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """Revoke every live session of a user. Returns the count revoked."""
    now = utcnow()

    sessions = db.session.query(SessionToken).filter_by(
        user_id=user_id,
        is_revoked=False
    ).all()

    for session in sessions:
        _revoke(session, reason, now)

    db.session.commit()
    return len(sessions)


def cleanup_expired_sessions() -> int:
    """
    Delete expired or revoked sessions created more than 30 days ago.

    Run periodically (`flask maintenance cleanup-sessions`).
    """
    now = utcnow()
    cutoff = now - SESSION_RETENTION

    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < now,
            SessionToken.is_revoked.is_(True),
        ),
        SessionToken.created_at < cutoff
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted
