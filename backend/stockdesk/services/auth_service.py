# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication and company user management.

Passwords are hashed with bcrypt (cost factor 12) after a strength check.
Email is the global login identifier. ADMIN users have no company; every
other user belongs to exactly one company and is only visible to that
company's directors.
"""

import bcrypt
import re

from flask import current_app

from ..extensions import db
from ..errors import Conflict, InvalidAmount, InvalidInput, NotFound, Unauthorized
from ..models import (
    Company,
    CreditTransaction,
    Customer,
    Expense,
    OrderRequest,
    Payment,
    SessionToken,
    User,
    UserInventory,
)
from ..models.auth import ROLE_ADMIN, ROLE_DIRECTOR, ROLE_USER
from . import session_service
from .concurrency import lock_for_update, run_with_retry
from stockdesk.time_utils import utcnow


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(InvalidInput):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt (cost 12)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email) -> str:
    if not isinstance(email, str) or not EMAIL_RE.match(email.strip()):
        raise InvalidInput("A valid email is required")
    return email.strip().lower()


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns the user when the credentials match, the account is active and
    (for non-ADMIN users) the company is active. Returns None otherwise.
    Stamps last_login_at on success.
    """
    if not email or not password:
        return None

    user = db.session.query(User).filter(
        User.email == email.strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user or not verify_password(password, user.password_hash):
        return None

    if user.role != ROLE_ADMIN:
        company = db.session.get(Company, user.company_id) if user.company_id else None
        if not company or not company.is_active:
            return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def _ensure_email_free(email: str, *, exclude_user_id: int | None = None) -> None:
    query = db.session.query(User).filter(User.email == email)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    if query.first():
        raise Conflict("A user with this email already exists")


def _require_director(actor: User) -> int:
    if actor.role != ROLE_DIRECTOR or not actor.company_id:
        raise Unauthorized.forbidden("Only company directors can manage users")
    return actor.company_id


# =============================================================================
# Company user management (director)
# =============================================================================

def create_company_user(
    director: User,
    *,
    name: str,
    email: str,
    password: str,
    credit_limit_cents: int = 0,
) -> User:
    """Create a role-USER account in the director's company."""
    company_id = _require_director(director)

    name = (name or "").strip()
    if not name:
        raise InvalidInput("name is required")
    email = normalize_email(email)
    if credit_limit_cents < 0:
        raise InvalidAmount("credit_limit_cents must be >= 0")

    password_hash = hash_password(password)

    def _op():
        _ensure_email_free(email)
        user = User(
            company_id=company_id,
            name=name,
            email=email,
            password_hash=password_hash,
            role=ROLE_USER,
            credit_limit_cents=credit_limit_cents,
            credit_used_cents=0,
        )
        db.session.add(user)
        db.session.commit()
        return user

    user = run_with_retry(_op)
    current_app.logger.info("User %s created in company %s by director %s", user.id, company_id, director.id)
    return user


def list_company_users(director: User, *, include_inactive: bool = True) -> list[User]:
    company_id = _require_director(director)
    query = db.session.query(User).filter(
        User.company_id == company_id,
        User.role == ROLE_USER,
    )
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.name.asc(), User.id.asc()).all()


def get_company_user(director: User, user_id: int) -> User:
    """Load a USER of the director's company; other tenants read as not found."""
    company_id = _require_director(director)
    user = db.session.query(User).filter_by(id=user_id, company_id=company_id, role=ROLE_USER).first()
    if not user:
        raise NotFound("User not found")
    return user


def update_company_user(director: User, user_id: int, patch: dict) -> User:
    """
    Update name, email, password or is_active of a company user.

    Deactivation revokes the user's open sessions.
    """
    company_id = _require_director(director)
    allowed = {"name", "email", "password", "is_active"}
    unknown = set(patch) - allowed
    if unknown:
        raise InvalidInput(f"Field not allowed: {sorted(unknown)[0]}")

    changes: dict = {}
    if "name" in patch:
        name = (patch["name"] or "").strip()
        if not name:
            raise InvalidInput("name cannot be blank")
        changes["name"] = name
    if "email" in patch:
        changes["email"] = normalize_email(patch["email"])
    if "password" in patch:
        changes["password_hash"] = hash_password(patch["password"])
    if "is_active" in patch:
        if not isinstance(patch["is_active"], bool):
            raise InvalidInput("is_active must be a boolean")
        changes["is_active"] = patch["is_active"]

    def _op():
        user = lock_for_update(
            db.session.query(User).filter_by(id=user_id, company_id=company_id, role=ROLE_USER)
        ).first()
        if not user:
            raise NotFound("User not found")
        if "email" in changes:
            _ensure_email_free(changes["email"], exclude_user_id=user.id)
        for key, value in changes.items():
            setattr(user, key, value)
        db.session.commit()
        return user

    user = run_with_retry(_op)

    if changes.get("is_active") is False or "password_hash" in changes:
        session_service.revoke_all_user_sessions(user.id, reason="Account updated by director")

    return user


def delete_company_user(director: User, user_id: int) -> str:
    """
    Remove a company user.

    Users that own orders, payments, expenses, customers or credit
    transactions are deactivated so their history stays attributable;
    anyone else is hard-deleted.
    Returns "deactivated" or "deleted".
    """
    company_id = _require_director(director)

    def _op():
        user = lock_for_update(
            db.session.query(User).filter_by(id=user_id, company_id=company_id, role=ROLE_USER)
        ).first()
        if not user:
            raise NotFound("User not found")

        has_history = any(
            db.session.query(model.id).filter(model.user_id == user.id).first() is not None
            for model in (OrderRequest, Payment, Customer, Expense, CreditTransaction)
        )

        if has_history:
            user.is_active = False
            db.session.commit()
            return "deactivated"

        for model in (SessionToken, UserInventory):
            db.session.query(model).filter(model.user_id == user.id).delete(synchronize_session=False)
        db.session.delete(user)
        db.session.commit()
        return "deleted"

    outcome = run_with_retry(_op)
    if outcome == "deactivated":
        session_service.revoke_all_user_sessions(user_id, reason="Account removed by director")
    current_app.logger.info("User %s %s by director %s", user_id, outcome, director.id)
    return outcome
