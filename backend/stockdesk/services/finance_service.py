# Overview: Service-layer operations for payments and expenses; encapsulates business logic and database work.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..errors import InvalidAmount, InvalidInput, Unauthorized
from ..models import Expense, Payment, User
from ..models.auth import ROLE_ADMIN, ROLE_DIRECTOR
from .tenant_service import scoped_query
from stockdesk.time_utils import utcnow


def _require_company(user: User) -> int:
    if user.role == ROLE_ADMIN or not user.company_id:
        raise Unauthorized.forbidden("Finance records belong to a company")
    return user.company_id


def _require_positive(amount_cents: int) -> None:
    if amount_cents <= 0:
        raise InvalidAmount("Amount must be greater than zero")


def record_payment(
    user: User,
    amount_cents: int,
    description: str | None = None,
    receipt_url: str | None = None,
    payment_date: datetime | None = None,
) -> Payment:
    """Plain payment to the company; the receipt URL is stored as given."""
    company_id = _require_company(user)
    _require_positive(amount_cents)
    payment = Payment(
        company_id=company_id,
        user_id=user.id,
        amount_cents=amount_cents,
        description=description,
        receipt_url=receipt_url,
        payment_date=payment_date or utcnow(),
        is_from_credit=False,
        credit_amount_cents=0,
    )
    db.session.add(payment)
    db.session.commit()
    return payment


def record_expense(
    user: User,
    amount_cents: int,
    description: str,
    category: str | None = None,
    receipt_url: str | None = None,
    expense_date: datetime | None = None,
) -> Expense:
    company_id = _require_company(user)
    _require_positive(amount_cents)
    description = (description or "").strip()
    if not description:
        raise InvalidInput("description is required")
    expense = Expense(
        company_id=company_id,
        user_id=user.id,
        amount_cents=amount_cents,
        description=description,
        category=(category or None),
        receipt_url=receipt_url,
        expense_date=expense_date or utcnow(),
    )
    db.session.add(expense)
    db.session.commit()
    return expense


def list_payments(actor: User, user_id: int | None = None) -> list[Payment]:
    """USER sees their own payments; a director sees the company's, optionally for one user."""
    company_id = _require_company(actor)
    query = scoped_query(Payment, company_id)
    if actor.role != ROLE_DIRECTOR:
        query = query.filter(Payment.user_id == actor.id)
    elif user_id is not None:
        query = query.filter(Payment.user_id == user_id)
    return query.order_by(Payment.payment_date.desc(), Payment.id.desc()).all()


def list_expenses(actor: User, user_id: int | None = None) -> list[Expense]:
    company_id = _require_company(actor)
    query = scoped_query(Expense, company_id)
    if actor.role != ROLE_DIRECTOR:
        query = query.filter(Expense.user_id == actor.id)
    elif user_id is not None:
        query = query.filter(Expense.user_id == user_id)
    return query.order_by(Expense.expense_date.desc(), Expense.id.desc()).all()
