# Overview: Service-layer operations for user credit; encapsulates business logic and database work.

"""
User credit ledger.

Directors grant each company user a credit limit; every grant writes a
GRANTED CreditTransaction. Users pay down drawn credit (credit_used) with
credit payments: the part of a payment that covers credit_used is booked
as a CREDIT_PAYMENT transaction, the rest is an ordinary payment.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..errors import InvalidAmount, NotFound, Unauthorized
from ..models import CreditTransaction, Payment, User
from ..models.auth import ROLE_DIRECTOR, ROLE_USER
from ..models.finance import CREDIT_GRANTED, CREDIT_PAYMENT
from ..validation import MAX_AMOUNT_CENTS
from .concurrency import lock_for_update, run_with_retry
from stockdesk.time_utils import utcnow


RECENT_TRANSACTIONS_LIMIT = 10


def set_credit_limit(
    director: User,
    user_id: int,
    new_limit_cents: int,
    description: str | None = None,
) -> tuple[User, CreditTransaction]:
    """
    Replace a user's credit limit and append a GRANTED audit row.

    credit_used is left alone, even when the new limit is below it.
    """
    if director.role != ROLE_DIRECTOR or not director.company_id:
        raise Unauthorized.forbidden("Only company directors can set credit limits")
    if new_limit_cents < 0:
        raise InvalidAmount("Credit limit cannot be negative")
    if new_limit_cents > MAX_AMOUNT_CENTS:
        raise InvalidAmount(f"Credit limit cannot exceed {MAX_AMOUNT_CENTS}")

    def _op():
        user = lock_for_update(
            db.session.query(User).filter_by(id=user_id, company_id=director.company_id, role=ROLE_USER)
        ).first()
        if user is None:
            raise NotFound("User not found")

        previous = user.credit_limit_cents
        user.credit_limit_cents = new_limit_cents

        txn = CreditTransaction(
            company_id=director.company_id,
            user_id=user.id,
            type=CREDIT_GRANTED,
            amount_cents=new_limit_cents,
            description=description or f"Credit limit changed from {previous} to {new_limit_cents}",
        )
        db.session.add(txn)
        db.session.commit()
        return user, txn

    user, txn = run_with_retry(_op)
    current_app.logger.info(
        "Credit limit for user %s set to %d by director %s", user.id, new_limit_cents, director.id,
    )
    return user, txn


def apply_credit_payment(
    user: User,
    amount_cents: int,
    description: str | None = None,
    receipt_url: str | None = None,
    payment_date: datetime | None = None,
) -> dict:
    """
    Record a payment, paying down drawn credit first.

    payoff = min(amount, credit_used). Returns the payment, the credit
    portion and the regular remainder.
    """
    if amount_cents <= 0:
        raise InvalidAmount("Payment amount must be greater than zero")
    if not user.company_id:
        raise Unauthorized.forbidden("Only company members can record payments")

    def _op():
        locked = lock_for_update(db.session.query(User).filter_by(id=user.id)).first()
        if locked is None:
            raise NotFound("User not found")

        payoff = min(amount_cents, locked.credit_used_cents or 0)
        locked.credit_used_cents = (locked.credit_used_cents or 0) - payoff

        payment = Payment(
            company_id=locked.company_id,
            user_id=locked.id,
            amount_cents=amount_cents,
            description=description or "Credit payment",
            receipt_url=receipt_url,
            payment_date=payment_date or utcnow(),
            is_from_credit=payoff > 0,
            credit_amount_cents=payoff,
        )
        db.session.add(payment)
        db.session.flush()

        if payoff > 0:
            db.session.add(CreditTransaction(
                company_id=locked.company_id,
                user_id=locked.id,
                type=CREDIT_PAYMENT,
                amount_cents=payoff,
                description=description or "Credit payment",
                payment_id=payment.id,
            ))

        db.session.commit()
        return {
            "payment": payment,
            "credit_paid_cents": payoff,
            "regular_amount_cents": amount_cents - payoff,
            "credit_used_cents": locked.credit_used_cents,
        }

    result = run_with_retry(_op)
    current_app.logger.info(
        "User %s paid %d (%d against credit)", user.id, amount_cents, result["credit_paid_cents"],
    )
    return result


def list_credit_transactions(user_id: int, company_id: int, limit: int | None = None) -> list[CreditTransaction]:
    query = (
        db.session.query(CreditTransaction)
        .filter_by(user_id=user_id, company_id=company_id)
        .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
    )
    if limit:
        query = query.limit(limit)
    return query.all()


def list_credit_overview(company_id: int) -> dict:
    """Credit position of every user in a company plus company totals."""
    users = (
        db.session.query(User)
        .filter(User.company_id == company_id, User.role == ROLE_USER)
        .order_by(User.name.asc(), User.id.asc())
        .all()
    )
    rows = []
    for user in users:
        rows.append({
            "user_id": user.id,
            "name": user.name,
            "email": user.email,
            "is_active": user.is_active,
            "credit_limit_cents": user.credit_limit_cents,
            "credit_used_cents": user.credit_used_cents,
            "credit_available_cents": user.credit_available_cents,
            "recent_transactions": [
                txn.to_dict()
                for txn in list_credit_transactions(user.id, company_id, RECENT_TRANSACTIONS_LIMIT)
            ],
        })
    return {
        "users": rows,
        "total_credit_limit_cents": sum(u.credit_limit_cents for u in users),
        "total_credit_used_cents": sum(u.credit_used_cents for u in users),
    }
