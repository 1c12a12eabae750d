from __future__ import annotations

from ..extensions import db
from stockdesk.time_utils import to_utc_z


CREDIT_GRANTED = "GRANTED"
CREDIT_PAYMENT = "CREDIT_PAYMENT"


class Payment(db.Model):
    """
    Payment made by a user to the company.

    When is_from_credit is set, credit_amount_cents of the amount paid
    down the user's drawn credit; the remainder is a regular payment.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_company_date", "company_id", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=True)
    receipt_url = db.Column(db.String(1024), nullable=True)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False)

    is_from_credit = db.Column(db.Boolean, nullable=False, default=False)
    credit_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "receipt_url": self.receipt_url,
            "payment_date": to_utc_z(self.payment_date),
            "is_from_credit": self.is_from_credit,
            "credit_amount_cents": self.credit_amount_cents,
            "created_at": to_utc_z(self.created_at),
        }


class Expense(db.Model):
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_company_date", "company_id", "expense_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True)
    receipt_url = db.Column(db.String(1024), nullable=True)
    expense_date = db.Column(db.DateTime(timezone=True), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("expenses", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "category": self.category,
            "receipt_url": self.receipt_url,
            "expense_date": to_utc_z(self.expense_date),
            "created_at": to_utc_z(self.created_at),
        }


class CreditTransaction(db.Model):
    """Append-only audit of credit grants and credit payoffs."""
    __tablename__ = "credit_transactions"
    __table_args__ = (
        db.Index("ix_credit_transactions_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    type = db.Column(db.String(32), nullable=False, index=True)  # GRANTED | CREDIT_PAYMENT
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=True)
    payment_id = db.Column(db.Integer, db.ForeignKey("payments.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("credit_transactions", lazy=True))
    payment = db.relationship("Payment")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "user_id": self.user_id,
            "type": self.type,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "payment_id": self.payment_id,
            "created_at": to_utc_z(self.created_at),
        }
