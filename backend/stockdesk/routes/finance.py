# Overview: Flask API routes for payments, expenses, credit payoff and balance; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_company, require_role
from ..errors import DomainError, error_response, internal_error_response
from ..models.auth import ROLE_DIRECTOR, ROLE_USER
from ..services import credit_service, finance_service, reporting_service
from ..validation import parse_datetime_field, require_amount_cents


finance_bp = Blueprint("finance", __name__, url_prefix="/api")


def _optional_date(data: dict, field: str):
    return parse_datetime_field(data[field], field) if data.get(field) else None


@finance_bp.get("/payments")
@require_auth
@require_company
def list_payments_route():
    """Own payments for USER; company-wide for directors (?user_id= to filter)."""
    try:
        user_id = request.args.get("user_id", type=int) if g.role == ROLE_DIRECTOR else None
        payments = finance_service.list_payments(g.current_user, user_id=user_id)
        return jsonify({"payments": [p.to_dict() for p in payments], "count": len(payments)}), 200
    except DomainError as e:
        return error_response(e)


@finance_bp.post("/payments")
@require_auth
@require_company
def record_payment_route():
    """Body: {amount_cents, description?, receipt_url?, payment_date?}."""
    data = request.get_json(silent=True) or {}
    try:
        payment = finance_service.record_payment(
            g.current_user,
            require_amount_cents(data.get("amount_cents")),
            description=data.get("description"),
            receipt_url=data.get("receipt_url"),
            payment_date=_optional_date(data, "payment_date"),
        )
        return jsonify(payment.to_dict()), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return internal_error_response()


@finance_bp.get("/expenses")
@require_auth
@require_company
def list_expenses_route():
    try:
        user_id = request.args.get("user_id", type=int) if g.role == ROLE_DIRECTOR else None
        expenses = finance_service.list_expenses(g.current_user, user_id=user_id)
        return jsonify({"expenses": [e.to_dict() for e in expenses], "count": len(expenses)}), 200
    except DomainError as e:
        return error_response(e)


@finance_bp.post("/expenses")
@require_auth
@require_company
def record_expense_route():
    """Body: {amount_cents, description, category?, receipt_url?, expense_date?}."""
    data = request.get_json(silent=True) or {}
    try:
        expense = finance_service.record_expense(
            g.current_user,
            require_amount_cents(data.get("amount_cents")),
            data.get("description") or "",
            category=data.get("category"),
            receipt_url=data.get("receipt_url"),
            expense_date=_optional_date(data, "expense_date"),
        )
        return jsonify(expense.to_dict()), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record expense")
        return internal_error_response()


@finance_bp.post("/credit-payment")
@require_auth
@require_role(ROLE_USER)
def credit_payment_route():
    """Body: {amount_cents, description?, receipt_url?, payment_date?}. Pays down drawn credit first."""
    data = request.get_json(silent=True) or {}
    try:
        result = credit_service.apply_credit_payment(
            g.current_user,
            require_amount_cents(data.get("amount_cents")),
            description=data.get("description"),
            receipt_url=data.get("receipt_url"),
            payment_date=_optional_date(data, "payment_date"),
        )
        return jsonify({
            "payment": result["payment"].to_dict(),
            "credit_paid_cents": result["credit_paid_cents"],
            "regular_amount_cents": result["regular_amount_cents"],
            "credit_used_cents": result["credit_used_cents"],
        }), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to apply credit payment")
        return internal_error_response()


@finance_bp.get("/balance")
@require_auth
@require_role(ROLE_USER)
def balance_route():
    return jsonify(reporting_service.get_user_balance(g.current_user)), 200
