# Overview: Flask API routes for company directors; parses input and returns JSON responses.

"""
Director routes (COMPANY_DIRECTOR, and ADMIN where noted).

- users: company user management and customer debts
- orders: list, transition, ship
- credit: credit overview and limits
- balances / dashboard / performance / product analytics: reporting
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..errors import DomainError, InvalidInput, error_response, internal_error_response
from ..models.auth import ROLE_ADMIN, ROLE_DIRECTOR
from ..services import (
    auth_service,
    credit_service,
    customer_service,
    order_service,
    reporting_service,
)
from ..validation import parse_datetime_field, parse_int, require_amount_cents
from stockdesk.time_utils import utcnow


director_bp = Blueprint("director", __name__, url_prefix="/api/director")


# =============================================================================
# Users
# =============================================================================

@director_bp.get("/users")
@require_auth
@require_role(ROLE_DIRECTOR)
def list_users_route():
    users = auth_service.list_company_users(g.current_user)
    return jsonify({"users": [u.to_dict() for u in users], "count": len(users)}), 200


@director_bp.post("/users")
@require_auth
@require_role(ROLE_DIRECTOR)
def create_user_route():
    """Body: {name, email, password, credit_limit_cents?}."""
    data = request.get_json(silent=True) or {}
    try:
        credit_limit = data.get("credit_limit_cents")
        user = auth_service.create_company_user(
            g.current_user,
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password") or "",
            credit_limit_cents=parse_int(credit_limit, "credit_limit_cents") if credit_limit is not None else 0,
        )
        return jsonify(user.to_dict()), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create user")
        return internal_error_response()


@director_bp.put("/users/<int:user_id>")
@require_auth
@require_role(ROLE_DIRECTOR)
def update_user_route(user_id: int):
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.update_company_user(g.current_user, user_id, data)
        return jsonify(user.to_dict()), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update user")
        return internal_error_response()


@director_bp.delete("/users/<int:user_id>")
@require_auth
@require_role(ROLE_DIRECTOR)
def delete_user_route(user_id: int):
    try:
        outcome = auth_service.delete_company_user(g.current_user, user_id)
        return jsonify({"id": user_id, "result": outcome}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return internal_error_response()


@director_bp.get("/users/<int:user_id>/customer-debts")
@require_auth
@require_role(ROLE_DIRECTOR)
def customer_debts_route(user_id: int):
    try:
        return jsonify(customer_service.get_customer_debts(g.current_user, user_id)), 200
    except DomainError as e:
        return error_response(e)


# =============================================================================
# Orders
# =============================================================================

@director_bp.get("/orders")
@require_auth
@require_role(ROLE_DIRECTOR, ROLE_ADMIN)
def list_orders_route():
    """Company orders, newest first. ADMIN must pass ?company_id=."""
    try:
        company_id = g.company_id
        if g.role == ROLE_ADMIN:
            company_id = request.args.get("company_id", type=int)
            if company_id is None:
                raise InvalidInput("company_id is required")
        orders = order_service.list_company_orders(company_id, status=request.args.get("status"))
        return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)}), 200
    except DomainError as e:
        return error_response(e)


@director_bp.patch("/orders")
@require_auth
@require_role(ROLE_DIRECTOR, ROLE_ADMIN)
def transition_order_route():
    """Body: {order_id, status, notes?}."""
    data = request.get_json(silent=True) or {}
    try:
        if data.get("order_id") is None or not data.get("status"):
            raise InvalidInput("order_id and status are required")
        order, movements = order_service.transition_order(
            parse_int(data["order_id"], "order_id"),
            data["status"],
            g.current_user,
            notes=data.get("notes"),
        )
        return jsonify({"order": order.to_dict(), "stock_movements": movements}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return internal_error_response()


@director_bp.post("/orders/<int:order_id>/ship")
@require_auth
@require_role(ROLE_DIRECTOR, ROLE_ADMIN)
def ship_order_route(order_id: int):
    """Ship an order; 400 with out_of_stock_items if any line is short."""
    data = request.get_json(silent=True) or {}
    try:
        order, movements = order_service.ship_order(order_id, g.current_user, notes=data.get("notes"))
        return jsonify({"order": order.to_dict(), "stock_movements": movements}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to ship order")
        return internal_error_response()


# =============================================================================
# Credit
# =============================================================================

@director_bp.get("/credit")
@require_auth
@require_role(ROLE_DIRECTOR)
def credit_overview_route():
    return jsonify(credit_service.list_credit_overview(g.company_id)), 200


@director_bp.post("/credit")
@require_auth
@require_role(ROLE_DIRECTOR)
def set_credit_limit_route():
    """Body: {user_id, credit_limit_cents, description?}."""
    data = request.get_json(silent=True) or {}
    try:
        if data.get("user_id") is None:
            raise InvalidInput("user_id is required")
        user, txn = credit_service.set_credit_limit(
            g.current_user,
            parse_int(data["user_id"], "user_id"),
            require_amount_cents(data.get("credit_limit_cents"), "credit_limit_cents", allow_zero=True),
            description=data.get("description"),
        )
        return jsonify({"user": user.to_dict(), "transaction": txn.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to set credit limit")
        return internal_error_response()


# =============================================================================
# Reporting
# =============================================================================

def _as_of_arg():
    raw = request.args.get("as_of")
    return parse_datetime_field(raw, "as_of") if raw else utcnow()


@director_bp.get("/balances")
@require_auth
@require_role(ROLE_DIRECTOR)
def balances_route():
    return jsonify(reporting_service.get_company_balances(g.company_id)), 200


@director_bp.get("/dashboard")
@require_auth
@require_role(ROLE_DIRECTOR)
def dashboard_route():
    """Optional ?as_of=<ISO-8601>; defaults to now."""
    try:
        return jsonify(reporting_service.get_director_dashboard(g.company_id, _as_of_arg())), 200
    except DomainError as e:
        return error_response(e)


@director_bp.get("/performance")
@require_auth
@require_role(ROLE_DIRECTOR)
def performance_route():
    """Query params: months=3|6|12 (default 6), as_of=<ISO-8601> (default now)."""
    try:
        months = request.args.get("months")
        return jsonify(reporting_service.get_user_performance(
            g.company_id,
            _as_of_arg(),
            parse_int(months, "months") if months is not None else reporting_service.DEFAULT_PERFORMANCE_MONTHS,
        )), 200
    except DomainError as e:
        return error_response(e)


@director_bp.get("/products/analytics")
@require_auth
@require_role(ROLE_DIRECTOR)
def product_analytics_route():
    """Optional ?as_of=<ISO-8601>; defaults to now."""
    try:
        return jsonify(reporting_service.get_product_analytics(g.company_id, _as_of_arg())), 200
    except DomainError as e:
        return error_response(e)
