# Overview: Flask API routes for customer credit books; parses input and returns JSON responses.

"""
A USER's customers, their credit sales and repayments.

Customers are private to the user who created them.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..errors import DomainError, InvalidInput, error_response, internal_error_response
from ..models.auth import ROLE_USER
from ..services import customer_service
from ..validation import parse_datetime_field, parse_int, require_amount_cents, require_positive_quantity


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_role(ROLE_USER)
def list_customers_route():
    customers = customer_service.list_customers(g.current_user)
    return jsonify({"customers": [c.to_dict() for c in customers], "count": len(customers)}), 200


@customers_bp.post("")
@require_auth
@require_role(ROLE_USER)
def create_customer_route():
    """Body: {name, phone?, email?, address?}."""
    data = request.get_json(silent=True) or {}
    try:
        customer = customer_service.create_customer(g.current_user, data)
        return jsonify(customer.to_dict()), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return internal_error_response()


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_role(ROLE_USER)
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(customer_id, g.current_user)
        return jsonify(customer.to_dict()), 200
    except DomainError as e:
        return error_response(e)


@customers_bp.get("/<int:customer_id>/orders")
@require_auth
@require_role(ROLE_USER)
def list_customer_orders_route(customer_id: int):
    try:
        orders = customer_service.list_customer_orders(customer_id, g.current_user)
        return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)}), 200
    except DomainError as e:
        return error_response(e)


@customers_bp.post("/<int:customer_id>/orders")
@require_auth
@require_role(ROLE_USER)
def create_customer_order_route(customer_id: int):
    """Body: {product_id, quantity, unit_price_cents?, order_date?}."""
    data = request.get_json(silent=True) or {}
    try:
        if data.get("product_id") is None:
            raise InvalidInput("product_id is required")
        unit_price = data.get("unit_price_cents")
        order = customer_service.create_customer_order(
            customer_id,
            g.current_user,
            product_id=parse_int(data["product_id"], "product_id"),
            quantity=require_positive_quantity(data.get("quantity")),
            unit_price_cents=parse_int(unit_price, "unit_price_cents") if unit_price is not None else None,
            order_date=parse_datetime_field(data["order_date"], "order_date") if data.get("order_date") else None,
        )
        return jsonify(order.to_dict()), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create customer order")
        return internal_error_response()


@customers_bp.get("/<int:customer_id>/payments")
@require_auth
@require_role(ROLE_USER)
def list_customer_payments_route(customer_id: int):
    try:
        payments = customer_service.list_customer_payments(customer_id, g.current_user)
        return jsonify({"payments": [p.to_dict() for p in payments], "count": len(payments)}), 200
    except DomainError as e:
        return error_response(e)


@customers_bp.post("/<int:customer_id>/payments")
@require_auth
@require_role(ROLE_USER)
def record_customer_payment_route(customer_id: int):
    """
    Body: {amount_cents, payment_date?, description?}

    The amount is applied to the oldest unpaid orders first.
    """
    data = request.get_json(silent=True) or {}
    try:
        payment, allocations = customer_service.record_customer_payment(
            customer_id,
            g.current_user,
            require_amount_cents(data.get("amount_cents")),
            payment_date=parse_datetime_field(data["payment_date"], "payment_date") if data.get("payment_date") else None,
            description=data.get("description"),
        )
        customer = customer_service.get_customer(customer_id, g.current_user)
        return jsonify({
            "payment": payment.to_dict(),
            "allocations": allocations,
            "customer": customer.to_dict(),
        }), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record customer payment")
        return internal_error_response()
