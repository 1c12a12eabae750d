# Overview: Flask API routes for order requests placed by company users; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_company
from ..errors import DomainError, error_response, internal_error_response
from ..services import order_service


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.get("")
@require_auth
@require_company
def list_my_orders_route():
    try:
        orders = order_service.list_user_orders(g.current_user, status=request.args.get("status"))
        return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)}), 200
    except DomainError as e:
        return error_response(e)


@orders_bp.post("")
@require_auth
@require_company
def create_order_route():
    """
    Place an order request.

    Body: {items: [{product_id, quantity}], notes?}
    400 InsufficientStock lists every short line in out_of_stock_items.
    """
    data = request.get_json(silent=True) or {}
    try:
        order = order_service.create_order(g.current_user, data.get("items"), notes=data.get("notes"))
        return jsonify(order.to_dict()), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create order request")
        return internal_error_response()


@orders_bp.get("/<int:order_id>")
@require_auth
@require_company
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id, g.current_user)
        return jsonify(order.to_dict()), 200
    except DomainError as e:
        return error_response(e)
