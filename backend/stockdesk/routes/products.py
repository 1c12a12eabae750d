# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/stockdesk/routes/products.py
"""
Product catalog and stock ledger routes.

All operations are scoped to the caller's company (g.company_id).
Reads are open to any company member; writes require COMPANY_DIRECTOR.
"""
from flask import Blueprint, request, g, current_app

from ..decorators import require_auth, require_company, require_role
from ..errors import DomainError, error_response, internal_error_response
from ..models.auth import ROLE_DIRECTOR
from ..services import products_service, stock_service
from ..validation import ValidationError, parse_int, require_positive_quantity

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_company
def list_products():
    """
    List company products with stock_status and has_active_alerts.

    Query params:
    - include_inactive: "true" (directors only)
    - page / per_page: optional pagination (per_page max 100)
    - category_id: only products of that category
    """
    include_inactive = (
        g.role == ROLE_DIRECTOR
        and request.args.get("include_inactive", "").lower() in ("1", "true", "yes")
    )
    return products_service.list_products(
        g.company_id,
        include_inactive=include_inactive,
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
        category_id=request.args.get("category_id", type=int),
    )


@products_bp.get("/<int:product_id>")
@require_auth
@require_company
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id, g.company_id)
        if not product.is_active and g.role != ROLE_DIRECTOR:
            return {"error": "NotFound", "message": "Product not found"}, 404
        return products_service.serialize_product(product)
    except DomainError as e:
        return error_response(e)


@products_bp.post("")
@require_auth
@require_role(ROLE_DIRECTOR)
def create_product_route():
    """Create a product. Body: {sku, name, price_cents, description?, category_id?, quantity?, min_stock?, max_stock?}."""
    payload = request.get_json(silent=True) or {}
    try:
        patch = products_service.validate_product_payload(payload, partial=False)
        created = products_service.create_product(
            company_id=g.company_id, patch=patch, user_id=g.current_user.id,
        )
        return products_service.serialize_product(created), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return internal_error_response()


@products_bp.patch("/<int:product_id>")
@require_auth
@require_role(ROLE_DIRECTOR)
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = products_service.validate_product_payload(payload, partial=True)
        if not patch:
            raise ValidationError("No fields to update")
        product = products_service.update_product(
            product_id, g.company_id, patch, user_id=g.current_user.id,
        )
        return products_service.serialize_product(product)
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return internal_error_response()


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(ROLE_DIRECTOR)
def delete_product_route(product_id: int):
    """Hard-deletes unreferenced products; deactivates products with order history."""
    try:
        outcome = products_service.delete_product(product_id, g.company_id)
        return {"id": product_id, "result": outcome}
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return internal_error_response()


@products_bp.patch("/<int:product_id>/restock")
@require_auth
@require_role(ROLE_DIRECTOR)
def restock_product_route(product_id: int):
    """Body: {quantity > 0, notes?}."""
    data = request.get_json(silent=True) or {}
    try:
        quantity = require_positive_quantity(data.get("quantity"))
        product, record = stock_service.restock_product(
            product_id,
            g.company_id,
            quantity,
            user_id=g.current_user.id,
            notes=data.get("notes"),
        )
        return {
            "product": products_service.serialize_product(product),
            "restock": record.to_dict(),
        }
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to restock product")
        return internal_error_response()


@products_bp.post("/<int:product_id>/adjustments")
@require_auth
@require_role(ROLE_DIRECTOR)
def adjust_stock_route(product_id: int):
    """
    Manual stock correction. Body: {delta != 0, reason}.

    A delta that would take stock below zero answers 400 InsufficientStock.
    """
    data = request.get_json(silent=True) or {}
    try:
        if data.get("delta") is None:
            raise ValidationError("delta is required")
        delta = parse_int(data["delta"], "delta")
        reason = (data.get("reason") or "").strip()
        if not reason:
            raise ValidationError("reason is required")
        new_quantity = stock_service.adjust_stock(
            product_id,
            delta,
            reason,
            company_id=g.company_id,
            user_id=g.current_user.id,
        )
        product = products_service.get_product(product_id, g.company_id)
        return {"product": products_service.serialize_product(product), "new_quantity": new_quantity}
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return internal_error_response()


@products_bp.patch("/<int:product_id>/thresholds")
@require_auth
@require_role(ROLE_DIRECTOR)
def set_thresholds_route(product_id: int):
    """Body: {min_stock >= 0, max_stock? > min_stock}."""
    data = request.get_json(silent=True) or {}
    try:
        if data.get("min_stock") is None:
            raise ValidationError("min_stock is required")
        min_stock = parse_int(data["min_stock"], "min_stock")
        max_stock = parse_int(data["max_stock"], "max_stock") if data.get("max_stock") is not None else None
        product = stock_service.set_thresholds(product_id, g.company_id, min_stock, max_stock)
        return products_service.serialize_product(product)
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to set product thresholds")
        return internal_error_response()


@products_bp.get("/<int:product_id>/movements")
@require_auth
@require_role(ROLE_DIRECTOR)
def list_movements_route(product_id: int):
    """Most recent stock movements (max 50)."""
    limit = request.args.get("limit", default=stock_service.MOVEMENT_HISTORY_LIMIT, type=int)
    try:
        movements = stock_service.list_stock_movements(product_id, g.company_id, limit=limit)
        return {"items": [m.to_dict() for m in movements], "count": len(movements)}
    except DomainError as e:
        return error_response(e)
