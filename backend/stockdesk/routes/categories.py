# Overview: Flask API routes for product categories; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_company, require_role
from ..errors import DomainError, error_response, internal_error_response
from ..models.auth import ROLE_DIRECTOR
from ..services import category_service


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_auth
@require_company
def list_categories_route():
    categories = category_service.list_categories(g.company_id)
    return jsonify({"categories": [c.to_dict() for c in categories], "count": len(categories)}), 200


@categories_bp.post("")
@require_auth
@require_role(ROLE_DIRECTOR)
def create_category_route():
    """Body: {name, description?}."""
    data = request.get_json(silent=True) or {}
    try:
        category = category_service.create_category(g.company_id, data.get("name"), data.get("description"))
        return jsonify(category.to_dict()), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create category")
        return internal_error_response()
