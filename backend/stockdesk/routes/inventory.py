# Overview: Flask API routes for per-user received inventory; parses input and returns JSON responses.

from flask import Blueprint, jsonify, current_app, g

from ..decorators import require_auth, require_company, require_role
from ..errors import DomainError, error_response, internal_error_response
from ..models.auth import ROLE_DIRECTOR
from ..services import order_service


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_auth
@require_company
def list_inventory_route():
    rows = order_service.list_user_inventory(g.current_user)
    return jsonify({"items": [row.to_dict() for row in rows], "count": len(rows)}), 200


@inventory_bp.post("/rebuild")
@require_auth
@require_role(ROLE_DIRECTOR)
def rebuild_inventory_route():
    """Recompute every user's received quantities from shipped orders."""
    try:
        count = order_service.rebuild_user_inventory(g.company_id)
        return jsonify({"rows": count}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to rebuild user inventory")
        return internal_error_response()
