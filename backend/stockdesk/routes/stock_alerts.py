# Overview: Flask API routes for stock alerts; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..errors import DomainError, error_response, internal_error_response
from ..models.auth import ROLE_DIRECTOR
from ..services import alert_service


stock_alerts_bp = Blueprint("stock_alerts", __name__, url_prefix="/api/stock-alerts")


@stock_alerts_bp.get("")
@require_auth
@require_role(ROLE_DIRECTOR)
def list_alerts_route():
    """Open alerts, CRITICAL first. ?include_resolved=true adds resolved ones."""
    include_resolved = request.args.get("include_resolved", "").lower() in ("1", "true", "yes")
    alerts = alert_service.list_alerts(g.company_id, include_resolved=include_resolved)
    return jsonify({"alerts": [a.to_dict() for a in alerts], "count": len(alerts)}), 200


@stock_alerts_bp.patch("/<int:alert_id>")
@require_auth
@require_role(ROLE_DIRECTOR)
def resolve_alert_route(alert_id: int):
    try:
        alert = alert_service.resolve_alert(alert_id, g.company_id)
        return jsonify(alert.to_dict()), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to resolve stock alert")
        return internal_error_response()
