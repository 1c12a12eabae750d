# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

"""
ADMIN-only routes: company provisioning.

Creating a company also creates its first COMPANY_DIRECTOR.
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_role
from ..errors import DomainError, error_response, internal_error_response
from ..models.auth import ROLE_ADMIN
from ..services import tenant_service


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/companies")
@require_auth
@require_role(ROLE_ADMIN)
def list_companies_route():
    companies = tenant_service.list_companies()
    return jsonify({"companies": [c.to_dict() for c in companies], "count": len(companies)}), 200


@admin_bp.post("/companies")
@require_auth
@require_role(ROLE_ADMIN)
def create_company_route():
    """
    Create company and director.

    Body: {company_name, company_email, company_phone?, company_address?,
           director_name, director_email, director_password}
    """
    data = request.get_json(silent=True) or {}
    try:
        company, director = tenant_service.create_company_with_director(
            company_name=data.get("company_name"),
            company_email=data.get("company_email"),
            company_phone=data.get("company_phone"),
            company_address=data.get("company_address"),
            director_name=data.get("director_name"),
            director_email=data.get("director_email"),
            director_password=data.get("director_password") or "",
        )
        return jsonify({"company": company.to_dict(), "director": director.to_dict()}), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create company")
        return internal_error_response()
