"""
Multi-Tenant Service: Tenant Validation, Scoping and Company Provisioning

Every request is scoped to a tenant (company). Cross-tenant lookups are
reported as "not found" so a caller never learns that another tenant's
row exists.

USAGE:
    from stockdesk.services.tenant_service import require_in_company, scoped_query

    product = require_in_company(Product, product_id, company_id, ProductNotFound(product_id))
    payments = scoped_query(Payment, company_id).filter(Payment.user_id == user_id)
"""

from flask import current_app

from ..extensions import db
from ..errors import Conflict, DomainError, InvalidInput, NotFound
from ..models import Company, User
from ..models.auth import ROLE_DIRECTOR
from .auth_service import hash_password, normalize_email
from .concurrency import run_with_retry


def scoped_query(model, company_id: int):
    """Query `model` restricted to one company."""
    return db.session.query(model).filter(model.company_id == company_id)


def require_in_company(model, entity_id: int, company_id: int, not_found: DomainError | None = None):
    """
    Load `model` by id within a company.

    Rows of another tenant raise `not_found` (NotFound by default).
    """
    row = scoped_query(model, company_id).filter(model.id == entity_id).first()
    if row is None:
        raise not_found or NotFound(f"{model.__name__} not found")
    return row


# =============================================================================
# Company provisioning (ADMIN)
# =============================================================================

def list_companies() -> list[Company]:
    return db.session.query(Company).order_by(Company.name.asc(), Company.id.asc()).all()


def create_company_with_director(
    *,
    company_name: str,
    company_email: str,
    director_name: str,
    director_email: str,
    director_password: str,
    company_phone: str | None = None,
    company_address: str | None = None,
) -> tuple[Company, User]:
    """
    Create a company together with its first COMPANY_DIRECTOR.

    Company email and director email must each be unused (Conflict
    otherwise). Both rows are written in one transaction.
    """
    company_name = (company_name or "").strip()
    director_name = (director_name or "").strip()
    if not company_name:
        raise InvalidInput("company_name is required")
    if not director_name:
        raise InvalidInput("director_name is required")
    company_email = normalize_email(company_email)
    director_email = normalize_email(director_email)

    password_hash = hash_password(director_password)

    def _op():
        if db.session.query(Company).filter_by(email=company_email).first():
            raise Conflict("A company with this email already exists")
        if db.session.query(User).filter_by(email=director_email).first():
            raise Conflict("A user with this email already exists")

        company = Company(
            name=company_name,
            email=company_email,
            phone=company_phone,
            address=company_address,
            is_active=True,
        )
        db.session.add(company)
        db.session.flush()

        director = User(
            company_id=company.id,
            name=director_name,
            email=director_email,
            password_hash=password_hash,
            role=ROLE_DIRECTOR,
        )
        db.session.add(director)
        db.session.commit()
        return company, director

    company, director = run_with_retry(_op)
    current_app.logger.info("Company %s created with director %s", company.id, director.id)
    return company, director
