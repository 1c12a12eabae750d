# Overview: Service-layer operations for product categories; encapsulates business logic and database work.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import Conflict, InvalidInput, NotFound
from ..models import Category
from .concurrency import run_with_retry
from .tenant_service import require_in_company, scoped_query


def list_categories(company_id: int, *, include_inactive: bool = False) -> list[Category]:
    query = scoped_query(Category, company_id)
    if not include_inactive:
        query = query.filter(Category.is_active.is_(True))
    return query.order_by(Category.name.asc(), Category.id.asc()).all()


def require_category(category_id: int, company_id: int) -> Category:
    """Active category of the company, or NotFound."""
    category = require_in_company(Category, category_id, company_id, NotFound("Category not found"))
    if not category.is_active:
        raise NotFound("Category not found")
    return category


def create_category(company_id: int, name: str, description: str | None = None) -> Category:
    name = (name or "").strip()
    if not name:
        raise InvalidInput("Category name is required")
    if len(name) > 100:
        raise InvalidInput("Category name exceeds max length 100")

    def _op():
        if scoped_query(Category, company_id).filter(Category.name == name).first():
            raise Conflict("Category name already exists")
        category = Category(company_id=company_id, name=name, description=description, is_active=True)
        db.session.add(category)
        db.session.commit()
        return category

    category = run_with_retry(_op)
    current_app.logger.info("Category %s (%s) created in company %s", category.id, category.name, company_id)
    return category
