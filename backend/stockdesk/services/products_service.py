# backend/stockdesk/services/products_service.py
"""
Products Service

All product operations are company-scoped. Stock itself is owned by
stock_service: creation seeds the initial quantity through the ledger and
updates that touch `quantity` are booked as adjustments.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import Conflict, ProductNotFound
from ..models import (
    CustomerOrder,
    OrderRequestItem,
    Product,
    RestockRecord,
    StockAlert,
    StockMovement,
    UserInventory,
)
from ..validation import ModelValidationPolicy, ValidationError, enforce_rules_product, validate_payload
from .alert_service import classify_product, sync_product_alert
from .category_service import require_category
from .concurrency import run_with_retry
from .tenant_service import require_in_company, scoped_query
from .stock_service import (
    REF_ADJUSTMENT,
    REF_INITIAL,
    apply_stock_delta,
    get_available_stock,
    load_product_for_update,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "description", "category_id", "price_cents", "quantity", "min_stock", "max_stock", "is_active",
    },
    required_on_create={"sku", "name", "price_cents"},
)

PRODUCT_MUTABLE_FIELDS = {"sku", "name", "description", "category_id", "price_cents", "min_stock", "max_stock", "is_active"}

STOCK_STATUS_IN_STOCK = "IN_STOCK"
DEFAULT_MIN_STOCK = 10


def validate_product_payload(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=partial)
    enforce_rules_product(patch)
    return patch


def stock_status(product: Product) -> str:
    classification = classify_product(product)
    return classification.alert_type if classification else STOCK_STATUS_IN_STOCK


def _sku_taken(company_id: int, sku: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(Product.id).filter(Product.company_id == company_id, Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    return query.first() is not None


def serialize_product(product: Product, open_alert_ids: set[int] | None = None) -> dict:
    data = product.to_dict()
    data["quantity"] = get_available_stock(product)
    data["stock_status"] = stock_status(product)
    if open_alert_ids is None:
        open_alert_ids = _open_alert_product_ids([product.id])
    data["has_active_alerts"] = product.id in open_alert_ids
    return data


def _open_alert_product_ids(product_ids: list[int]) -> set[int]:
    if not product_ids:
        return set()
    rows = (
        db.session.query(StockAlert.product_id)
        .filter(StockAlert.product_id.in_(product_ids), StockAlert.is_resolved.is_(False))
        .distinct()
        .all()
    )
    return {row[0] for row in rows}


def list_products(
    company_id: int,
    *,
    include_inactive: bool = False,
    page: int | None = None,
    per_page: int | None = None,
    category_id: int | None = None,
) -> dict:
    """
    Company product listing with derived stock_status / has_active_alerts.

    Returns a dict with 'items', 'count', and pagination metadata when
    page is given.
    """
    base_query = scoped_query(Product, company_id)
    if not include_inactive:
        base_query = base_query.filter(Product.is_active.is_(True))
    if category_id is not None:
        base_query = base_query.filter(Product.category_id == category_id)
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        alert_ids = _open_alert_product_ids([p.id for p in products])
        return {
            "items": [serialize_product(p, alert_ids) for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()
    alert_ids = _open_alert_product_ids([p.id for p in products])

    return {
        "items": [serialize_product(p, alert_ids) for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_product(product_id: int, company_id: int) -> Product:
    return require_in_company(Product, product_id, company_id, ProductNotFound(product_id))


def create_product(*, company_id: int, patch: dict, user_id: int | None = None) -> Product:
    """
    Create a product from a validated patch.

    Initial stock, when given, is booked as an IN movement so the ledger
    history starts at zero. Raises Conflict when the SKU is already used
    in the company.
    """
    initial_quantity = patch.get("quantity") or 0

    def _op():
        if _sku_taken(company_id, patch["sku"]):
            raise Conflict("SKU already exists in this company")
        if patch.get("category_id") is not None:
            require_category(patch["category_id"], company_id)

        product = Product(
            company_id=company_id,
            sku=patch["sku"],
            name=patch["name"],
            description=patch.get("description"),
            category_id=patch.get("category_id"),
            price_cents=patch["price_cents"],
            quantity=0,
            min_stock=patch["min_stock"] if patch.get("min_stock") is not None else DEFAULT_MIN_STOCK,
            max_stock=patch.get("max_stock"),
            is_active=patch.get("is_active", True),
        )
        if product.max_stock is not None and product.max_stock <= product.min_stock:
            raise ValidationError("max_stock must be greater than min_stock")
        db.session.add(product)
        db.session.flush()

        if initial_quantity > 0:
            apply_stock_delta(
                product,
                initial_quantity,
                reason="Initial stock",
                user_id=user_id,
                reference_type=REF_INITIAL,
                reference_id=product.id,
                sync_alert=False,
            )
        sync_product_alert(product)
        db.session.commit()
        return product

    product = run_with_retry(_op)
    current_app.logger.info("Product %s (%s) created in company %s", product.id, product.sku, company_id)
    return product


def update_product(product_id: int, company_id: int, patch: dict, *, user_id: int | None = None) -> Product:
    """
    Apply a validated patch. A `quantity` value is booked as a stock
    adjustment to the new level rather than written directly.
    """
    def _op():
        product = load_product_for_update(product_id, company_id)

        if "sku" in patch and patch["sku"] != product.sku and _sku_taken(company_id, patch["sku"], product.id):
            raise Conflict("SKU already exists in this company")
        if patch.get("category_id") is not None:
            require_category(patch["category_id"], company_id)

        for key, value in patch.items():
            if key in PRODUCT_MUTABLE_FIELDS:
                setattr(product, key, value)

        if product.max_stock is not None and product.max_stock <= product.min_stock:
            raise ValidationError("max_stock must be greater than min_stock")

        target = patch.get("quantity")
        if target is not None and target != get_available_stock(product):
            apply_stock_delta(
                product,
                target - get_available_stock(product),
                reason="Manual stock correction",
                user_id=user_id,
                reference_type=REF_ADJUSTMENT,
                sync_alert=False,
            )

        sync_product_alert(product)
        db.session.commit()
        return product

    return run_with_retry(_op)


def delete_product(product_id: int, company_id: int) -> str:
    """
    Delete a product.

    Products referenced by order items, customer orders or user inventory
    are deactivated (their history must keep resolving); others are
    removed together with their ledger rows. Returns "deactivated" or
    "deleted".
    """
    def _op():
        product = load_product_for_update(product_id, company_id)

        referenced = any(
            db.session.query(model.id).filter(model.product_id == product.id).first() is not None
            for model in (OrderRequestItem, CustomerOrder, UserInventory)
        )

        if referenced:
            product.is_active = False
            sync_product_alert(product)
            db.session.commit()
            return "deactivated"

        for model in (StockAlert, StockMovement, RestockRecord):
            db.session.query(model).filter(model.product_id == product.id).delete(synchronize_session=False)
        db.session.delete(product)
        db.session.commit()
        return "deleted"

    outcome = run_with_retry(_op)
    current_app.logger.info("Product %s %s in company %s", product_id, outcome, company_id)
    return outcome
