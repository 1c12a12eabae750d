# Overview: Service-layer operations for the stock ledger; encapsulates business logic and database work.

"""
Stock Ledger

Product.quantity is the single authoritative stock figure. All writes go
through apply_stock_delta (inside a caller's transaction) or adjust_stock
(its own transaction), and all reads through get_available_stock.

Every adjustment:
- runs against a row locked with SELECT ... FOR UPDATE
- is rejected with InsufficientStock when it would go below zero
- appends exactly one StockMovement row
- re-syncs the product's stock alert in the same transaction
"""

from __future__ import annotations

from ..extensions import db
from ..errors import InsufficientStock, InvalidInput, ProductNotFound
from ..models import Product, RestockRecord, StockMovement
from ..models.inventory import MOVEMENT_IN, MOVEMENT_OUT
from ..validation import enforce_rules_thresholds
from .alert_service import sync_product_alert
from .concurrency import lock_for_update, run_with_retry
from .tenant_service import require_in_company


# =============================================================================
# Constants
# =============================================================================

MOVEMENT_HISTORY_LIMIT = 50

REF_ORDER_REQUEST = "ORDER_REQUEST"
REF_RESTOCK = "RESTOCK"
REF_ADJUSTMENT = "ADJUSTMENT"
REF_INITIAL = "INITIAL"


def get_available_stock(product: Product) -> int:
    """Canonical stock read."""
    return product.quantity or 0


def load_product_for_update(product_id: int, company_id: int | None = None) -> Product:
    query = db.session.query(Product).filter(Product.id == product_id)
    if company_id is not None:
        query = query.filter(Product.company_id == company_id)
    product = lock_for_update(query).first()
    if not product:
        raise ProductNotFound(product_id)
    return product


def apply_stock_delta(
    product: Product,
    delta: int,
    *,
    reason: str,
    user_id: int | None = None,
    reference_type: str | None = None,
    reference_id: int | None = None,
    sync_alert: bool = True,
) -> StockMovement:
    """
    Change stock on an already-locked product. Does not commit.

    Raises InsufficientStock when the result would be negative.
    """
    if delta == 0:
        raise InvalidInput("Stock adjustment must be non-zero")

    previous = get_available_stock(product)
    new_stock = previous + delta
    if new_stock < 0:
        raise InsufficientStock.single(product.id, product.name, -delta, previous)

    product.quantity = new_stock

    movement = StockMovement(
        product_id=product.id,
        company_id=product.company_id,
        movement_type=MOVEMENT_IN if delta > 0 else MOVEMENT_OUT,
        quantity=abs(delta),
        previous_stock=previous,
        new_stock=new_stock,
        reason=reason,
        reference_type=reference_type,
        reference_id=reference_id,
        created_by_user_id=user_id,
    )
    db.session.add(movement)
    db.session.flush()

    if sync_alert:
        sync_product_alert(product)

    return movement


def adjust_stock(
    product_id: int,
    delta: int,
    reason: str,
    *,
    company_id: int | None = None,
    user_id: int | None = None,
    reference_type: str | None = REF_ADJUSTMENT,
    reference_id: int | None = None,
) -> int:
    """Atomic stand-alone adjustment. Returns the new quantity."""
    def _op():
        product = load_product_for_update(product_id, company_id)
        movement = apply_stock_delta(
            product,
            delta,
            reason=reason,
            user_id=user_id,
            reference_type=reference_type,
            reference_id=reference_id,
        )
        db.session.commit()
        return movement.new_stock

    return run_with_retry(_op)


def restock_product(
    product_id: int,
    company_id: int,
    quantity: int,
    *,
    user_id: int | None = None,
    notes: str | None = None,
) -> tuple[Product, RestockRecord]:
    """
    Add stock and keep one RestockRecord per restock.

    Open LOW_STOCK / OUT_OF_STOCK alerts resolve once stock is back above
    min_stock.
    """
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise InvalidInput("quantity must be a positive integer")

    def _op():
        product = load_product_for_update(product_id, company_id)
        record = RestockRecord(
            product_id=product.id,
            company_id=product.company_id,
            user_id=user_id,
            quantity=quantity,
            notes=notes,
        )
        db.session.add(record)
        db.session.flush()

        apply_stock_delta(
            product,
            quantity,
            reason=f"Restock of {quantity} units",
            user_id=user_id,
            reference_type=REF_RESTOCK,
            reference_id=record.id,
        )
        db.session.commit()
        return product, record

    return run_with_retry(_op)


def set_thresholds(
    product_id: int,
    company_id: int,
    min_stock: int,
    max_stock: int | None = None,
) -> Product:
    """Replace min/max thresholds (min >= 0, max > min) and re-sync the alert."""
    enforce_rules_thresholds(min_stock, max_stock)

    def _op():
        product = load_product_for_update(product_id, company_id)
        product.min_stock = min_stock
        product.max_stock = max_stock
        sync_product_alert(product)
        db.session.commit()
        return product

    return run_with_retry(_op)


def list_stock_movements(product_id: int, company_id: int, limit: int = MOVEMENT_HISTORY_LIMIT) -> list[StockMovement]:
    product = require_in_company(Product, product_id, company_id, ProductNotFound(product_id))
    limit = max(1, min(limit, MOVEMENT_HISTORY_LIMIT))
    return (
        db.session.query(StockMovement)
        .filter(StockMovement.product_id == product.id)
        .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )
