# Overview: Service-layer operations for stock alerts; encapsulates business logic and database work.

"""
Stock Alert Service

Classification is a pure function of (current stock, min, max). Persisted
alerts are kept in step with it by sync_product_alert, which every stock
change calls inside its own transaction:

- no classification      -> resolve any open alert for the product
- same type as open one  -> refresh stock, severity and message in place
- different type         -> resolve the old alert, open a new one

At most one unresolved alert exists per product. Alert writes share the
caller's transaction: if they fail, the stock change fails with them.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..errors import NotFound
from ..models import Product, StockAlert
from ..models.inventory import (
    ALERT_LOW_STOCK,
    ALERT_OUT_OF_STOCK,
    ALERT_OVERSTOCK,
    SEVERITY_CRITICAL,
    SEVERITY_HIGH,
    SEVERITY_LOW,
    SEVERITY_MEDIUM,
)
from .concurrency import lock_for_update, run_with_retry
from .tenant_service import scoped_query
from stockdesk.time_utils import utcnow


SEVERITY_RANK = {
    SEVERITY_CRITICAL: 0,
    SEVERITY_HIGH: 1,
    SEVERITY_MEDIUM: 2,
    SEVERITY_LOW: 3,
}


@dataclass(frozen=True)
class AlertClassification:
    alert_type: str
    severity: str
    threshold_value: int | None
    message: str


def classify(
    current_stock: int,
    min_threshold: int,
    max_threshold: int | None = None,
    *,
    product_name: str = "Product",
) -> AlertClassification | None:
    """
    Map a stock level onto an alert band.

    0                      -> OUT_OF_STOCK / CRITICAL
    0 < stock <= min       -> LOW_STOCK; CRITICAL at <= 30% of min, HIGH at <= 50%, else MEDIUM
    max set, stock >= max  -> OVERSTOCK / MEDIUM
    otherwise              -> None
    """
    if current_stock <= 0:
        return AlertClassification(
            alert_type=ALERT_OUT_OF_STOCK,
            severity=SEVERITY_CRITICAL,
            threshold_value=min_threshold,
            message=f"{product_name} is out of stock",
        )

    if current_stock <= min_threshold:
        # integer comparisons against 0.3 / 0.5 of min
        if current_stock * 10 <= min_threshold * 3:
            severity = SEVERITY_CRITICAL
        elif current_stock * 2 <= min_threshold:
            severity = SEVERITY_HIGH
        else:
            severity = SEVERITY_MEDIUM
        return AlertClassification(
            alert_type=ALERT_LOW_STOCK,
            severity=severity,
            threshold_value=min_threshold,
            message=f"{product_name} is low on stock ({current_stock} left, minimum {min_threshold})",
        )

    if max_threshold is not None and current_stock >= max_threshold:
        return AlertClassification(
            alert_type=ALERT_OVERSTOCK,
            severity=SEVERITY_MEDIUM,
            threshold_value=max_threshold,
            message=f"{product_name} is overstocked ({current_stock} units, maximum {max_threshold})",
        )

    return None


def classify_product(product: Product) -> AlertClassification | None:
    return classify(
        product.quantity,
        product.min_stock,
        product.max_stock,
        product_name=product.name,
    )


def get_open_alert(product_id: int) -> StockAlert | None:
    return (
        db.session.query(StockAlert)
        .filter_by(product_id=product_id, is_resolved=False)
        .order_by(StockAlert.id.desc())
        .first()
    )


def _resolve(alert: StockAlert, now) -> None:
    alert.is_resolved = True
    alert.resolved_at = now


def sync_product_alert(product: Product) -> StockAlert | None:
    """
    Bring the product's persisted alert in line with its current stock.

    Runs in the caller's transaction and does not commit. Returns the open
    alert after syncing, or None when the product is within its band.
    """
    classification = classify_product(product) if product.is_active else None
    now = utcnow()

    open_alerts = lock_for_update(
        db.session.query(StockAlert)
        .filter_by(product_id=product.id, is_resolved=False)
        .order_by(StockAlert.id.desc())
    ).all()

    current = open_alerts[0] if open_alerts else None
    # Leftover duplicates from before the one-open-alert rule
    for stale in open_alerts[1:]:
        _resolve(stale, now)

    if classification is None:
        if current is not None:
            _resolve(current, now)
        db.session.flush()
        return None

    if current is not None and current.alert_type == classification.alert_type:
        current.severity = classification.severity
        current.message = classification.message
        current.current_stock = product.quantity
        current.threshold_value = classification.threshold_value
        db.session.flush()
        return current

    if current is not None:
        _resolve(current, now)

    alert = StockAlert(
        product_id=product.id,
        company_id=product.company_id,
        alert_type=classification.alert_type,
        severity=classification.severity,
        message=classification.message,
        current_stock=product.quantity,
        threshold_value=classification.threshold_value,
        is_resolved=False,
    )
    db.session.add(alert)
    db.session.flush()
    return alert


def list_alerts(company_id: int, include_resolved: bool = False) -> list[StockAlert]:
    """Alerts for a company, CRITICAL -> HIGH -> MEDIUM -> LOW, newest first within a severity."""
    severity_order = db.case(SEVERITY_RANK, value=StockAlert.severity, else_=len(SEVERITY_RANK))
    query = scoped_query(StockAlert, company_id)
    if not include_resolved:
        query = query.filter(StockAlert.is_resolved.is_(False))
    return query.order_by(
        severity_order.asc(),
        StockAlert.created_at.desc(),
        StockAlert.id.desc(),
    ).all()


def resolve_alert(alert_id: int, company_id: int) -> StockAlert:
    """Acknowledge one alert. Resolving an already-resolved alert is a no-op."""
    def _op():
        alert = lock_for_update(
            db.session.query(StockAlert).filter_by(id=alert_id, company_id=company_id)
        ).first()
        if not alert:
            raise NotFound("Stock alert not found")
        if not alert.is_resolved:
            _resolve(alert, utcnow())
        db.session.commit()
        return alert

    return run_with_retry(_op)


def sweep_company_alerts(company_id: int | None = None) -> dict:
    """
    Re-sync alerts for every product of one company (or all companies).

    Invoked by an external scheduler through `flask alerts sweep`.
    Inactive products get their open alerts resolved.
    """
    def _op():
        query = db.session.query(Product)
        if company_id is not None:
            query = query.filter(Product.company_id == company_id)
        products = query.order_by(Product.id.asc()).all()

        open_count = 0
        for product in products:
            if sync_product_alert(product) is not None:
                open_count += 1
        db.session.commit()
        return {"products_checked": len(products), "open_alerts": open_count}

    summary = run_with_retry(_op)
    current_app.logger.info(
        "Alert sweep for company=%s checked %d products, %d open alerts",
        company_id if company_id is not None else "all",
        summary["products_checked"],
        summary["open_alerts"],
    )
    return summary
