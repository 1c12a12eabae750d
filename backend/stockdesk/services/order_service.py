# Overview: Service-layer operations for order requests; encapsulates business logic and database work.

"""
Order Request Lifecycle

Transition table (anything else, including same-state, is InvalidStatus):

    PENDING   -> APPROVED, REJECTED, SHIPPED, CANCELLED
    APPROVED  -> SHIPPED, FULFILLED, REJECTED, CANCELLED
    FULFILLED -> SHIPPED
    SHIPPED   -> DELIVERED
    REJECTED, DELIVERED, CANCELLED are terminal

STOCK POLICY: stock is deducted when an order ships and at no other
point. Creation checks availability without reserving; rejection and
cancellation have no stock effect. Shipping re-checks every line before
touching any of them, so a short line fails the whole shipment.

Each transition is one transaction (order row + product rows + movements
+ user inventory + alerts). Notifications go out after commit.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import (
    InsufficientStock,
    InvalidInput,
    InvalidStatus,
    NotFound,
    ProductNotFound,
    ShortItem,
    Unauthorized,
)
from ..models import OrderRequest, OrderRequestItem, Product, User, UserInventory
from ..models.auth import ROLE_ADMIN, ROLE_DIRECTOR
from ..models.orders import (
    ORDER_APPROVED,
    ORDER_CANCELLED,
    ORDER_DELIVERED,
    ORDER_FULFILLED,
    ORDER_PENDING,
    ORDER_REJECTED,
    ORDER_SHIPPED,
    ORDER_STATUSES,
)
from ..validation import parse_int
from . import notification_service
from .concurrency import lock_for_update, lock_products, run_with_retry
from .stock_service import REF_ORDER_REQUEST, apply_stock_delta, get_available_stock
from .tenant_service import scoped_query
from stockdesk.time_utils import utcnow


# =============================================================================
# Transition rules
# =============================================================================

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    ORDER_PENDING: frozenset({ORDER_APPROVED, ORDER_REJECTED, ORDER_SHIPPED, ORDER_CANCELLED}),
    ORDER_APPROVED: frozenset({ORDER_SHIPPED, ORDER_FULFILLED, ORDER_REJECTED, ORDER_CANCELLED}),
    ORDER_FULFILLED: frozenset({ORDER_SHIPPED}),
    ORDER_SHIPPED: frozenset({ORDER_DELIVERED}),
    ORDER_REJECTED: frozenset(),
    ORDER_DELIVERED: frozenset(),
    ORDER_CANCELLED: frozenset(),
}

STATUS_TIMESTAMP_FIELD = {
    ORDER_APPROVED: "approved_at",
    ORDER_REJECTED: "rejected_at",
    ORDER_FULFILLED: "fulfilled_at",
    ORDER_SHIPPED: "shipped_at",
    ORDER_DELIVERED: "delivered_at",
    ORDER_CANCELLED: "cancelled_at",
}

RECEIVED_STATUSES = (ORDER_SHIPPED, ORDER_DELIVERED)


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def _normalize_status(value) -> str:
    status = str(value or "").strip().upper()
    if status not in ORDER_STATUSES:
        raise InvalidStatus(f"Unknown order status: {value}")
    return status


def _normalize_items(items) -> dict[int, int]:
    """Validate order lines and merge duplicate products. Preserves first-seen order."""
    if not isinstance(items, list) or not items:
        raise InvalidInput("items must be a non-empty list")

    merged: dict[int, int] = {}
    for raw in items:
        if not isinstance(raw, dict):
            raise InvalidInput("Each item must be an object with product_id and quantity")
        if "product_id" not in raw or "quantity" not in raw:
            raise InvalidInput("Each item requires product_id and quantity")
        product_id = parse_int(raw["product_id"], "product_id")
        quantity = parse_int(raw["quantity"], "quantity")
        if quantity <= 0:
            raise InvalidInput("quantity must be > 0")
        merged[product_id] = merged.get(product_id, 0) + quantity
    return merged


def _notify(func, order: OrderRequest) -> None:
    try:
        func(order)
    except Exception:
        current_app.logger.exception("Failed to send notification for order %s", order.id)


# =============================================================================
# Creation
# =============================================================================

def create_order(user: User, items, notes: str | None = None) -> OrderRequest:
    """
    Place a PENDING order for the user's company.

    Every product must exist, be active and belong to the user's company
    (NotFound otherwise). Availability is checked for all lines and
    reported together. Unit prices are snapshotted from the catalog.
    """
    if user.role == ROLE_ADMIN or not user.company_id:
        raise Unauthorized.forbidden("Only company members can place orders")

    lines = _normalize_items(items)
    company_id = user.company_id

    def _op():
        products = {
            p.id: p
            for p in db.session.query(Product).filter(
                Product.id.in_(list(lines.keys())),
                Product.company_id == company_id,
            ).all()
        }

        for product_id in lines:
            product = products.get(product_id)
            if product is None or not product.is_active:
                raise ProductNotFound(product_id)

        short = [
            ShortItem(product_id, products[product_id].name, quantity, get_available_stock(products[product_id]))
            for product_id, quantity in lines.items()
            if get_available_stock(products[product_id]) < quantity
        ]
        if short:
            raise InsufficientStock(short)

        order = OrderRequest(
            user_id=user.id,
            company_id=company_id,
            status=ORDER_PENDING,
            notes=(notes or None),
            total_amount_cents=0,
        )
        db.session.add(order)
        db.session.flush()

        total = 0
        for product_id, quantity in lines.items():
            unit_price = products[product_id].price_cents or 0
            line_total = unit_price * quantity
            total += line_total
            db.session.add(OrderRequestItem(
                order_request_id=order.id,
                product_id=product_id,
                quantity=quantity,
                unit_price_cents=unit_price,
                total_price_cents=line_total,
            ))
        order.total_amount_cents = total

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info(
        "Order request %s created by user %s (%d lines, total %d)",
        order.id, user.id, len(lines), order.total_amount_cents,
    )
    _notify(notification_service.notify_order_created, order)
    return order


# =============================================================================
# Access
# =============================================================================

def _order_query_for_actor(order_id: int, actor: User):
    query = db.session.query(OrderRequest).filter(OrderRequest.id == order_id)
    if actor.role != ROLE_ADMIN:
        query = query.filter(OrderRequest.company_id == actor.company_id)
    return query


def get_order(order_id: int, actor: User) -> OrderRequest:
    """Visible to its owner, a director of its company, or an ADMIN."""
    order = _order_query_for_actor(order_id, actor).first()
    if order is None:
        raise NotFound("Order not found")
    if actor.role not in (ROLE_ADMIN, ROLE_DIRECTOR) and order.user_id != actor.id:
        raise NotFound("Order not found")
    return order


def list_company_orders(company_id: int, status: str | None = None) -> list[OrderRequest]:
    query = scoped_query(OrderRequest, company_id)
    if status:
        query = query.filter(OrderRequest.status == _normalize_status(status))
    return query.order_by(OrderRequest.created_at.desc(), OrderRequest.id.desc()).all()


def list_user_orders(user: User, status: str | None = None) -> list[OrderRequest]:
    query = db.session.query(OrderRequest).filter(OrderRequest.user_id == user.id)
    if status:
        query = query.filter(OrderRequest.status == _normalize_status(status))
    return query.order_by(OrderRequest.created_at.desc(), OrderRequest.id.desc()).all()


# =============================================================================
# Transitions
# =============================================================================

def _credit_user_inventory(user_id: int, product_id: int, quantity: int) -> UserInventory:
    row = lock_for_update(
        db.session.query(UserInventory).filter_by(user_id=user_id, product_id=product_id)
    ).first()
    if row is None:
        row = UserInventory(
            user_id=user_id,
            product_id=product_id,
            quantity_received=0,
            quantity_used=0,
            quantity_available=0,
        )
        db.session.add(row)
    row.quantity_received += quantity
    row.quantity_available = row.quantity_received - row.quantity_used
    return row


def _ship(order: OrderRequest, actor: User) -> list[dict]:
    """
    Deduct every line of the order. All lines are checked before any is
    deducted; products are locked in ascending id order.
    """
    products = lock_products([item.product_id for item in order.items], order.company_id)

    short = []
    for item in order.items:
        product = products.get(item.product_id)
        available = get_available_stock(product) if product else 0
        if available < item.quantity:
            name = product.name if product else f"Product {item.product_id}"
            short.append(ShortItem(item.product_id, name, item.quantity, available))
    if short:
        raise InsufficientStock(short)

    summary = []
    for item in sorted(order.items, key=lambda i: i.product_id):
        product = products[item.product_id]
        movement = apply_stock_delta(
            product,
            -item.quantity,
            reason=f"Order request #{order.id} shipped",
            user_id=actor.id,
            reference_type=REF_ORDER_REQUEST,
            reference_id=order.id,
        )
        _credit_user_inventory(order.user_id, product.id, item.quantity)
        summary.append({
            "product_id": product.id,
            "product_name": product.name,
            "quantity": item.quantity,
            "previous_stock": movement.previous_stock,
            "new_stock": movement.new_stock,
        })
    return summary


def transition_order(
    order_id: int,
    new_status: str,
    actor: User,
    notes: str | None = None,
) -> tuple[OrderRequest, list[dict]]:
    """
    Move an order to new_status.

    Returns (order, stock_movements); the movement summary is empty for
    every transition except shipping.

    Raises:
        InvalidStatus: unknown target, or not reachable from the current status
        Unauthorized: actor is not a director or admin
        NotFound: order missing or in another company
        InsufficientStock: shipping with any short line (nothing is changed)
    """
    target = _normalize_status(new_status)
    if actor.role not in (ROLE_DIRECTOR, ROLE_ADMIN):
        raise Unauthorized.forbidden("Only directors can change order status")

    def _op():
        order = lock_for_update(_order_query_for_actor(order_id, actor)).first()
        if order is None:
            raise NotFound("Order not found")

        previous = order.status
        if not can_transition(previous, target):
            raise InvalidStatus(f"Cannot change order from {previous} to {target}")

        movements = _ship(order, actor) if target == ORDER_SHIPPED else []

        order.status = target
        setattr(order, STATUS_TIMESTAMP_FIELD[target], utcnow())
        if notes:
            order.notes = notes

        db.session.commit()
        return order, previous, movements

    order, previous, movements = run_with_retry(_op)
    current_app.logger.info(
        "Order request %s moved %s -> %s by user %s", order.id, previous, target, actor.id,
    )
    _notify(notification_service.notify_order_status, order)
    return order, movements


def ship_order(order_id: int, actor: User, notes: str | None = None) -> tuple[OrderRequest, list[dict]]:
    return transition_order(order_id, ORDER_SHIPPED, actor, notes=notes)


# =============================================================================
# User inventory
# =============================================================================

def list_user_inventory(user: User) -> list[UserInventory]:
    return (
        db.session.query(UserInventory)
        .join(Product, Product.id == UserInventory.product_id)
        .filter(UserInventory.user_id == user.id)
        .order_by(Product.name.asc(), UserInventory.id.asc())
        .all()
    )


def rebuild_user_inventory(company_id: int) -> int:
    """
    Recompute quantity_received for every user of a company from their
    shipped / delivered orders. quantity_used is preserved. Returns the
    number of inventory rows written.
    """
    def _op():
        totals = (
            db.session.query(
                OrderRequest.user_id,
                OrderRequestItem.product_id,
                db.func.sum(OrderRequestItem.quantity),
            )
            .join(OrderRequestItem, OrderRequestItem.order_request_id == OrderRequest.id)
            .filter(
                OrderRequest.company_id == company_id,
                OrderRequest.status.in_(RECEIVED_STATUSES),
            )
            .group_by(OrderRequest.user_id, OrderRequestItem.product_id)
            .all()
        )
        received = {(user_id, product_id): int(qty or 0) for user_id, product_id, qty in totals}

        existing = lock_for_update(
            db.session.query(UserInventory)
            .join(User, User.id == UserInventory.user_id)
            .filter(User.company_id == company_id)
        ).all()
        rows = {(row.user_id, row.product_id): row for row in existing}

        for key in set(received) | set(rows):
            row = rows.get(key)
            if row is None:
                row = UserInventory(user_id=key[0], product_id=key[1], quantity_used=0)
                db.session.add(row)
            row.quantity_received = received.get(key, 0)
            row.quantity_available = row.quantity_received - (row.quantity_used or 0)
            if row.quantity_available < 0:
                current_app.logger.warning(
                    "User %s has used %s of product %s but only received %s",
                    key[0], row.quantity_used, key[1], row.quantity_received,
                )

        db.session.commit()
        return len(set(received) | set(rows))

    count = run_with_retry(_op)
    current_app.logger.info("Rebuilt %d user inventory rows for company %s", count, company_id)
    return count
