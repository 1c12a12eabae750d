# Overview: Service-layer operations for customer credit books; encapsulates business logic and database work.

"""
Customer book: each USER sells stock they received to their own customers
on credit and records the customers' repayments.

Balances on Customer move in lock-step with its orders and payments:
    outstanding_balance = total_credit - total_paid

Payments are applied FIFO: oldest unpaid order first (order_date, then
id). Settled orders (remaining == 0) are never revisited.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..errors import InsufficientStock, InvalidAmount, InvalidInput, NotFound, ProductNotFound
from ..models import Customer, CustomerOrder, CustomerPayment, Product, User, UserInventory
from ..models.auth import ROLE_USER
from ..validation import MAX_PRICE_CENTS
from .concurrency import lock_for_update, run_with_retry
from .tenant_service import require_in_company
from stockdesk.time_utils import utcnow


CUSTOMER_FIELDS = ("name", "phone", "email", "address")


def _customer_query(customer_id: int, user: User):
    return db.session.query(Customer).filter(
        Customer.id == customer_id,
        Customer.user_id == user.id,
        Customer.company_id == user.company_id,
    )


def get_customer(customer_id: int, user: User) -> Customer:
    customer = _customer_query(customer_id, user).first()
    if customer is None:
        raise NotFound("Customer not found")
    return customer


def list_customers(user: User) -> list[Customer]:
    return (
        db.session.query(Customer)
        .filter(Customer.user_id == user.id)
        .order_by(Customer.name.asc(), Customer.id.asc())
        .all()
    )


def create_customer(user: User, data: dict) -> Customer:
    if not user.company_id:
        raise InvalidInput("Customers belong to a company user")
    unknown = set(data or {}) - set(CUSTOMER_FIELDS)
    if unknown:
        raise InvalidInput(f"Field not allowed: {sorted(unknown)[0]}")

    values = {key: (str(data[key]).strip() or None) if data.get(key) is not None else None for key in CUSTOMER_FIELDS}
    if not values["name"]:
        raise InvalidInput("name is required")

    customer = Customer(
        user_id=user.id,
        company_id=user.company_id,
        total_credit_cents=0,
        total_paid_cents=0,
        outstanding_balance_cents=0,
        **values,
    )
    db.session.add(customer)
    db.session.commit()
    return customer


def create_customer_order(
    customer_id: int,
    user: User,
    *,
    product_id: int,
    quantity: int,
    unit_price_cents: int | None = None,
    order_date: datetime | None = None,
) -> CustomerOrder:
    """
    Sell received stock to a customer on credit.

    Consumes the user's inventory of the product (InsufficientStock when
    quantity_available is short) and grows the customer's credit and
    outstanding balance by the order total. unit_price defaults to the
    current catalog price.
    """
    if quantity <= 0:
        raise InvalidInput("quantity must be > 0")
    if unit_price_cents is not None and not (0 <= unit_price_cents <= MAX_PRICE_CENTS):
        raise InvalidAmount("unit_price_cents is out of range")

    def _op():
        customer = lock_for_update(_customer_query(customer_id, user)).first()
        if customer is None:
            raise NotFound("Customer not found")

        product = require_in_company(Product, product_id, user.company_id, ProductNotFound(product_id))

        inventory = lock_for_update(
            db.session.query(UserInventory).filter_by(user_id=user.id, product_id=product.id)
        ).first()
        available = inventory.quantity_available if inventory else 0
        if available < quantity:
            raise InsufficientStock.single(product.id, product.name, quantity, available)

        price = product.price_cents if unit_price_cents is None else unit_price_cents
        total = price * quantity

        inventory.quantity_used += quantity
        inventory.quantity_available = inventory.quantity_received - inventory.quantity_used

        order = CustomerOrder(
            customer_id=customer.id,
            product_id=product.id,
            quantity=quantity,
            unit_price_cents=price,
            total_amount_cents=total,
            paid_amount_cents=0,
            remaining_amount_cents=total,
            is_paid=total == 0,
            order_date=order_date or utcnow(),
        )
        db.session.add(order)

        customer.total_credit_cents += total
        customer.outstanding_balance_cents += total

        db.session.commit()
        return order

    return run_with_retry(_op)


def list_customer_orders(customer_id: int, user: User) -> list[CustomerOrder]:
    customer = get_customer(customer_id, user)
    return (
        db.session.query(CustomerOrder)
        .filter(CustomerOrder.customer_id == customer.id)
        .order_by(CustomerOrder.order_date.desc(), CustomerOrder.id.desc())
        .all()
    )


def list_customer_payments(customer_id: int, user: User) -> list[CustomerPayment]:
    customer = get_customer(customer_id, user)
    return (
        db.session.query(CustomerPayment)
        .filter(CustomerPayment.customer_id == customer.id)
        .order_by(CustomerPayment.payment_date.desc(), CustomerPayment.id.desc())
        .all()
    )


def allocate_fifo(orders: list[CustomerOrder], amount_cents: int) -> list[dict]:
    """
    Apply amount_cents across orders in the order given. Mutates the orders
    and returns one allocation entry per order touched.
    """
    remaining_payment = amount_cents
    allocations = []
    for order in orders:
        if remaining_payment <= 0:
            break
        if order.remaining_amount_cents <= 0:
            continue
        applied = min(remaining_payment, order.remaining_amount_cents)
        order.paid_amount_cents += applied
        order.remaining_amount_cents -= applied
        order.is_paid = order.remaining_amount_cents == 0
        remaining_payment -= applied
        allocations.append({
            "customer_order_id": order.id,
            "applied_cents": applied,
            "remaining_amount_cents": order.remaining_amount_cents,
            "is_paid": order.is_paid,
        })
    return allocations


def record_customer_payment(
    customer_id: int,
    user: User,
    amount_cents: int,
    payment_date: datetime | None = None,
    description: str | None = None,
) -> tuple[CustomerPayment, list[dict]]:
    """
    Record a customer repayment and allocate it FIFO over unpaid orders.

    Raises InvalidAmount (with nothing changed) when the amount is not
    positive or exceeds the outstanding balance.
    """
    if amount_cents <= 0:
        raise InvalidAmount("Payment amount must be greater than zero")

    def _op():
        customer = lock_for_update(_customer_query(customer_id, user)).first()
        if customer is None:
            raise NotFound("Customer not found")
        if amount_cents > customer.outstanding_balance_cents:
            raise InvalidAmount(
                f"Payment amount {amount_cents} exceeds outstanding balance {customer.outstanding_balance_cents}"
            )

        payment = CustomerPayment(
            customer_id=customer.id,
            user_id=user.id,
            amount_cents=amount_cents,
            payment_date=payment_date or utcnow(),
            description=description,
        )
        db.session.add(payment)

        customer.total_paid_cents += amount_cents
        customer.outstanding_balance_cents -= amount_cents

        unpaid = lock_for_update(
            db.session.query(CustomerOrder)
            .filter(
                CustomerOrder.customer_id == customer.id,
                CustomerOrder.remaining_amount_cents > 0,
            )
            .order_by(CustomerOrder.order_date.asc(), CustomerOrder.id.asc())
        ).all()
        allocations = allocate_fifo(unpaid, amount_cents)

        db.session.commit()
        return payment, allocations

    payment, allocations = run_with_retry(_op)
    current_app.logger.info(
        "Customer payment %s of %d for customer %s allocated over %d orders",
        payment.id, amount_cents, customer_id, len(allocations),
    )
    return payment, allocations


def get_customer_debts(director: User, user_id: int) -> dict:
    """A director's view of one company user's customers and their unpaid orders."""
    seller = db.session.query(User).filter_by(
        id=user_id, company_id=director.company_id, role=ROLE_USER
    ).first()
    if seller is None:
        raise NotFound("User not found")

    customers = list_customers(seller)
    result = []
    for customer in customers:
        unpaid = (
            db.session.query(CustomerOrder)
            .filter(CustomerOrder.customer_id == customer.id, CustomerOrder.remaining_amount_cents > 0)
            .order_by(CustomerOrder.order_date.asc(), CustomerOrder.id.asc())
            .all()
        )
        entry = customer.to_dict()
        entry["unpaid_orders"] = [order.to_dict() for order in unpaid]
        result.append(entry)

    return {
        "user": seller.to_dict(),
        "customers": result,
        "total_credit_cents": sum(c.total_credit_cents for c in customers),
        "total_paid_cents": sum(c.total_paid_cents for c in customers),
        "total_outstanding_cents": sum(c.outstanding_balance_cents for c in customers),
    }
