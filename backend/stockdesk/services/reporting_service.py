# Overview: Service-layer operations for reporting; read-only aggregates over orders, payments and inventory.

"""
Balances and director dashboard.

Every time-dependent function takes an explicit `as_of`; nothing here
reads the clock, so the same inputs always give the same report.

Amounts owed by a user are the totals of their APPROVED, FULFILLED,
SHIPPED and DELIVERED orders; outstanding = max(0, owed - paid).
The same statuses count as sold for product analytics.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..errors import InvalidInput
from ..models import (
    Customer,
    CustomerOrder,
    Expense,
    OrderRequest,
    OrderRequestItem,
    Payment,
    Product,
    StockAlert,
    User,
    UserInventory,
)
from ..models.auth import ROLE_USER
from ..models.orders import (
    ORDER_APPROVED,
    ORDER_DELIVERED,
    ORDER_FULFILLED,
    ORDER_SHIPPED,
    ORDER_STATUSES,
)
from .stock_service import get_available_stock
from .tenant_service import scoped_query
from stockdesk.time_utils import days_before, month_bounds, to_utc_z, trailing_month_starts


BALANCE_ORDER_STATUSES = (ORDER_APPROVED, ORDER_FULFILLED, ORDER_SHIPPED, ORDER_DELIVERED)

RECENT_ORDER_DAYS = 30
RECENT_ORDER_LIMIT = 10
LOW_INVENTORY_THRESHOLD = 5

PERFORMANCE_PERIODS = (3, 6, 12)
DEFAULT_PERFORMANCE_MONTHS = 6


def _sum(query) -> int:
    return int(query.scalar() or 0)


def get_user_balance(user: User) -> dict:
    orders_total = _sum(
        db.session.query(func.coalesce(func.sum(OrderRequest.total_amount_cents), 0)).filter(
            OrderRequest.user_id == user.id,
            OrderRequest.status.in_(BALANCE_ORDER_STATUSES),
        )
    )
    payments_total = _sum(
        db.session.query(func.coalesce(func.sum(Payment.amount_cents), 0)).filter(
            Payment.user_id == user.id,
        )
    )
    return {
        "user_id": user.id,
        "name": user.name,
        "total_orders_cents": orders_total,
        "total_payments_cents": payments_total,
        "outstanding_cents": max(0, orders_total - payments_total),
        "credit_limit_cents": user.credit_limit_cents,
        "credit_used_cents": user.credit_used_cents,
        "credit_available_cents": user.credit_available_cents,
    }


def get_company_balances(company_id: int) -> dict:
    users = (
        db.session.query(User)
        .filter(User.company_id == company_id, User.role == ROLE_USER)
        .order_by(User.name.asc(), User.id.asc())
        .all()
    )
    balances = [get_user_balance(user) for user in users]
    return {
        "users": balances,
        "total_orders_cents": sum(b["total_orders_cents"] for b in balances),
        "total_payments_cents": sum(b["total_payments_cents"] for b in balances),
        "total_outstanding_cents": sum(b["outstanding_cents"] for b in balances),
    }


def _inventory_summary(company_id: int) -> list[dict]:
    rows = (
        db.session.query(UserInventory, User, Product)
        .join(User, User.id == UserInventory.user_id)
        .join(Product, Product.id == UserInventory.product_id)
        .filter(User.company_id == company_id)
        .order_by(User.id.asc(), Product.id.asc())
        .all()
    )
    by_user: dict[int, dict] = {}
    for inventory, user, product in rows:
        entry = by_user.setdefault(user.id, {
            "user_id": user.id,
            "name": user.name,
            "products_in_stock": 0,
            "products_out_of_stock": 0,
            "products_low_stock": 0,
            "inventory_value_cents": 0,
        })
        available = inventory.quantity_available
        if available > 0:
            entry["products_in_stock"] += 1
            if available <= LOW_INVENTORY_THRESHOLD:
                entry["products_low_stock"] += 1
        else:
            entry["products_out_of_stock"] += 1
        entry["inventory_value_cents"] += max(0, available) * (product.price_cents or 0)
    return list(by_user.values())


def get_director_dashboard(company_id: int, as_of: datetime) -> dict:
    """Company overview relative to as_of: recent orders cover the preceding 30 days, payments the month of as_of."""
    counts = dict(
        db.session.query(OrderRequest.status, func.count(OrderRequest.id))
        .filter(OrderRequest.company_id == company_id)
        .group_by(OrderRequest.status)
        .all()
    )
    order_counts = {status: int(counts.get(status, 0)) for status in ORDER_STATUSES}

    total_payments = _sum(
        db.session.query(func.coalesce(func.sum(Payment.amount_cents), 0)).filter(Payment.company_id == company_id)
    )
    total_expenses = _sum(
        db.session.query(func.coalesce(func.sum(Expense.amount_cents), 0)).filter(Expense.company_id == company_id)
    )

    recent_since = days_before(as_of, RECENT_ORDER_DAYS)
    recent_orders = (
        db.session.query(OrderRequest)
        .filter(
            OrderRequest.company_id == company_id,
            OrderRequest.created_at >= recent_since,
            OrderRequest.created_at <= as_of,
        )
        .order_by(OrderRequest.created_at.desc(), OrderRequest.id.desc())
        .limit(RECENT_ORDER_LIMIT)
        .all()
    )

    month_start, month_end = month_bounds(as_of)
    monthly = (
        db.session.query(func.count(Payment.id), func.coalesce(func.sum(Payment.amount_cents), 0))
        .filter(
            Payment.company_id == company_id,
            Payment.payment_date >= month_start,
            Payment.payment_date < month_end,
        )
        .one()
    )

    open_alerts = dict(
        db.session.query(StockAlert.severity, func.count(StockAlert.id))
        .filter(StockAlert.company_id == company_id, StockAlert.is_resolved.is_(False))
        .group_by(StockAlert.severity)
        .all()
    )

    return {
        "as_of": to_utc_z(as_of),
        "order_counts": order_counts,
        "total_orders": sum(order_counts.values()),
        "total_payments_cents": total_payments,
        "total_expenses_cents": total_expenses,
        "user_inventory": _inventory_summary(company_id),
        "recent_orders": [order.to_dict(include_items=False) for order in recent_orders],
        "monthly_payments": {
            "month_start": to_utc_z(month_start),
            "month_end": to_utc_z(month_end),
            "count": int(monthly[0] or 0),
            "total_cents": int(monthly[1] or 0),
        },
        "open_alerts": {severity: int(count) for severity, count in open_alerts.items()},
    }


# =============================================================================
# Performance and product analytics
# =============================================================================

def _in_window(column, start: datetime, end: datetime, as_of: datetime):
    return (column >= start, column < end, column <= as_of)


def _per_user(query) -> dict[int, tuple]:
    return {row[0]: tuple(row[1:]) for row in query.all()}


def get_user_performance(company_id: int, as_of: datetime, months: int = DEFAULT_PERFORMANCE_MONTHS) -> dict:
    """
    Per-user activity, monthly trends, expense categories and KPIs.

    The period covers the last `months` calendar months (3, 6 or 12) up to
    and including the month of as_of; nothing after as_of is counted.
    Orders are dated by created_at, payments and expenses by their
    business date.
    """
    if months not in PERFORMANCE_PERIODS:
        raise InvalidInput("months must be one of 3, 6 or 12")

    month_starts = trailing_month_starts(as_of, months)
    since = month_starts[0]
    _, period_end = month_bounds(as_of)

    orders = _per_user(
        db.session.query(
            OrderRequest.user_id,
            func.count(OrderRequest.id),
            func.coalesce(func.sum(OrderRequest.total_amount_cents), 0),
            func.max(OrderRequest.created_at),
        )
        .filter(OrderRequest.company_id == company_id, *_in_window(OrderRequest.created_at, since, period_end, as_of))
        .group_by(OrderRequest.user_id)
    )
    payments = _per_user(
        db.session.query(
            Payment.user_id,
            func.coalesce(func.sum(Payment.amount_cents), 0),
            func.max(Payment.payment_date),
        )
        .filter(Payment.company_id == company_id, *_in_window(Payment.payment_date, since, period_end, as_of))
        .group_by(Payment.user_id)
    )
    expenses = _per_user(
        db.session.query(
            Expense.user_id,
            func.coalesce(func.sum(Expense.amount_cents), 0),
            func.max(Expense.expense_date),
        )
        .filter(Expense.company_id == company_id, *_in_window(Expense.expense_date, since, period_end, as_of))
        .group_by(Expense.user_id)
    )

    users = (
        db.session.query(User)
        .filter(User.company_id == company_id)
        .order_by(User.name.asc(), User.id.asc())
        .all()
    )
    performance = []
    for user in users:
        order_count, order_value, last_order = orders.get(user.id, (0, 0, None))
        paid, last_payment = payments.get(user.id, (0, None))
        spent, last_expense = expenses.get(user.id, (0, None))
        activity = [d for d in (last_order, last_payment, last_expense) if d is not None]
        performance.append({
            "user_id": user.id,
            "name": user.name,
            "email": user.email,
            "role": user.role,
            "total_orders": int(order_count),
            "total_order_value_cents": int(order_value),
            "total_payments_cents": int(paid),
            "total_expenses_cents": int(spent),
            "avg_order_value_cents": int(order_value) // int(order_count) if order_count else 0,
            "last_activity": to_utc_z(max(activity) if activity else user.created_at),
            "active_in_period": bool(activity),
        })

    trends = []
    for start in month_starts:
        _, end = month_bounds(start)
        trends.append({
            "month": start.strftime("%Y-%m"),
            "month_start": to_utc_z(start),
            "orders": int(
                db.session.query(func.count(OrderRequest.id))
                .filter(OrderRequest.company_id == company_id, *_in_window(OrderRequest.created_at, start, end, as_of))
                .scalar() or 0
            ),
            "payments_cents": _sum(
                db.session.query(func.coalesce(func.sum(Payment.amount_cents), 0))
                .filter(Payment.company_id == company_id, *_in_window(Payment.payment_date, start, end, as_of))
            ),
            "expenses_cents": _sum(
                db.session.query(func.coalesce(func.sum(Expense.amount_cents), 0))
                .filter(Expense.company_id == company_id, *_in_window(Expense.expense_date, start, end, as_of))
            ),
        })

    category_rows = (
        db.session.query(Expense.category, func.count(Expense.id), func.coalesce(func.sum(Expense.amount_cents), 0))
        .filter(Expense.company_id == company_id, *_in_window(Expense.expense_date, since, period_end, as_of))
        .group_by(Expense.category)
        .all()
    )
    categories = sorted(
        (
            {"category": category or "Uncategorized", "count": int(count), "amount_cents": int(amount)}
            for category, count, amount in category_rows
        ),
        key=lambda row: (-row["amount_cents"], row["category"]),
    )

    total_orders = sum(row["total_orders"] for row in performance)
    total_order_value = sum(row["total_order_value_cents"] for row in performance)
    total_revenue = sum(row["total_payments_cents"] for row in performance)
    total_expenses = sum(row["total_expenses_cents"] for row in performance)
    accepted_orders = int(
        db.session.query(func.count(OrderRequest.id))
        .filter(
            OrderRequest.company_id == company_id,
            OrderRequest.status.in_(BALANCE_ORDER_STATUSES),
            *_in_window(OrderRequest.created_at, since, period_end, as_of),
        )
        .scalar() or 0
    )

    return {
        "as_of": to_utc_z(as_of),
        "months": months,
        "period_start": to_utc_z(since),
        "user_performance": performance,
        "monthly_trends": trends,
        "expense_categories": categories,
        "kpis": {
            "total_revenue_cents": total_revenue,
            "total_expenses_cents": total_expenses,
            "net_profit_cents": total_revenue - total_expenses,
            "total_orders": total_orders,
            "active_users": sum(1 for row in performance if row["active_in_period"]),
            "avg_order_value_cents": total_order_value // total_orders if total_orders else 0,
            "order_fulfillment_rate": round(accepted_orders / total_orders, 4) if total_orders else 0.0,
        },
    }


def _product_sales(rows, products: dict[int, Product]) -> list[dict]:
    sales = []
    for product_id, quantity, revenue, count in rows:
        product = products.get(product_id)
        quantity, revenue, count = int(quantity or 0), int(revenue or 0), int(count or 0)
        sales.append({
            "product_id": product_id,
            "product_name": product.name if product else "Unknown product",
            "sku": product.sku if product else None,
            "current_stock": get_available_stock(product) if product else 0,
            "total_quantity_sold": quantity,
            "total_revenue_cents": revenue,
            "total_orders": count,
            "average_order_size": round(quantity / count, 2) if count else 0.0,
        })
    sales.sort(key=lambda row: (-row["total_quantity_sold"], row["product_id"]))
    return sales


def get_product_analytics(company_id: int, as_of: datetime) -> dict:
    """
    Units sold and revenue per product up to as_of, split between order
    requests (accepted statuses only) and customer credit sales.
    """
    regular = (
        db.session.query(
            OrderRequestItem.product_id,
            func.sum(OrderRequestItem.quantity),
            func.sum(OrderRequestItem.total_price_cents),
            func.count(OrderRequestItem.id),
        )
        .join(OrderRequest, OrderRequest.id == OrderRequestItem.order_request_id)
        .filter(
            OrderRequest.company_id == company_id,
            OrderRequest.status.in_(BALANCE_ORDER_STATUSES),
            OrderRequest.created_at <= as_of,
        )
        .group_by(OrderRequestItem.product_id)
        .all()
    )
    credit = (
        db.session.query(
            CustomerOrder.product_id,
            func.sum(CustomerOrder.quantity),
            func.sum(CustomerOrder.total_amount_cents),
            func.count(CustomerOrder.id),
        )
        .join(Customer, Customer.id == CustomerOrder.customer_id)
        .filter(Customer.company_id == company_id, CustomerOrder.order_date <= as_of)
        .group_by(CustomerOrder.product_id)
        .all()
    )

    product_ids = {row[0] for row in regular} | {row[0] for row in credit}
    products = {}
    if product_ids:
        products = {p.id: p for p in scoped_query(Product, company_id).filter(Product.id.in_(product_ids)).all()}

    regular_sales = _product_sales(regular, products)
    credit_sales = _product_sales(credit, products)
    active_products = int(
        db.session.query(func.count(Product.id))
        .filter(Product.company_id == company_id, Product.is_active.is_(True))
        .scalar() or 0
    )

    return {
        "as_of": to_utc_z(as_of),
        "regular_orders": regular_sales,
        "credit_sales": credit_sales,
        "summary": {
            "total_products": active_products,
            "total_revenue_cents": sum(r["total_revenue_cents"] for r in regular_sales + credit_sales),
            "total_quantity_sold": sum(r["total_quantity_sold"] for r in regular_sales + credit_sales),
        },
    }
