"""
Balances and dashboard tests. Every report is computed against an
explicit as_of so results do not depend on the clock.
"""

from datetime import datetime

import pytest

from stockdesk.errors import InvalidInput
from stockdesk.models import OrderRequest, UserInventory
from stockdesk.models.orders import ORDER_APPROVED, ORDER_PENDING, ORDER_REJECTED
from stockdesk.services import customer_service, finance_service, order_service, reporting_service
from stockdesk.time_utils import month_bounds, trailing_month_starts

from conftest import make_product


class TestMonthBounds:

    @pytest.mark.parametrize(
        "as_of,expected",
        [
            (datetime(2026, 3, 15, 13, 45), (datetime(2026, 3, 1), datetime(2026, 4, 1))),
            (datetime(2026, 12, 31, 23, 59, 59), (datetime(2026, 12, 1), datetime(2027, 1, 1))),
            (datetime(2026, 1, 1), (datetime(2026, 1, 1), datetime(2026, 2, 1))),
        ],
    )
    def test_half_open_month(self, as_of, expected):
        assert month_bounds(as_of) == expected

    def test_trailing_months_cross_year(self):
        assert trailing_month_starts(datetime(2026, 2, 14, 8), 3) == [
            datetime(2025, 12, 1),
            datetime(2026, 1, 1),
            datetime(2026, 2, 1),
        ]


def _order(user, product, quantity, status, director=None):
    order = order_service.create_order(user, [{"product_id": product.id, "quantity": quantity}])
    if status != ORDER_PENDING:
        order, _ = order_service.transition_order(order.id, status, director)
    return order


class TestBalances:

    def test_only_committed_orders_count(self, db_session, user_a, director_a, product_a):
        _order(user_a, product_a, 2, ORDER_APPROVED, director_a)   # 2000
        _order(user_a, product_a, 1, ORDER_PENDING)                # ignored
        _order(user_a, product_a, 5, ORDER_REJECTED, director_a)   # ignored
        finance_service.record_payment(user_a, 500)

        balance = reporting_service.get_user_balance(user_a)

        assert balance["total_orders_cents"] == 2000
        assert balance["total_payments_cents"] == 500
        assert balance["outstanding_cents"] == 1500

    def test_outstanding_never_negative(self, db_session, user_a):
        finance_service.record_payment(user_a, 900)
        assert reporting_service.get_user_balance(user_a)["outstanding_cents"] == 0

    def test_company_totals(self, db_session, company_a, user_a, user_a2, director_a, product_a):
        _order(user_a, product_a, 1, ORDER_APPROVED, director_a)
        _order(user_a2, product_a, 3, ORDER_APPROVED, director_a)

        balances = reporting_service.get_company_balances(company_a.id)

        assert len(balances["users"]) == 2
        assert balances["total_orders_cents"] == 4000
        assert balances["total_outstanding_cents"] == 4000


class TestDashboard:

    def test_dashboard_relative_to_as_of(self, db_session, company_a, user_a, director_a, product_a):
        recent = _order(user_a, product_a, 1, ORDER_PENDING)
        old = _order(user_a, product_a, 1, ORDER_APPROVED, director_a)
        db_session.get(OrderRequest, recent.id).created_at = datetime(2026, 3, 10)
        db_session.get(OrderRequest, old.id).created_at = datetime(2026, 1, 5)
        db_session.commit()

        finance_service.record_payment(user_a, 700, payment_date=datetime(2026, 3, 2))
        finance_service.record_payment(user_a, 300, payment_date=datetime(2026, 2, 27))
        finance_service.record_expense(user_a, 250, "Fuel", expense_date=datetime(2026, 3, 3))

        dashboard = reporting_service.get_director_dashboard(company_a.id, datetime(2026, 3, 20))

        assert dashboard["as_of"] == "2026-03-20T00:00:00Z"
        assert dashboard["order_counts"][ORDER_PENDING] == 1
        assert dashboard["order_counts"][ORDER_APPROVED] == 1
        assert dashboard["total_orders"] == 2
        assert dashboard["total_payments_cents"] == 1000
        assert dashboard["total_expenses_cents"] == 250
        assert [o["id"] for o in dashboard["recent_orders"]] == [recent.id]
        assert dashboard["monthly_payments"]["count"] == 1
        assert dashboard["monthly_payments"]["total_cents"] == 700
        assert dashboard["monthly_payments"]["month_start"] == "2026-03-01T00:00:00Z"

    def test_inventory_summary(self, db_session, company_a, user_a, product_a):
        db_session.add(UserInventory(
            user_id=user_a.id,
            product_id=product_a.id,
            quantity_received=4,
            quantity_used=0,
            quantity_available=4,
        ))
        db_session.commit()

        dashboard = reporting_service.get_director_dashboard(company_a.id, datetime(2026, 3, 20))

        [entry] = dashboard["user_inventory"]
        assert entry["user_id"] == user_a.id
        assert entry["products_in_stock"] == 1
        assert entry["products_low_stock"] == 1
        assert entry["inventory_value_cents"] == 4000


def _dated_order(db_session, user, product, quantity, created_at, status=ORDER_PENDING, director=None):
    order = _order(user, product, quantity, status, director)
    db_session.get(OrderRequest, order.id).created_at = created_at
    db_session.commit()
    return order


class TestUserPerformance:

    @pytest.fixture
    def activity(self, db_session, user_a, user_a2, director_a, product_a):
        _dated_order(db_session, user_a, product_a, 2, datetime(2026, 1, 5), ORDER_APPROVED, director_a)
        _dated_order(db_session, user_a, product_a, 1, datetime(2026, 3, 10))
        _dated_order(db_session, user_a, product_a, 1, datetime(2025, 12, 20))  # before the period
        _dated_order(db_session, user_a, product_a, 1, datetime(2026, 3, 25))   # after as_of

        finance_service.record_payment(user_a, 700, payment_date=datetime(2026, 3, 2))
        finance_service.record_payment(user_a, 300, payment_date=datetime(2026, 2, 27))
        finance_service.record_payment(user_a, 999, payment_date=datetime(2026, 3, 21))
        finance_service.record_expense(user_a2, 250, "Taxi", "Travel", expense_date=datetime(2026, 2, 3))
        finance_service.record_expense(user_a, 100, "Stamps", expense_date=datetime(2026, 3, 3))

    def test_per_user_figures(self, activity, company_a, user_a, user_a2, director_a):
        report = reporting_service.get_user_performance(company_a.id, datetime(2026, 3, 20), months=3)
        by_user = {row["user_id"]: row for row in report["user_performance"]}

        seller = by_user[user_a.id]
        assert seller["total_orders"] == 2
        assert seller["total_order_value_cents"] == 3000
        assert seller["avg_order_value_cents"] == 1500
        assert seller["total_payments_cents"] == 1000
        assert seller["total_expenses_cents"] == 100
        assert seller["last_activity"] == "2026-03-10T00:00:00Z"

        other = by_user[user_a2.id]
        assert other["total_orders"] == 0
        assert other["total_expenses_cents"] == 250
        assert other["last_activity"] == "2026-02-03T00:00:00Z"

        assert by_user[director_a.id]["active_in_period"] is False

    def test_monthly_trends_and_kpis(self, activity, company_a):
        report = reporting_service.get_user_performance(company_a.id, datetime(2026, 3, 20), months=3)

        assert report["period_start"] == "2026-01-01T00:00:00Z"
        assert [(t["month"], t["orders"], t["payments_cents"], t["expenses_cents"]) for t in report["monthly_trends"]] == [
            ("2026-01", 1, 0, 0),
            ("2026-02", 0, 300, 250),
            ("2026-03", 1, 700, 100),
        ]
        assert report["expense_categories"] == [
            {"category": "Travel", "count": 1, "amount_cents": 250},
            {"category": "Uncategorized", "count": 1, "amount_cents": 100},
        ]
        assert report["kpis"] == {
            "total_revenue_cents": 1000,
            "total_expenses_cents": 350,
            "net_profit_cents": 650,
            "total_orders": 2,
            "active_users": 2,
            "avg_order_value_cents": 1500,
            "order_fulfillment_rate": 0.5,
        }

    def test_twelve_months_reach_back_a_year(self, activity, company_a, user_a):
        report = reporting_service.get_user_performance(company_a.id, datetime(2026, 3, 20), months=12)

        assert len(report["monthly_trends"]) == 12
        assert report["monthly_trends"][0]["month"] == "2025-04"
        seller = next(row for row in report["user_performance"] if row["user_id"] == user_a.id)
        assert seller["total_orders"] == 3

    @pytest.mark.parametrize("months", [0, 1, 4, 24])
    def test_unsupported_period(self, db_session, company_a, months):
        with pytest.raises(InvalidInput):
            reporting_service.get_user_performance(company_a.id, datetime(2026, 3, 20), months=months)


class TestProductAnalytics:

    def test_regular_and_credit_sales(self, db_session, company_a, user_a, user_a2, director_a, product_a, product_b):
        bolt = make_product(db_session, company_a, sku="ACME-002", name="Bolt", quantity=30, price_cents=200)

        approved = order_service.create_order(user_a, [
            {"product_id": product_a.id, "quantity": 2},
            {"product_id": bolt.id, "quantity": 5},
        ])
        order_service.transition_order(approved.id, ORDER_APPROVED, director_a)
        shipped = order_service.create_order(user_a2, [{"product_id": product_a.id, "quantity": 3}])
        order_service.ship_order(shipped.id, director_a)
        _order(user_a, product_a, 4, ORDER_PENDING)
        _order(user_a, product_a, 1, ORDER_REJECTED, director_a)

        customer = customer_service.create_customer(user_a2, {"name": "Kiosk 4"})
        customer_service.create_customer_order(
            customer.id, user_a2, product_id=product_a.id, quantity=2, unit_price_cents=1500,
            order_date=datetime(2026, 1, 10),
        )

        report = reporting_service.get_product_analytics(company_a.id, datetime(2100, 1, 1))

        assert [(r["product_id"], r["total_quantity_sold"], r["total_revenue_cents"], r["total_orders"])
                for r in report["regular_orders"]] == [
            (product_a.id, 5, 5000, 2),
            (bolt.id, 5, 1000, 1),
        ]
        assert report["regular_orders"][0]["average_order_size"] == 2.5
        assert report["regular_orders"][0]["current_stock"] == 47
        assert [(r["product_id"], r["total_quantity_sold"], r["total_revenue_cents"])
                for r in report["credit_sales"]] == [(product_a.id, 2, 3000)]
        assert report["summary"] == {
            "total_products": 2,
            "total_revenue_cents": 9000,
            "total_quantity_sold": 12,
        }

    def test_nothing_sold_before_as_of(self, db_session, company_a, user_a, director_a, product_a):
        _order(user_a, product_a, 2, ORDER_APPROVED, director_a)

        report = reporting_service.get_product_analytics(company_a.id, datetime(2000, 1, 1))

        assert report["regular_orders"] == []
        assert report["credit_sales"] == []
        assert report["summary"]["total_quantity_sold"] == 0
