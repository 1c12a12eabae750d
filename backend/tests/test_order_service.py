"""
Order request lifecycle tests.

Verifies:
- Creation validates every line, snapshots prices and reserves nothing
- Transition table (terminal states, same-state, unknown targets)
- Shipping is all-or-nothing and credits the ordering user's inventory
"""

import pytest

from stockdesk.errors import InsufficientStock, InvalidInput, InvalidStatus, NotFound, Unauthorized
from stockdesk.models import OrderRequest, Product, StockMovement, UserInventory
from stockdesk.models.orders import (
    ORDER_APPROVED,
    ORDER_CANCELLED,
    ORDER_DELIVERED,
    ORDER_PENDING,
    ORDER_REJECTED,
    ORDER_SHIPPED,
)
from stockdesk.services import order_service, stock_service

from conftest import make_product


class TestCreateOrder:

    def test_creates_pending_order_with_price_snapshot(self, db_session, user_a, product_a):
        order = order_service.create_order(user_a, [{"product_id": product_a.id, "quantity": 3}], notes="Rush")

        assert order.status == ORDER_PENDING
        assert order.company_id == user_a.company_id
        assert order.total_amount_cents == 3000
        assert len(order.items) == 1
        assert order.items[0].unit_price_cents == 1000

        # Creation does not touch stock
        assert db_session.get(Product, product_a.id).quantity == 50
        assert db_session.query(StockMovement).count() == 0

    def test_duplicate_lines_are_merged(self, db_session, user_a, product_a):
        order = order_service.create_order(user_a, [
            {"product_id": product_a.id, "quantity": 2},
            {"product_id": product_a.id, "quantity": "3"},
        ])
        assert len(order.items) == 1
        assert order.items[0].quantity == 5

    def test_all_short_lines_reported(self, db_session, company_a, user_a):
        p1 = make_product(db_session, company_a, sku="O-1", name="Alpha", quantity=1)
        p2 = make_product(db_session, company_a, sku="O-2", name="Beta", quantity=0)
        p3 = make_product(db_session, company_a, sku="O-3", name="Gamma", quantity=100)

        with pytest.raises(InsufficientStock) as exc:
            order_service.create_order(user_a, [
                {"product_id": p1.id, "quantity": 2},
                {"product_id": p2.id, "quantity": 1},
                {"product_id": p3.id, "quantity": 1},
            ])

        assert sorted(item.product_id for item in exc.value.items) == [p1.id, p2.id]
        assert db_session.query(OrderRequest).count() == 0

    def test_foreign_product_is_not_found(self, db_session, user_a, product_b):
        with pytest.raises(NotFound):
            order_service.create_order(user_a, [{"product_id": product_b.id, "quantity": 1}])

    @pytest.mark.parametrize("items", [[], None, [{"product_id": 1}], [{"product_id": 1, "quantity": 0}]])
    def test_invalid_items(self, db_session, user_a, items):
        with pytest.raises(InvalidInput):
            order_service.create_order(user_a, items)

    def test_admin_cannot_order(self, db_session, admin, product_a):
        with pytest.raises(Unauthorized):
            order_service.create_order(admin, [{"product_id": product_a.id, "quantity": 1}])


class TestTransitions:

    @pytest.mark.parametrize(
        "current,target,allowed",
        [
            (ORDER_PENDING, ORDER_APPROVED, True),
            (ORDER_PENDING, ORDER_SHIPPED, True),
            (ORDER_APPROVED, ORDER_CANCELLED, True),
            (ORDER_SHIPPED, ORDER_DELIVERED, True),
            (ORDER_PENDING, ORDER_DELIVERED, False),
            (ORDER_PENDING, ORDER_PENDING, False),
            (ORDER_REJECTED, ORDER_APPROVED, False),
            (ORDER_DELIVERED, ORDER_SHIPPED, False),
            (ORDER_CANCELLED, ORDER_PENDING, False),
        ],
    )
    def test_can_transition(self, current, target, allowed):
        assert order_service.can_transition(current, target) is allowed

    def test_approve_stamps_timestamp(self, db_session, user_a, director_a, product_a):
        order = order_service.create_order(user_a, [{"product_id": product_a.id, "quantity": 1}])

        order, movements = order_service.transition_order(order.id, "approved", director_a)

        assert order.status == ORDER_APPROVED
        assert order.approved_at is not None
        assert movements == []

    def test_terminal_state_rejected(self, db_session, user_a, director_a, product_a):
        order = order_service.create_order(user_a, [{"product_id": product_a.id, "quantity": 1}])
        order_service.transition_order(order.id, ORDER_REJECTED, director_a)

        with pytest.raises(InvalidStatus):
            order_service.transition_order(order.id, ORDER_APPROVED, director_a)

    def test_unknown_status(self, db_session, user_a, director_a, product_a):
        order = order_service.create_order(user_a, [{"product_id": product_a.id, "quantity": 1}])
        with pytest.raises(InvalidStatus):
            order_service.transition_order(order.id, "LOST", director_a)

    def test_user_cannot_transition(self, db_session, user_a, product_a):
        order = order_service.create_order(user_a, [{"product_id": product_a.id, "quantity": 1}])
        with pytest.raises(Unauthorized):
            order_service.transition_order(order.id, ORDER_APPROVED, user_a)

    def test_other_company_director_sees_not_found(self, db_session, user_a, director_b, product_a):
        order = order_service.create_order(user_a, [{"product_id": product_a.id, "quantity": 1}])
        with pytest.raises(NotFound):
            order_service.transition_order(order.id, ORDER_APPROVED, director_b)


class TestShipping:

    def test_ship_deducts_stock_and_credits_inventory(self, db_session, user_a, director_a, product_a):
        order = order_service.create_order(user_a, [{"product_id": product_a.id, "quantity": 4}])

        order, movements = order_service.ship_order(order.id, director_a)

        assert order.status == ORDER_SHIPPED
        assert order.shipped_at is not None
        assert movements == [{
            "product_id": product_a.id,
            "product_name": "Widget",
            "quantity": 4,
            "previous_stock": 50,
            "new_stock": 46,
        }]
        assert db_session.get(Product, product_a.id).quantity == 46

        inventory = db_session.query(UserInventory).filter_by(user_id=user_a.id, product_id=product_a.id).one()
        assert inventory.quantity_received == 4
        assert inventory.quantity_available == 4

    def test_ship_is_all_or_nothing(self, db_session, company_a, user_a, director_a):
        p1 = make_product(db_session, company_a, sku="SH-1", name="Short", quantity=5)
        p2 = make_product(db_session, company_a, sku="SH-2", name="Plenty", quantity=10)
        order = order_service.create_order(user_a, [
            {"product_id": p1.id, "quantity": 5},
            {"product_id": p2.id, "quantity": 2},
        ])
        stock_service.adjust_stock(p1.id, -2, "Breakage", company_id=company_a.id)

        with pytest.raises(InsufficientStock) as exc:
            order_service.ship_order(order.id, director_a)

        assert [item.to_dict() for item in exc.value.items] == [{
            "product_id": p1.id,
            "product_name": "Short",
            "requested_quantity": 5,
            "available_stock": 3,
        }]
        assert db_session.get(Product, p1.id).quantity == 3
        assert db_session.get(Product, p2.id).quantity == 10
        assert db_session.get(OrderRequest, order.id).status == ORDER_PENDING
        assert db_session.query(UserInventory).count() == 0

    def test_reship_is_invalid(self, db_session, user_a, director_a, product_a):
        order = order_service.create_order(user_a, [{"product_id": product_a.id, "quantity": 1}])
        order_service.ship_order(order.id, director_a)

        with pytest.raises(InvalidStatus):
            order_service.ship_order(order.id, director_a)
        assert db_session.get(Product, product_a.id).quantity == 49

    def test_inventory_accumulates_across_orders(self, db_session, user_a, director_a, product_a):
        for quantity in (2, 3):
            order = order_service.create_order(user_a, [{"product_id": product_a.id, "quantity": quantity}])
            order_service.ship_order(order.id, director_a)

        rows = order_service.list_user_inventory(user_a)
        assert len(rows) == 1
        assert rows[0].quantity_received == 5

    def test_rebuild_restores_received_quantities(self, db_session, company_a, user_a, director_a, product_a):
        order = order_service.create_order(user_a, [{"product_id": product_a.id, "quantity": 6}])
        order_service.ship_order(order.id, director_a)
        order_service.transition_order(order.id, ORDER_DELIVERED, director_a)

        row = db_session.query(UserInventory).filter_by(user_id=user_a.id).one()
        row.quantity_received = 0
        row.quantity_available = 0
        db_session.commit()

        assert order_service.rebuild_user_inventory(company_a.id) == 1
        row = db_session.query(UserInventory).filter_by(user_id=user_a.id).one()
        assert row.quantity_received == 6
        assert row.quantity_available == 6

    def test_rebuild_keeps_available_equal_to_received_minus_used(
        self, db_session, company_a, user_a, director_a, product_a
    ):
        order = order_service.create_order(user_a, [{"product_id": product_a.id, "quantity": 6}])
        order_service.ship_order(order.id, director_a)

        row = db_session.query(UserInventory).filter_by(user_id=user_a.id).one()
        row.quantity_used = 8
        db_session.commit()

        order_service.rebuild_user_inventory(company_a.id)
        row = db_session.query(UserInventory).filter_by(user_id=user_a.id).one()
        assert row.quantity_received == 6
        assert row.quantity_used == 8
        assert row.quantity_available == -2
