"""
Stock ledger tests.

Verifies:
- Stock never goes negative; a rejected change leaves no trace
- Every change writes a StockMovement with previous/new stock
- Restocks keep one RestockRecord each and accumulate
- Threshold rules (min >= 0, max > min)
"""

import pytest

from stockdesk.errors import InsufficientStock, InvalidInput, ProductNotFound
from stockdesk.models import Product, RestockRecord, StockMovement
from stockdesk.models.inventory import MOVEMENT_IN, MOVEMENT_OUT
from stockdesk.services import stock_service
from stockdesk.validation import ValidationError

from conftest import make_product


class TestAdjustStock:

    def test_adjust_writes_movement(self, db_session, company_a, director_a, product_a):
        new_quantity = stock_service.adjust_stock(
            product_a.id, -5, "Damaged", company_id=company_a.id, user_id=director_a.id,
        )

        assert new_quantity == 45
        movement = db_session.query(StockMovement).filter_by(product_id=product_a.id).one()
        assert movement.movement_type == MOVEMENT_OUT
        assert movement.quantity == 5
        assert movement.previous_stock == 50
        assert movement.new_stock == 45
        assert movement.created_by_user_id == director_a.id

    def test_negative_result_rejected_without_side_effects(self, db_session, company_a, product_a):
        with pytest.raises(InsufficientStock) as exc:
            stock_service.adjust_stock(product_a.id, -51, "Too much", company_id=company_a.id)

        item = exc.value.items[0]
        assert item.product_id == product_a.id
        assert item.requested_quantity == 51
        assert item.available_stock == 50

        assert db_session.get(Product, product_a.id).quantity == 50
        assert db_session.query(StockMovement).count() == 0

    def test_zero_delta_rejected(self, db_session, company_a, product_a):
        with pytest.raises(InvalidInput):
            stock_service.adjust_stock(product_a.id, 0, "Nothing", company_id=company_a.id)

    def test_other_company_product_not_found(self, db_session, company_b, product_a):
        with pytest.raises(ProductNotFound):
            stock_service.adjust_stock(product_a.id, 1, "Cross tenant", company_id=company_b.id)


class TestRestock:

    def test_two_restocks_accumulate(self, db_session, company_a, director_a):
        product = make_product(db_session, company_a, sku="R-1", name="Bolt", quantity=0)

        stock_service.restock_product(product.id, company_a.id, 10, user_id=director_a.id)
        stock_service.restock_product(product.id, company_a.id, 10, user_id=director_a.id, notes="Second lot")

        assert db_session.get(Product, product.id).quantity == 20
        records = db_session.query(RestockRecord).filter_by(product_id=product.id).all()
        assert len(records) == 2
        assert {r.quantity for r in records} == {10}

        movements = (
            db_session.query(StockMovement)
            .filter_by(product_id=product.id)
            .order_by(StockMovement.id.asc())
            .all()
        )
        assert [m.movement_type for m in movements] == [MOVEMENT_IN, MOVEMENT_IN]
        assert [(m.previous_stock, m.new_stock) for m in movements] == [(0, 10), (10, 20)]
        assert movements[0].reference_id == records[0].id

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_restock_requires_positive_quantity(self, db_session, company_a, product_a, quantity):
        with pytest.raises(InvalidInput):
            stock_service.restock_product(product_a.id, company_a.id, quantity)


class TestThresholds:

    def test_set_thresholds(self, db_session, company_a, product_a):
        product = stock_service.set_thresholds(product_a.id, company_a.id, 5, 100)
        assert product.min_stock == 5
        assert product.max_stock == 100

    def test_max_must_exceed_min(self, db_session, company_a, product_a):
        with pytest.raises(ValidationError):
            stock_service.set_thresholds(product_a.id, company_a.id, 20, 20)

    def test_min_cannot_be_negative(self, db_session, company_a, product_a):
        with pytest.raises(ValidationError):
            stock_service.set_thresholds(product_a.id, company_a.id, -1)


class TestMovementHistory:

    def test_newest_first(self, db_session, company_a, product_a):
        stock_service.adjust_stock(product_a.id, 3, "First", company_id=company_a.id)
        stock_service.adjust_stock(product_a.id, -2, "Second", company_id=company_a.id)

        history = stock_service.list_stock_movements(product_a.id, company_a.id)
        assert [m.reason for m in history] == ["Second", "First"]
