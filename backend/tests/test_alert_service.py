"""
Stock alert tests: classification bands, persisted alert sync and ordering.
"""

import pytest

from stockdesk.errors import NotFound
from stockdesk.models import StockAlert
from stockdesk.models.inventory import (
    ALERT_LOW_STOCK,
    ALERT_OUT_OF_STOCK,
    ALERT_OVERSTOCK,
    SEVERITY_CRITICAL,
    SEVERITY_HIGH,
    SEVERITY_MEDIUM,
)
from stockdesk.services import alert_service, stock_service

from conftest import make_product


class TestClassify:

    @pytest.mark.parametrize(
        "current,min_stock,max_stock,expected",
        [
            (0, 10, None, (ALERT_OUT_OF_STOCK, SEVERITY_CRITICAL)),
            (3, 10, None, (ALERT_LOW_STOCK, SEVERITY_CRITICAL)),
            (4, 10, None, (ALERT_LOW_STOCK, SEVERITY_HIGH)),
            (5, 10, None, (ALERT_LOW_STOCK, SEVERITY_HIGH)),
            (6, 10, None, (ALERT_LOW_STOCK, SEVERITY_MEDIUM)),
            (10, 10, None, (ALERT_LOW_STOCK, SEVERITY_MEDIUM)),
            (100, 10, 100, (ALERT_OVERSTOCK, SEVERITY_MEDIUM)),
        ],
    )
    def test_bands(self, current, min_stock, max_stock, expected):
        result = alert_service.classify(current, min_stock, max_stock, product_name="Widget")
        assert (result.alert_type, result.severity) == expected

    @pytest.mark.parametrize("current,max_stock", [(11, None), (50, 100), (99, 100)])
    def test_within_band(self, current, max_stock):
        assert alert_service.classify(current, 10, max_stock) is None

    def test_zero_min_only_alerts_when_empty(self):
        assert alert_service.classify(1, 0) is None
        assert alert_service.classify(0, 0).alert_type == ALERT_OUT_OF_STOCK


class TestSync:

    def test_low_then_restock_round_trip(self, db_session, company_a, director_a):
        product = make_product(db_session, company_a, sku="S-1", name="Screw", quantity=20, min_stock=10)

        stock_service.adjust_stock(product.id, -15, "Sold", company_id=company_a.id)
        open_alert = alert_service.get_open_alert(product.id)
        assert open_alert.alert_type == ALERT_LOW_STOCK
        assert open_alert.current_stock == 5

        stock_service.adjust_stock(product.id, -1, "Sold", company_id=company_a.id)
        alerts = db_session.query(StockAlert).filter_by(product_id=product.id).all()
        assert len(alerts) == 1
        assert alerts[0].current_stock == 4
        assert alerts[0].severity == SEVERITY_HIGH

        stock_service.restock_product(product.id, company_a.id, 30, user_id=director_a.id)
        assert alert_service.get_open_alert(product.id) is None
        resolved = db_session.query(StockAlert).filter_by(product_id=product.id).one()
        assert resolved.is_resolved is True
        assert resolved.resolved_at is not None

    def test_type_change_replaces_open_alert(self, db_session, company_a):
        product = make_product(db_session, company_a, sku="S-2", name="Nut", quantity=5, min_stock=10)

        stock_service.adjust_stock(product.id, 1, "Found", company_id=company_a.id)
        first = alert_service.get_open_alert(product.id)
        assert first.alert_type == ALERT_LOW_STOCK

        stock_service.adjust_stock(product.id, -6, "Sold out", company_id=company_a.id)
        second = alert_service.get_open_alert(product.id)
        assert second.alert_type == ALERT_OUT_OF_STOCK
        assert second.id != first.id

        open_count = db_session.query(StockAlert).filter_by(product_id=product.id, is_resolved=False).count()
        assert open_count == 1

    def test_sweep_resolves_alerts_of_inactive_products(self, db_session, company_a):
        product = make_product(db_session, company_a, sku="S-3", name="Washer", quantity=2, min_stock=10)
        summary = alert_service.sweep_company_alerts(company_a.id)
        assert summary == {"products_checked": 1, "open_alerts": 1}

        product.is_active = False
        db_session.commit()

        summary = alert_service.sweep_company_alerts(company_a.id)
        assert summary["open_alerts"] == 0
        assert alert_service.get_open_alert(product.id) is None


class TestListing:

    def test_sorted_by_severity(self, db_session, company_a):
        medium = make_product(db_session, company_a, sku="L-1", name="Medium", quantity=8, min_stock=10)
        critical = make_product(db_session, company_a, sku="L-2", name="Critical", quantity=0, min_stock=10)
        high = make_product(db_session, company_a, sku="L-3", name="High", quantity=5, min_stock=10)
        alert_service.sweep_company_alerts(company_a.id)

        alerts = alert_service.list_alerts(company_a.id)
        assert [a.product_id for a in alerts] == [critical.id, high.id, medium.id]
        assert [a.severity for a in alerts] == [SEVERITY_CRITICAL, SEVERITY_HIGH, SEVERITY_MEDIUM]

    def test_listing_is_company_scoped(self, db_session, company_a, company_b):
        make_product(db_session, company_b, sku="L-9", name="Foreign", quantity=0)
        alert_service.sweep_company_alerts()

        assert alert_service.list_alerts(company_a.id) == []
        assert len(alert_service.list_alerts(company_b.id)) == 1

    def test_resolve_other_company_alert_not_found(self, db_session, company_a, company_b):
        make_product(db_session, company_b, sku="L-8", name="Foreign", quantity=0)
        alert_service.sweep_company_alerts(company_b.id)
        alert = alert_service.list_alerts(company_b.id)[0]

        with pytest.raises(NotFound):
            alert_service.resolve_alert(alert.id, company_a.id)

        resolved = alert_service.resolve_alert(alert.id, company_b.id)
        assert resolved.is_resolved is True
