"""
CLI command tests (flask system / companies / alerts / maintenance).
"""

from stockdesk.models import Company, StockAlert, User
from stockdesk.models.auth import ROLE_ADMIN

from conftest import PASSWORD, make_product


def test_system_init_creates_admin_once(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["system", "init", "--email", "root@stockdesk.test", "--password", PASSWORD])
    assert "PASS Created admin" in result.output

    result = runner.invoke(args=["system", "init", "--email", "root@stockdesk.test", "--password", PASSWORD])
    assert "PASS Admin already exists" in result.output

    admins = db_session.query(User).filter_by(role=ROLE_ADMIN).all()
    assert [a.email for a in admins] == ["root@stockdesk.test"]


def test_system_init_rejects_weak_password(app, db_session):
    result = app.test_cli_runner().invoke(args=["system", "init", "--email", "weak@stockdesk.test", "--password", "weak"])
    assert "FAIL" in result.output
    assert db_session.query(User).count() == 0


def test_companies_create(app, db_session):
    result = app.test_cli_runner().invoke(args=[
        "companies", "create",
        "--name", "Echo Wholesale",
        "--email", "office@echo.test",
        "--director-name", "Eve Director",
        "--director-email", "eve@echo.test",
        "--director-password", PASSWORD,
    ])
    assert "PASS Created company: Echo Wholesale" in result.output
    assert db_session.query(Company).filter_by(email="office@echo.test").count() == 1


def test_alerts_sweep(app, db_session, company_a):
    make_product(db_session, company_a, sku="CLI-1", name="Empty shelf", quantity=0)

    result = app.test_cli_runner().invoke(args=["alerts", "sweep", "--company-id", str(company_a.id)])

    assert "Checked 1 products; 1 open alerts." in result.output
    assert db_session.query(StockAlert).filter_by(is_resolved=False).count() == 1


def test_cleanup_sessions(app, db_session):
    result = app.test_cli_runner().invoke(args=["maintenance", "cleanup-sessions"])
    assert "Deleted 0 expired sessions." in result.output
