"""
Pytest fixtures for StockDesk backend tests.

Provides an in-memory database, two tenants (companies A and B) with a
director and a user each, a platform admin, product fixtures and the
test client.
"""

import pytest

from stockdesk import create_app
from stockdesk.extensions import db
from stockdesk.models import Company, Product, User
from stockdesk.models.auth import ROLE_ADMIN, ROLE_DIRECTOR, ROLE_USER
from stockdesk.services.auth_service import hash_password


PASSWORD = "Password123!"

# bcrypt at cost 12 is slow; every fixture user shares one hash
PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SMTP_ENABLED': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_company(session, name: str, email: str) -> Company:
    company = Company(name=name, email=email, is_active=True)
    session.add(company)
    session.commit()
    return company


def _make_user(session, *, email: str, name: str, role: str, company: Company | None) -> User:
    user = User(
        company_id=company.id if company else None,
        name=name,
        email=email,
        password_hash=PASSWORD_HASH,
        role=role,
        is_active=True,
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def company_a(db_session):
    """Company A (first tenant)."""
    return _make_company(db_session, "Acme Trading", "office@acme.test")


@pytest.fixture(scope='function')
def company_b(db_session):
    """Company B (second tenant)."""
    return _make_company(db_session, "Beta Supplies", "office@beta.test")


@pytest.fixture(scope='function')
def admin(db_session):
    """Platform admin without a company."""
    return _make_user(db_session, email="admin@stockdesk.test", name="Admin", role=ROLE_ADMIN, company=None)


@pytest.fixture(scope='function')
def director_a(db_session, company_a):
    return _make_user(db_session, email="director@acme.test", name="Dana Director", role=ROLE_DIRECTOR, company=company_a)


@pytest.fixture(scope='function')
def director_b(db_session, company_b):
    return _make_user(db_session, email="director@beta.test", name="Bo Director", role=ROLE_DIRECTOR, company=company_b)


@pytest.fixture(scope='function')
def user_a(db_session, company_a):
    """Field user in company A."""
    return _make_user(db_session, email="seller@acme.test", name="Sam Seller", role=ROLE_USER, company=company_a)


@pytest.fixture(scope='function')
def user_a2(db_session, company_a):
    """Second field user in company A."""
    return _make_user(db_session, email="seller2@acme.test", name="Alex Seller", role=ROLE_USER, company=company_a)


@pytest.fixture(scope='function')
def user_b(db_session, company_b):
    """Field user in company B."""
    return _make_user(db_session, email="seller@beta.test", name="Bea Seller", role=ROLE_USER, company=company_b)


def make_product(session, company: Company, *, sku: str, name: str, quantity: int = 0,
                 price_cents: int = 1000, min_stock: int = 10, max_stock: int | None = None) -> Product:
    """Insert a product directly, bypassing the stock ledger."""
    product = Product(
        company_id=company.id,
        sku=sku,
        name=name,
        price_cents=price_cents,
        quantity=quantity,
        min_stock=min_stock,
        max_stock=max_stock,
        is_active=True,
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def product_a(db_session, company_a):
    """Well-stocked product in company A."""
    return make_product(db_session, company_a, sku="ACME-001", name="Widget", quantity=50, price_cents=1000)


@pytest.fixture(scope='function')
def product_b(db_session, company_b):
    """Product in company B."""
    return make_product(db_session, company_b, sku="BETA-001", name="Gadget", quantity=40, price_cents=2000)


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
