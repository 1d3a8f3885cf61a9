"""
Pytest fixtures for orderdesk backend tests.

Provides an app on a temporary SQLite file (threads need a real file, an
in-memory database is private to one connection), per-test clean tables,
two tenants with users and products, and auth helpers.
"""

import pytest

from orderdesk import create_app
from orderdesk.context import TenantContext
from orderdesk.extensions import db
from orderdesk.models import Organization, Product, Category, ProductMapping, User
from orderdesk.services import payment_service
from orderdesk.services.auth_service import hash_password
from orderdesk.services.webhook_service import hash_secret


PASSWORD = "Password123!"
WEBHOOK_SECRET_A = "whsec-acme-0123456789"
WEBHOOK_SECRET_B = "whsec-beta-9876543210"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    db_path = tmp_path_factory.mktemp("db") / "orderdesk-test.sqlite3"
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}',
        'BCRYPT_ROUNDS': 4,
        'PAYMENT_CALLBACK_SECRET': None,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Clear all data but keep schema."""
    db.session.rollback()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()
    app.config['PAYMENT_CALLBACK_SECRET'] = None


# =============================================================================
# TENANTS AND USERS
# =============================================================================

@pytest.fixture(scope='function')
def org_a(db_session):
    """Organization A (first tenant)."""
    org = Organization(
        name="Org A - Acme Cafe",
        code="ACME",
        is_active=True,
        webhook_secret_hash=hash_secret(WEBHOOK_SECRET_A),
    )
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Organization B (second tenant)."""
    org = Organization(
        name="Org B - Beta Bistro",
        code="BETA",
        is_active=True,
        webhook_secret_hash=hash_secret(WEBHOOK_SECRET_B),
    )
    db_session.add(org)
    db_session.commit()
    return org


def make_user(db_session, org, email, role, name=None):
    user = User(
        org_id=org.id,
        email=email,
        name=name or email.split("@")[0].title(),
        password_hash=hash_password(PASSWORD),
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def owner_a(db_session, org_a):
    return make_user(db_session, org_a, "owner@acme.test", "OWNER", name="Olivia Owner")


@pytest.fixture(scope='function')
def staff_a(db_session, org_a):
    return make_user(db_session, org_a, "staff@acme.test", "STAFF", name="Sam Staff")


@pytest.fixture(scope='function')
def owner_b(db_session, org_b):
    return make_user(db_session, org_b, "owner@beta.test", "OWNER", name="Bea Owner")


@pytest.fixture(scope='function')
def ctx_a(owner_a):
    return TenantContext(org_id=owner_a.org_id, user_id=owner_a.id, role=owner_a.role)


@pytest.fixture(scope='function')
def staff_ctx_a(staff_a):
    return TenantContext(org_id=staff_a.org_id, user_id=staff_a.id, role=staff_a.role)


@pytest.fixture(scope='function')
def ctx_b(owner_b):
    return TenantContext(org_id=owner_b.org_id, user_id=owner_b.id, role=owner_b.role)


# =============================================================================
# CATALOG
# =============================================================================

def make_product(db_session, org, name, price_cents, stock, category=None):
    product = Product(
        org_id=org.id,
        name=name,
        price_cents=price_cents,
        cost_cents=price_cents // 2,
        stock=stock,
        category_id=category.id if category else None,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def category_a(db_session, org_a):
    category = Category(org_id=org_a.id, name="Drinks")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def coffee(db_session, org_a, category_a):
    """Product A: price 10.00, stock 5."""
    return make_product(db_session, org_a, "Coffee", 1000, 5, category_a)


@pytest.fixture(scope='function')
def bagel(db_session, org_a):
    return make_product(db_session, org_a, "Bagel", 350, 20)


@pytest.fixture(scope='function')
def product_b(db_session, org_b):
    return make_product(db_session, org_b, "Beta Soup", 700, 10)


@pytest.fixture(scope='function')
def coffee_mapping(db_session, org_a, coffee):
    mapping = ProductMapping(
        org_id=org_a.id,
        external_product_id="ext-coffee",
        source="UBER",
        product_id=coffee.id,
    )
    db_session.add(mapping)
    db_session.commit()
    return mapping


# =============================================================================
# HELPERS
# =============================================================================

def refresh(*objects):
    """Reload rows changed by another session or a request."""
    for obj in objects:
        db.session.refresh(obj)


def pay_cash(ctx, order):
    """Settle an order in cash; this also completes it."""
    return payment_service.initiate_payment(ctx, order.id, "CASH", order.total_amount_cents)


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password,
    })
    if response.status_code == 200:
        return response.json['data']['token']
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def headers_a(client, owner_a):
    return auth_headers(get_auth_token(client, owner_a.email))


@pytest.fixture(scope='function')
def staff_headers_a(client, staff_a):
    return auth_headers(get_auth_token(client, staff_a.email))


@pytest.fixture(scope='function')
def headers_b(client, owner_b):
    return auth_headers(get_auth_token(client, owner_b.email))
