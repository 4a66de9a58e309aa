"""
Pytest fixtures for ERP backend tests.

Provides test database setup, role/permission seeding, users with tokens,
and product fixtures.

NOTE: The in-memory SQLite database is a single shared connection, and
the test client reuses the test's app context (and therefore db.session).
Commit fixture data before issuing requests; call db_session.expire_all()
before asserting on rows a request has changed.
"""

import pytest
from erp import create_app
from erp.extensions import db
from erp.models import User, Role, UserRole, Product
from erp.schemas import InventoryInRequest
from erp.services.auth_service import hash_password, create_default_roles
from erp.services import permission_service, inventory_service


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
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
    # Clear all data but keep schema
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    # Cleanup after test
    db.session.rollback()


@pytest.fixture(scope='function')
def setup_roles(db_session):
    """Setup default roles and permissions."""
    create_default_roles()
    permission_service.initialize_permissions()
    permission_service.assign_default_role_permissions()
    db_session.commit()


def _make_user(db_session, username: str, role_name: str | None) -> User:
    user = User(
        username=username,
        email=f"{username}@erp.test",
        name=username.title(),
        password_hash=hash_password(TEST_PASSWORD),
    )
    db_session.add(user)
    db_session.commit()

    if role_name:
        role = db_session.query(Role).filter_by(name=role_name).first()
        db_session.add(UserRole(user_id=user.id, role_id=role.id))
        db_session.commit()

    return user


@pytest.fixture(scope='function')
def admin_user(db_session, setup_roles):
    return _make_user(db_session, "admin", "admin")


@pytest.fixture(scope='function')
def manager_user(db_session, setup_roles):
    return _make_user(db_session, "manager", "manager")


@pytest.fixture(scope='function')
def staff_user(db_session, setup_roles):
    return _make_user(db_session, "staff", "staff")


@pytest.fixture(scope='function')
def roleless_user(db_session, setup_roles):
    return _make_user(db_session, "nobody", None)


def get_auth_token(client, username: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.username))


@pytest.fixture(scope='function')
def manager_headers(client, manager_user):
    return auth_headers(get_auth_token(client, manager_user.username))


@pytest.fixture(scope='function')
def staff_headers(client, staff_user):
    return auth_headers(get_auth_token(client, staff_user.username))


@pytest.fixture(scope='function')
def roleless_headers(client, roleless_user):
    return auth_headers(get_auth_token(client, roleless_user.username))


def make_product(db_session, sku: str, *, price_cents: int = 1000, minimum_quantity: int = 0) -> Product:
    """Create a product with zero stock (stock arrives through the ledger)."""
    product = Product(
        sku=sku,
        name=f"Product {sku}",
        price_cents=price_cents,
        cost_cents=price_cents // 2,
        quantity=0,
        minimum_quantity=minimum_quantity,
    )
    db_session.add(product)
    db_session.commit()
    return product


def stock_in(db_session, product: Product, quantity: int, unit_price_cents: int = 100):
    """Receive stock through the ledger engine so the ledger invariant holds."""
    return inventory_service.record_inventory_in(
        db_session,
        InventoryInRequest(
            product_id=product.id,
            quantity=quantity,
            unit_price_cents=unit_price_cents,
            supplier="Acme Supply",
        ),
    )


@pytest.fixture(scope='function')
def product_a(db_session):
    """Product A with 5 units on hand."""
    product = make_product(db_session, "SKU-A", price_cents=1000)
    stock_in(db_session, product, 5)
    return product


@pytest.fixture(scope='function')
def product_b(db_session):
    """Product B with no stock."""
    return make_product(db_session, "SKU-B", price_cents=2500)


def assert_ledger_consistent(db_session):
    """Every product's stored quantity equals SUM(in) - SUM(out)."""
    db_session.expire_all()
    results = inventory_service.reconcile(db_session)
    drift = [r for r in results if not r["consistent"]]
    assert not drift, drift
