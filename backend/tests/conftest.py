"""
Pytest fixtures for restaurant backend tests.

Provides the in-memory application, two isolated restaurants with one user
per role, inventory fixtures and bearer-token helpers.
"""

import pytest

from resto import create_app
from resto.extensions import db
from resto.models import Restaurant, User, InventoryItem
from resto.models.auth import default_preferences
from resto.services.auth_service import hash_password
from resto.services.inventory_service import recompute_item_derived
from resto.services.session_service import create_session
from resto.services.realtime_service import broker


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'REALTIME_ENABLED': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash():
    """One bcrypt hash shared by every fixture user (cost factor 12 is slow)."""
    return hash_password(PASSWORD)


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


def make_restaurant(session, name: str, email: str) -> Restaurant:
    restaurant = Restaurant(
        name=name,
        address_street="Calle 1 # 2-3",
        address_city="Bogota",
        address_state="Cundinamarca",
        address_zip_code="110111",
        address_country="Colombia",
        contact_phone="+57 300 000 0000",
        contact_email=email,
    )
    session.add(restaurant)
    session.commit()
    return restaurant


def make_user(session, restaurant: Restaurant, email: str, role: str, password_hash: str) -> User:
    user = User(
        restaurant_id=restaurant.id,
        name=email.split("@")[0].title(),
        email=email,
        password_hash=password_hash,
        role=role,
        preferences=default_preferences(),
    )
    session.add(user)
    session.commit()
    return user


def make_item(session, restaurant: Restaurant, **overrides) -> InventoryItem:
    values = {
        "name": "Coca-Cola 350ml",
        "category": "Bebidas",
        "quantity": 10,
        "min_quantity": 5,
        "cost_price_cents": 150000,
        "selling_price_cents": 300000,
        "unit": "unidad",
    }
    values.update(overrides)
    item = InventoryItem(restaurant_id=restaurant.id, is_active=True, **values)
    recompute_item_derived(item)
    session.add(item)
    session.commit()
    return item


@pytest.fixture(scope='function')
def restaurant_a(db_session):
    """Restaurant A (first tenant)."""
    return make_restaurant(db_session, "Restaurante A", "a@restaurante.com")


@pytest.fixture(scope='function')
def restaurant_b(db_session):
    """Restaurant B (second tenant)."""
    return make_restaurant(db_session, "Restaurante B", "b@restaurante.com")


@pytest.fixture(scope='function')
def admin_a(db_session, restaurant_a, password_hash):
    return make_user(db_session, restaurant_a, "admin@a.com", "admin", password_hash)


@pytest.fixture(scope='function')
def manager_a(db_session, restaurant_a, password_hash):
    return make_user(db_session, restaurant_a, "manager@a.com", "manager", password_hash)


@pytest.fixture(scope='function')
def employee_a(db_session, restaurant_a, password_hash):
    return make_user(db_session, restaurant_a, "employee@a.com", "employee", password_hash)


@pytest.fixture(scope='function')
def admin_b(db_session, restaurant_b, password_hash):
    return make_user(db_session, restaurant_b, "admin@b.com", "admin", password_hash)


@pytest.fixture(scope='function')
def item_a(db_session, restaurant_a):
    """Inventory item in Restaurant A: 10 units, min 5."""
    return make_item(db_session, restaurant_a)


@pytest.fixture(scope='function')
def item_b(db_session, restaurant_b):
    """Inventory item in Restaurant B."""
    return make_item(db_session, restaurant_b, name="Agua 600ml", selling_price_cents=200000)


@pytest.fixture(scope='function')
def subscription_a(restaurant_a):
    """Broker subscription on Restaurant A's topic, closed after the test."""
    sub = broker.subscribe(restaurant_a.id)
    yield sub
    sub.close()


def issue_token(user: User) -> str:
    """Create a session directly (skips bcrypt verification)."""
    _, token = create_session(user.id, user_agent="pytest")
    return token


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(admin_a):
    return auth_headers(issue_token(admin_a))


@pytest.fixture(scope='function')
def manager_headers(manager_a):
    return auth_headers(issue_token(manager_a))


@pytest.fixture(scope='function')
def employee_headers(employee_a):
    return auth_headers(issue_token(employee_a))


@pytest.fixture(scope='function')
def admin_b_headers(admin_b):
    return auth_headers(issue_token(admin_b))


@pytest.fixture(scope='function')
def reload(db_session):
    """Refresh an ORM object after requests committed through another session."""
    def _reload(obj):
        db_session.refresh(obj)
        return obj
    return _reload


@pytest.fixture(scope='function')
def drain():
    """Pop every queued event of a subscription without blocking."""
    def _drain(sub) -> list:
        events = []
        while True:
            event = sub.get(timeout=0)
            if event is None:
                return events
            events.append(event)
    return _drain


@pytest.fixture(scope='function')
def item_factory(db_session):
    """Create extra inventory items: item_factory(restaurant, name=..., quantity=...)."""
    def _make(restaurant, **overrides):
        return make_item(db_session, restaurant, **overrides)
    return _make
