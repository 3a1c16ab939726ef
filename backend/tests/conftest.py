"""
Pytest fixtures for POS backend tests.

Provides test database setup, user/scope/product fixtures, and test client.
"""

import pytest

from pos import create_app
from pos.extensions import db
from pos.models import Product, User
from pos.services import session_service
from pos.services.auth_service import hash_password
from pos.services.scope import scope_for_user

TEST_PASSWORD = "Password123!"

_password_hash = None


def _hashed_password() -> str:
    # bcrypt at cost 12 is slow; hash the shared test password once
    global _password_hash
    if _password_hash is None:
        _password_hash = hash_password(TEST_PASSWORD)
    return _password_hash


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
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
    """Fresh database contents for each test."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


def make_user(username: str, **settings) -> User:
    user = User(
        username=username,
        email=f"{username}@pos.local",
        password_hash=_hashed_password(),
        **settings,
    )
    db.session.add(user)
    db.session.commit()
    return user


def make_product(user: User, name: str, price_cents: int, inventory: int, category: str = "Food") -> Product:
    product = Product(
        user_id=user.id,
        name=name,
        price_cents=price_cents,
        inventory=inventory,
        category=category,
    )
    db.session.add(product)
    db.session.commit()
    return product


@pytest.fixture(scope='function')
def user_a(db_session):
    """Primary user; 8% tax (800 bps)."""
    return make_user("user_a", tax_rate_bps=800)


@pytest.fixture(scope='function')
def user_b(db_session):
    """Second scope, used to prove owner isolation."""
    return make_user("user_b", tax_rate_bps=0)


@pytest.fixture(scope='function')
def scope_a(user_a):
    return scope_for_user(user_a)


@pytest.fixture(scope='function')
def scope_b(user_b):
    return scope_for_user(user_b)


@pytest.fixture(scope='function')
def widget(user_a):
    """$10.00, 5 on hand."""
    return make_product(user_a, "Widget", 1000, 5)


@pytest.fixture(scope='function')
def gadget(user_a):
    """$5.00, 10 on hand."""
    return make_product(user_a, "Gadget", 500, 10, category="Electronics")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def headers_a(user_a):
    _session, token = session_service.create_session(user_a.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def headers_b(user_b):
    _session, token = session_service.create_session(user_b.id)
    return auth_headers(token)
