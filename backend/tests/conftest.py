"""
Pytest fixtures for stockbill backend tests.

Provides test database setup, two tenants plus an admin, inventory items,
and bearer-token headers for the test client.
"""

from datetime import timedelta

import pytest
from stockbill import create_app
from stockbill.extensions import db
from stockbill.models import InventoryItem, User
from stockbill.models.auth import SUBSCRIPTION_ACTIVE
from stockbill.services import session_service
from stockbill.time_utils import utcnow


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
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


def _make_user(db_session, name, email, role="user"):
    user = User(
        name=name,
        email=email,
        role=role,
        is_active=True,
        subscription_status=SUBSCRIPTION_ACTIVE,
        subscription_end_date=utcnow() + timedelta(days=30),
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def owner(db_session):
    """Tenant A."""
    return _make_user(db_session, "Owner A", "owner_a@example.com")


@pytest.fixture(scope='function')
def other_owner(db_session):
    """Tenant B."""
    return _make_user(db_session, "Owner B", "owner_b@example.com")


@pytest.fixture(scope='function')
def admin(db_session):
    return _make_user(db_session, "Admin", "admin@example.com", role="admin")


@pytest.fixture(scope='function')
def make_item(db_session):
    """Factory for inventory items owned by a given user."""
    def _make(owner_id, name="Widget", sku="WID-001", quantity=10, price_cents=1000,
              cost_price_cents=None, category=None, low_stock_threshold=5):
        item = InventoryItem(
            owner_id=owner_id,
            name=name,
            sku=sku,
            quantity=quantity,
            price_cents=price_cents,
            cost_price_cents=cost_price_cents,
            category=category,
            low_stock_threshold=low_stock_threshold,
        )
        db_session.add(item)
        db_session.commit()
        return item
    return _make


@pytest.fixture(scope='function')
def widget(owner, make_item):
    """10 in stock at 10.00, cost 6.00."""
    return make_item(owner.id, name="Widget", sku="WID-001", quantity=10,
                     price_cents=1000, cost_price_cents=600, category="Hardware")


@pytest.fixture(scope='function')
def gadget(owner, make_item):
    """3 in stock at 25.00, no recorded cost."""
    return make_item(owner.id, name="Gadget", sku="GAD-001", quantity=3,
                     price_cents=2500, category="Electronics")


@pytest.fixture(scope='function')
def auth_headers(db_session):
    """Return a function that issues a bearer token for a user."""
    def _headers(user):
        _, token = session_service.create_session(user.id)
        return {"Authorization": f"Bearer {token}"}
    return _headers
