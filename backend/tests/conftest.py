"""
Pytest fixtures for batchledger backend tests.

Provides test database setup, tenant fixtures (two businesses), and test client.
"""

from decimal import Decimal

import pytest
from batchledger import create_app
from batchledger.extensions import db
from batchledger.models import Business, User, Category, Item
from batchledger.services import purchase_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'DEBUG',
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


@pytest.fixture(scope='function')
def business_a(db_session):
    """Create Business A (first tenant)."""
    business = Business(name="Business A - Mama Mboga", currency="KES", is_active=True)
    db_session.add(business)
    db_session.commit()
    return business


@pytest.fixture(scope='function')
def business_b(db_session):
    """Create Business B (second tenant)."""
    business = Business(name="Business B - Fresh Stall", currency="KES", is_active=True)
    db_session.add(business)
    db_session.commit()
    return business


@pytest.fixture(scope='function')
def user_a(db_session, business_a):
    """Owner of Business A."""
    user = User(business_id=business_a.id, name="Owner A", email="owner@a.test", role="owner")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def cashier_a(db_session, business_a):
    """Second user in Business A."""
    user = User(business_id=business_a.id, name="Cashier A", email="cashier@a.test", role="cashier")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def user_b(db_session, business_b):
    """Owner of Business B."""
    user = User(business_id=business_b.id, name="Owner B", email="owner@b.test", role="owner")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def category_a(db_session, business_a):
    category = Category(business_id=business_a.id, name="Vegetables")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def item_a(db_session, business_a, category_a):
    """Tomatoes, sold by the kg, no stock yet."""
    item = Item(
        business_id=business_a.id,
        category_id=category_a.id,
        name="Tomatoes",
        unit_type="kg",
        current_stock=0,
        current_sell_price=Decimal("100.00"),
        min_stock_level=Decimal("5"),
    )
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def item_a2(db_session, business_a):
    """Uncategorized item in Business A."""
    item = Item(
        business_id=business_a.id,
        name="Eggs",
        unit_type="tray",
        current_stock=0,
        current_sell_price=Decimal("450.00"),
    )
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def item_b(db_session, business_b):
    """Item in Business B."""
    item = Item(
        business_id=business_b.id,
        name="Onions",
        unit_type="kg",
        current_stock=Decimal("10"),
        current_sell_price=Decimal("80.00"),
    )
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def make_purchase(db_session):
    """Factory: record a purchase and return (purchase, [line items])."""
    def _make(business, user, *names, amount="1000.00"):
        purchase = purchase_service.create_purchase(
            business_id=business.id,
            user_id=user.id,
            supplier_name="Wakulima Market",
            items=[{"item_name": name, "quantity_note": "1 crate", "amount": amount} for name in names],
        )
        return purchase, list(purchase.items)
    return _make


@pytest.fixture(scope='function')
def headers_a(business_a, user_a):
    """Caller context headers for the owner of Business A."""
    return {"X-Business-Id": str(business_a.id), "X-User-Id": str(user_a.id)}


@pytest.fixture(scope='function')
def headers_b(business_b, user_b):
    """Caller context headers for the owner of Business B."""
    return {"X-Business-Id": str(business_b.id), "X-User-Id": str(user_b.id)}
