"""
Pytest fixtures for cafe_pos backend tests.

Provides an in-memory SQLite app, a per-test table wipe, a record store
fixture that runs each test against both backends, and catalog factories.
"""

from datetime import datetime, timedelta

import pytest

from cafe_pos import create_app
from cafe_pos.extensions import db
from cafe_pos.store import EXTENSION_KEY, build_store
from cafe_pos.services import catalog_service, purchase_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RECORD_STORE': 'sql',
        'LOW_STOCK_THRESHOLD': 0,
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
    """Clear all data but keep schema."""
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function', params=['sql', 'memory'])
def store(request, app, db_session):
    """Run the test once per record store backend."""
    original = app.extensions[EXTENSION_KEY]
    backend = build_store(request.param)
    app.extensions[EXTENSION_KEY] = backend
    yield backend
    app.extensions[EXTENSION_KEY] = original


@pytest.fixture(scope='function')
def sql_store(app, db_session):
    """SQL backend only (HTTP and CLI tests)."""
    return app.extensions[EXTENSION_KEY]


@pytest.fixture(scope='function')
def food(store):
    return catalog_service.create_category("Food")


@pytest.fixture(scope='function')
def coffee(store):
    return catalog_service.create_category("Coffee")


@pytest.fixture(scope='function')
def burger(food):
    """Stock-tracked product, 5.00 each."""
    return catalog_service.create_product(food["id"], "Burger", 500)


@pytest.fixture(scope='function')
def fries(food):
    """Stock-tracked product, 2.50 each."""
    return catalog_service.create_product(food["id"], "Fries", 250)


@pytest.fixture(scope='function')
def latte(coffee):
    """Made to order; never stock-checked."""
    return catalog_service.create_product(coffee["id"], "Latte", 350)


def stock_up(product, quantity, unit_price_cents=200, supplier="Metro Wholesale"):
    """Purchase `quantity` units of `product` and return the purchase id."""
    return purchase_service.create_purchase(
        supplier,
        [{"product_id": product["id"], "quantity": quantity, "unit_price_cents": unit_price_cents}],
        actor="tester",
    )


@pytest.fixture(scope='function')
def ticking_clock(monkeypatch):
    """Each ledger append gets a strictly later timestamp."""
    from cafe_pos.services import ledger_service

    state = {"now": datetime(2026, 10, 17, 8, 0)}

    def tick():
        state["now"] += timedelta(seconds=1)
        return state["now"]

    monkeypatch.setattr(ledger_service, "utcnow", tick)
    return tick
