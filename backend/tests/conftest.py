"""
Pytest fixtures for repair shop backend tests.

Provides an in-memory database, the Flask test client, and part/sale factories.
"""

import pytest

from repairshop import create_app
from repairshop.extensions import db
from repairshop.models import Part
from repairshop.services import hierarchy_service, parts_service, sales_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ACCESS_PIN': '123456',
        'DB_RETRY_ATTEMPTS': 2,
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


def reload_part(part_id: int) -> Part:
    """Fresh copy of a part after requests have changed it."""
    db.session.expire_all()
    return db.session.get(Part, part_id)


@pytest.fixture
def make_part(db_session):
    """Create a part through the catalog service (opening stock goes through the ledger)."""
    counter = {'n': 0}

    def _make(
        *,
        sku=None,
        name=None,
        stock=0,
        real_cost_cents=5000,
        selling_price_cents=10000,
        low_stock_threshold=0,
        description=None,
        model_ids=None,
    ):
        counter['n'] += 1
        part = parts_service.create_part(
            patch={
                'sku': sku or f'SKU-{counter["n"]:03d}',
                'name': name or f'Part {counter["n"]}',
                'description': description,
                'real_cost_cents': real_cost_cents,
                'selling_price_cents': selling_price_cents,
                'stock': stock,
                'low_stock_threshold': low_stock_threshold,
            },
            model_ids=model_ids,
        )
        return part

    return _make


@pytest.fixture
def make_sale(db_session):
    """Record a sale directly through the sales service; lines are (part, quantity, unit_price_cents)."""
    def _make(lines, *, discount_cents=0, payment_method='CASH', **customer):
        items = [
            {
                'part_id': part.id,
                'quantity': quantity,
                'unit_price_cents': unit_price_cents,
                'total_price_cents': unit_price_cents * quantity,
            }
            for part, quantity, unit_price_cents in lines
        ]
        return sales_service.create_sale(
            items=items,
            payment_method=payment_method,
            discount_cents=discount_cents,
            **customer,
        )

    return _make


@pytest.fixture
def iphone_models(db_session):
    """iOS > Apple > iPhone with two models, plus one Samsung model."""
    m15 = hierarchy_service.ensure_model_path('iOS', 'Apple', 'iPhone', 'iPhone 15')
    m14 = hierarchy_service.ensure_model_path('iOS', 'Apple', 'iPhone', 'iPhone 14')
    s24 = hierarchy_service.ensure_model_path('Android', 'Samsung', 'Galaxy', 'Galaxy S24')
    db_session.commit()
    return {'iphone-15': m15, 'iphone-14': m14, 'galaxy-s24': s24}
