"""
Pytest fixtures for PDV backend tests.

Provides the application on an in-memory database, a clean session per test,
and factories for employees and stocked variants.
"""

import pytest

from pdv import create_app
from pdv.extensions import db
from pdv.models import Employee, Product, ProductVariant
from pdv.models.staff import ROLE_MANAGER, ROLE_SELLER, STATUS_ACTIVE
from pdv.services.transaction_service import LineItem, TransactionRequest


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TRANSACTION_RETRY_ATTEMPTS': 1,
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
def make_employee(db_session):
    """Factory: make_employee(role=..., status=...) -> committed Employee."""
    counter = {"n": 0}

    def _make(role=ROLE_SELLER, status=STATUS_ACTIVE, name=None):
        counter["n"] += 1
        employee = Employee(
            full_name=name or f"Employee {counter['n']}",
            email=f"employee{counter['n']}@loja.local",
            role=role,
            status=status,
        )
        db_session.add(employee)
        db_session.commit()
        return employee

    return _make


@pytest.fixture(scope='function')
def seller(make_employee):
    return make_employee(role=ROLE_SELLER, name="Vendedora Ana")


@pytest.fixture(scope='function')
def manager(make_employee):
    return make_employee(role=ROLE_MANAGER, name="Gerente Bruno")


@pytest.fixture(scope='function')
def make_variant(db_session):
    """Factory: make_variant(store=, warehouse=, price_cents=) -> committed ProductVariant."""
    counter = {"n": 0}

    def _make(store=0, warehouse=0, price_cents=5000, reference=None):
        counter["n"] += 1
        product = Product(name=f"Vestido {counter['n']}", category="vestidos")
        db_session.add(product)
        db_session.flush()
        variant = ProductVariant(
            product_id=product.id,
            reference=reference or f"VST-{counter['n']:03d}",
            color="Preto",
            size="M",
            price_cents=price_cents,
            store_quantity=store,
            warehouse_quantity=warehouse,
        )
        db_session.add(variant)
        db_session.commit()
        return variant

    return _make


def sale_request(invoice, employee_id, items, discount_bps=0, **kwargs):
    """Build a TransactionRequest from (variant_id, quantity, unit_price_cents) tuples."""
    return TransactionRequest(
        invoice_number=invoice,
        employee_id=employee_id,
        transaction_type=kwargs.pop("transaction_type", "VENDA"),
        items=tuple(LineItem(variant_id=v, quantity=q, unit_price_cents=p) for v, q, p in items),
        discount_bps=discount_bps,
        **kwargs,
    )


@pytest.fixture
def build_request():
    return sale_request
