"""
Pytest fixtures for branchstock backend tests.

Provides a temporary SQLite database, branch/user/product fixtures, and a test client.
"""

import itertools

import pytest
from branchstock import create_app
from branchstock.extensions import db
from branchstock.models import Branch, User, Product, Invoice, Payment
from branchstock.services.user_service import hash_password


_invoice_seq = itertools.count(1)


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    # File-backed so test-client requests and fixtures use separate connections
    db_path = tmp_path_factory.mktemp('data') / 'branchstock-test.sqlite3'
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}',
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
    with app.app_context():
        # Core deletes bypass the ledger's append-only ORM listeners
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def branch_a(db_session):
    branch = Branch(name="Main Branch", address="12 Market Road", manager="Asha Rao")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def branch_b(db_session):
    branch = Branch(name="Riverside Branch", address="4 Quay Street")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def user(db_session, branch_a):
    """Active admin user at branch A."""
    user = User(
        name="Admin User",
        email="admin@branchstock.test",
        password_hash=hash_password("Password123!"),
        role="admin",
        branch_id=branch_a.id,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def headers(user):
    return {'X-User-Id': str(user.id)}


@pytest.fixture(scope='function')
def product(db_session, branch_a):
    """Product with 50 units in branch A."""
    product = Product(
        name="USB-C Cable",
        sku="SKU-2001",
        category="Electronics",
        price_cents=1000,
        cost_price_cents=400,
        stock=50,
        min_stock=5,
        branch_id=branch_a.id,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def make_product(db_session, branch_a):
    """Factory for extra products; defaults to branch A."""
    counter = itertools.count(1)

    def _make(**overrides):
        n = next(counter)
        fields = {
            "name": f"Product {n}",
            "sku": f"SKU-T{n:04d}",
            "category": "General",
            "price_cents": 500,
            "cost_price_cents": 200,
            "stock": 10,
            "min_stock": 2,
            "branch_id": branch_a.id,
        }
        fields.update(overrides)
        product = Product(**fields)
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def make_invoice(db_session, branch_a, user):
    """
    Factory for invoices with a fixed total and timestamp.

    Bypasses billing so reports can be fed exact amounts and dates.
    """
    def _make(total_cents, created_at, *, branch=None, payment_method="cash", customer="Walk-in"):
        invoice = Invoice(
            invoice_number=f"INV-TEST-{next(_invoice_seq):06d}",
            customer_name=customer,
            subtotal_cents=total_cents,
            total_cents=total_cents,
            payment_method=payment_method,
            payment_status="paid",
            branch_id=(branch or branch_a).id,
            created_by_user_id=user.id,
            created_at=created_at,
        )
        db_session.add(invoice)
        db_session.commit()
        return invoice

    return _make


@pytest.fixture(scope='function')
def make_payment(db_session, branch_a, user):
    def _make(amount_cents, payment_type, created_at, *, branch=None, payment_method="cash"):
        payment = Payment(
            amount_cents=amount_cents,
            payment_type=payment_type,
            payment_method=payment_method,
            description="Test payment",
            branch_id=(branch or branch_a).id,
            created_by_user_id=user.id,
            created_at=created_at,
        )
        db_session.add(payment)
        db_session.commit()
        return payment

    return _make
