"""
Pytest fixtures for stockledger backend tests.

Provides test database setup, tenant fixtures, and test client.
"""

import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError

from stockledger import create_app
from stockledger.config import TestConfig
from stockledger.extensions import db
from stockledger.models import Organization, OrganizationMember, Product


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

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
def org_a(db_session):
    """Create Organization A (first tenant)."""
    org = Organization(name="Org A - Acme Corp", slug="acme", plan="free",
                       max_products=50, max_transactions_per_month=500)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant)."""
    org = Organization(name="Org B - Beta Inc", slug="beta", plan="free",
                       max_products=50, max_transactions_per_month=500)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def owner_a(db_session, org_a):
    """Owner membership in Organization A."""
    member = OrganizationMember(organization_id=org_a.id, user_id="user-a", role="owner")
    db_session.add(member)
    db_session.commit()
    return member


@pytest.fixture(scope='function')
def member_b(db_session, org_b):
    """Plain membership in Organization B."""
    member = OrganizationMember(organization_id=org_b.id, user_id="user-b", role="member")
    db_session.add(member)
    db_session.commit()
    return member


def make_product(session, org, **overrides):
    """Insert a product row directly, bypassing the ledger."""
    values = {
        "organization_id": org.id,
        "name": "Rice 1kg",
        "unit_label": "bag",
        "units_per_package": None,
        "purchase_price_per_unit": 100,
        "selling_price_per_unit": 150,
        "alert_threshold": 10,
        "stock_quantity": 20,
    }
    values.update(overrides)
    product = Product(**values)
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def product_factory(db_session):
    """Build extra products: product_factory(org, name=..., stock_quantity=...)."""
    def _make(org, **overrides):
        return make_product(db_session, org, **overrides)
    return _make


@pytest.fixture(scope='function')
def product_a(db_session, org_a):
    """Product in Organization A with 20 bags on hand."""
    return make_product(db_session, org_a)


@pytest.fixture(scope='function')
def product_b(db_session, org_b):
    """Product in Organization B."""
    return make_product(db_session, org_b, name="Beans 500g")


class FakeSleep:
    """Records requested sleeps instead of sleeping."""

    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def fake_sleep():
    return FakeSleep()


class ReadsFailAfterCommit:
    """
    Makes ORM SELECTs on the current session raise once `after` commits
    have gone through, e.g. refreshing rows that commit expired.
    """

    def __init__(self, session):
        self.session = session
        self.commits = 0
        self.after = None

    def arm(self, after=1):
        self.commits = 0
        self.after = after

    def disarm(self):
        self.after = None

    def on_commit(self, session):
        self.commits += 1

    def on_execute(self, orm_execute_state):
        if self.after is not None and self.commits >= self.after and orm_execute_state.is_select:
            raise OperationalError("SELECT", {}, Exception("server closed the connection"))


@pytest.fixture
def reads_fail_after_commit(db_session):
    session = db_session()
    failer = ReadsFailAfterCommit(session)
    event.listen(session, "after_commit", failer.on_commit)
    event.listen(session, "do_orm_execute", failer.on_execute)

    yield failer

    failer.disarm()
    event.remove(session, "do_orm_execute", failer.on_execute)
    event.remove(session, "after_commit", failer.on_commit)
