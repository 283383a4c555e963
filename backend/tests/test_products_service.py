# Overview: Pytest coverage for product creation, listing and deletion.

import pytest
from sqlalchemy.exc import OperationalError

from stockledger.models import Product, StockTransaction
from stockledger.services import products_service
from stockledger.services.concurrency import submission_guard
from stockledger.services.ledger_service import list_transactions, reconcile_stock
from stockledger.services.products_service import add_product, delete_product, get_product, list_products


def _payload(**overrides):
    payload = {
        "name": "Cola 33cl",
        "add_mode": "unit",
        "quantity": 24,
        "purchase_price": 80,
        "selling_price": 120,
        "unit_label": "can",
    }
    payload.update(overrides)
    return payload


class TestAddProduct:
    """Product creation plus its initial purchase entry."""

    def test_unit_mode(self, db_session, org_a, fake_sleep):
        outcome = add_product(org_id=org_a.id, payload=_payload(), user_id="user-a", sleep=fake_sleep)

        assert outcome.status == "ok"
        product = outcome.data["product"]
        assert product["stock_quantity"] == 24
        assert product["units_per_package"] is None
        assert product["purchase_price_per_unit"] == 80
        assert product["selling_price_per_unit"] == 120
        assert product["alert_threshold"] == 10
        assert product["created_by_user_id"] == "user-a"

        entry = outcome.data["transaction"]
        assert entry["transaction_type"] == "purchase"
        assert entry["product_id"] == product["id"]
        assert entry["quantity"] == 24
        assert entry["unit_price"] == 80
        assert entry["total_amount"] == 24 * 80

    def test_package_mode_converts_to_units(self, db_session, org_a, fake_sleep):
        """5 packages of 12 at 1200 per package: 60 units at 100 per unit."""
        outcome = add_product(
            org_id=org_a.id,
            payload=_payload(add_mode="package", quantity=5, package_size=12, purchase_price=1200),
            sleep=fake_sleep,
        )

        assert outcome.status == "ok"
        product = outcome.data["product"]
        assert product["stock_quantity"] == 60
        assert product["units_per_package"] == 12
        assert product["purchase_price_per_unit"] == 100
        assert outcome.data["transaction"]["total_amount"] == 6000

    def test_per_unit_cost_rounds_half_up(self, db_session, org_a, fake_sleep):
        """1000 / 8 = 125; 1004 / 8 = 125.5 rounds to 126."""
        outcome = add_product(
            org_id=org_a.id,
            payload=_payload(add_mode="package", quantity=1, package_size=8, purchase_price=1004),
            sleep=fake_sleep,
        )
        assert outcome.data["product"]["purchase_price_per_unit"] == 126

    def test_explicit_zero_threshold_is_kept(self, db_session, org_a, fake_sleep):
        outcome = add_product(org_id=org_a.id, payload=_payload(alert_threshold=0), sleep=fake_sleep)
        assert outcome.data["product"]["alert_threshold"] == 0

    def test_default_unit_label(self, db_session, org_a, fake_sleep):
        payload = _payload()
        del payload["unit_label"]
        outcome = add_product(org_id=org_a.id, payload=payload, sleep=fake_sleep)
        assert outcome.data["product"]["unit_label"] == "unit"

    @pytest.mark.parametrize("overrides", [
        {"name": "   "},
        {"quantity": 0},
        {"quantity": -3},
        {"quantity": 2.5},
        {"purchase_price": 0},
        {"selling_price": -1},
        {"selling_price": "abc"},
        {"add_mode": "crate"},
        {"add_mode": "package", "package_size": 0},
        {"alert_threshold": -1},
    ])
    def test_invalid_input_is_rejected(self, db_session, org_a, fake_sleep, overrides):
        """Rejected input writes nothing."""
        outcome = add_product(org_id=org_a.id, payload=_payload(**overrides), sleep=fake_sleep)

        assert outcome.status == "validation_error"
        assert outcome.error
        assert db_session.query(Product).count() == 0
        assert db_session.query(StockTransaction).count() == 0
        assert fake_sleep.calls == []

    def test_unknown_organization(self, db_session, fake_sleep):
        outcome = add_product(org_id=9999, payload=_payload(), sleep=fake_sleep)
        assert outcome.status == "not_found"

    def test_product_quota(self, db_session, org_a, product_a, fake_sleep):
        org_a.max_products = 1
        db_session.commit()

        outcome = add_product(org_id=org_a.id, payload=_payload(), sleep=fake_sleep)

        assert outcome.status == "validation_error"
        assert "limit" in outcome.error.lower()
        assert db_session.query(Product).count() == 1

    def test_ledger_failure_keeps_product_with_warning(self, db_session, org_a, fake_sleep, monkeypatch):
        """Companion entry failure: product stays, outcome is a warning."""
        def failing_append(**kwargs):
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(products_service, "append_ledger_entry", failing_append)

        outcome = add_product(org_id=org_a.id, payload=_payload(), sleep=fake_sleep)

        assert outcome.status == "warning"
        assert outcome.succeeded
        assert outcome.warning
        assert outcome.data["transaction"] is None
        assert db_session.query(Product).count() == 1
        assert db_session.query(StockTransaction).count() == 0

        report = reconcile_stock(org_a.id)
        assert report["inconsistent_count"] == 1
        assert report["products"][0]["drift"] == 24

    def test_committed_product_is_reported_even_if_reads_fail(self, db_session, org_a, fake_sleep,
                                                              reads_fail_after_commit):
        """Rows expired by commit are not re-read to build the outcome."""
        reads_fail_after_commit.arm(after=1)

        outcome = add_product(org_id=org_a.id, payload=_payload(), sleep=fake_sleep)

        reads_fail_after_commit.disarm()
        assert outcome.status == "ok"
        assert outcome.data["product"]["stock_quantity"] == 24
        assert outcome.data["transaction"]["quantity"] == 24
        assert db_session.query(Product).count() == 1
        assert db_session.query(StockTransaction).count() == 1

    def test_duplicate_submission_is_busy(self, db_session, org_a, fake_sleep):
        """A second submission while one is in flight is rejected."""
        with submission_guard.claim("user-a", "add_product"):
            outcome = add_product(org_id=org_a.id, payload=_payload(), user_id="user-a", sleep=fake_sleep)

        assert outcome.status == "busy"
        assert db_session.query(Product).count() == 0
        assert not submission_guard.is_in_flight("user-a", "add_product")

    def test_other_caller_is_not_blocked(self, db_session, org_a, fake_sleep):
        with submission_guard.claim("user-b", "add_product"):
            outcome = add_product(org_id=org_a.id, payload=_payload(), user_id="user-a", sleep=fake_sleep)
        assert outcome.status == "ok"

    def test_success_is_padded_to_minimum(self, app, db_session, org_a, fake_sleep, monkeypatch):
        monkeypatch.setitem(app.config, "PRODUCT_SUBMIT_MIN_SECONDS", 5.0)

        outcome = add_product(org_id=org_a.id, payload=_payload(), sleep=fake_sleep)

        assert outcome.status == "ok"
        assert len(fake_sleep.calls) == 1
        assert 0 < fake_sleep.calls[0] <= 5.0

    def test_rejection_is_not_padded(self, app, db_session, org_a, fake_sleep, monkeypatch):
        monkeypatch.setitem(app.config, "PRODUCT_SUBMIT_MIN_SECONDS", 5.0)

        outcome = add_product(org_id=org_a.id, payload=_payload(quantity=0), sleep=fake_sleep)

        assert outcome.status == "validation_error"
        assert fake_sleep.calls == []


class TestListAndDelete:
    """Tenant scoping of reads and deletes."""

    def test_list_is_tenant_scoped(self, db_session, org_a, org_b, product_a, product_b):
        items = list_products(org_a.id)
        assert [p["id"] for p in items] == [product_a.id]

    def test_list_newest_first(self, db_session, org_a, product_factory):
        first = product_factory(org_a, name="First")
        second = product_factory(org_a, name="Second")
        assert [p["id"] for p in list_products(org_a.id)][:2] == [second.id, first.id]

    def test_get_product_cross_tenant(self, db_session, org_a, product_b):
        assert get_product(org_a.id, product_b.id) is None

    def test_delete_keeps_ledger_history(self, db_session, org_a, fake_sleep):
        created = add_product(org_id=org_a.id, payload=_payload(), sleep=fake_sleep)
        product_id = created.data["product"]["id"]

        outcome = delete_product(org_id=org_a.id, product_id=product_id)

        assert outcome.status == "ok"
        assert outcome.data == {"deleted": product_id}
        assert db_session.query(Product).count() == 0
        history = list_transactions(org_a.id)
        assert len(history) == 1
        assert history[0]["product_id"] == product_id
        assert history[0]["product_name"] is None

    def test_delete_cross_tenant_is_not_found(self, db_session, org_a, product_b):
        outcome = delete_product(org_id=org_a.id, product_id=product_b.id)
        assert outcome.status == "not_found"
        assert db_session.get(Product, product_b.id) is not None

    def test_delete_duplicate_submission_is_busy(self, db_session, org_a, product_a):
        with submission_guard.claim("till-1", "delete_product"):
            outcome = delete_product(org_id=org_a.id, product_id=product_a.id, caller_key="till-1")

        assert outcome.status == "busy"
        assert db_session.get(Product, product_a.id) is not None
