# Overview: Pytest coverage for the orgs and ledger CLI groups.

from stockledger.models import Organization, OrganizationMember


class TestOrgCommands:

    def test_create_uses_plan_limits(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["orgs", "create", "--name", "Corner Shop", "--slug", "corner", "--plan", "premium"])

        assert "PASS Created organization" in result.output
        org = db_session.query(Organization).filter_by(slug="corner").one()
        assert org.max_products == 1000
        assert org.max_transactions_per_month == 10000

    def test_create_duplicate_slug(self, app, db_session, org_a):
        result = app.test_cli_runner().invoke(args=["orgs", "create", "--name", "Again", "--slug", "acme"])
        assert "FAIL" in result.output
        assert db_session.query(Organization).count() == 1

    def test_add_member_once(self, app, db_session, org_a, org_b):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["orgs", "add-member", "--org-id", str(org_a.id), "--user-id", "u-1", "--role", "owner"])
        second = runner.invoke(args=["orgs", "add-member", "--org-id", str(org_b.id), "--user-id", "u-1"])

        assert "PASS" in first.output
        assert "FAIL" in second.output
        assert db_session.query(OrganizationMember).filter_by(user_id="u-1").count() == 1

    def test_list(self, app, db_session, org_a):
        result = app.test_cli_runner().invoke(args=["orgs", "list"])
        assert "Org A - Acme Corp" in result.output


class TestLedgerCommands:

    def test_reconcile_reports_drift(self, app, db_session, org_a, product_a):
        result = app.test_cli_runner().invoke(args=["ledger", "reconcile", "--org-id", str(org_a.id)])

        assert "Rice 1kg" in result.output
        assert "FAIL 1 product(s)" in result.output

    def test_reconcile_clean(self, app, db_session, org_a):
        result = app.test_cli_runner().invoke(args=["ledger", "reconcile", "--org-id", str(org_a.id)])
        assert "PASS" in result.output
