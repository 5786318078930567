"""
Flask CLI commands (system / users / maintenance groups).
"""

from datetime import timedelta
from decimal import Decimal

from tokopos.models import Location, Product, Tombstone, User
from tokopos.services import session_service, stock_service
from tokopos.time_utils import utcnow


class TestSeed:

    def test_seed_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["system", "seed"])
        second = runner.invoke(args=["system", "seed"])

        assert first.exit_code == 0, first.output
        assert second.exit_code == 0, second.output
        assert "Seed completed." in second.output

        db_session.expire_all()
        assert db_session.query(User).count() == 3
        assert db_session.query(Location).count() == 2
        assert db_session.query(Product).count() == 2

    def test_seed_opening_stock(self, app, db_session):
        app.test_cli_runner().invoke(args=["system", "seed"])

        db_session.expire_all()
        gudang = db_session.query(Location).filter_by(code="GUDANG").one()
        etalase = db_session.query(Location).filter_by(code="ETALASE").one()
        gula = db_session.query(Product).filter_by(sku="GULA-1").one()
        kopi = db_session.query(Product).filter_by(sku="KOPI-1").one()

        assert stock_service.balance(gula.id, gudang.id) == Decimal(40000)
        assert stock_service.balance(gula.id, etalase.id) == Decimal(10000)
        assert stock_service.balance(kopi.id, gudang.id) == Decimal(25000)
        assert stock_service.balance(kopi.id, etalase.id) == Decimal(5000)


class TestUsers:

    def test_create_and_issue_token(self, app, db_session):
        runner = app.test_cli_runner()

        created = runner.invoke(args=["users", "create", "--username", "kasir2", "--role", "kasir"])
        issued = runner.invoke(args=["users", "issue-token", "--username", "kasir2"])

        assert "PASS Created user kasir2" in created.output
        assert issued.exit_code == 0
        token = issued.stdout.strip().splitlines()[0]
        assert session_service.validate_session(token).username == "kasir2"

    def test_revoke_token(self, app, db_session):
        runner = app.test_cli_runner()
        runner.invoke(args=["users", "create", "--username", "kasir3", "--role", "kasir"])
        token = runner.invoke(args=["users", "issue-token", "--username", "kasir3"]).stdout.strip().splitlines()[0]

        first = runner.invoke(args=["users", "revoke-token", "--token", token])
        second = runner.invoke(args=["users", "revoke-token", "--token", token])

        assert "PASS Token revoked" in first.output
        assert "FAIL Token unknown or already revoked" in second.output
        assert session_service.validate_session(token) is None

    def test_unknown_role_is_rejected(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["users", "create", "--username", "x", "--role", "owner"])

        assert result.exit_code != 0

    def test_issue_token_for_unknown_user(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["users", "issue-token", "--username", "ghost"])

        assert "FAIL User 'ghost' not found" in result.output


class TestMaintenance:

    def test_run_tombstone_retention(self, app, db_session):
        db_session.add(Tombstone(resource="products", entity_id="old", deleted_at=utcnow() - timedelta(days=200)))
        db_session.commit()

        result = app.test_cli_runner().invoke(args=["maintenance", "run-tombstone-retention", "--ttl-days", "90"])

        assert result.exit_code == 0, result.output
        assert "Deleted 1 tombstone(s)" in result.output
