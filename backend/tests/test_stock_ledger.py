"""
Stock ledger and unit conversion.

Balances are derived from StockMove rows on every read; these tests drive
the service layer directly inside the fixture's app context.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from tokopos.errors import UnknownUomError, UomNotRegisteredError, ValidationError
from tokopos.models import StockMove
from tokopos.models.inventory import MOVE_ADJUSTMENT, MOVE_IN, MOVE_SALE
from tokopos.services import stock_service
from tokopos.services.concurrency import run_with_retry
from tokopos.services.stock_service import Demand
from tokopos.services.uom_service import UomResolver, require_registered


# =============================================================================
# UOM RESOLVER (no database)
# =============================================================================

class TestUomResolver:

    def setup_method(self):
        self.resolver = UomResolver({("p1", "gram"): 1, ("p1", "1kg"): 1000})

    def test_to_base_multiplies_by_factor(self):
        assert self.resolver.to_base("p1", "1kg", 2) == Decimal("2000")
        assert self.resolver.to_base("p1", "gram", Decimal("0.5")) == Decimal("0.5")

    def test_unregistered_uom_fails_closed(self):
        with pytest.raises(UomNotRegisteredError) as exc:
            self.resolver.require("p1", "5kg")
        assert exc.value.details == {"productId": "p1", "uom": "5kg"}

    def test_factor_is_per_product(self):
        assert self.resolver.factor("p2", "1kg") is None

    def test_missing_is_deduplicated(self):
        missing = self.resolver.missing([("p1", "5kg"), ("p1", "5kg"), ("p1", "1kg"), ("p2", "gram")])
        assert missing == [{"productId": "p1", "uom": "5kg"}, {"productId": "p2", "uom": "gram"}]

    def test_require_registered_lists_every_missing_pair(self):
        with pytest.raises(UomNotRegisteredError) as exc:
            require_registered(self.resolver, [("p1", "5kg"), ("p2", "gram")])
        assert len(exc.value.details["missing"]) == 2


# =============================================================================
# BALANCES
# =============================================================================

class TestBalance:

    def test_opening_balance_in_base_units(self, catalog):
        assert stock_service.balance(catalog.gula.id, catalog.gudang.id) == Decimal(50000)

    def test_empty_location_is_zero(self, catalog):
        assert stock_service.balance(catalog.gula.id, catalog.etalase.id) == 0

    def test_balance_in_display_unit(self, catalog):
        assert stock_service.balance_in_unit(catalog.gula.id, catalog.gudang.id, "1kg") == Decimal(50)
        assert stock_service.balance_in_unit(catalog.gula.id, catalog.gudang.id, "250g") == Decimal(200)

    def test_unknown_display_unit(self, catalog):
        with pytest.raises(UnknownUomError):
            stock_service.balance_in_unit(catalog.gula.id, catalog.gudang.id, "karung")

    def test_mixed_units_sum_in_base(self, db_session, catalog):
        stock_service.record_move(
            product_id=catalog.gula.id, location_id=catalog.gudang.id,
            uom="1kg", qty=-3, move_type=MOVE_SALE, ref_id="S-1",
        )
        stock_service.record_move(
            product_id=catalog.gula.id, location_id=catalog.gudang.id,
            uom="250g", qty=2, move_type=MOVE_ADJUSTMENT,
        )
        db_session.commit()

        # 50000 - 3000 + 500
        assert stock_service.balance(catalog.gula.id, catalog.gudang.id) == Decimal(47500)

    def test_unregistered_move_contributes_zero(self, db_session, catalog):
        db_session.add(StockMove(
            product_id=catalog.gula.id, location_id=catalog.gudang.id,
            uom="karung", qty=7, type=MOVE_IN,
        ))
        db_session.commit()

        assert stock_service.balance(catalog.gula.id, catalog.gudang.id) == Decimal(50000)

    def test_per_uom_breakdown_is_raw(self, db_session, catalog):
        stock_service.record_move(
            product_id=catalog.gula.id, location_id=catalog.gudang.id,
            uom="1kg", qty=4, move_type=MOVE_IN,
        )
        db_session.commit()

        breakdown = {r["uom"]: r["rawQty"] for r in stock_service.per_uom_breakdown(catalog.gula.id, catalog.gudang.id)}
        assert breakdown == {"1kg": Decimal(4), "gram": Decimal(50000)}

    def test_unknown_move_type_rejected(self, catalog):
        with pytest.raises(ValidationError):
            stock_service.record_move(
                product_id=catalog.gula.id, location_id=catalog.gudang.id,
                uom="gram", qty=1, move_type="THEFT",
            )


# =============================================================================
# SUFFICIENCY
# =============================================================================

class TestSufficiency:

    def _demand(self, catalog, qty, uom="1kg"):
        return Demand(catalog.gula.id, catalog.gudang.id, "GUDANG", uom, Decimal(qty))

    def test_covered_demand_has_no_shortage(self, catalog):
        resolver = UomResolver.for_products([catalog.gula.id])
        assert stock_service.find_shortages([self._demand(catalog, 50)], resolver) == []

    def test_shortage_reports_need_and_have(self, catalog):
        resolver = UomResolver.for_products([catalog.gula.id])
        shortages = stock_service.find_shortages([self._demand(catalog, 60)], resolver)
        assert shortages == [{
            "productId": catalog.gula.id,
            "locationCode": "GUDANG",
            "uom": "1kg",
            "need": 60000,
            "have": 50000,
        }]

    def test_lines_on_same_stock_draw_down_together(self, catalog):
        resolver = UomResolver.for_products([catalog.gula.id])
        shortages = stock_service.find_shortages(
            [self._demand(catalog, 30), self._demand(catalog, 30)], resolver,
        )
        assert len(shortages) == 1
        assert shortages[0]["need"] == 30000
        assert shortages[0]["have"] == 20000


# =============================================================================
# LOCATIONS / STOCK-IN / SNAPSHOT
# =============================================================================

class TestLocationsAndReceipts:

    def test_unknown_codes_are_all_reported(self, catalog):
        from tokopos.errors import LocationNotFoundError

        with pytest.raises(LocationNotFoundError) as exc:
            stock_service.resolve_locations(["GUDANG", "TOKO-2", "TOKO-1"])
        assert exc.value.details == {"codes": ["TOKO-1", "TOKO-2"]}

    def test_stock_in_appends_in_move(self, catalog):
        move = stock_service.stock_in(
            product_id=catalog.gula.id, location_code="ETALASE", qty=2, uom="1kg", ref_id="PO-1",
        )
        assert move.type == MOVE_IN
        assert stock_service.balance(catalog.gula.id, catalog.etalase.id) == Decimal(2000)

    def test_stock_in_unknown_product(self, catalog):
        with pytest.raises(ValidationError):
            stock_service.stock_in(
                product_id="00000000-0000-0000-0000-000000000000",
                location_code="GUDANG", qty=1, uom="gram",
            )

    def test_snapshot_groups_by_product_and_location(self, db_session, catalog):
        stock_service.record_move(
            product_id=catalog.gula.id, location_id=catalog.etalase.id,
            uom="1kg", qty=3, move_type=MOVE_IN,
        )
        db_session.commit()

        data = stock_service.stock_snapshot(per_uom=True)
        assert [(d["location"]["code"], d["balanceBase"]) for d in data] == [("ETALASE", 3000), ("GUDANG", 50000)]
        assert data[0]["perUom"] == [{"uom": "1kg", "qty": 3}]
        assert data[1]["lastMoveAt"].endswith("Z")

    def test_snapshot_limit_and_filters(self, catalog):
        assert stock_service.stock_snapshot(location_codes=["ETALASE"]) == []
        assert len(stock_service.stock_snapshot(product_ids=[catalog.gula.id], limit=1)) == 1


# =============================================================================
# WRITE RETRIES
# =============================================================================

class TestRunWithRetry:

    @pytest.fixture(autouse=True)
    def _no_backoff(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "DB_RETRY_BACKOFF_SEC", 0)

    def test_transient_failure_is_replayed(self, db_session):
        calls = []

        def op():
            calls.append(1)
            if len(calls) < 3:
                raise OperationalError("INSERT", {}, Exception("database is locked"))
            return "done"

        assert run_with_retry(op, label="test-write") == "done"
        assert len(calls) == 3

    def test_gives_up_after_configured_attempts(self, app, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "DB_RETRY_ATTEMPTS", 2)
        calls = []

        def op():
            calls.append(1)
            raise OperationalError("INSERT", {}, Exception("deadlock detected"))

        with pytest.raises(OperationalError):
            run_with_retry(op)
        assert len(calls) == 2

    def test_other_errors_are_not_retried(self, db_session):
        calls = []

        def op():
            calls.append(1)
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

        with pytest.raises(IntegrityError):
            run_with_retry(op)
        assert len(calls) == 1
