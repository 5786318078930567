"""
Inventory intents from devices (/sync/pushTransfers, /sync/pushAdjustments),
bulk snapshots (/sync/pullStock) and the online /stock endpoints.
"""

from decimal import Decimal

from tokopos.models import AuditLog, StockMove
from tokopos.models.inventory import MOVE_ADJUSTMENT, MOVE_TRANSFER
from tokopos.services import stock_service


def transfer_doc(catalog, qty=10, uom="1kg", client_doc_id="tf-1", **extra):
    doc = {
        "clientDocId": client_doc_id,
        "productId": catalog.gula.id,
        "fromLocationCode": "GUDANG",
        "toLocationCode": "ETALASE",
        "uom": uom,
        "qty": qty,
    }
    doc.update(extra)
    return doc


def adjustment_doc(catalog, qty, client_doc_id="adj-1", **extra):
    doc = {
        "clientDocId": client_doc_id,
        "productId": catalog.gula.id,
        "locationCode": "GUDANG",
        "uom": "gram",
        "qty": qty,
    }
    doc.update(extra)
    return doc


# =============================================================================
# TRANSFERS
# =============================================================================

class TestPushTransfers:

    def test_transfer_moves_stock_between_locations(self, client, db_session, gudang_headers, catalog):
        res = client.post("/sync/pushTransfers", json={"transfers": [transfer_doc(catalog)]}, headers=gudang_headers)

        assert res.status_code == 200
        body = res.get_json()
        assert body["summary"] == {"created": 1, "duplicate": 0, "errors": 0}
        ref_id = body["results"][0]["serverDocId"]
        assert ref_id.startswith("TRF-")

        db_session.expire_all()
        legs = db_session.query(StockMove).filter_by(ref_id=ref_id).all()
        assert sorted(m.qty for m in legs) == [Decimal(-10), Decimal(10)]
        assert {m.type for m in legs} == {MOVE_TRANSFER}
        assert stock_service.balance(catalog.gula.id, catalog.gudang.id) == Decimal(40000)
        assert stock_service.balance(catalog.gula.id, catalog.etalase.id) == Decimal(10000)

    def test_client_ref_id_is_kept(self, client, gudang_headers, catalog):
        res = client.post(
            "/sync/pushTransfers",
            json={"transfers": [transfer_doc(catalog, refId="TF-DEVICE-7")]},
            headers=gudang_headers,
        )

        assert res.get_json()["results"][0]["serverDocId"] == "TF-DEVICE-7"

    def test_transfer_cannot_exceed_source_stock(self, client, db_session, gudang_headers, catalog):
        res = client.post("/sync/pushTransfers", json={"transfers": [transfer_doc(catalog, qty=51)]}, headers=gudang_headers)

        result = res.get_json()["results"][0]
        assert result["status"] == "REJECTED"
        assert result["error"]["code"] == "STOCK_INSUFFICIENT"
        db_session.expire_all()
        assert db_session.query(StockMove).count() == 1

    def test_replayed_transfer_is_duplicate(self, client, db_session, gudang_headers, catalog):
        payload = {"transfers": [transfer_doc(catalog, qty=5)]}
        client.post("/sync/pushTransfers", json=payload, headers=gudang_headers)
        res = client.post("/sync/pushTransfers", json=payload, headers=gudang_headers)

        assert res.get_json()["results"][0]["status"] == "DUPLICATE"
        assert stock_service.balance(catalog.gula.id, catalog.etalase.id) == Decimal(5000)

    def test_same_location_is_400(self, client, gudang_headers, catalog):
        res = client.post(
            "/sync/pushTransfers",
            json={"transfers": [transfer_doc(catalog, toLocationCode="GUDANG")]},
            headers=gudang_headers,
        )

        assert res.status_code == 400

    def test_transfer_is_audited(self, client, db_session, gudang_headers, catalog):
        res = client.post("/sync/pushTransfers", json={"transfers": [transfer_doc(catalog)]}, headers=gudang_headers)
        ref_id = res.get_json()["results"][0]["serverDocId"]

        db_session.expire_all()
        audit = db_session.query(AuditLog).filter_by(action="TRANSFER").one()
        assert audit.entity_id == ref_id
        assert audit.actor_username == "gudang"
        assert audit.payload["qty"] == 10


# =============================================================================
# ADJUSTMENTS
# =============================================================================

class TestPushAdjustments:

    def test_negative_adjustment(self, client, db_session, gudang_headers, catalog):
        res = client.post(
            "/sync/pushAdjustments",
            json={"adjustments": [adjustment_doc(catalog, -250, refId="OPNAME-1")]},
            headers=gudang_headers,
        )

        assert res.get_json()["results"][0]["status"] == "CREATED"
        db_session.expire_all()
        move = db_session.query(StockMove).filter_by(type=MOVE_ADJUSTMENT).one()
        assert move.ref_id == "OPNAME-1"
        assert stock_service.balance(catalog.gula.id, catalog.gudang.id) == Decimal(49750)

    def test_adjustment_may_go_below_zero(self, client, gudang_headers, catalog):
        client.post(
            "/sync/pushAdjustments",
            json={"adjustments": [adjustment_doc(catalog, -60000)]},
            headers=gudang_headers,
        )

        assert stock_service.balance(catalog.gula.id, catalog.gudang.id) == Decimal(-10000)

    def test_zero_adjustment_is_400(self, client, gudang_headers, catalog):
        res = client.post(
            "/sync/pushAdjustments",
            json={"adjustments": [adjustment_doc(catalog, 0)]},
            headers=gudang_headers,
        )

        assert res.status_code == 400

    def test_unregistered_unit_is_rejected(self, client, gudang_headers, catalog):
        res = client.post(
            "/sync/pushAdjustments",
            json={"adjustments": [adjustment_doc(catalog, 1, uom="karung")]},
            headers=gudang_headers,
        )

        assert res.get_json()["results"][0]["error"]["code"] == "UOM_NOT_REGISTERED"


# =============================================================================
# PULL STOCK
# =============================================================================

class TestPullStock:

    def test_empty_body_returns_all_balances(self, client, kasir_headers, catalog):
        res = client.post("/sync/pullStock", headers=kasir_headers)

        assert res.status_code == 200
        data = res.get_json()["data"]
        assert len(data) == 1
        assert data[0]["productId"] == catalog.gula.id
        assert data[0]["location"]["code"] == "GUDANG"
        assert data[0]["balanceBase"] == 50000
        assert "perUom" not in data[0]

    def test_per_uom_breakdown(self, client, kasir_headers, catalog):
        res = client.post("/sync/pullStock", json={"perUom": True}, headers=kasir_headers)

        assert res.get_json()["data"][0]["perUom"] == [{"uom": "gram", "qty": 50000}]

    def test_unknown_location_filter(self, client, kasir_headers, catalog):
        res = client.post("/sync/pullStock", json={"locationCodes": ["TOKO-9"]}, headers=kasir_headers)

        assert res.status_code == 400
        assert res.get_json()["error"]["code"] == "LOCATION_NOT_FOUND"


# =============================================================================
# ONLINE STOCK ENDPOINTS
# =============================================================================

class TestStockRoutes:

    def test_stock_in_then_balance(self, client, gudang_headers, catalog):
        res = client.post("/stock/in", json={
            "productId": catalog.gula.id, "locationCode": "GUDANG", "qty": 5, "uom": "1kg", "refId": "PO-9",
        }, headers=gudang_headers)

        assert res.status_code == 201
        assert res.get_json()["data"]["type"] == "IN"

        res = client.get("/stock/balance", query_string={
            "productId": catalog.gula.id, "locationCode": "GUDANG", "uom": "1kg",
        }, headers=gudang_headers)

        assert res.status_code == 200
        data = res.get_json()["data"]
        assert data["balanceBase"] == 55000
        assert data["balanceInUom"] == 55

    def test_balance_in_unknown_unit(self, client, gudang_headers, catalog):
        res = client.get("/stock/balance", query_string={
            "productId": catalog.gula.id, "locationCode": "GUDANG", "uom": "karung",
        }, headers=gudang_headers)

        assert res.status_code == 400
        assert res.get_json()["error"]["code"] == "UNKNOWN_UOM"

    def test_stock_in_unknown_location(self, client, gudang_headers, catalog):
        res = client.post("/stock/in", json={
            "productId": catalog.gula.id, "locationCode": "TOKO-9", "qty": 1, "uom": "gram",
        }, headers=gudang_headers)

        assert res.status_code == 400
        assert res.get_json()["error"]["code"] == "LOCATION_NOT_FOUND"

    def test_balance_requires_params(self, client, gudang_headers, catalog):
        res = client.get("/stock/balance", headers=gudang_headers)

        assert res.status_code == 400
