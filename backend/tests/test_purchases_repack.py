"""
Warehouse documents that write the ledger online: supplier purchases (IN)
and repacks (REPACK_OUT + REPACK_IN).
"""

import uuid
from decimal import Decimal

from tokopos.models import AuditLog, PriceList, Product, ProductUom, Purchase, Repack, StockMove, Supplier
from tokopos.models.inventory import MOVE_IN, MOVE_REPACK_IN, MOVE_REPACK_OUT
from tokopos.services import stock_service


def purchase_body(catalog, **extra):
    body = {
        "locationCode": "GUDANG",
        "supplier": {"name": "CV Sumber Manis", "phone": "0811223344"},
        "lines": [{"productId": catalog.gula.id, "uom": "1kg", "qty": 10, "buyPrice": 12000}],
    }
    body.update(extra)
    return body


def repack_body(catalog, inputs=None, outputs=None, **extra):
    body = {
        "inputs": inputs or [{"productId": catalog.gula.id, "uom": "1kg", "qty": 2}],
        "outputs": outputs or [{"productId": catalog.gula.id, "uom": "250g", "qty": 8}],
    }
    body.update(extra)
    return body


# =============================================================================
# PURCHASES
# =============================================================================

class TestPurchases:

    def test_purchase_receives_stock(self, client, db_session, admin_headers, catalog):
        res = client.post("/purchases", json=purchase_body(catalog), headers=admin_headers)

        assert res.status_code == 201
        data = res.get_json()["data"]
        assert data["number"].startswith("PO-")
        assert data["number"].endswith("-0001")
        assert data["subtotal"] == 120000
        assert data["total"] == 120000
        assert data["supplier"]["name"] == "CV Sumber Manis"
        assert [(l["uom"], l["qty"], l["subtotal"]) for l in data["lines"]] == [("1kg", 10, 120000)]

        db_session.expire_all()
        moves = db_session.query(StockMove).filter_by(ref_id=data["id"]).all()
        assert [(m.type, m.uom, m.qty) for m in moves] == [(MOVE_IN, "1kg", Decimal(10))]
        assert stock_service.balance(catalog.gula.id, catalog.gudang.id) == Decimal(60000)

    def test_discount_reduces_total(self, client, admin_headers, catalog):
        res = client.post("/purchases", json=purchase_body(catalog, discount=5000), headers=admin_headers)

        data = res.get_json()["data"]
        assert data["discount"] == 5000
        assert data["total"] == 115000

    def test_sell_price_updates_active_price(self, client, db_session, admin_headers, catalog):
        body = purchase_body(catalog)
        body["lines"][0]["sellPrice"] = 16000
        body["lines"].append({"productId": catalog.gula.id, "uom": "gram", "qty": 500, "buyPrice": 12, "sellPrice": 17})

        res = client.post("/purchases", json=body, headers=admin_headers)

        assert res.status_code == 201
        db_session.expire_all()
        kg = db_session.query(PriceList).filter_by(product_id=catalog.gula.id, uom="1kg", active=True).all()
        assert [p.price for p in kg] == [Decimal(16000)]
        gram = db_session.query(PriceList).filter_by(product_id=catalog.gula.id, uom="gram", active=True).one()
        assert gram.price == Decimal(17)

    def test_unregistered_unit_rejects_whole_purchase(self, client, db_session, admin_headers, catalog):
        body = purchase_body(catalog)
        body["lines"].append({"productId": catalog.gula.id, "uom": "sak", "qty": 1, "buyPrice": 500000})

        res = client.post("/purchases", json=body, headers=admin_headers)

        assert res.status_code == 400
        error = res.get_json()["error"]
        assert error["code"] == "UOM_NOT_REGISTERED"
        assert error["details"]["missing"] == [{"productId": catalog.gula.id, "uom": "sak"}]
        db_session.expire_all()
        assert db_session.query(Purchase).count() == 0
        assert db_session.query(Supplier).count() == 0
        assert stock_service.balance(catalog.gula.id, catalog.gudang.id) == Decimal(50000)

    def test_supplier_matched_by_phone(self, client, db_session, admin_headers, catalog):
        client.post("/purchases", json=purchase_body(catalog), headers=admin_headers)
        renamed = purchase_body(catalog, supplier={"name": "CV Sumber Manis Jaya", "phone": "0811223344"})
        second = client.post("/purchases", json=renamed, headers=admin_headers).get_json()["data"]

        db_session.expire_all()
        assert db_session.query(Supplier).count() == 1
        assert db_session.query(Supplier).one().name == "CV Sumber Manis Jaya"
        assert second["number"].endswith("-0002")

    def test_unknown_supplier_id(self, client, db_session, admin_headers, catalog):
        body = purchase_body(catalog, supplierId=str(uuid.uuid4()))
        del body["supplier"]

        res = client.post("/purchases", json=body, headers=admin_headers)

        assert res.status_code == 400
        assert res.get_json()["error"]["code"] == "VALIDATION_ERROR"

    def test_unknown_location(self, client, admin_headers, catalog):
        res = client.post("/purchases", json=purchase_body(catalog, locationCode="GUDANG-2"), headers=admin_headers)

        assert res.status_code == 400
        assert res.get_json()["error"]["code"] == "LOCATION_NOT_FOUND"

    def test_bad_lines_are_reported_together(self, client, admin_headers, catalog):
        body = purchase_body(catalog, lines=[{"productId": catalog.gula.id, "uom": "1kg", "qty": 0, "buyPrice": -1}])

        res = client.post("/purchases", json=body, headers=admin_headers)

        assert res.status_code == 400
        paths = {f["path"] for f in res.get_json()["error"]["details"]["fields"]}
        assert paths == {"lines[0].qty", "lines[0].buyPrice"}

    def test_purchase_is_audited_with_redacted_phone(self, client, db_session, admin_headers, catalog):
        data = client.post("/purchases", json=purchase_body(catalog), headers=admin_headers).get_json()["data"]

        db_session.expire_all()
        row = db_session.query(AuditLog).filter_by(action="PURCHASE").one()
        assert row.entity_id == data["id"]
        assert row.ref_number == data["number"]
        assert row.actor_username == "admin"
        assert row.payload["supplier"]["phone"] == "********44"

    def test_get_purchase(self, client, admin_headers, catalog):
        created = client.post("/purchases", json=purchase_body(catalog), headers=admin_headers).get_json()["data"]

        res = client.get(f"/purchases/{created['id']}", headers=admin_headers)

        assert res.status_code == 200
        assert res.get_json()["data"]["number"] == created["number"]
        assert client.get("/purchases/nope", headers=admin_headers).status_code == 404

    def test_only_admin_may_purchase(self, client, gudang_headers, catalog):
        res = client.post("/purchases", json=purchase_body(catalog), headers=gudang_headers)

        assert res.status_code == 403


# =============================================================================
# REPACK
# =============================================================================

class TestRepack:

    def test_repack_converts_between_units(self, client, db_session, gudang_headers, catalog):
        res = client.post("/repack", json=repack_body(catalog, notes="pecah karung"), headers=gudang_headers)

        assert res.status_code == 201
        data = res.get_json()["data"]
        assert data["number"].startswith("RPK-")
        assert data["inputs"] == [{"productId": catalog.gula.id, "uom": "1kg", "qty": 2}]
        assert data["outputs"] == [{"productId": catalog.gula.id, "uom": "250g", "qty": 8}]

        db_session.expire_all()
        moves = db_session.query(StockMove).filter_by(ref_id=data["id"]).order_by(StockMove.type).all()
        assert [(m.type, m.uom, m.qty) for m in moves] == [
            (MOVE_REPACK_IN, "250g", Decimal(8)),
            (MOVE_REPACK_OUT, "1kg", Decimal(-2)),
        ]
        assert stock_service.balance(catalog.gula.id, catalog.gudang.id) == Decimal(50000)

    def test_repack_between_products(self, client, db_session, admin_headers, catalog):
        pack = Product(id=str(uuid.uuid4()), sku="GULA-PACK", name="Gula 1kg Pack", base_uom="pack")
        db_session.add(pack)
        db_session.flush()
        db_session.add(ProductUom(product_id=pack.id, uom="pack", to_base=1))
        db_session.commit()

        body = repack_body(
            catalog,
            inputs=[{"productId": catalog.gula.id, "uom": "1kg", "qty": 5}],
            outputs=[{"productId": pack.id, "uom": "pack", "qty": 5}],
            extraCost=2500,
        )
        res = client.post("/repack", json=body, headers=admin_headers)

        assert res.status_code == 201
        assert res.get_json()["data"]["extraCost"] == 2500
        assert stock_service.balance(catalog.gula.id, catalog.gudang.id) == Decimal(45000)
        assert stock_service.balance(pack.id, catalog.gudang.id) == Decimal(5)

    def test_insufficient_input_writes_nothing(self, client, db_session, gudang_headers, catalog):
        body = repack_body(catalog, inputs=[{"productId": catalog.gula.id, "uom": "1kg", "qty": 51}])

        res = client.post("/repack", json=body, headers=gudang_headers)

        assert res.status_code == 400
        error = res.get_json()["error"]
        assert error["code"] == "STOCK_INSUFFICIENT"
        assert error["details"]["shortages"][0]["need"] == 51000
        db_session.expire_all()
        assert db_session.query(Repack).count() == 0
        assert db_session.query(StockMove).filter(StockMove.type.in_([MOVE_REPACK_IN, MOVE_REPACK_OUT])).count() == 0

    def test_unregistered_output_unit(self, client, db_session, gudang_headers, catalog):
        body = repack_body(catalog, outputs=[{"productId": catalog.gula.id, "uom": "sachet", "qty": 100}])

        res = client.post("/repack", json=body, headers=gudang_headers)

        assert res.status_code == 400
        assert res.get_json()["error"]["code"] == "UOM_NOT_REGISTERED"
        db_session.expire_all()
        assert db_session.query(Repack).count() == 0

    def test_location_can_be_chosen(self, client, gudang_headers, catalog):
        res = client.post("/repack", json=repack_body(catalog, locationCode="ETALASE"), headers=gudang_headers)

        assert res.status_code == 400
        assert res.get_json()["error"]["code"] == "STOCK_INSUFFICIENT"

    def test_inputs_and_outputs_are_required(self, client, gudang_headers, catalog):
        res = client.post("/repack", json={"inputs": [], "outputs": []}, headers=gudang_headers)

        assert res.status_code == 400
        paths = {f["path"] for f in res.get_json()["error"]["details"]["fields"]}
        assert paths == {"inputs", "outputs"}

    def test_repack_is_audited(self, client, db_session, gudang_headers, catalog):
        data = client.post("/repack", json=repack_body(catalog), headers=gudang_headers).get_json()["data"]

        db_session.expire_all()
        row = db_session.query(AuditLog).filter_by(action="REPACK").one()
        assert row.entity_id == data["id"]
        assert row.actor_username == "gudang"
        assert row.payload["inputs"] == data["inputs"]

    def test_get_repack(self, client, gudang_headers, catalog):
        created = client.post("/repack", json=repack_body(catalog), headers=gudang_headers).get_json()["data"]

        res = client.get(f"/repack/{created['id']}", headers=gudang_headers)

        assert res.get_json()["data"]["outputs"] == created["outputs"]

    def test_cashier_may_not_repack(self, client, kasir_headers, catalog):
        res = client.post("/repack", json=repack_body(catalog), headers=kasir_headers)

        assert res.status_code == 403
