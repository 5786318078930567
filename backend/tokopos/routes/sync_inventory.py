# Overview: Flask API routes for device inventory intents and bulk stock snapshots.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import current_actor, require_auth, require_device, require_roles
from ..errors import PosError, error_response, internal_error_response
from ..models.auth import ROLE_ADMIN, ROLE_GUDANG, ROLE_KASIR
from ..schemas import PullStockRequest, PushAdjustmentsRequest, PushTransfersRequest, parse_body
from ..services import inventory_sync_service, stock_service
from ..services.batch_service import ingest_batch


sync_inventory_bp = Blueprint("sync_inventory", __name__, url_prefix="/sync")

PULL_STOCK_MAX_LIMIT = 5000


@sync_inventory_bp.post("/pushTransfers")
@require_auth
@require_roles(ROLE_ADMIN, ROLE_GUDANG)
@require_device
def push_transfers_route():
    try:
        req = parse_body(PushTransfersRequest, request.get_json(silent=True))
    except PosError as e:
        return error_response(e)

    try:
        client_id = g.sync_client.id
        actor = current_actor()
        summary, results = ingest_batch(
            req.transfers,
            lambda doc: inventory_sync_service.ingest_transfer(client_id, doc, actor),
            event="sync-pushTransfers",
        )
        return jsonify({"ok": True, "clientId": client_id, "summary": summary, "results": results}), 200
    except Exception:
        current_app.logger.exception("sync-pushTransfers-error")
        return internal_error_response()


@sync_inventory_bp.post("/pushAdjustments")
@require_auth
@require_roles(ROLE_ADMIN, ROLE_GUDANG)
@require_device
def push_adjustments_route():
    try:
        req = parse_body(PushAdjustmentsRequest, request.get_json(silent=True))
    except PosError as e:
        return error_response(e)

    try:
        client_id = g.sync_client.id
        actor = current_actor()
        summary, results = ingest_batch(
            req.adjustments,
            lambda doc: inventory_sync_service.ingest_adjustment(client_id, doc, actor),
            event="sync-pushAdjustments",
        )
        return jsonify({"ok": True, "clientId": client_id, "summary": summary, "results": results}), 200
    except Exception:
        current_app.logger.exception("sync-pushAdjustments-error")
        return internal_error_response()


@sync_inventory_bp.post("/pullStock")
@require_auth
@require_roles(ROLE_ADMIN, ROLE_KASIR, ROLE_GUDANG)
@require_device
def pull_stock_route():
    """
    Body (all optional): {productIds: [...], locationCodes: [...], perUom: bool, limit: int}

    Returns: {ok, data: [{productId, location: {id, code, name}, balanceBase, lastMoveAt, perUom?}]}
    """
    try:
        req = parse_body(PullStockRequest, request.get_json(silent=True) or {})
        data = stock_service.stock_snapshot(
            product_ids=req.product_ids,
            location_codes=req.location_codes,
            per_uom=req.per_uom,
            limit=min(req.limit or PULL_STOCK_MAX_LIMIT, PULL_STOCK_MAX_LIMIT),
        )
        return jsonify({"ok": True, "data": data}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("sync-pullStock-error")
        return internal_error_response()
