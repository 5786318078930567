# Overview: Flask API routes for offline sales and returns pushed by POS devices.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import current_actor, require_auth, require_device, require_roles
from ..errors import PosError, error_response, internal_error_response
from ..models.auth import ROLE_ADMIN, ROLE_KASIR
from ..schemas import PushReturnsRequest, PushSalesRequest, parse_body
from ..services import return_service, sales_service
from ..services.batch_service import ingest_batch


sync_sales_bp = Blueprint("sync_sales", __name__, url_prefix="/sync")


@sync_sales_bp.post("/pushSales")
@require_auth
@require_roles(ROLE_ADMIN, ROLE_KASIR)
@require_device
def push_sales_route():
    """
    Body: {sales: [{clientDocId, id?, cashierCode?, number?, customerId?, method?,
                    discountTotal?, createdAt?, lines: [...], payments: [...]}]}

    Always 200 once the body parses; see summary.sales and results[].
    """
    try:
        req = parse_body(PushSalesRequest, request.get_json(silent=True))
    except PosError as e:
        return error_response(e)

    try:
        client_id = g.sync_client.id
        actor = current_actor()
        summary, results = ingest_batch(
            req.sales,
            lambda doc: sales_service.ingest_sale(client_id, doc, actor, cashier_id=g.current_user.id),
            event="sync-pushSales",
        )
        return jsonify({"ok": True, "clientId": client_id, "summary": {"sales": summary}, "results": results}), 200
    except Exception:
        current_app.logger.exception("sync-pushSales-error")
        return internal_error_response()


@sync_sales_bp.post("/pushReturns")
@require_auth
@require_roles(ROLE_ADMIN, ROLE_KASIR)
@require_device
def push_returns_route():
    """
    Body: {returns: [{clientDocId, saleId, locationCode, reason?, createdAt?,
                      items: [{productId, uom, qty, price}], refunds?: [...]}]}
    """
    try:
        req = parse_body(PushReturnsRequest, request.get_json(silent=True))
    except PosError as e:
        return error_response(e)

    try:
        client_id = g.sync_client.id
        actor = current_actor()
        summary, results = ingest_batch(
            req.returns,
            lambda doc: return_service.ingest_return(client_id, doc, actor, cashier_id=g.current_user.id),
            event="sync-pushReturns",
        )
        return jsonify({"ok": True, "clientId": client_id, "summary": {"returns": summary}, "results": results}), 200
    except Exception:
        current_app.logger.exception("sync-pushReturns-error")
        return internal_error_response()
