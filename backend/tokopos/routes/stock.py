# Overview: Flask API routes for online stock receipt and balance lookups.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import current_actor, require_auth, require_roles
from ..errors import PosError, ValidationError, error_response, internal_error_response
from ..models.auth import ROLE_ADMIN, ROLE_GUDANG
from ..schemas import StockInRequest, parse_body
from ..services import inventory_sync_service, stock_service


stock_bp = Blueprint("stock", __name__, url_prefix="/stock")


@stock_bp.post("/in")
@require_auth
@require_roles(ROLE_ADMIN, ROLE_GUDANG)
def stock_in_route():
    """
    Body: {productId, locationCode, qty > 0, uom, refId?}

    Returns: 201 {ok, data: <StockMove>}
    """
    try:
        req = parse_body(StockInRequest, request.get_json(silent=True))
        data = inventory_sync_service.receive_stock(req, current_actor())
        return jsonify({"ok": True, "data": data}), 201
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("stock-in-error")
        return internal_error_response()


@stock_bp.get("/balance")
@require_auth
@require_roles(ROLE_ADMIN, ROLE_GUDANG)
def stock_balance_route():
    """Query: productId, locationCode, uom? -> {ok, data: {balanceBase, balanceInUom?}}"""
    try:
        product_id = (request.args.get("productId") or "").strip()
        location_code = (request.args.get("locationCode") or "").strip()
        if not product_id or not location_code:
            raise ValidationError("productId and locationCode are required")
        data = stock_service.balance_report(product_id, location_code, (request.args.get("uom") or "").strip() or None)
        return jsonify({"ok": True, "data": data}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("stock-balance-error")
        return internal_error_response()
