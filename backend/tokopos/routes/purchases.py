# Overview: Flask API routes for supplier purchases (goods received into stock).

from flask import Blueprint, current_app, jsonify, request

from ..decorators import current_actor, require_auth, require_roles
from ..errors import PosError, error_response, internal_error_response
from ..models.auth import ROLE_ADMIN
from ..schemas import PurchaseRequest, parse_body
from ..services import purchase_service


purchases_bp = Blueprint("purchases", __name__, url_prefix="/purchases")


@purchases_bp.post("")
@require_auth
@require_roles(ROLE_ADMIN)
def create_purchase_route():
    """
    Body: {locationCode, supplierId? | supplier?: {name, phone?, address?}, discount?,
           lines: [{productId, uom, qty > 0, buyPrice >= 0, sellPrice?}]}

    Returns: 201 {ok, data: <Purchase with lines>}
    """
    try:
        req = parse_body(PurchaseRequest, request.get_json(silent=True))
        data = purchase_service.create_purchase(req, current_actor())
        return jsonify({"ok": True, "data": data}), 201
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("purchase-create-error")
        return internal_error_response()


@purchases_bp.get("/<purchase_id>")
@require_auth
@require_roles(ROLE_ADMIN)
def get_purchase_route(purchase_id):
    try:
        return jsonify({"ok": True, "data": purchase_service.get_purchase(purchase_id)}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("purchase-get-error")
        return internal_error_response()
