# Overview: Flask API routes for repacking stock between packagings.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import current_actor, require_auth, require_roles
from ..errors import PosError, error_response, internal_error_response
from ..models.auth import ROLE_ADMIN, ROLE_GUDANG
from ..schemas import RepackRequest, parse_body
from ..services import repack_service


repack_bp = Blueprint("repack", __name__, url_prefix="/repack")


@repack_bp.post("")
@require_auth
@require_roles(ROLE_ADMIN, ROLE_GUDANG)
def create_repack_route():
    """
    Body: {inputs: [{productId, uom, qty}], outputs: [{productId, uom, qty}],
           locationCode?, notes?, extraCost?}

    Returns: 201 {ok, data: <Repack with inputs/outputs>}
    """
    try:
        req = parse_body(RepackRequest, request.get_json(silent=True))
        data = repack_service.create_repack(req, current_actor())
        return jsonify({"ok": True, "data": data}), 201
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("repack-create-error")
        return internal_error_response()


@repack_bp.get("/<repack_id>")
@require_auth
@require_roles(ROLE_ADMIN, ROLE_GUDANG)
def get_repack_route(repack_id):
    try:
        return jsonify({"ok": True, "data": repack_service.get_repack(repack_id)}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("repack-get-error")
        return internal_error_response()
