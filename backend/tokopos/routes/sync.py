# Overview: Flask API routes for master-data sync (pull snapshot, push edits and deletes).

"""
Master-data sync API

GET  /sync/pull   incremental snapshot since this device's checkpoints
POST /sync/push   last-write-wins upserts plus tombstoned deletes

Both require x-device-id. Push never fails the request for a bad record;
per-resource counters report what happened.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_device, require_roles
from ..errors import PosError, error_response, internal_error_response
from ..models.auth import ROLE_ADMIN, ROLE_GUDANG, ROLE_KASIR
from ..schemas import PullQuery, PushRequest, parse_body
from ..services import masterdata_service, pull_service


sync_bp = Blueprint("sync", __name__, url_prefix="/sync")


@sync_bp.get("/pull")
@require_auth
@require_roles(ROLE_ADMIN, ROLE_KASIR, ROLE_GUDANG)
@require_device
def pull_route():
    """
    Query: resources (csv, default all), limit (1..SYNC_PULL_MAX_LIMIT), since (ISO).

    Returns: {ok, clientId, data: {resource: [...]}, tombstones, nextCheckpoint, hasMore}
    """
    try:
        query = PullQuery.from_args(
            request.args,
            default_limit=current_app.config["SYNC_PULL_DEFAULT_LIMIT"],
            max_limit=current_app.config["SYNC_PULL_MAX_LIMIT"],
        )
        payload = pull_service.pull(g.sync_client.id, query)
        return jsonify({"ok": True, "clientId": g.sync_client.id, **payload}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("sync-pull-error")
        return internal_error_response()


@sync_bp.post("/push")
@require_auth
@require_roles(ROLE_ADMIN, ROLE_KASIR, ROLE_GUDANG)
@require_device
def push_route():
    """
    Body: {products?, productUoms?, barcodes?, prices?, customers?, locations?, deletes?}

    Returns: {ok, clientId, summary: {resource: {created, updated, skipped, errors}}, deletes}
    """
    try:
        req = parse_body(PushRequest, request.get_json(silent=True))
        summary, deletes = masterdata_service.apply_push(req)
        return jsonify({
            "ok": True,
            "clientId": g.sync_client.id,
            "summary": {name: counters.to_dict() for name, counters in summary.items()},
            "deletes": deletes.to_dict(),
        }), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("sync-push-error")
        return internal_error_response()
