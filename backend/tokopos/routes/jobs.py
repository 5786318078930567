# Overview: Operator-triggered maintenance jobs.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth, require_roles
from ..errors import PosError, error_response, internal_error_response
from ..models.auth import ROLE_ADMIN
from ..schemas import RetentionParams
from ..services import retention_service


jobs_bp = Blueprint("jobs", __name__, url_prefix="/_jobs")


@jobs_bp.route("/run-tombstone-retention", methods=["GET", "POST"])
@require_auth
@require_roles(ROLE_ADMIN)
def run_tombstone_retention_route():
    """
    Manual sweep. ttlDays / staleDays / safetySec may come from the query
    string or a JSON body and override the configured values.

    Returns: {ok, deleted, threshold, ttlDays, staleDays, safetySec}
    """
    try:
        params = RetentionParams.from_sources(request.args, request.get_json(silent=True))
        result = retention_service.run_tombstone_retention(
            ttl_days=params.ttl_days,
            stale_days=params.stale_days,
            safety_sec=params.safety_sec,
        )
        return jsonify({"ok": True, **result}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("tombstone-retention-error")
        return internal_error_response()
