# Overview: Request decorators for bearer auth, role checks and device identity.

from functools import wraps

from flask import g, request

from .errors import ForbiddenError, UnauthorizedError, ValidationError, error_response
from .services import session_service, sync_client_service
from .services.audit_service import AuditActor


DEVICE_HEADER = "x-device-id"


def _is_authenticated() -> bool:
    return getattr(g, "current_user", None) is not None


def require_auth(f):
    """
    Require a valid bearer session.

    Sets g.current_user. Returns 401 UNAUTHORIZED if:
    - No Authorization header
    - Invalid, expired, idle or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return error_response(UnauthorizedError("Authentication required"))

        token = auth_header.split(" ", 1)[1].strip()
        user = session_service.validate_session(token)
        if user is None:
            return error_response(UnauthorizedError("Invalid or expired token"))

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_roles(*roles: str):
    """
    Require the authenticated user to hold one of `roles`.

    Must be stacked under @require_auth.
    """
    allowed = frozenset(roles)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return error_response(UnauthorizedError("Authentication required"))
            if g.current_user.role not in allowed:
                return error_response(ForbiddenError(
                    "Role not allowed",
                    details={"role": g.current_user.role, "allowed": sorted(allowed)},
                ))
            return f(*args, **kwargs)

        return decorated_function

    return decorator


def require_device(f):
    """
    Require the x-device-id header and register the device.

    Sets g.sync_client (upserted with the request's User-Agent).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        device_id = (request.headers.get(DEVICE_HEADER) or "").strip()
        if not device_id:
            return error_response(ValidationError(
                "Missing x-device-id header",
                details={"reason": "NO_DEVICE_ID"},
            ))
        if len(device_id) > 128:
            return error_response(ValidationError("x-device-id is too long"))

        g.sync_client = sync_client_service.ensure_client(device_id, request.headers.get("User-Agent"))
        return f(*args, **kwargs)

    return decorated_function


def current_actor() -> AuditActor:
    return AuditActor.from_user(getattr(g, "current_user", None), request.remote_addr)
