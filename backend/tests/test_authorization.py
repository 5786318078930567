"""
Authorization Tests

Every sync endpoint requires a bearer session and one of the allowed roles;
device endpoints additionally require x-device-id.
"""

import pytest

from tokopos.models import SyncClient
from tokopos.services import session_service


# =============================================================================
# AUTHENTICATION
# =============================================================================

class TestAuthentication:

    @pytest.mark.parametrize("method,path", [
        ("GET", "/sync/pull"),
        ("POST", "/sync/push"),
        ("POST", "/sync/pushSales"),
        ("POST", "/sync/pushReturns"),
        ("POST", "/sync/pushTransfers"),
        ("POST", "/sync/pushAdjustments"),
        ("POST", "/sync/pullStock"),
        ("POST", "/stock/in"),
        ("GET", "/stock/balance"),
        ("POST", "/_jobs/run-tombstone-retention"),
    ])
    def test_unauthenticated_request_is_401(self, client, db_session, method, path):
        res = client.open(path, method=method, headers={"x-device-id": "dev-1"})

        assert res.status_code == 401
        assert res.get_json() == {
            "ok": False,
            "error": {"code": "UNAUTHORIZED", "message": "Authentication required"},
        }

    def test_unknown_token_is_401(self, client, db_session):
        res = client.get("/sync/pull", headers={"Authorization": "Bearer nope", "x-device-id": "dev-1"})

        assert res.status_code == 401

    def test_revoked_token_is_401(self, client, users, headers_for):
        session_service.revoke_session(users.kasir.token)

        res = client.get("/sync/pull", headers=headers_for("kasir"))

        assert res.status_code == 401

    def test_deactivated_user_is_401(self, client, db_session, users, headers_for):
        users.kasir.user.is_active = False
        db_session.commit()

        res = client.get("/sync/pull", headers=headers_for("kasir"))

        assert res.status_code == 401


# =============================================================================
# ROLES
# =============================================================================

class TestRoles:

    @pytest.mark.parametrize("role,method,path", [
        ("gudang", "POST", "/sync/pushSales"),
        ("gudang", "POST", "/sync/pushReturns"),
        ("kasir", "POST", "/sync/pushTransfers"),
        ("kasir", "POST", "/sync/pushAdjustments"),
        ("kasir", "POST", "/stock/in"),
        ("kasir", "GET", "/stock/balance"),
        ("kasir", "POST", "/_jobs/run-tombstone-retention"),
        ("gudang", "GET", "/_jobs/run-tombstone-retention"),
    ])
    def test_wrong_role_is_403(self, client, headers_for, role, method, path):
        res = client.open(path, method=method, headers=headers_for(role))

        assert res.status_code == 403
        error = res.get_json()["error"]
        assert error["code"] == "FORBIDDEN"
        assert "allowed" in error["details"]

    @pytest.mark.parametrize("role", ["admin", "kasir", "gudang"])
    def test_every_role_can_pull(self, client, headers_for, role):
        res = client.get("/sync/pull", headers=headers_for(role))

        assert res.status_code == 200


# =============================================================================
# DEVICE IDENTITY
# =============================================================================

class TestDeviceHeader:

    @pytest.mark.parametrize("method,path", [
        ("GET", "/sync/pull"),
        ("POST", "/sync/push"),
        ("POST", "/sync/pushSales"),
        ("POST", "/sync/pullStock"),
    ])
    def test_missing_device_id_is_400(self, client, headers_for, method, path):
        res = client.open(path, method=method, headers=headers_for("admin", device_id=None))

        assert res.status_code == 400
        error = res.get_json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"] == {"reason": "NO_DEVICE_ID"}

    def test_device_is_registered_once(self, client, db_session, headers_for):
        headers = headers_for("kasir", device_id="pos-01")
        headers["User-Agent"] = "TokoPOS/1.2"

        first = client.get("/sync/pull", headers=headers).get_json()
        second = client.get("/sync/pull", headers=headers).get_json()

        assert first["clientId"] == second["clientId"]
        db_session.expire_all()
        device = db_session.query(SyncClient).filter_by(device_id="pos-01").one()
        assert device.user_agent == "TokoPOS/1.2"


# =============================================================================
# SYSTEM
# =============================================================================

class TestSystem:

    def test_health_is_public(self, client, db_session):
        res = client.get("/health")

        assert res.status_code == 200
        body = res.get_json()
        assert body["ok"] is True
        assert body["database"] == "healthy"

    def test_unknown_route_uses_error_envelope(self, client, db_session):
        res = client.get("/nope")

        assert res.status_code == 404
        assert res.get_json()["error"]["code"] == "NOT_FOUND"
