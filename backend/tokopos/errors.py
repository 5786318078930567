# Overview: Error taxonomy shared by services and routes, plus the JSON error envelope.

"""
Error taxonomy (authoritative)

Every error response is rendered as:
    {"ok": false, "error": {"code": <stable code>, "message": <text>, "details"?: {...}}}

Services raise PosError subclasses; routes catch them and call error_response().
Batch endpoints never surface these as HTTP errors for individual items; they
fold them into the per-item results instead.
"""

from __future__ import annotations

from typing import Any

from flask import jsonify


class PosError(Exception):
    """Base class for errors with a stable code and HTTP status."""

    code = "INTERNAL_ERROR"
    status = 500

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        *,
        code: str | None = None,
        status: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if code is not None:
            self.code = code
        if status is not None:
            self.status = status

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(PosError):
    """400-level input problem."""
    code = "VALIDATION_ERROR"
    status = 400


class UomNotRegisteredError(PosError):
    code = "UOM_NOT_REGISTERED"
    status = 400


class UnknownUomError(PosError):
    """Display unit requested for a product that does not register it."""
    code = "UNKNOWN_UOM"
    status = 400


class LocationNotFoundError(PosError):
    code = "LOCATION_NOT_FOUND"
    status = 400


class StockInsufficientError(PosError):
    code = "STOCK_INSUFFICIENT"
    status = 400


class OverReturnError(PosError):
    code = "OVER_RETURN"
    status = 400


class DuplicateError(PosError):
    """409-level unique constraint conflict."""
    code = "DUPLICATE"
    status = 409


class NotFoundError(PosError):
    code = "NOT_FOUND"
    status = 404


class UnauthorizedError(PosError):
    code = "UNAUTHORIZED"
    status = 401


class ForbiddenError(PosError):
    code = "FORBIDDEN"
    status = 403


def error_body(err: PosError) -> dict[str, Any]:
    return {"ok": False, "error": err.to_dict()}


def error_response(err: PosError):
    return jsonify(error_body(err)), err.status


def internal_error_response():
    return jsonify({
        "ok": False,
        "error": {"code": "INTERNAL_ERROR", "message": "Internal server error"},
    }), 500
