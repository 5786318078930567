# Overview: Audit trail for ledger-affecting documents; writes are fail-open and redacted at save time.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import AuditLog
from ..numeric import to_number
from ..time_utils import to_utc_z


ANONYMOUS = "anonymous"


@dataclass(frozen=True)
class AuditActor:
    """Who did it and from where; built from g.current_user and the request."""
    id: str = ANONYMOUS
    username: str = ANONYMOUS
    ip: str | None = None

    @classmethod
    def from_user(cls, user, ip: str | None = None) -> "AuditActor":
        if user is None:
            return cls(ip=ip)
        return cls(id=user.id, username=user.username, ip=ip)


def _redact_keys() -> frozenset[str]:
    raw = current_app.config.get("AUDIT_REDACT_KEYS", "")
    return frozenset(k.strip().lower() for k in raw.split(",") if k.strip())


def mask_tail(value: str, visible_tail: int = 2) -> str:
    """'08123456789' -> '*********89'"""
    if not value:
        return value
    if len(value) <= visible_tail:
        return "*" * len(value)
    return "*" * (len(value) - visible_tail) + value[-visible_tail:]


def redact(value, keys: frozenset[str] | None = None):
    """
    Recursively mask sensitive keys and make the payload JSON-safe.

    Scalar values under a sensitive key keep their last two characters;
    nested structures under one become '***'.
    """
    if keys is None:
        keys = _redact_keys()
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            if str(k).lower() in keys:
                if isinstance(v, (str, int, float, Decimal)) and not isinstance(v, bool):
                    out[k] = mask_tail(str(v))
                else:
                    out[k] = "***"
            else:
                out[k] = redact(v, keys)
        return out
    if isinstance(value, (list, tuple)):
        return [redact(v, keys) for v in value]
    if isinstance(value, Decimal):
        return to_number(value)
    if isinstance(value, datetime):
        return to_utc_z(value)
    return value


def _build(actor: AuditActor, action: str, entity_type: str, entity_id: str,
           ref_number: str | None, payload: dict | None) -> AuditLog:
    return AuditLog(
        action=action,
        actor_id=actor.id,
        actor_username=actor.username,
        entity_type=entity_type,
        entity_id=entity_id,
        ref_number=ref_number,
        ip=actor.ip,
        payload=redact(payload or {}),
    )


def audit_in_transaction(
    actor: AuditActor,
    *,
    action: str,
    entity_type: str,
    entity_id: str,
    ref_number: str | None = None,
    payload: dict | None = None,
) -> bool:
    """
    Write the audit row inside the caller's open transaction under a SAVEPOINT.

    A failure rolls back only the savepoint; the caller's transaction and
    its pending rows stay intact. Returns whether the row was written.
    """
    try:
        with db.session.begin_nested():
            db.session.add(_build(actor, action, entity_type, entity_id, ref_number, payload))
        return True
    except Exception:
        current_app.logger.error(
            "audit-log failed action=%s entity=%s:%s", action, entity_type, entity_id, exc_info=True,
        )
        return False


def audit_after_commit(
    actor: AuditActor,
    *,
    action: str,
    entity_type: str,
    entity_id: str,
    ref_number: str | None = None,
    payload: dict | None = None,
) -> bool:
    """Write and commit one audit row after the business transaction; never raises."""
    try:
        db.session.add(_build(actor, action, entity_type, entity_id, ref_number, payload))
        db.session.commit()
        return True
    except Exception:
        db.session.rollback()
        current_app.logger.error(
            "audit-log failed action=%s entity=%s:%s", action, entity_type, entity_id, exc_info=True,
        )
        return False
