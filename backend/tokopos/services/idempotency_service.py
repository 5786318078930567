# Overview: At-most-once application of pushed documents keyed by (device, resource, clientDocId).

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import SyncInbound
from ..models.sync import INBOUND_DUPLICATE, INBOUND_SUCCESS
from .concurrency import run_with_retry


RESULT_CREATED = "CREATED"
RESULT_DUPLICATE = "DUPLICATE"
RESULT_REJECTED = "REJECTED"


@dataclass
class InboundResult:
    """Per-document outcome reported back to the device."""
    client_doc_id: str
    status: str
    server_doc_id: str | None = None
    error: dict | None = None

    def to_dict(self) -> dict:
        out = {"clientDocId": self.client_doc_id, "status": self.status}
        if self.server_doc_id is not None:
            out["serverDocId"] = self.server_doc_id
        if self.error is not None:
            out["error"] = self.error
        return out


def find_inbound(client_id: str, resource: str, client_doc_id: str) -> SyncInbound | None:
    return (
        db.session.query(SyncInbound)
        .filter_by(client_id=client_id, resource=resource, client_doc_id=client_doc_id)
        .first()
    )


def record_inbound(
    client_id: str,
    resource: str,
    client_doc_id: str,
    server_doc_id: str | None,
    status: str = INBOUND_SUCCESS,
) -> SyncInbound:
    row = SyncInbound(
        client_id=client_id,
        resource=resource,
        client_doc_id=client_doc_id,
        server_doc_id=server_doc_id,
        status=status,
    )
    db.session.add(row)
    db.session.flush()
    return row


def apply_once(
    *,
    client_id: str,
    resource: str,
    client_doc_id: str,
    apply: Callable[[], tuple[str, str]],
) -> InboundResult:
    """
    Run `apply` at most once for this key and commit it with its SyncInbound row.

    `apply` performs its writes on db.session WITHOUT committing and returns
    (server_doc_id, inbound_status). The document and the SyncInbound marker
    commit together; any exception rolls both back and propagates.

    A concurrent retry that loses the race on the unique SyncInbound key is
    reported as a duplicate of the winner.
    """
    existing = find_inbound(client_id, resource, client_doc_id)
    if existing is not None:
        return InboundResult(client_doc_id, RESULT_DUPLICATE, existing.server_doc_id)

    def _op() -> tuple[str, str]:
        try:
            server_doc_id, status = apply()
            record_inbound(client_id, resource, client_doc_id, server_doc_id, status)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return server_doc_id, status

    try:
        server_doc_id, status = run_with_retry(_op, label=f"sync-{resource}")
    except IntegrityError:
        winner = find_inbound(client_id, resource, client_doc_id)
        if winner is None:
            raise
        return InboundResult(client_doc_id, RESULT_DUPLICATE, winner.server_doc_id)

    result_status = RESULT_DUPLICATE if status == INBOUND_DUPLICATE else RESULT_CREATED
    return InboundResult(client_doc_id, result_status, server_doc_id)
