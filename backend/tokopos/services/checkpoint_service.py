# Overview: Per (device, resource) pull watermarks.

from __future__ import annotations

from datetime import datetime
from typing import NamedTuple, Optional

from ..extensions import db
from ..models import SyncCheckpoint


class Cursor(NamedTuple):
    """
    Resume point for an incremental pull.

    last_id is None once every row stamped `since` has been delivered;
    otherwise the next page continues after (since, last_id).
    """
    since: datetime
    last_id: Optional[str] = None

    def sort_key(self) -> tuple:
        return (self.since, self.last_id is None, self.last_id or "")


def _row(client_id: str, resource: str) -> SyncCheckpoint | None:
    return db.session.query(SyncCheckpoint).filter_by(client_id=client_id, resource=resource).first()


def get_cursor(client_id: str, resource: str) -> Cursor | None:
    row = _row(client_id, resource)
    return Cursor(row.since, row.last_id) if row else None


def get_since(client_id: str, resource: str) -> datetime | None:
    row = _row(client_id, resource)
    return row.since if row else None


def advance(client_id: str, resource: str, since: datetime, last_id: str | None = None) -> SyncCheckpoint:
    """
    Move the watermark forward to (since, last_id) (flush only).

    Never moves backwards: an older cursor leaves the stored watermark untouched.
    """
    incoming = Cursor(since, last_id)
    row = _row(client_id, resource)
    if row is None:
        row = SyncCheckpoint(client_id=client_id, resource=resource, since=since, last_id=last_id)
        db.session.add(row)
    elif row.since is None or incoming.sort_key() > Cursor(row.since, row.last_id).sort_key():
        row.since = since
        row.last_id = last_id
    db.session.flush()
    return row
