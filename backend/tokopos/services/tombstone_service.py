# Overview: Tombstone registry; logical deletions that stop stale devices resurrecting entities.

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Tombstone
from ..time_utils import utcnow


def effective_deleted_at(client_deleted_at: datetime | None, now: datetime | None = None) -> datetime:
    """
    Timestamp stored on a tombstone.

    Server time unless TOMBSTONE_USE_SERVER_TIME is off; a client time is
    clamped to now + TOMBSTONE_MAX_FUTURE_SKEW_SEC so a fast device clock
    cannot keep a tombstone alive past retention.
    """
    now = now or utcnow()
    if current_app.config.get("TOMBSTONE_USE_SERVER_TIME", True) or client_deleted_at is None:
        return now
    skew = timedelta(seconds=int(current_app.config.get("TOMBSTONE_MAX_FUTURE_SKEW_SEC", 300)))
    return min(client_deleted_at, now + skew)


def is_deleted(resource: str, entity_id: str | None) -> bool:
    if not entity_id:
        return False
    return (
        db.session.query(Tombstone.id)
        .filter_by(resource=resource, entity_id=entity_id)
        .first()
        is not None
    )


def record_deletion(resource: str, entity_id: str, deleted_at: datetime | None = None) -> Tombstone:
    """
    Upsert the tombstone for (resource, entity_id) and commit.

    Deletion is final for that id: re-deleting refreshes deleted_at, and no
    later create/update carrying the same id is applied.
    """
    stamp = effective_deleted_at(deleted_at)
    row = db.session.query(Tombstone).filter_by(resource=resource, entity_id=entity_id).first()
    if row is None:
        row = Tombstone(resource=resource, entity_id=entity_id, deleted_at=stamp)
        db.session.add(row)
    else:
        row.deleted_at = stamp
    try:
        db.session.commit()
    except IntegrityError:
        # Concurrent insert for the same key: refresh the winner instead.
        db.session.rollback()
        row = db.session.query(Tombstone).filter_by(resource=resource, entity_id=entity_id).one()
        row.deleted_at = stamp
        db.session.commit()
    return row


def tombstones_since(resources: Iterable[str], since: datetime | None, limit: int) -> list[Tombstone]:
    """Tombstones for `resources` with deleted_at > since (all of them when since is None)."""
    q = db.session.query(Tombstone).filter(Tombstone.resource.in_(list(resources)))
    if since is not None:
        q = q.filter(Tombstone.deleted_at > since)
    return q.order_by(Tombstone.deleted_at.asc(), Tombstone.id.asc()).limit(limit).all()


def purge_before(threshold: datetime) -> int:
    """Delete tombstones with deleted_at <= threshold. Commits; returns the row count."""
    deleted = (
        db.session.query(Tombstone)
        .filter(Tombstone.deleted_at <= threshold)
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted
