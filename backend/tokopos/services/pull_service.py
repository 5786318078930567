# Overview: Incremental master-data snapshots for /sync/pull, driven by per-device checkpoints.

"""
Pull rules (authoritative)

- "now" is captured once, before any resource query.
- Incremental resources return rows with updated_at > checkpoint, ordered by
  (updated_at, id) ascending, at most `limit` rows.
- Resources without updated_at (barcodes) fall back to a bounded full scan.
- The checkpoint advances to "now" even when no rows came back. When a page
  is truncated by `limit` it stores the last returned (updated_at, id), and
  the next pull resumes with rows after that pair, so rows sharing the
  boundary timestamp are still delivered.
- Tombstones for the requested resources use the request's `since` param,
  not the per-resource checkpoints; without `since` all of them are returned
  (bounded by `limit`).
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import and_, or_

from ..extensions import db
from ..models import Barcode, Customer, Location, PriceList, Product, ProductUom, StoreProfile
from ..schemas import PullQuery
from ..time_utils import to_utc_z, utcnow
from . import checkpoint_service, tombstone_service
from .checkpoint_service import Cursor


@dataclass(frozen=True)
class PullSource:
    model: type
    incremental: bool = True


PULL_SOURCES: dict[str, PullSource] = {
    "products": PullSource(Product),
    "productUoms": PullSource(ProductUom),
    "prices": PullSource(PriceList),
    "barcodes": PullSource(Barcode, incremental=False),
    "customers": PullSource(Customer),
    "locations": PullSource(Location),
    "storeProfile": PullSource(StoreProfile),
}


def _page(source: PullSource, cursor: Cursor | None, limit: int) -> list:
    model = source.model
    q = db.session.query(model)
    if not source.incremental:
        return q.order_by(model.id.asc()).limit(limit).all()
    if cursor is not None and cursor.last_id is None:
        q = q.filter(model.updated_at > cursor.since)
    elif cursor is not None:
        q = q.filter(or_(
            model.updated_at > cursor.since,
            and_(model.updated_at == cursor.since, model.id > cursor.last_id),
        ))
    return q.order_by(model.updated_at.asc(), model.id.asc()).limit(limit).all()


def pull(client_id: str, query: PullQuery) -> dict:
    """Build the /sync/pull payload and advance this device's checkpoints. Commits."""
    now = utcnow()
    data: dict[str, list[dict]] = {}
    has_more: dict[str, bool] = {}

    try:
        for resource in query.resources:
            source = PULL_SOURCES[resource]
            cursor = checkpoint_service.get_cursor(client_id, resource)
            rows = _page(source, cursor, query.limit)
            data[resource] = [row.to_dict() for row in rows]

            truncated = len(rows) >= query.limit
            has_more[resource] = truncated
            next_cursor = Cursor(now)
            if truncated and source.incremental and rows[-1].updated_at <= now:
                next_cursor = Cursor(rows[-1].updated_at, rows[-1].id)
            checkpoint_service.advance(client_id, resource, *next_cursor)

        tombstones = tombstone_service.tombstones_since(query.resources, query.since, query.limit)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return {
        "data": data,
        "tombstones": [t.to_dict() for t in tombstones],
        "nextCheckpoint": to_utc_z(now),
        "hasMore": has_more,
    }
