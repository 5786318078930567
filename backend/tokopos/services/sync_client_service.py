# Overview: Device registry; one SyncClient row per x-device-id.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import SyncClient
from ..time_utils import utcnow


def ensure_client(device_id: str, user_agent: str | None = None) -> SyncClient:
    """
    Upsert the device row and stamp its user agent. Commits.

    Two first-contact requests from one device may race on the unique
    device_id; the loser re-reads the winner's row.
    """
    user_agent = (user_agent or "")[:512] or None
    client = db.session.query(SyncClient).filter_by(device_id=device_id).first()
    if client is None:
        client = SyncClient(device_id=device_id, user_agent=user_agent)
        db.session.add(client)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            client = db.session.query(SyncClient).filter_by(device_id=device_id).one()
        else:
            return client

    client.user_agent = user_agent
    client.updated_at = utcnow()
    db.session.commit()
    return client
