from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .common import new_id


INBOUND_SUCCESS = "SUCCESS"
INBOUND_DUPLICATE = "DUPLICATE"


class SyncClient(db.Model):
    """One row per physical POS device, keyed by the x-device-id header."""
    __tablename__ = "sync_clients"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    device_id = db.Column(db.String(128), nullable=False, unique=True, index=True)
    name = db.Column(db.String(128), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "deviceId": self.device_id,
            "name": self.name,
            "userAgent": self.user_agent,
            "updatedAt": to_utc_z(self.updated_at),
        }


class SyncCheckpoint(db.Model):
    """Per (device, resource) pull watermark; never moves backwards."""
    __tablename__ = "sync_checkpoints"
    __table_args__ = (
        db.UniqueConstraint("client_id", "resource", name="uq_sync_checkpoints_client_resource"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    client_id = db.Column(db.String(36), db.ForeignKey("sync_clients.id"), nullable=False, index=True)
    resource = db.Column(db.String(32), nullable=False)
    since = db.Column(db.DateTime(timezone=True), nullable=False)
    last_id = db.Column(db.String(64), nullable=True)


class SyncInbound(db.Model):
    """
    Idempotency ledger for pushed documents.

    Written in the same transaction as the document it records; never updated.
    """
    __tablename__ = "sync_inbound"
    __table_args__ = (
        db.UniqueConstraint("client_id", "resource", "client_doc_id", name="uq_sync_inbound_client_resource_doc"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    client_id = db.Column(db.String(36), db.ForeignKey("sync_clients.id"), nullable=False, index=True)
    resource = db.Column(db.String(32), nullable=False)
    client_doc_id = db.Column(db.String(128), nullable=False)
    server_doc_id = db.Column(db.String(64), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=INBOUND_SUCCESS)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)


class Tombstone(db.Model):
    """Logical deletion marker for (resource, entity_id)."""
    __tablename__ = "tombstones"
    __table_args__ = (
        db.UniqueConstraint("resource", "entity_id", name="uq_tombstones_resource_entity"),
        db.Index("ix_tombstones_deleted_at", "deleted_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    resource = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.String(64), nullable=False)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "entityId": self.entity_id,
            "resource": self.resource,
            "deletedAt": to_utc_z(self.deleted_at),
        }
