from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .common import new_id


class AuditLog(db.Model):
    """
    Business audit trail (SALE, RETURN, TRANSFER, ADJUSTMENT).

    Payloads are redacted before they are stored.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    action = db.Column(db.String(16), nullable=False, index=True)
    actor_id = db.Column(db.String(36), nullable=False)
    actor_username = db.Column(db.String(64), nullable=False)
    entity_type = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.String(64), nullable=False)
    ref_number = db.Column(db.String(64), nullable=True)
    ip = db.Column(db.String(64), nullable=True)
    payload = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "action": self.action,
            "actorId": self.actor_id,
            "actorUsername": self.actor_username,
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "refNumber": self.ref_number,
            "ip": self.ip,
            "payload": self.payload,
            "createdAt": to_utc_z(self.created_at),
        }
