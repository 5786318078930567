from __future__ import annotations

from ..extensions import db
from ..time_utils import utcnow
from .common import new_id


ROLE_ADMIN = "admin"
ROLE_KASIR = "kasir"
ROLE_GUDANG = "petugas_gudang"
ROLES = (ROLE_ADMIN, ROLE_KASIR, ROLE_GUDANG)


class User(db.Model):
    """
    Authenticated principal.

    Credential issuance lives outside this service; only the role is
    consulted here.
    """
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)
    role = db.Column(db.String(32), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<User {self.username!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {"id": self.id, "username": self.username, "role": self.role, "isActive": self.is_active}


class SessionToken(db.Model):
    """
    Bearer session. Only the SHA-256 hash of the token is stored.
    """
    __tablename__ = "session_tokens"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))
