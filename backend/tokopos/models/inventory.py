from __future__ import annotations

from ..extensions import db
from ..numeric import to_number
from ..time_utils import to_utc_z, utcnow
from .common import new_id


# Ledger entry types
MOVE_IN = "IN"
MOVE_SALE = "SALE"
MOVE_RETURN = "RETURN"
MOVE_TRANSFER = "TRANSFER"
MOVE_ADJUSTMENT = "ADJUSTMENT"
MOVE_REPACK_IN = "REPACK_IN"
MOVE_REPACK_OUT = "REPACK_OUT"
MOVE_HOLD = "HOLD"

MOVE_TYPES = frozenset({
    MOVE_IN, MOVE_SALE, MOVE_RETURN, MOVE_TRANSFER,
    MOVE_ADJUSTMENT, MOVE_REPACK_IN, MOVE_REPACK_OUT, MOVE_HOLD,
})


class StockMove(db.Model):
    """
    Append-only stock ledger entry.

    qty is signed and expressed in `uom`; the balance of a product at a
    location is SUM(qty * to_base(uom)). Rows are never updated or deleted.
    """
    __tablename__ = "stock_moves"
    __table_args__ = (
        db.Index("ix_stock_moves_product_location", "product_id", "location_id"),
        db.Index("ix_stock_moves_ref", "ref_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False)
    location_id = db.Column(db.String(36), db.ForeignKey("locations.id"), nullable=False, index=True)
    uom = db.Column(db.String(32), nullable=False)
    qty = db.Column(db.Numeric(18, 4), nullable=False)
    type = db.Column(db.String(16), nullable=False, index=True)
    ref_id = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "locationId": self.location_id,
            "uom": self.uom,
            "qty": to_number(self.qty),
            "type": self.type,
            "refId": self.ref_id,
            "createdAt": to_utc_z(self.created_at),
        }


REPACK_INPUT = "INPUT"
REPACK_OUTPUT = "OUTPUT"


class Repack(db.Model):
    """
    Conversion of stock from one packaging into another (e.g. 25kg sack into 1kg packs).

    Every input line has a REPACK_OUT move and every output line a REPACK_IN
    move, all sharing ref_id = repack.id and committed together.
    """
    __tablename__ = "repacks"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    number = db.Column(db.String(64), nullable=False, index=True)
    location_id = db.Column(db.String(36), db.ForeignKey("locations.id"), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    extra_cost = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    created_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    lines = db.relationship("RepackLine", backref="repack", lazy=True, order_by="RepackLine.position")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "locationId": self.location_id,
            "notes": self.notes,
            "extraCost": to_number(self.extra_cost),
            "createdAt": to_utc_z(self.created_at),
            "inputs": [line.to_dict() for line in self.lines if line.kind == REPACK_INPUT],
            "outputs": [line.to_dict() for line in self.lines if line.kind == REPACK_OUTPUT],
        }


class RepackLine(db.Model):
    __tablename__ = "repack_lines"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    repack_id = db.Column(db.String(36), db.ForeignKey("repacks.id"), nullable=False, index=True)
    kind = db.Column(db.String(8), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False)
    uom = db.Column(db.String(32), nullable=False)
    qty = db.Column(db.Numeric(18, 4), nullable=False)

    def to_dict(self) -> dict:
        return {
            "productId": self.product_id,
            "uom": self.uom,
            "qty": to_number(self.qty),
        }
