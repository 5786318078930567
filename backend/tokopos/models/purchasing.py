from __future__ import annotations

from ..extensions import db
from ..numeric import to_number
from ..time_utils import to_utc_z, utcnow
from .common import new_id


class Supplier(db.Model):
    """Vendor master; phone is the natural key when present."""
    __tablename__ = "suppliers"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True, unique=True)
    address = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "phone": self.phone, "address": self.address}


class Purchase(db.Model):
    """
    Goods received from a supplier into one location.

    Each PurchaseLine has a matching IN move (ref_id = purchase.id) written in
    the same transaction. Totals are computed server-side from the lines.
    """
    __tablename__ = "purchases"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    number = db.Column(db.String(64), nullable=False, index=True)
    supplier_id = db.Column(db.String(36), db.ForeignKey("suppliers.id"), nullable=True, index=True)
    location_id = db.Column(db.String(36), db.ForeignKey("locations.id"), nullable=False)
    subtotal = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    created_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    supplier = db.relationship("Supplier", lazy="joined")
    lines = db.relationship("PurchaseLine", backref="purchase", lazy=True, order_by="PurchaseLine.position")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "supplier": self.supplier.to_dict() if self.supplier else None,
            "locationId": self.location_id,
            "subtotal": to_number(self.subtotal),
            "discount": to_number(self.discount),
            "total": to_number(self.total),
            "createdAt": to_utc_z(self.created_at),
            "lines": [line.to_dict() for line in self.lines],
        }


class PurchaseLine(db.Model):
    """qty is in the unit received (`uom`); buy_price is per that unit."""
    __tablename__ = "purchase_lines"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    purchase_id = db.Column(db.String(36), db.ForeignKey("purchases.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False, index=True)
    uom = db.Column(db.String(32), nullable=False)
    qty = db.Column(db.Numeric(18, 4), nullable=False)
    buy_price = db.Column(db.Numeric(18, 2), nullable=False)
    sell_price = db.Column(db.Numeric(18, 2), nullable=True)
    subtotal = db.Column(db.Numeric(18, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "uom": self.uom,
            "qty": to_number(self.qty),
            "buyPrice": to_number(self.buy_price),
            "sellPrice": to_number(self.sell_price),
            "subtotal": to_number(self.subtotal),
        }
