from __future__ import annotations

from ..extensions import db
from ..numeric import to_number
from ..time_utils import to_utc_z, utcnow
from .common import new_id


PAYMENT_CASH = "CASH"
PAYMENT_NON_CASH = "NON_CASH"
PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_NON_CASH)

PAYMENT_KIND_SALE = "SALE"
PAYMENT_KIND_REFUND = "REFUND"


class Sale(db.Model):
    """
    Committed point-of-sale transaction header.

    Totals are recomputed server-side from lines and payments at commit time.
    `number` is human-readable and only advisory-unique; `id` is the identity.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_number", "number"),
        db.Index("ix_sales_created_at", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    number = db.Column(db.String(64), nullable=False)
    cashier_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True, index=True)
    customer_id = db.Column(db.String(36), db.ForeignKey("customers.id"), nullable=True, index=True)
    method = db.Column(db.String(16), nullable=False)

    subtotal = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    paid = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    change = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    lines = db.relationship("SaleLine", backref="sale", lazy=True)
    payments = db.relationship("Payment", backref="sale", lazy=True, foreign_keys="Payment.sale_id")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "cashierId": self.cashier_id,
            "customerId": self.customer_id,
            "method": self.method,
            "subtotal": to_number(self.subtotal),
            "discount": to_number(self.discount),
            "tax": to_number(self.tax),
            "total": to_number(self.total),
            "paid": to_number(self.paid),
            "change": to_number(self.change),
            "createdAt": to_utc_z(self.created_at),
        }


class SaleLine(db.Model):
    """Line of a sale; qty is in the unit sold (`uom`)."""
    __tablename__ = "sale_lines"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    sale_id = db.Column(db.String(36), db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False, index=True)
    uom = db.Column(db.String(32), nullable=False)
    qty = db.Column(db.Numeric(18, 4), nullable=False)
    price = db.Column(db.Numeric(18, 2), nullable=False)
    discount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    subtotal = db.Column(db.Numeric(18, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "saleId": self.sale_id,
            "productId": self.product_id,
            "uom": self.uom,
            "qty": to_number(self.qty),
            "price": to_number(self.price),
            "discount": to_number(self.discount),
            "subtotal": to_number(self.subtotal),
        }


class Payment(db.Model):
    """
    Money movement attached to a sale (kind=SALE) or a return (kind=REFUND).
    """
    __tablename__ = "payments"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    sale_id = db.Column(db.String(36), db.ForeignKey("sales.id"), nullable=True, index=True)
    sale_return_id = db.Column(db.String(36), db.ForeignKey("sale_returns.id"), nullable=True, index=True)
    method = db.Column(db.String(16), nullable=False)
    kind = db.Column(db.String(16), nullable=False, default=PAYMENT_KIND_SALE)
    amount = db.Column(db.Numeric(18, 2), nullable=False)
    ref = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "saleId": self.sale_id,
            "saleReturnId": self.sale_return_id,
            "method": self.method,
            "kind": self.kind,
            "amount": to_number(self.amount),
            "ref": self.ref,
            "createdAt": to_utc_z(self.created_at),
        }


class SaleReturn(db.Model):
    """Return document against one originating sale."""
    __tablename__ = "sale_returns"
    __table_args__ = (
        db.Index("ix_sale_returns_number", "number"),
        db.Index("ix_sale_returns_created_at", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    number = db.Column(db.String(64), nullable=False)
    sale_id = db.Column(db.String(36), db.ForeignKey("sales.id"), nullable=False, index=True)
    cashier_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
    location_id = db.Column(db.String(36), db.ForeignKey("locations.id"), nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    subtotal = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    lines = db.relationship("SaleReturnLine", backref="sale_return", lazy=True)
    refunds = db.relationship("Payment", lazy=True, foreign_keys="Payment.sale_return_id")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "saleId": self.sale_id,
            "cashierId": self.cashier_id,
            "locationId": self.location_id,
            "reason": self.reason,
            "subtotal": to_number(self.subtotal),
            "createdAt": to_utc_z(self.created_at),
        }


class SaleReturnLine(db.Model):
    __tablename__ = "sale_return_lines"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    return_id = db.Column(db.String(36), db.ForeignKey("sale_returns.id"), nullable=False, index=True)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False)
    uom = db.Column(db.String(32), nullable=False)
    qty = db.Column(db.Numeric(18, 4), nullable=False)
    price = db.Column(db.Numeric(18, 2), nullable=False)
    subtotal = db.Column(db.Numeric(18, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "returnId": self.return_id,
            "productId": self.product_id,
            "uom": self.uom,
            "qty": to_number(self.qty),
            "price": to_number(self.price),
            "subtotal": to_number(self.subtotal),
        }
