from __future__ import annotations

from ..extensions import db
from ..numeric import to_number
from ..time_utils import to_utc_z, utcnow
from .common import new_id


class Product(db.Model):
    """
    Product master data.

    SKU is the natural key used when a device pushes a product it created
    offline before learning the server id. Every product registers its base
    unit as a ProductUom with to_base=1 (see masterdata_service).
    """
    __tablename__ = "products"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    sku = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    base_uom = db.Column(db.String(32), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    # Python-side timestamps: sync checkpoints compare at sub-second precision
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow, index=True)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "baseUom": self.base_uom,
            "isActive": self.is_active,
            "updatedAt": to_utc_z(self.updated_at),
        }


class ProductUom(db.Model):
    """Sale unit of a product and its integer multiplier to the base unit."""
    __tablename__ = "product_uoms"
    __table_args__ = (
        db.UniqueConstraint("product_id", "uom", name="uq_product_uoms_product_uom"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False, index=True)
    uom = db.Column(db.String(32), nullable=False)
    to_base = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow, index=True)

    product = db.relationship("Product", backref=db.backref("uoms", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "uom": self.uom,
            "toBase": self.to_base,
            "updatedAt": to_utc_z(self.updated_at),
        }


class Barcode(db.Model):
    """
    Scannable code for a (product, uom).

    No updated_at column: pulls fall back to a bounded full scan and
    last-write-wins always lets a timestamped incoming edit through.
    """
    __tablename__ = "barcodes"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False, index=True)
    uom = db.Column(db.String(32), nullable=False)
    code = db.Column(db.String(64), nullable=False, unique=True, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "uom": self.uom,
            "code": self.code,
        }


class PriceList(db.Model):
    __tablename__ = "price_lists"
    __table_args__ = (
        db.Index("ix_price_lists_product_uom_active", "product_id", "uom", "active"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False, index=True)
    uom = db.Column(db.String(32), nullable=False)
    price = db.Column(db.Numeric(18, 2), nullable=False)
    active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "uom": self.uom,
            "price": to_number(self.price),
            "active": self.active,
            "updatedAt": to_utc_z(self.updated_at),
        }


class Customer(db.Model):
    """
    Member/customer master data.

    phone, email and member_code are each unique when present; devices that
    have not learned a server id are matched on them in that order.
    """
    __tablename__ = "customers"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True, unique=True)
    email = db.Column(db.String(255), nullable=True, unique=True)
    member_code = db.Column(db.String(64), nullable=True, unique=True)
    joined_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow, index=True)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "memberCode": self.member_code,
            "isActive": self.is_active,
            "updatedAt": to_utc_z(self.updated_at),
        }


class Location(db.Model):
    """Stock-holding place (e.g. GUDANG warehouse, ETALASE shop floor)."""
    __tablename__ = "locations"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "updatedAt": to_utc_z(self.updated_at),
        }


class StoreProfile(db.Model):
    """Single-row store header; timezone drives daily document numbers."""
    __tablename__ = "store_profiles"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    footer_note = db.Column(db.String(255), nullable=True)
    timezone = db.Column(db.String(64), nullable=False, default="Asia/Jakarta")

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "footerNote": self.footer_note,
            "timezone": self.timezone,
            "updatedAt": to_utc_z(self.updated_at),
        }
