# Overview: Master-data reconciler for /sync/push; last-write-wins with tombstone checks and candidate-key matching.

"""
Reconcile rules (authoritative)

Per incoming record, in this order:
1. Record id tombstoned -> skipped.
   Child records (uoms, barcodes, prices) whose product is tombstoned -> skipped.
2. Resolve `existing` by trying the resource's candidate-key resolvers in
   sequence (id first, then natural keys); the first hit wins.
3. `existing` tombstoned -> skipped (no resurrection through an alternate key).
4. No `existing` -> created.
5. Otherwise apply only if incoming updatedAt is strictly newer:
   - missing incoming timestamp never wins
   - missing existing timestamp always loses to a present incoming one

Each record commits on its own; a failure rolls back that record only and
counts as `errors`. Deletes in the same push are recorded before any upsert.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from flask import current_app

from ..extensions import db
from ..models import Barcode, Customer, Location, PriceList, Product, ProductUom
from ..schemas import PushRequest
from ..time_utils import utcnow
from . import tombstone_service
from .concurrency import run_with_retry
from .uom_service import ensure_base_uom


CREATED = "created"
UPDATED = "updated"
SKIPPED = "skipped"

# A resolver takes the incoming record and returns the matching row or None.
Resolver = Callable[[Any], Optional[Any]]


def is_incoming_newer(incoming: datetime | None, existing: datetime | None) -> bool:
    if incoming is None:
        return False
    if existing is None:
        return True
    return incoming > existing


@dataclass
class ResourceCounters:
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0

    def bump(self, outcome: str) -> None:
        setattr(self, outcome, getattr(self, outcome) + 1)

    def to_dict(self) -> dict:
        return {"created": self.created, "updated": self.updated, "skipped": self.skipped, "errors": self.errors}


@dataclass
class DeleteCounters:
    recorded: int = 0
    errors: int = 0

    def to_dict(self) -> dict:
        return {"recorded": self.recorded, "errors": self.errors}


# ---------------------------------------------------------------------------
# Candidate-key resolvers
# ---------------------------------------------------------------------------

def _by_id(model) -> Resolver:
    def resolve(rec):
        return db.session.get(model, rec.id) if rec.id else None
    return resolve


def _by_column(model, column: str, attr: str | None = None) -> Resolver:
    attr = attr or column

    def resolve(rec):
        value = getattr(rec, attr)
        if not value:
            return None
        return db.session.query(model).filter(getattr(model, column) == value).first()
    return resolve


def _by_product_uom(model, *, active_only: bool = False) -> Resolver:
    def resolve(rec):
        q = db.session.query(model).filter(model.product_id == rec.product_id, model.uom == rec.uom)
        if active_only:
            q = q.filter(model.active.is_(True)).order_by(model.updated_at.desc())
        return q.first()
    return resolve


# ---------------------------------------------------------------------------
# Create / update per resource
# ---------------------------------------------------------------------------

def _create_product(rec) -> Product:
    product = Product(sku=rec.sku, name=rec.name, base_uom=rec.base_uom,
                      is_active=True if rec.is_active is None else rec.is_active)
    if rec.id:
        product.id = rec.id
    db.session.add(product)
    db.session.flush()
    ensure_base_uom(product.id, product.base_uom)
    return product


def _update_product(row: Product, rec) -> None:
    row.sku = rec.sku
    row.name = rec.name
    row.base_uom = rec.base_uom
    if rec.is_active is not None:
        row.is_active = rec.is_active
    db.session.flush()
    ensure_base_uom(row.id, row.base_uom)


def _create_product_uom(rec) -> ProductUom:
    row = ProductUom(product_id=rec.product_id, uom=rec.uom, to_base=rec.to_base)
    if rec.id:
        row.id = rec.id
    db.session.add(row)
    return row


def _update_product_uom(row: ProductUom, rec) -> None:
    row.to_base = rec.to_base


def _create_barcode(rec) -> Barcode:
    row = Barcode(product_id=rec.product_id, uom=rec.uom, code=rec.code)
    if rec.id:
        row.id = rec.id
    db.session.add(row)
    return row


def _update_barcode(row: Barcode, rec) -> None:
    row.product_id = rec.product_id
    row.uom = rec.uom
    row.code = rec.code


def _create_price(rec) -> PriceList:
    row = PriceList(product_id=rec.product_id, uom=rec.uom, price=rec.price,
                    active=True if rec.active is None else rec.active)
    if rec.id:
        row.id = rec.id
    db.session.add(row)
    return row


def _update_price(row: PriceList, rec) -> None:
    row.price = rec.price
    if rec.active is not None:
        row.active = rec.active


def _create_customer(rec) -> Customer:
    row = Customer(name=rec.name, phone=rec.phone, email=rec.email, member_code=rec.member_code,
                   is_active=True if rec.is_active is None else rec.is_active)
    if rec.joined_at:
        row.joined_at = rec.joined_at
    if rec.id:
        row.id = rec.id
    db.session.add(row)
    return row


def _update_customer(row: Customer, rec) -> None:
    # Absent fields keep their stored value
    for attr in ("name", "phone", "email", "member_code", "is_active"):
        value = getattr(rec, attr)
        if value is not None:
            setattr(row, attr, value)


def _create_location(rec) -> Location:
    row = Location(code=rec.code, name=rec.name)
    if rec.id:
        row.id = rec.id
    db.session.add(row)
    return row


def _update_location(row: Location, rec) -> None:
    row.code = rec.code
    row.name = rec.name


@dataclass(frozen=True)
class ResourceSpec:
    """How one pushed resource is matched, created and updated."""
    name: str
    resolvers: tuple[Resolver, ...]
    create: Callable[[Any], Any]
    update: Callable[[Any, Any], None]
    parent_product: bool = False
    describe: Callable[[Any], str] = field(default=lambda rec: f"id={rec.id}")


RESOURCE_SPECS: dict[str, ResourceSpec] = {
    "products": ResourceSpec(
        name="products",
        resolvers=(_by_id(Product), _by_column(Product, "sku")),
        create=_create_product,
        update=_update_product,
        describe=lambda rec: f"id={rec.id} sku={rec.sku}",
    ),
    "productUoms": ResourceSpec(
        name="productUoms",
        resolvers=(_by_id(ProductUom), _by_product_uom(ProductUom)),
        create=_create_product_uom,
        update=_update_product_uom,
        parent_product=True,
        describe=lambda rec: f"id={rec.id} productId={rec.product_id} uom={rec.uom}",
    ),
    "barcodes": ResourceSpec(
        name="barcodes",
        resolvers=(_by_id(Barcode), _by_column(Barcode, "code")),
        create=_create_barcode,
        update=_update_barcode,
        parent_product=True,
        describe=lambda rec: f"id={rec.id} code={rec.code}",
    ),
    "prices": ResourceSpec(
        name="prices",
        resolvers=(_by_id(PriceList), _by_product_uom(PriceList, active_only=True)),
        create=_create_price,
        update=_update_price,
        parent_product=True,
        describe=lambda rec: f"id={rec.id} productId={rec.product_id} uom={rec.uom}",
    ),
    "customers": ResourceSpec(
        name="customers",
        resolvers=(
            _by_id(Customer),
            _by_column(Customer, "phone"),
            _by_column(Customer, "email"),
            _by_column(Customer, "member_code"),
        ),
        create=_create_customer,
        update=_update_customer,
        describe=lambda rec: f"id={rec.id}",
    ),
    "locations": ResourceSpec(
        name="locations",
        resolvers=(_by_id(Location), _by_column(Location, "code")),
        create=_create_location,
        update=_update_location,
        describe=lambda rec: f"id={rec.id} code={rec.code}",
    ),
}

# Parents before children so a product pushed with its units resolves in one batch
APPLY_ORDER = ("products", "productUoms", "barcodes", "prices", "customers", "locations")


def resolve_existing(spec: ResourceSpec, rec) -> Any | None:
    for resolver in spec.resolvers:
        row = resolver(rec)
        if row is not None:
            return row
    return None


def reconcile_record(spec: ResourceSpec, rec) -> str:
    """Apply one record. Commits on create/update; returns created/updated/skipped."""
    if rec.id and tombstone_service.is_deleted(spec.name, rec.id):
        return SKIPPED
    if spec.parent_product and tombstone_service.is_deleted("products", rec.product_id):
        return SKIPPED

    existing = resolve_existing(spec, rec)
    if existing is not None and tombstone_service.is_deleted(spec.name, existing.id):
        return SKIPPED

    if existing is None:
        spec.create(rec)
        db.session.commit()
        return CREATED

    if not is_incoming_newer(rec.updated_at, getattr(existing, "updated_at", None)):
        return SKIPPED

    spec.update(existing, rec)
    if hasattr(existing, "updated_at"):
        existing.updated_at = utcnow()
    db.session.commit()
    return UPDATED


def apply_push(req: PushRequest) -> tuple[dict[str, ResourceCounters], DeleteCounters]:
    """
    Apply one /sync/push body: deletes first, then upserts in APPLY_ORDER.

    Never raises for a single bad record; see the counters.
    """
    deletes = DeleteCounters()
    for d in req.deletes:
        try:
            tombstone_service.record_deletion(d.resource, d.id, d.deleted_at)
            deletes.recorded += 1
        except Exception:
            db.session.rollback()
            deletes.errors += 1
            current_app.logger.exception("sync-push-error resource=deletes target=%s id=%s", d.resource, d.id)

    batches = {
        "products": req.products,
        "productUoms": req.product_uoms,
        "barcodes": req.barcodes,
        "prices": req.prices,
        "customers": req.customers,
        "locations": req.locations,
    }
    summary: dict[str, ResourceCounters] = {}
    for name in APPLY_ORDER:
        spec = RESOURCE_SPECS[name]
        counters = ResourceCounters()
        for rec in batches[name]:
            try:
                counters.bump(run_with_retry(lambda: reconcile_record(spec, rec), label=f"sync-push-{name}"))
            except Exception:
                db.session.rollback()
                counters.errors += 1
                current_app.logger.exception("sync-push-error resource=%s %s", name, spec.describe(rec))
        summary[name] = counters
    return summary, deletes
