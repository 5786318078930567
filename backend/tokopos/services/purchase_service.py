# Overview: Supplier purchases; each received line becomes an IN move in the purchase's own transaction.

"""
Purchase rules

- Every (product, uom) on the lines must be a registered ProductUom; one
  missing unit rejects the whole purchase before anything is written.
- subtotal = SUM(qty * buyPrice); total = subtotal - discount.
- A line with sellPrice updates the active PriceList for that (product, uom)
  or creates one.
- Supplier: an explicit supplierId must exist; otherwise an inline supplier
  with a phone is matched on that phone (name/address refreshed), and one
  without a phone is always created.
- The header, lines, IN moves and price updates commit together; the audit
  row follows the commit and never fails the purchase.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import PriceList, Purchase, PurchaseLine, Supplier
from ..models.inventory import MOVE_IN
from ..numeric import ZERO
from ..schemas import PurchaseRequest, SupplierIn
from ..time_utils import utcnow
from . import audit_service, document_service, stock_service
from .audit_service import AuditActor
from .concurrency import run_with_retry
from .uom_service import UomResolver, require_registered


def resolve_supplier(supplier_id: str | None, supplier: SupplierIn | None) -> Supplier | None:
    if supplier_id:
        row = db.session.get(Supplier, supplier_id)
        if row is None:
            raise ValidationError("Supplier not found", details={"supplierId": supplier_id})
        return row
    if supplier is None:
        return None

    row = None
    if supplier.phone:
        row = db.session.query(Supplier).filter_by(phone=supplier.phone).first()
    if row is None:
        row = Supplier(name=supplier.name, phone=supplier.phone, address=supplier.address)
        db.session.add(row)
    else:
        row.name = supplier.name
        if supplier.address is not None:
            row.address = supplier.address
    db.session.flush()
    return row


def upsert_sell_price(product_id: str, uom: str, price) -> PriceList:
    row = (
        db.session.query(PriceList)
        .filter_by(product_id=product_id, uom=uom, active=True)
        .order_by(PriceList.updated_at.desc())
        .first()
    )
    if row is None:
        row = PriceList(product_id=product_id, uom=uom, price=price, active=True)
        db.session.add(row)
    else:
        row.price = price
    return row


def _write_purchase(req: PurchaseRequest, created_by: str | None) -> Purchase:
    try:
        location = stock_service.resolve_location(req.location_code)
        resolver = UomResolver.for_products(line.product_id for line in req.lines)
        require_registered(resolver, ((line.product_id, line.uom) for line in req.lines))
        supplier = resolve_supplier(req.supplier_id, req.supplier)

        subtotal = sum((line.qty * line.buy_price for line in req.lines), ZERO)
        created_at = utcnow()
        header = Purchase(
            number=document_service.next_purchase_number(created_at),
            supplier_id=supplier.id if supplier else None,
            location_id=location.id,
            subtotal=subtotal,
            discount=req.discount,
            total=subtotal - req.discount,
            created_by=created_by,
            created_at=created_at,
        )
        db.session.add(header)
        db.session.flush()

        for position, line in enumerate(req.lines):
            db.session.add(PurchaseLine(
                purchase_id=header.id,
                position=position,
                product_id=line.product_id,
                uom=line.uom,
                qty=line.qty,
                buy_price=line.buy_price,
                sell_price=line.sell_price,
                subtotal=line.qty * line.buy_price,
            ))
            stock_service.record_move(
                product_id=line.product_id,
                location_id=location.id,
                uom=line.uom,
                qty=line.qty,
                move_type=MOVE_IN,
                ref_id=header.id,
                created_at=created_at,
            )
            if line.sell_price is not None:
                upsert_sell_price(line.product_id, line.uom, line.sell_price)

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return header


def create_purchase(req: PurchaseRequest, actor: AuditActor) -> dict:
    """
    Record a purchase and receive its lines into stock. Commits.

    Raises:
        ValidationError: supplierId unknown
        LocationNotFoundError: unknown location code
        UomNotRegisteredError: any line's uom not registered for its product
    """
    created_by = actor.id if actor.id != audit_service.ANONYMOUS else None
    header = run_with_retry(lambda: _write_purchase(req, created_by), label="purchase")
    data = header.to_dict()

    audit_service.audit_after_commit(
        actor,
        action="PURCHASE",
        entity_type="PURCHASE",
        entity_id=header.id,
        ref_number=data["number"],
        payload={
            "supplier": (
                {"name": req.supplier.name, "phone": req.supplier.phone, "address": req.supplier.address}
                if req.supplier else {"supplierId": req.supplier_id}
            ),
            "locationCode": req.location_code,
            "subtotal": data["subtotal"],
            "discount": data["discount"],
            "total": data["total"],
            "lines": data["lines"],
        },
    )
    current_app.logger.info("purchase-created id=%s number=%s lines=%d", data["id"], data["number"], len(req.lines))
    return data


def get_purchase(purchase_id: str) -> dict:
    row = db.session.get(Purchase, purchase_id)
    if row is None:
        raise NotFoundError("Purchase not found", details={"purchaseId": purchase_id})
    return row.to_dict()
