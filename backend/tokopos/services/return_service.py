# Overview: Offline return ingestion; over-return prevention and positive RETURN ledger entries.

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import NotFoundError, OverReturnError
from ..models import Payment, Sale, SaleLine, SaleReturn, SaleReturnLine
from ..models.inventory import MOVE_RETURN
from ..models.sales import PAYMENT_KIND_REFUND
from ..models.sync import INBOUND_SUCCESS
from ..numeric import EPSILON, ZERO, to_decimal, to_number
from ..schemas import ReturnIn
from ..time_utils import utcnow
from . import audit_service, document_service, idempotency_service, stock_service
from .audit_service import AuditActor
from .concurrency import lock_for_update
from .idempotency_service import InboundResult
from .uom_service import UomResolver, require_registered


RESOURCE_RETURN = "saleReturn"


def sold_by_product_uom(sale_id: str) -> dict[tuple[str, str], Decimal]:
    rows = (
        db.session.query(SaleLine.product_id, SaleLine.uom, func.sum(SaleLine.qty))
        .filter(SaleLine.sale_id == sale_id)
        .group_by(SaleLine.product_id, SaleLine.uom)
        .all()
    )
    return {(pid, uom): to_decimal(qty) for pid, uom, qty in rows}


def returned_by_product_uom(sale_id: str) -> dict[tuple[str, str], Decimal]:
    rows = (
        db.session.query(SaleReturnLine.product_id, SaleReturnLine.uom, func.sum(SaleReturnLine.qty))
        .join(SaleReturn, SaleReturn.id == SaleReturnLine.return_id)
        .filter(SaleReturn.sale_id == sale_id)
        .group_by(SaleReturnLine.product_id, SaleReturnLine.uom)
        .all()
    )
    return {(pid, uom): to_decimal(qty) for pid, uom, qty in rows}


def find_over_returns(doc: ReturnIn) -> list[dict]:
    """
    Compare requested qty per (product, uom) with sold - alreadyReturned.

    Items repeating the same (product, uom) in one document are summed first.
    """
    sold = sold_by_product_uom(doc.sale_id)
    already = returned_by_product_uom(doc.sale_id)

    requested: dict[tuple[str, str], Decimal] = {}
    for item in doc.items:
        key = (item.product_id, item.uom)
        requested[key] = requested.get(key, ZERO) + item.qty

    violations = []
    for (product_id, uom), qty in requested.items():
        s = sold.get((product_id, uom), ZERO)
        a = already.get((product_id, uom), ZERO)
        if qty > s - a + EPSILON:
            violations.append({
                "productId": product_id,
                "uom": uom,
                "sold": to_number(s),
                "alreadyReturned": to_number(a),
                "tryReturn": to_number(qty),
            })
    return violations


def _write_return(doc: ReturnIn, cashier_id: str | None, written: list) -> tuple[str, str]:
    sale = lock_for_update(db.session.query(Sale).filter(Sale.id == doc.sale_id)).first()
    if sale is None:
        raise NotFoundError("Sale not found", details={"saleId": doc.sale_id})

    location = stock_service.resolve_location(doc.location_code)

    resolver = UomResolver.for_products(item.product_id for item in doc.items)
    require_registered(resolver, ((item.product_id, item.uom) for item in doc.items))

    violations = find_over_returns(doc)
    if violations:
        raise OverReturnError("Return quantity exceeds quantity sold", details={"violations": violations})

    created_at = doc.created_at or utcnow()
    subtotal = sum((item.qty * item.price for item in doc.items), ZERO)

    header = SaleReturn(
        number=document_service.next_return_number(created_at),
        sale_id=sale.id,
        cashier_id=cashier_id,
        location_id=location.id,
        reason=doc.reason,
        subtotal=subtotal,
        created_at=created_at,
    )
    db.session.add(header)
    db.session.flush()

    for item in doc.items:
        db.session.add(SaleReturnLine(
            return_id=header.id,
            product_id=item.product_id,
            uom=item.uom,
            qty=item.qty,
            price=item.price,
            subtotal=item.qty * item.price,
        ))
        stock_service.record_move(
            product_id=item.product_id,
            location_id=location.id,
            uom=item.uom,
            qty=item.qty,
            move_type=MOVE_RETURN,
            ref_id=header.id,
            created_at=created_at,
        )

    for refund in doc.refunds:
        db.session.add(Payment(
            sale_return_id=header.id,
            method=refund.method,
            kind=PAYMENT_KIND_REFUND,
            amount=refund.amount,
            ref=refund.ref,
            created_at=created_at,
        ))
    db.session.flush()

    written.append(header)
    return header.id, INBOUND_SUCCESS


def ingest_return(client_id: str, doc: ReturnIn, actor: AuditActor, cashier_id: str | None = None) -> InboundResult:
    """
    Apply one pushed return at most once for (device, clientDocId).

    The audit row is written after the commit and never fails the return.
    """
    written: list[SaleReturn] = []
    result = idempotency_service.apply_once(
        client_id=client_id,
        resource=RESOURCE_RETURN,
        client_doc_id=doc.client_doc_id,
        apply=lambda: _write_return(doc, cashier_id, written),
    )
    if result.status != idempotency_service.RESULT_CREATED or not written:
        return result

    header = written[-1]
    refund_total = sum((r.amount for r in doc.refunds), ZERO)
    audit_service.audit_after_commit(
        actor,
        action="RETURN",
        entity_type="SALE_RETURN",
        entity_id=result.server_doc_id,
        ref_number=header.number,
        payload={
            "saleId": doc.sale_id,
            "locationCode": doc.location_code,
            "reason": doc.reason,
            "items": [
                {"productId": i.product_id, "uom": i.uom, "qty": i.qty, "price": i.price}
                for i in doc.items
            ],
            "refunds": [{"method": r.method, "amount": r.amount, "ref": r.ref} for r in doc.refunds],
            "subtotal": header.subtotal,
            "refundTotal": refund_total,
        },
    )
    current_app.logger.info("sync-pushReturns-success clientDocId=%s id=%s", doc.client_doc_id, result.server_doc_id)
    return result
