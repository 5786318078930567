# Overview: Offline sale ingestion; validates, computes totals server-side and commits a sale with its ledger entries.

"""
Sale ingest (authoritative)

RECEIVED -> VALIDATED -> COMMITTED, or RECEIVED -> REJECTED with no writes.

Validation order:
1. customer (if given) exists                      -> NOT_FOUND
2. every line's locationCode resolves              -> LOCATION_NOT_FOUND
3. every (productId, uom) is registered            -> UOM_NOT_REGISTERED
4. on-hand covers every line (EPSILON tolerance)   -> STOCK_INSUFFICIENT (all shortages)

Totals are recomputed here and never read from the client:
    subtotal = SUM(qty * price - line discount)
    total    = max(0, subtotal - discountTotal)
    paid     = SUM(payments.amount)
    change   = max(0, paid - total)

Header, lines, SALE moves (negative qty), payments, the audit row and the
SyncInbound marker commit in one transaction.

NOTE: two devices selling the same stock concurrently can both pass step 4.
Balances are not locked between the check and the insert.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import NotFoundError
from ..models import Customer, Payment, Sale, SaleLine
from ..models.inventory import MOVE_SALE
from ..models.sales import PAYMENT_CASH, PAYMENT_KIND_SALE, PAYMENT_NON_CASH
from ..models.sync import INBOUND_DUPLICATE, INBOUND_SUCCESS
from ..numeric import ZERO
from ..schemas import SaleIn
from ..time_utils import utcnow
from . import audit_service, document_service, idempotency_service, stock_service
from .audit_service import AuditActor
from .idempotency_service import InboundResult
from .stock_service import Demand
from .uom_service import UomResolver, require_registered


RESOURCE_SALE = "sale"


class SaleTotals:
    """Header money fields derived from lines and payments."""

    def __init__(self, doc: SaleIn):
        self.line_subtotals = [line.qty * line.price - line.discount for line in doc.lines]
        self.subtotal = sum(self.line_subtotals, ZERO)
        self.discount = doc.discount_total or ZERO
        self.tax = ZERO
        self.total = max(ZERO, self.subtotal - self.discount)
        self.paid = sum((p.amount for p in doc.payments), ZERO)
        self.change = max(ZERO, self.paid - self.total)


def derive_method(doc: SaleIn) -> str:
    if doc.method:
        return doc.method
    if any(p.method == PAYMENT_CASH for p in doc.payments):
        return PAYMENT_CASH
    return PAYMENT_NON_CASH


def validate_sale(doc: SaleIn) -> tuple[dict, UomResolver]:
    """Run every rejection check; returns (locations by code, resolver)."""
    if doc.customer_id and db.session.get(Customer, doc.customer_id) is None:
        raise NotFoundError("Customer not found", details={"customerId": doc.customer_id})

    locations = stock_service.resolve_locations(line.location_code for line in doc.lines)

    resolver = UomResolver.for_products(line.product_id for line in doc.lines)
    require_registered(resolver, ((line.product_id, line.uom) for line in doc.lines))

    stock_service.require_sufficient(
        [
            Demand(
                product_id=line.product_id,
                location_id=locations[line.location_code].id,
                location_code=line.location_code,
                uom=line.uom,
                qty=line.qty,
            )
            for line in doc.lines
        ],
        resolver,
    )
    return locations, resolver


def _write_sale(doc: SaleIn, actor: AuditActor, cashier_id: str | None) -> tuple[str, str]:
    # Device replays a sale it already learned the server id for
    if doc.id and db.session.get(Sale, doc.id) is not None:
        return doc.id, INBOUND_DUPLICATE

    locations, _ = validate_sale(doc)
    totals = SaleTotals(doc)
    created_at = doc.created_at or utcnow()
    number = doc.number or document_service.next_sale_number(doc.cashier_code, created_at)

    sale = Sale(
        number=number,
        cashier_id=cashier_id,
        customer_id=doc.customer_id,
        method=derive_method(doc),
        subtotal=totals.subtotal,
        discount=totals.discount,
        tax=totals.tax,
        total=totals.total,
        paid=totals.paid,
        change=totals.change,
        created_at=created_at,
    )
    if doc.id:
        sale.id = doc.id
    db.session.add(sale)
    db.session.flush()

    for line, line_subtotal in zip(doc.lines, totals.line_subtotals):
        db.session.add(SaleLine(
            sale_id=sale.id,
            product_id=line.product_id,
            uom=line.uom,
            qty=line.qty,
            price=line.price,
            discount=line.discount,
            subtotal=line_subtotal,
        ))
        stock_service.record_move(
            product_id=line.product_id,
            location_id=locations[line.location_code].id,
            uom=line.uom,
            qty=-line.qty,
            move_type=MOVE_SALE,
            ref_id=sale.id,
            created_at=created_at,
        )

    for p in doc.payments:
        db.session.add(Payment(
            sale_id=sale.id,
            method=p.method,
            kind=PAYMENT_KIND_SALE,
            amount=p.amount,
            ref=p.ref,
            created_at=created_at,
        ))
    db.session.flush()

    audit_service.audit_in_transaction(
        actor,
        action="SALE",
        entity_type="Sale",
        entity_id=sale.id,
        ref_number=sale.number,
        payload={
            "source": "sync",
            "clientDocId": doc.client_doc_id,
            "customerId": doc.customer_id,
            "method": sale.method,
            "total": totals.total,
            "paid": totals.paid,
            "lines": [
                {"productId": line.product_id, "locationCode": line.location_code,
                 "uom": line.uom, "qty": line.qty, "price": line.price}
                for line in doc.lines
            ],
        },
    )
    return sale.id, INBOUND_SUCCESS


def ingest_sale(client_id: str, doc: SaleIn, actor: AuditActor, cashier_id: str | None = None) -> InboundResult:
    """
    Apply one pushed sale at most once for (device, clientDocId).

    Raises the PosError that rejected it; nothing is written in that case.
    """
    result = idempotency_service.apply_once(
        client_id=client_id,
        resource=RESOURCE_SALE,
        client_doc_id=doc.client_doc_id,
        apply=lambda: _write_sale(doc, actor, cashier_id),
    )
    if result.status == idempotency_service.RESULT_CREATED:
        current_app.logger.info(
            "sync-pushSales-success clientDocId=%s saleId=%s", doc.client_doc_id, result.server_doc_id,
        )
    return result
