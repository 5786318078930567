# Overview: Device-submitted inventory intents (transfers, adjustments) translated into ledger moves.

from __future__ import annotations

import secrets
import time

from flask import current_app

from ..models.inventory import MOVE_ADJUSTMENT, MOVE_IN, MOVE_TRANSFER
from ..models.sync import INBOUND_SUCCESS
from ..schemas import AdjustmentIn, StockInRequest, TransferIn
from ..time_utils import utcnow
from . import audit_service, idempotency_service, stock_service
from .audit_service import AuditActor
from .idempotency_service import InboundResult
from .stock_service import Demand
from .uom_service import UomResolver


RESOURCE_TRANSFER = "transfer"
RESOURCE_ADJUSTMENT = "adjustment"


def transfer_ref_id() -> str:
    """Groups the two legs of one transfer, e.g. TRF-18f2a3b4c5d-9f1c2e."""
    return f"TRF-{int(time.time() * 1000):x}-{secrets.token_hex(3)}"


def _write_transfer(doc: TransferIn) -> tuple[str, str]:
    locations = stock_service.resolve_locations([doc.from_location_code, doc.to_location_code])
    src = locations[doc.from_location_code]
    dst = locations[doc.to_location_code]

    resolver = UomResolver.for_products([doc.product_id])
    resolver.require(doc.product_id, doc.uom)
    stock_service.require_sufficient(
        [Demand(doc.product_id, src.id, src.code, doc.uom, doc.qty)],
        resolver,
    )

    ref_id = doc.ref_id or transfer_ref_id()
    created_at = doc.created_at or utcnow()
    for location, qty in ((src, -doc.qty), (dst, doc.qty)):
        stock_service.record_move(
            product_id=doc.product_id,
            location_id=location.id,
            uom=doc.uom,
            qty=qty,
            move_type=MOVE_TRANSFER,
            ref_id=ref_id,
            created_at=created_at,
        )
    return ref_id, INBOUND_SUCCESS


def ingest_transfer(client_id: str, doc: TransferIn, actor: AuditActor) -> InboundResult:
    result = idempotency_service.apply_once(
        client_id=client_id,
        resource=RESOURCE_TRANSFER,
        client_doc_id=doc.client_doc_id,
        apply=lambda: _write_transfer(doc),
    )
    if result.status == idempotency_service.RESULT_CREATED:
        audit_service.audit_after_commit(
            actor,
            action="TRANSFER",
            entity_type="STOCK_MOVE",
            entity_id=result.server_doc_id,
            ref_number=result.server_doc_id,
            payload={
                "productId": doc.product_id,
                "fromLocationCode": doc.from_location_code,
                "toLocationCode": doc.to_location_code,
                "uom": doc.uom,
                "qty": doc.qty,
            },
        )
        current_app.logger.info("sync-pushTransfers-success refId=%s", result.server_doc_id)
    return result


def _write_adjustment(doc: AdjustmentIn) -> tuple[str, str]:
    location = stock_service.resolve_location(doc.location_code)
    UomResolver.for_products([doc.product_id]).require(doc.product_id, doc.uom)
    move = stock_service.record_move(
        product_id=doc.product_id,
        location_id=location.id,
        uom=doc.uom,
        qty=doc.qty,
        move_type=MOVE_ADJUSTMENT,
        ref_id=doc.ref_id,
        created_at=doc.created_at or utcnow(),
    )
    return move.id, INBOUND_SUCCESS


def ingest_adjustment(client_id: str, doc: AdjustmentIn, actor: AuditActor) -> InboundResult:
    """Signed correction at one location; may take the balance below zero."""
    result = idempotency_service.apply_once(
        client_id=client_id,
        resource=RESOURCE_ADJUSTMENT,
        client_doc_id=doc.client_doc_id,
        apply=lambda: _write_adjustment(doc),
    )
    if result.status == idempotency_service.RESULT_CREATED:
        audit_service.audit_after_commit(
            actor,
            action="ADJUSTMENT",
            entity_type="STOCK_MOVE",
            entity_id=result.server_doc_id,
            ref_number=doc.ref_id,
            payload={
                "productId": doc.product_id,
                "locationCode": doc.location_code,
                "uom": doc.uom,
                "qty": doc.qty,
            },
        )
    return result


def receive_stock(req: StockInRequest, actor: AuditActor) -> dict:
    """Online manual IN; audited as an ADJUSTMENT."""
    move = stock_service.stock_in(
        product_id=req.product_id,
        location_code=req.location_code,
        qty=req.qty,
        uom=req.uom,
        ref_id=req.ref_id,
    )
    data = move.to_dict()
    audit_service.audit_after_commit(
        actor,
        action="ADJUSTMENT",
        entity_type="STOCK_MOVE",
        entity_id=data["id"],
        ref_number=req.ref_id,
        payload={
            "productId": req.product_id,
            "locationCode": req.location_code,
            "qty": req.qty,
            "uom": req.uom,
            "type": MOVE_IN,
        },
    )
    return data
