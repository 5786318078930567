# Overview: Repacking stock between packagings as paired REPACK_OUT / REPACK_IN ledger entries.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import NotFoundError
from ..models import Repack, RepackLine
from ..models.inventory import MOVE_REPACK_IN, MOVE_REPACK_OUT, REPACK_INPUT, REPACK_OUTPUT
from ..schemas import RepackRequest
from ..time_utils import utcnow
from . import audit_service, document_service, stock_service
from .audit_service import AuditActor
from .concurrency import run_with_retry
from .stock_service import Demand
from .uom_service import UomResolver, require_registered


def _write_repack(req: RepackRequest, location_code: str, created_by: str | None) -> Repack:
    try:
        location = stock_service.resolve_location(location_code)
        lines = [(REPACK_INPUT, line) for line in req.inputs] + [(REPACK_OUTPUT, line) for line in req.outputs]

        resolver = UomResolver.for_products(line.product_id for _, line in lines)
        require_registered(resolver, ((line.product_id, line.uom) for _, line in lines))
        stock_service.require_sufficient(
            [Demand(line.product_id, location.id, location.code, line.uom, line.qty) for line in req.inputs],
            resolver,
        )

        created_at = utcnow()
        header = Repack(
            number=document_service.next_repack_number(created_at),
            location_id=location.id,
            notes=req.notes,
            extra_cost=req.extra_cost,
            created_by=created_by,
            created_at=created_at,
        )
        db.session.add(header)
        db.session.flush()

        for position, (kind, line) in enumerate(lines):
            db.session.add(RepackLine(
                repack_id=header.id,
                kind=kind,
                position=position,
                product_id=line.product_id,
                uom=line.uom,
                qty=line.qty,
            ))
            outgoing = kind == REPACK_INPUT
            stock_service.record_move(
                product_id=line.product_id,
                location_id=location.id,
                uom=line.uom,
                qty=-line.qty if outgoing else line.qty,
                move_type=MOVE_REPACK_OUT if outgoing else MOVE_REPACK_IN,
                ref_id=header.id,
                created_at=created_at,
            )

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return header


def create_repack(req: RepackRequest, actor: AuditActor) -> dict:
    """
    Consume the inputs and produce the outputs at one location, atomically. Commits.

    Inputs are checked against on-hand like sale lines (all shortages reported
    at once); nothing is written when any check fails.
    """
    location_code = req.location_code or current_app.config.get("REPACK_LOCATION_CODE", "GUDANG")
    created_by = actor.id if actor.id != audit_service.ANONYMOUS else None
    header = run_with_retry(lambda: _write_repack(req, location_code, created_by), label="repack")
    data = header.to_dict()

    audit_service.audit_after_commit(
        actor,
        action="REPACK",
        entity_type="REPACK",
        entity_id=header.id,
        ref_number=data["number"],
        payload={
            "locationCode": location_code,
            "inputs": data["inputs"],
            "outputs": data["outputs"],
            "notes": req.notes,
            "extraCost": req.extra_cost,
        },
    )
    current_app.logger.info("repack-created id=%s number=%s", data["id"], data["number"])
    return data


def get_repack(repack_id: str) -> dict:
    row = db.session.get(Repack, repack_id)
    if row is None:
        raise NotFoundError("Repack not found", details={"repackId": repack_id})
    return row.to_dict()
