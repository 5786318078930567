# Overview: Service-layer operations for the stock ledger; balances are always derived from StockMove rows.

"""
Ledger invariants (authoritative)

- Stock is ledger-derived from StockMove rows; there is no stored on-hand column.
- balance(product, location) = SUM(qty * to_base(uom)) over every move for that
  product at that location, in base units.
- A move whose uom has no ProductUom row contributes 0 and is logged as a
  data-quality warning; it never fails the balance query.
- Moves are inserted by the ingestors in the same DB transaction as the
  document they belong to; nothing in this package updates or deletes them.
- Summation is order-independent; no caching, balances are recomputed per query.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import LocationNotFoundError, StockInsufficientError, UnknownUomError, ValidationError
from ..models import Location, Product, StockMove
from ..models.inventory import MOVE_IN, MOVE_TYPES
from ..numeric import EPSILON, ZERO, to_decimal, to_number
from ..time_utils import to_utc_z, utcnow
from .uom_service import UomResolver


def per_uom_breakdown(product_id: str, location_id: str) -> list[dict]:
    """Raw SUM(qty) grouped by uom, unconverted."""
    rows = (
        db.session.query(StockMove.uom, func.coalesce(func.sum(StockMove.qty), 0))
        .filter(StockMove.product_id == product_id, StockMove.location_id == location_id)
        .group_by(StockMove.uom)
        .order_by(StockMove.uom.asc())
        .all()
    )
    return [{"uom": uom, "rawQty": to_decimal(raw)} for uom, raw in rows]


def _sum_in_base(product_id: str, breakdown: Iterable[dict], resolver: UomResolver) -> Decimal:
    total = ZERO
    for row in breakdown:
        tb = resolver.factor(product_id, row["uom"])
        if not tb:
            current_app.logger.warning(
                "ledger-unregistered-uom productId=%s uom=%s rawQty=%s",
                product_id, row["uom"], row["rawQty"],
            )
            continue
        total += row["rawQty"] * tb
    return total


def balance(product_id: str, location_id: str, resolver: UomResolver | None = None) -> Decimal:
    """On-hand at a location in base units."""
    if resolver is None:
        resolver = UomResolver.for_products([product_id])
    return _sum_in_base(product_id, per_uom_breakdown(product_id, location_id), resolver)


def balance_in_unit(product_id: str, location_id: str, uom: str) -> Decimal:
    """On-hand expressed in a display unit; fails with UNKNOWN_UOM if the unit is not registered."""
    resolver = UomResolver.for_products([product_id])
    tb = resolver.factor(product_id, uom)
    if not tb:
        raise UnknownUomError(
            f"UOM {uom} is not registered for product {product_id}",
            details={"productId": product_id, "uom": uom},
        )
    return balance(product_id, location_id, resolver) / Decimal(tb)


def resolve_locations(codes: Iterable[str]) -> dict[str, Location]:
    """Map every code to its Location; any unknown code rejects the whole request."""
    wanted = sorted({c for c in codes if c})
    if not wanted:
        return {}
    rows = db.session.query(Location).filter(Location.code.in_(wanted)).all()
    by_code = {loc.code: loc for loc in rows}
    missing = [c for c in wanted if c not in by_code]
    if missing:
        raise LocationNotFoundError(
            f"Location not found: {', '.join(missing)}",
            details={"codes": missing},
        )
    return by_code


def resolve_location(code: str) -> Location:
    return resolve_locations([code])[code]


def record_move(
    *,
    product_id: str,
    location_id: str,
    uom: str,
    qty,
    move_type: str,
    ref_id: str | None = None,
    created_at: datetime | None = None,
) -> StockMove:
    """
    Append one ledger entry to the current session (flush only, no commit).

    The caller owns the transaction so that the move commits or rolls back
    together with its originating document.
    """
    if move_type not in MOVE_TYPES:
        raise ValidationError(f"Unknown move type: {move_type}")
    move = StockMove(
        product_id=product_id,
        location_id=location_id,
        uom=uom,
        qty=to_decimal(qty),
        type=move_type,
        ref_id=ref_id,
        created_at=created_at or utcnow(),
    )
    db.session.add(move)
    db.session.flush()
    return move


@dataclass(frozen=True)
class Demand:
    """One outgoing quantity to check against the ledger."""
    product_id: str
    location_id: str
    location_code: str
    uom: str
    qty: Decimal


def find_shortages(demands: Iterable[Demand], resolver: UomResolver) -> list[dict]:
    """
    Check every demand against on-hand and return ALL shortages.

    Demands on the same (product, location) draw from one balance in order,
    so two lines that each fit but together exceed stock are still caught.
    """
    available: dict[tuple[str, str], Decimal] = {}
    shortages = []
    for d in demands:
        key = (d.product_id, d.location_id)
        if key not in available:
            available[key] = balance(d.product_id, d.location_id, resolver)
        need = d.qty * resolver.require(d.product_id, d.uom)
        have = available[key]
        if have + EPSILON < need:
            shortages.append({
                "productId": d.product_id,
                "locationCode": d.location_code,
                "uom": d.uom,
                "need": to_number(need),
                "have": to_number(max(have, ZERO)),
            })
        available[key] = have - need
    return shortages


def require_sufficient(demands: Iterable[Demand], resolver: UomResolver) -> None:
    shortages = find_shortages(demands, resolver)
    if shortages:
        raise StockInsufficientError("Insufficient stock", details={"shortages": shortages})


def _require_product(product_id: str) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ValidationError("Product not found", details={"productId": product_id})
    return product


def stock_in(
    *,
    product_id: str,
    location_code: str,
    qty,
    uom: str,
    ref_id: str | None = None,
) -> StockMove:
    """
    Manual receipt of stock (IN move). Commits.

    Raises:
        ValidationError: product unknown or qty not positive
        LocationNotFoundError: unknown location code
        UomNotRegisteredError: uom not registered for the product
    """
    qty = to_decimal(qty)
    if qty <= 0:
        raise ValidationError("qty must be positive")
    _require_product(product_id)
    location = resolve_location(location_code)
    UomResolver.for_products([product_id]).require(product_id, uom)

    try:
        move = record_move(
            product_id=product_id,
            location_id=location.id,
            uom=uom,
            qty=qty,
            move_type=MOVE_IN,
            ref_id=ref_id,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return move


def balance_report(product_id: str, location_code: str, uom: str | None = None) -> dict:
    location = resolve_location(location_code)
    _require_product(product_id)
    base = balance(product_id, location.id)
    out = {
        "productId": product_id,
        "locationCode": location.code,
        "balanceBase": to_number(base),
    }
    if uom:
        out["uom"] = uom
        out["balanceInUom"] = to_number(balance_in_unit(product_id, location.id, uom))
    return out


def stock_snapshot(
    *,
    product_ids: list[str] | None = None,
    location_codes: list[str] | None = None,
    per_uom: bool = False,
    limit: int = 1000,
) -> list[dict]:
    """
    Bulk balance snapshot grouped by (product, location).

    location_codes, when given, must all resolve (LOCATION_NOT_FOUND otherwise).
    Rows are ordered by product then location code and capped at `limit`.
    """
    q = (
        db.session.query(
            StockMove.product_id,
            StockMove.location_id,
            StockMove.uom,
            func.coalesce(func.sum(StockMove.qty), 0).label("raw"),
            func.max(StockMove.created_at).label("last_move_at"),
        )
        .group_by(StockMove.product_id, StockMove.location_id, StockMove.uom)
    )
    if product_ids:
        q = q.filter(StockMove.product_id.in_(product_ids))
    if location_codes:
        by_code = resolve_locations(location_codes)
        q = q.filter(StockMove.location_id.in_([loc.id for loc in by_code.values()]))

    grouped: dict[tuple[str, str], dict] = {}
    for row in q.all():
        key = (row.product_id, row.location_id)
        entry = grouped.setdefault(key, {"perUom": [], "lastMoveAt": None})
        entry["perUom"].append({"uom": row.uom, "rawQty": to_decimal(row.raw)})
        if entry["lastMoveAt"] is None or (row.last_move_at and row.last_move_at > entry["lastMoveAt"]):
            entry["lastMoveAt"] = row.last_move_at

    if not grouped:
        return []

    resolver = UomResolver.for_products({pid for pid, _ in grouped})
    locations = {
        loc.id: loc
        for loc in db.session.query(Location).filter(Location.id.in_({lid for _, lid in grouped})).all()
    }

    data = []
    for (product_id, location_id), entry in grouped.items():
        loc = locations.get(location_id)
        item = {
            "productId": product_id,
            "location": {"id": location_id, "code": loc.code if loc else None, "name": loc.name if loc else None},
            "balanceBase": to_number(_sum_in_base(product_id, entry["perUom"], resolver)),
            "lastMoveAt": to_utc_z(entry["lastMoveAt"]),
        }
        if per_uom:
            item["perUom"] = [
                {"uom": r["uom"], "qty": to_number(r["rawQty"])} for r in entry["perUom"]
            ]
        data.append(item)

    data.sort(key=lambda i: (i["productId"], i["location"]["code"] or ""))
    return data[:limit]
