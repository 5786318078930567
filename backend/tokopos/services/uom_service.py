# Overview: Unit-of-measure resolution between sale units and a product's base unit.

"""
UOM invariants (authoritative)

- Every (product_id, uom) used by a stock move, sale line or return line must
  have a ProductUom row; conversion fails closed when it is missing.
- to_base is a positive integer multiplier. Units that need fractional ratios
  must be modelled at a finer base granularity (1kg = 1000 gram, not 1 lb = 453.59 g).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from ..extensions import db
from ..errors import UomNotRegisteredError
from ..models import ProductUom
from ..numeric import to_decimal


class UomResolver:
    """
    Preloaded (product_id, uom) -> to_base map.

    Load once per document so that validating N lines costs one query.
    """

    def __init__(self, factors: dict[tuple[str, str], int] | None = None):
        self._factors: dict[tuple[str, str], int] = dict(factors or {})

    @classmethod
    def for_products(cls, product_ids: Iterable[str]) -> "UomResolver":
        ids = {pid for pid in product_ids if pid}
        if not ids:
            return cls()
        rows = (
            db.session.query(ProductUom.product_id, ProductUom.uom, ProductUom.to_base)
            .filter(ProductUom.product_id.in_(ids))
            .all()
        )
        return cls({(r.product_id, r.uom): int(r.to_base) for r in rows})

    def factor(self, product_id: str, uom: str) -> int | None:
        return self._factors.get((product_id, uom))

    def require(self, product_id: str, uom: str) -> int:
        tb = self.factor(product_id, uom)
        if not tb:
            raise UomNotRegisteredError(
                f"UOM {uom} is not registered for product {product_id}",
                details={"productId": product_id, "uom": uom},
            )
        return tb

    def to_base(self, product_id: str, uom: str, qty) -> Decimal:
        return to_decimal(qty) * self.require(product_id, uom)

    def missing(self, pairs: Iterable[tuple[str, str]]) -> list[dict]:
        """Return every (product, uom) pair without a registration, de-duplicated."""
        seen = set()
        out = []
        for product_id, uom in pairs:
            key = (product_id, uom)
            if key in seen:
                continue
            seen.add(key)
            if not self.factor(product_id, uom):
                out.append({"productId": product_id, "uom": uom})
        return out


def require_registered(resolver: UomResolver, pairs: Iterable[tuple[str, str]]) -> None:
    missing = resolver.missing(pairs)
    if missing:
        raise UomNotRegisteredError(
            "UOM not registered for product",
            details={"missing": missing},
        )


def ensure_base_uom(product_id: str, base_uom: str) -> ProductUom:
    """Register the product's base unit with to_base=1 if it is not yet registered."""
    row = db.session.query(ProductUom).filter_by(product_id=product_id, uom=base_uom).first()
    if row is not None:
        return row
    row = ProductUom(product_id=product_id, uom=base_uom, to_base=1)
    db.session.add(row)
    db.session.flush()
    return row
