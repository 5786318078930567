# Overview: Human-readable daily document numbers for sales, returns, purchases and repacks.

"""
Numbers are count-then-format: the suffix is one more than the number of
documents already carrying today's prefix. Two concurrent commits on the same
day (and cashier, for sales) can compute the same suffix, so the number is
advisory; the row's UUID primary key is the real identity and `number` has no
unique constraint.
"""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import current_app

from ..extensions import db
from ..models import Purchase, Repack, Sale, SaleReturn, StoreProfile
from ..time_utils import utcnow


RETURN_PREFIX = "RTN"
PURCHASE_PREFIX = "PO"
REPACK_PREFIX = "RPK"


def store_timezone() -> tzinfo:
    profile = db.session.query(StoreProfile).order_by(StoreProfile.updated_at.desc()).first()
    name = (profile.timezone if profile else None) or current_app.config.get("STORE_TIMEZONE", "UTC")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        current_app.logger.warning("invalid store timezone %r, using UTC", name)
        return timezone.utc


def local_day(at: datetime | None = None) -> str:
    """YYYYMMDD of `at` (UTC-naive) in the store's timezone."""
    at = at or utcnow()
    return at.replace(tzinfo=timezone.utc).astimezone(store_timezone()).strftime("%Y%m%d")


def _next_suffix(model, prefix: str) -> int:
    count = db.session.query(model.id).filter(model.number.like(f"{prefix}%")).count()
    return count + 1


def next_sale_number(cashier_code: str, at: datetime | None = None) -> str:
    """TOKOAL-YYYYMMDD-<cashierCode>-NNNN"""
    sale_prefix = current_app.config.get("SALE_NUMBER_PREFIX", "TOKOAL")
    prefix = f"{sale_prefix}-{local_day(at)}-{cashier_code}-"
    return f"{prefix}{_next_suffix(Sale, prefix):04d}"


def next_return_number(at: datetime | None = None) -> str:
    """RTN-YYYYMMDD-NNNN"""
    prefix = f"{RETURN_PREFIX}-{local_day(at)}-"
    return f"{prefix}{_next_suffix(SaleReturn, prefix):04d}"


def next_purchase_number(at: datetime | None = None) -> str:
    """PO-YYYYMMDD-NNNN"""
    prefix = f"{PURCHASE_PREFIX}-{local_day(at)}-"
    return f"{prefix}{_next_suffix(Purchase, prefix):04d}"


def next_repack_number(at: datetime | None = None) -> str:
    """RPK-YYYYMMDD-NNNN"""
    prefix = f"{REPACK_PREFIX}-{local_day(at)}-"
    return f"{prefix}{_next_suffix(Repack, prefix):04d}"
