# Overview: Typed request structs for every external entry point; bodies are parsed once and never trusted raw.

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from .errors import ValidationError
from .models.sales import PAYMENT_METHODS
from .numeric import ZERO, to_decimal
from .time_utils import parse_iso_datetime


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Resources a device may pull or tombstone
SYNC_RESOURCES = (
    "products",
    "productUoms",
    "prices",
    "barcodes",
    "customers",
    "locations",
    "storeProfile",
)


class FieldReader:
    """
    Reads fields of one JSON object, recording problems instead of raising.

    Every problem is recorded as {"path": "sales[0].lines[1].qty", "message": ...}
    so a device sees all of them in one round trip.
    """

    def __init__(self, raw: Any, path: str, errors: list[dict]):
        self.path = path
        self.errors = errors
        if isinstance(raw, dict):
            self.raw = raw
        else:
            self.raw = {}
            self.fail(None, "must be an object")

    def _p(self, key: str | None) -> str:
        if key is None:
            return self.path or "$"
        return f"{self.path}.{key}" if self.path else key

    def fail(self, key: str | None, message: str) -> None:
        self.errors.append({"path": self._p(key), "message": message})

    def _get(self, key: str, required: bool):
        value = self.raw.get(key)
        if value is None and required:
            self.fail(key, "is required")
        return value

    def text(self, key: str, *, required: bool = True, max_len: int = 255) -> str | None:
        value = self._get(key, required)
        if value is None:
            return None
        if not isinstance(value, str):
            self.fail(key, "must be a string")
            return None
        value = value.strip()
        if not value:
            if required:
                self.fail(key, "must not be empty")
            return None
        if len(value) > max_len:
            self.fail(key, f"must be at most {max_len} characters")
            return None
        return value

    def uuid(self, key: str, *, required: bool = True) -> str | None:
        value = self.text(key, required=required, max_len=36)
        if value is None:
            return None
        try:
            uuid.UUID(value)
        except ValueError:
            self.fail(key, "must be a UUID")
            return None
        return value

    def email(self, key: str) -> str | None:
        value = self.text(key, required=False)
        if value is not None and not _EMAIL_RE.match(value):
            self.fail(key, "must be an email address")
            return None
        return value

    def number(
        self,
        key: str,
        *,
        required: bool = True,
        default: Decimal | None = None,
        positive: bool = False,
        nonnegative: bool = False,
        nonzero: bool = False,
        integer: bool = False,
    ) -> Decimal | None:
        value = self._get(key, required)
        if value is None:
            return default
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            self.fail(key, "must be a number")
            return None
        d = to_decimal(value)
        if not d.is_finite():
            self.fail(key, "must be a finite number")
            return None
        if integer and d != d.to_integral_value():
            self.fail(key, "must be an integer")
            return None
        if positive and d <= 0:
            self.fail(key, "must be positive")
            return None
        if nonnegative and d < 0:
            self.fail(key, "must not be negative")
            return None
        if nonzero and d == 0:
            self.fail(key, "must not be zero")
            return None
        return d

    def boolean(self, key: str, default: bool | None = None) -> bool | None:
        value = self.raw.get(key)
        if value is None:
            return default
        if not isinstance(value, bool):
            self.fail(key, "must be a boolean")
            return default
        return value

    def when(self, key: str) -> datetime | None:
        """Lenient timestamp: missing or unparseable values read as None."""
        value = self.raw.get(key)
        if not isinstance(value, str):
            return None
        try:
            return parse_iso_datetime(value)
        except ValueError:
            return None

    def choice(self, key: str, choices, *, required: bool = True) -> str | None:
        value = self.text(key, required=required, max_len=64)
        if value is not None and value not in choices:
            self.fail(key, f"must be one of {', '.join(sorted(choices))}")
            return None
        return value

    def items(self, key: str, *, required: bool = False, min_items: int = 0) -> list[tuple[Any, str]]:
        value = self._get(key, required)
        if value is None:
            return []
        if not isinstance(value, list):
            self.fail(key, "must be an array")
            return []
        if len(value) < min_items:
            self.fail(key, f"must contain at least {min_items} item(s)")
        return [(item, f"{self._p(key)}[{i}]") for i, item in enumerate(value)]

    def strings(self, key: str, *, as_uuid: bool = False) -> list[str]:
        out = []
        for item, path in self.items(key):
            if not isinstance(item, str) or not item.strip():
                self.errors.append({"path": path, "message": "must be a non-empty string"})
                continue
            item = item.strip()
            if as_uuid:
                try:
                    uuid.UUID(item)
                except ValueError:
                    self.errors.append({"path": path, "message": "must be a UUID"})
                    continue
            out.append(item)
        return out


def parse_body(schema, payload: Any):
    """Parse `payload` with `schema.parse` or raise VALIDATION_ERROR listing every bad field."""
    errors: list[dict] = []
    result = schema.parse(payload, "", errors)
    if errors:
        raise ValidationError("Invalid request body", details={"fields": errors})
    return result


# ---------------------------------------------------------------------------
# Master data (/sync/push)
# ---------------------------------------------------------------------------

@dataclass
class ProductIn:
    id: str | None
    sku: str
    name: str
    base_uom: str
    is_active: bool | None
    updated_at: datetime | None

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        return cls(
            id=r.uuid("id", required=False),
            sku=r.text("sku", max_len=64),
            name=r.text("name"),
            base_uom=r.text("baseUom", max_len=32),
            is_active=r.boolean("isActive"),
            updated_at=r.when("updatedAt"),
        )


@dataclass
class ProductUomIn:
    id: str | None
    product_id: str
    uom: str
    to_base: int | None
    updated_at: datetime | None

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        to_base = r.number("toBase", positive=True, integer=True)
        return cls(
            id=r.uuid("id", required=False),
            product_id=r.uuid("productId"),
            uom=r.text("uom", max_len=32),
            to_base=int(to_base) if to_base is not None else None,
            updated_at=r.when("updatedAt"),
        )


@dataclass
class BarcodeIn:
    id: str | None
    product_id: str
    uom: str
    code: str
    updated_at: datetime | None

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        return cls(
            id=r.uuid("id", required=False),
            product_id=r.uuid("productId"),
            uom=r.text("uom", max_len=32),
            code=r.text("code", max_len=64),
            updated_at=r.when("updatedAt"),
        )


@dataclass
class PriceIn:
    id: str | None
    product_id: str
    uom: str
    price: Decimal
    active: bool | None
    updated_at: datetime | None

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        return cls(
            id=r.uuid("id", required=False),
            product_id=r.uuid("productId"),
            uom=r.text("uom", max_len=32),
            price=r.number("price", nonnegative=True),
            active=r.boolean("active"),
            updated_at=r.when("updatedAt"),
        )


@dataclass
class CustomerIn:
    id: str | None
    name: str | None
    phone: str | None
    email: str | None
    member_code: str | None
    joined_at: datetime | None
    is_active: bool | None
    updated_at: datetime | None

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        return cls(
            id=r.uuid("id", required=False),
            name=r.text("name", required=False),
            phone=r.text("phone", required=False, max_len=32),
            email=r.email("email"),
            member_code=r.text("memberCode", required=False, max_len=64),
            joined_at=r.when("joinedAt"),
            is_active=r.boolean("isActive"),
            updated_at=r.when("updatedAt"),
        )


@dataclass
class LocationIn:
    id: str | None
    code: str
    name: str
    updated_at: datetime | None

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        return cls(
            id=r.uuid("id", required=False),
            code=r.text("code", max_len=32),
            name=r.text("name"),
            updated_at=r.when("updatedAt"),
        )


@dataclass
class DeleteIn:
    resource: str
    id: str
    deleted_at: datetime | None

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        return cls(
            resource=r.choice("resource", SYNC_RESOURCES),
            id=r.text("id", max_len=64),
            deleted_at=r.when("deletedAt"),
        )


@dataclass
class PushRequest:
    products: list[ProductIn] = field(default_factory=list)
    product_uoms: list[ProductUomIn] = field(default_factory=list)
    barcodes: list[BarcodeIn] = field(default_factory=list)
    prices: list[PriceIn] = field(default_factory=list)
    customers: list[CustomerIn] = field(default_factory=list)
    locations: list[LocationIn] = field(default_factory=list)
    deletes: list[DeleteIn] = field(default_factory=list)

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        return cls(
            products=[ProductIn.parse(v, p, errors) for v, p in r.items("products")],
            product_uoms=[ProductUomIn.parse(v, p, errors) for v, p in r.items("productUoms")],
            barcodes=[BarcodeIn.parse(v, p, errors) for v, p in r.items("barcodes")],
            prices=[PriceIn.parse(v, p, errors) for v, p in r.items("prices")],
            customers=[CustomerIn.parse(v, p, errors) for v, p in r.items("customers")],
            locations=[LocationIn.parse(v, p, errors) for v, p in r.items("locations")],
            deletes=[DeleteIn.parse(v, p, errors) for v, p in r.items("deletes")],
        )


# ---------------------------------------------------------------------------
# Sales / returns
# ---------------------------------------------------------------------------

@dataclass
class SaleLineIn:
    product_id: str
    location_code: str
    uom: str
    qty: Decimal
    price: Decimal
    discount: Decimal

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        return cls(
            product_id=r.uuid("productId"),
            location_code=r.text("locationCode", max_len=32),
            uom=r.text("uom", max_len=32),
            qty=r.number("qty", positive=True),
            price=r.number("price", nonnegative=True),
            discount=r.number("discount", required=False, default=ZERO, nonnegative=True),
        )


@dataclass
class PaymentIn:
    method: str
    amount: Decimal
    ref: str | None

    @classmethod
    def parse(cls, raw, path, errors, *, positive: bool = False):
        r = FieldReader(raw, path, errors)
        return cls(
            method=r.choice("method", PAYMENT_METHODS),
            amount=r.number("amount", positive=positive, nonnegative=True),
            ref=r.text("ref", required=False, max_len=128),
        )


@dataclass
class SaleIn:
    client_doc_id: str
    id: str | None
    cashier_code: str
    number: str | None
    customer_id: str | None
    method: str | None
    discount_total: Decimal
    created_at: datetime | None
    lines: list[SaleLineIn]
    payments: list[PaymentIn]

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        return cls(
            client_doc_id=r.text("clientDocId", max_len=128),
            id=r.uuid("id", required=False),
            cashier_code=r.text("cashierCode", required=False, max_len=32) or "CASHIER",
            number=r.text("number", required=False, max_len=64),
            customer_id=r.uuid("customerId", required=False),
            method=r.choice("method", PAYMENT_METHODS, required=False),
            discount_total=r.number("discountTotal", required=False, default=ZERO, nonnegative=True),
            created_at=r.when("createdAt"),
            lines=[SaleLineIn.parse(v, p, errors) for v, p in r.items("lines", required=True, min_items=1)],
            payments=[PaymentIn.parse(v, p, errors) for v, p in r.items("payments", required=True, min_items=1)],
        )


@dataclass
class PushSalesRequest:
    sales: list[SaleIn]

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        return cls(sales=[SaleIn.parse(v, p, errors) for v, p in r.items("sales", required=True, min_items=1)])


@dataclass
class ReturnItemIn:
    product_id: str
    uom: str
    qty: Decimal
    price: Decimal

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        return cls(
            product_id=r.uuid("productId"),
            uom=r.text("uom", max_len=32),
            qty=r.number("qty", positive=True),
            price=r.number("price", nonnegative=True),
        )


@dataclass
class ReturnIn:
    client_doc_id: str
    sale_id: str
    location_code: str
    reason: str | None
    created_at: datetime | None
    items: list[ReturnItemIn]
    refunds: list[PaymentIn]

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        return cls(
            client_doc_id=r.text("clientDocId", max_len=128),
            sale_id=r.uuid("saleId"),
            location_code=r.text("locationCode", max_len=32),
            reason=r.text("reason", required=False),
            created_at=r.when("createdAt"),
            items=[ReturnItemIn.parse(v, p, errors) for v, p in r.items("items", required=True, min_items=1)],
            refunds=[PaymentIn.parse(v, p, errors, positive=True) for v, p in r.items("refunds")],
        )


@dataclass
class PushReturnsRequest:
    returns: list[ReturnIn]

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        return cls(returns=[ReturnIn.parse(v, p, errors) for v, p in r.items("returns", required=True, min_items=1)])


# ---------------------------------------------------------------------------
# Inventory intents
# ---------------------------------------------------------------------------

@dataclass
class TransferIn:
    client_doc_id: str
    product_id: str
    from_location_code: str
    to_location_code: str
    uom: str
    qty: Decimal
    ref_id: str | None
    created_at: datetime | None

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        item = cls(
            client_doc_id=r.text("clientDocId", max_len=128),
            product_id=r.uuid("productId"),
            from_location_code=r.text("fromLocationCode", max_len=32),
            to_location_code=r.text("toLocationCode", max_len=32),
            uom=r.text("uom", max_len=32),
            qty=r.number("qty", positive=True),
            ref_id=r.text("refId", required=False, max_len=64),
            created_at=r.when("createdAt"),
        )
        if item.from_location_code and item.from_location_code == item.to_location_code:
            r.fail("toLocationCode", "must differ from fromLocationCode")
        return item


@dataclass
class PushTransfersRequest:
    transfers: list[TransferIn]

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        return cls(transfers=[TransferIn.parse(v, p, errors) for v, p in r.items("transfers", required=True, min_items=1)])


@dataclass
class AdjustmentIn:
    client_doc_id: str
    product_id: str
    location_code: str
    uom: str
    qty: Decimal
    ref_id: str | None
    created_at: datetime | None

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        return cls(
            client_doc_id=r.text("clientDocId", max_len=128),
            product_id=r.uuid("productId"),
            location_code=r.text("locationCode", max_len=32),
            uom=r.text("uom", max_len=32),
            qty=r.number("qty", nonzero=True),
            ref_id=r.text("refId", required=False, max_len=64),
            created_at=r.when("createdAt"),
        )


@dataclass
class PushAdjustmentsRequest:
    adjustments: list[AdjustmentIn]

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        return cls(adjustments=[
            AdjustmentIn.parse(v, p, errors) for v, p in r.items("adjustments", required=True, min_items=1)
        ])


@dataclass
class PullStockRequest:
    product_ids: list[str]
    location_codes: list[str]
    per_uom: bool
    limit: int | None

    @classmethod
    def parse(cls, raw, path, errors):
        if raw is None:
            raw = {}
        r = FieldReader(raw, path, errors)
        limit = r.number("limit", required=False, positive=True, integer=True)
        return cls(
            product_ids=r.strings("productIds", as_uuid=True),
            location_codes=r.strings("locationCodes"),
            per_uom=bool(r.boolean("perUom", default=False)),
            limit=int(limit) if limit is not None else None,
        )


@dataclass
class StockInRequest:
    product_id: str
    location_code: str
    qty: Decimal
    uom: str
    ref_id: str | None

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        return cls(
            product_id=r.uuid("productId"),
            location_code=r.text("locationCode", max_len=32),
            qty=r.number("qty", positive=True),
            uom=r.text("uom", max_len=32),
            ref_id=r.text("refId", required=False, max_len=64),
        )


# ---------------------------------------------------------------------------
# Purchases / repack (online, warehouse side)
# ---------------------------------------------------------------------------

@dataclass
class SupplierIn:
    name: str
    phone: str | None
    address: str | None

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        return cls(
            name=r.text("name"),
            phone=r.text("phone", required=False, max_len=32),
            address=r.text("address", required=False, max_len=1000),
        )


@dataclass
class PurchaseLineIn:
    product_id: str
    uom: str
    qty: Decimal
    buy_price: Decimal
    sell_price: Decimal | None

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        return cls(
            product_id=r.uuid("productId"),
            uom=r.text("uom", max_len=32),
            qty=r.number("qty", positive=True),
            buy_price=r.number("buyPrice", nonnegative=True),
            sell_price=r.number("sellPrice", required=False, nonnegative=True),
        )


@dataclass
class PurchaseRequest:
    location_code: str
    supplier_id: str | None
    supplier: SupplierIn | None
    discount: Decimal
    lines: list[PurchaseLineIn]

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        supplier_raw = r.raw.get("supplier")
        return cls(
            location_code=r.text("locationCode", max_len=32),
            supplier_id=r.uuid("supplierId", required=False),
            supplier=SupplierIn.parse(supplier_raw, r._p("supplier"), errors) if supplier_raw is not None else None,
            discount=r.number("discount", required=False, default=ZERO, nonnegative=True),
            lines=[PurchaseLineIn.parse(v, p, errors) for v, p in r.items("lines", required=True, min_items=1)],
        )


@dataclass
class RepackLineIn:
    product_id: str
    uom: str
    qty: Decimal

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        return cls(
            product_id=r.uuid("productId"),
            uom=r.text("uom", max_len=32),
            qty=r.number("qty", positive=True),
        )


@dataclass
class RepackRequest:
    inputs: list[RepackLineIn]
    outputs: list[RepackLineIn]
    location_code: str | None
    notes: str | None
    extra_cost: Decimal

    @classmethod
    def parse(cls, raw, path, errors):
        r = FieldReader(raw, path, errors)
        return cls(
            inputs=[RepackLineIn.parse(v, p, errors) for v, p in r.items("inputs", required=True, min_items=1)],
            outputs=[RepackLineIn.parse(v, p, errors) for v, p in r.items("outputs", required=True, min_items=1)],
            location_code=r.text("locationCode", required=False, max_len=32),
            notes=r.text("notes", required=False, max_len=2000),
            extra_cost=r.number("extraCost", required=False, default=ZERO, nonnegative=True),
        )


# ---------------------------------------------------------------------------
# Query strings
# ---------------------------------------------------------------------------

def _query_int(args, key: str, errors: list[dict], *, minimum: int = 0, maximum: int | None = None) -> int | None:
    raw = args.get(key)
    if raw is None or str(raw).strip() == "":
        return None
    try:
        value = int(str(raw).strip())
    except ValueError:
        errors.append({"path": key, "message": "must be an integer"})
        return None
    if value < minimum or (maximum is not None and value > maximum):
        bound = f"between {minimum} and {maximum}" if maximum is not None else f">= {minimum}"
        errors.append({"path": key, "message": f"must be {bound}"})
        return None
    return value


@dataclass
class PullQuery:
    resources: list[str]
    limit: int
    since: datetime | None

    @classmethod
    def from_args(cls, args, *, default_limit: int, max_limit: int) -> "PullQuery":
        errors: list[dict] = []
        raw_resources = (args.get("resources") or "").strip()
        if raw_resources:
            resources = [s.strip() for s in raw_resources.split(",") if s.strip()]
            unknown = [s for s in resources if s not in SYNC_RESOURCES]
            if unknown:
                errors.append({"path": "resources", "message": f"unknown resource(s): {', '.join(unknown)}"})
            # de-duplicate, keep request order
            resources = list(dict.fromkeys(s for s in resources if s in SYNC_RESOURCES))
        else:
            resources = list(SYNC_RESOURCES)

        limit = _query_int(args, "limit", errors, minimum=1, maximum=max_limit)

        since = None
        raw_since = args.get("since")
        if raw_since:
            try:
                since = parse_iso_datetime(raw_since)
            except ValueError:
                errors.append({"path": "since", "message": "must be an ISO-8601 datetime"})

        if errors:
            raise ValidationError("Invalid query", details={"fields": errors})
        return cls(resources=resources, limit=limit or default_limit, since=since)


@dataclass
class RetentionParams:
    ttl_days: int | None
    stale_days: int | None
    safety_sec: int | None

    @classmethod
    def from_sources(cls, *sources) -> "RetentionParams":
        """Read overrides from query args and/or a JSON body; later sources win."""
        merged: dict[str, Any] = {}
        for src in sources:
            if not src:
                continue
            for key in ("ttlDays", "staleDays", "safetySec"):
                if src.get(key) is not None:
                    merged[key] = src.get(key)
        errors: list[dict] = []
        params = cls(
            ttl_days=_query_int(merged, "ttlDays", errors),
            stale_days=_query_int(merged, "staleDays", errors),
            safety_sec=_query_int(merged, "safetySec", errors),
        )
        if errors:
            raise ValidationError("Invalid retention parameters", details={"fields": errors})
        return params
