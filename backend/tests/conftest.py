"""
Pytest fixtures for the POS sync backend tests.

Provides an in-memory app, per-test table wipes, role users with bearer
headers, and a small catalog (GULA-1 stocked in grams at GUDANG).
"""

import uuid
from datetime import timedelta
from types import SimpleNamespace

import pytest

from tokopos import create_app
from tokopos.extensions import db
from tokopos.models import Location, PriceList, Product, ProductUom, StockMove, User
from tokopos.models.auth import ROLE_ADMIN, ROLE_GUDANG, ROLE_KASIR
from tokopos.models.inventory import MOVE_IN
from tokopos.services import session_service
from tokopos.time_utils import to_utc_z, utcnow


DEVICE_ID = "device-test-1"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TOMBSTONE_RETENTION_ENABLED': False,
        'STORE_TIMEZONE': 'UTC',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _user_with_token(db_session, username, role):
    user = User(username=username, role=role, is_active=True)
    db_session.add(user)
    db_session.commit()
    _, token = session_service.create_session(user.id)
    return SimpleNamespace(user=user, token=token)


@pytest.fixture(scope='function')
def users(db_session):
    """One user per role, each with a live bearer token."""
    return SimpleNamespace(
        admin=_user_with_token(db_session, "admin", ROLE_ADMIN),
        kasir=_user_with_token(db_session, "kasir", ROLE_KASIR),
        gudang=_user_with_token(db_session, "gudang", ROLE_GUDANG),
    )


@pytest.fixture(scope='function')
def headers_for(users):
    """headers_for("kasir") -> Authorization + x-device-id headers."""
    def _headers(role="admin", device_id=DEVICE_ID):
        out = {"Authorization": f"Bearer {getattr(users, role).token}"}
        if device_id:
            out["x-device-id"] = device_id
        return out
    return _headers


@pytest.fixture(scope='function')
def admin_headers(headers_for):
    return headers_for("admin")


@pytest.fixture(scope='function')
def kasir_headers(headers_for):
    return headers_for("kasir")


@pytest.fixture(scope='function')
def gudang_headers(headers_for):
    return headers_for("gudang")


@pytest.fixture(scope='function')
def catalog(db_session):
    """
    GULA-1 (base gram; 1kg=1000, 250g=250) with 50,000 g IN at GUDANG.

    ETALASE exists but holds no stock.
    """
    gudang = Location(code="GUDANG", name="Gudang Utama")
    etalase = Location(code="ETALASE", name="Etalase Toko")
    gula = Product(id=str(uuid.uuid4()), sku="GULA-1", name="Gula Pasir", base_uom="gram")
    db_session.add_all([gudang, etalase, gula])
    db_session.flush()

    db_session.add_all([
        ProductUom(product_id=gula.id, uom="gram", to_base=1),
        ProductUom(product_id=gula.id, uom="1kg", to_base=1000),
        ProductUom(product_id=gula.id, uom="250g", to_base=250),
        PriceList(product_id=gula.id, uom="1kg", price=15000, active=True),
        PriceList(product_id=gula.id, uom="250g", price=4000, active=True),
        StockMove(product_id=gula.id, location_id=gudang.id, uom="gram", qty=50000, type=MOVE_IN, ref_id="OPENING"),
    ])
    db_session.commit()
    return SimpleNamespace(gudang=gudang, etalase=etalase, gula=gula)


def iso(dt):
    return to_utc_z(dt)


def future(seconds=60):
    """ISO timestamp safely after anything the server has stamped so far."""
    return to_utc_z(utcnow() + timedelta(seconds=seconds))


def past(days=30):
    return to_utc_z(utcnow() - timedelta(days=days))


def sale_doc(product_id, *, client_doc_id=None, qty=1, uom="1kg", price=15000, location_code="GUDANG", **extra):
    """Minimal valid pushSales document."""
    doc = {
        "clientDocId": client_doc_id or f"sale-{uuid.uuid4()}",
        "cashierCode": "K01",
        "lines": [{
            "productId": product_id,
            "locationCode": location_code,
            "uom": uom,
            "qty": qty,
            "price": price,
        }],
        "payments": [{"method": "CASH", "amount": qty * price}],
    }
    doc.update(extra)
    return doc
