# Overview: Flask CLI command groups for bootstrap, operator credentials and maintenance.

# backend/tokopos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (idempotent; use `flask db` migrations for schema changes).
# - python -m flask system seed
#   Idempotent demo data: users, GUDANG/ETALASE, GULA-1/KOPI-1 with units and prices, opening stock.
#
# Users:
# - python -m flask users create --username kasir1 --role kasir
# - python -m flask users issue-token --username kasir1
#   Print a bearer token for a device or operator (shown once, stored hashed).
# - python -m flask users revoke-token --token <token>
#
# Maintenance:
# - python -m flask maintenance run-tombstone-retention [--ttl-days 90] [--safety-sec 3600]

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Customer, Location, PriceList, Product, ProductUom, StockMove, StoreProfile, User
from .models.auth import ROLES
from .models.inventory import MOVE_IN, MOVE_TRANSFER
from .services import retention_service, session_service
from .services.uom_service import ensure_base_uom


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db_cli():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


def _ensure_user(username: str, role: str) -> tuple[User, bool]:
    user = db.session.query(User).filter_by(username=username).first()
    if user:
        return user, False
    user = User(username=username, role=role, is_active=True)
    db.session.add(user)
    db.session.flush()
    return user, True


def _ensure_location(code: str, name: str) -> tuple[Location, bool]:
    loc = db.session.query(Location).filter_by(code=code).first()
    if loc:
        return loc, False
    loc = Location(code=code, name=name)
    db.session.add(loc)
    db.session.flush()
    return loc, True


def _ensure_product(sku: str, name: str, base_uom: str, units: dict[str, int], prices: dict[str, int]) -> tuple[Product, bool]:
    product = db.session.query(Product).filter_by(sku=sku).first()
    created = product is None
    if created:
        product = Product(sku=sku, name=name, base_uom=base_uom, is_active=True)
        db.session.add(product)
        db.session.flush()
    ensure_base_uom(product.id, base_uom)

    for uom, to_base in units.items():
        row = db.session.query(ProductUom).filter_by(product_id=product.id, uom=uom).first()
        if row is None:
            db.session.add(ProductUom(product_id=product.id, uom=uom, to_base=to_base))
        else:
            row.to_base = to_base

    for uom, price in prices.items():
        exists = db.session.query(PriceList).filter_by(product_id=product.id, uom=uom, active=True).first()
        if not exists:
            db.session.add(PriceList(product_id=product.id, uom=uom, price=price, active=True))
    db.session.flush()
    return product, created


def _ensure_moves(ref_id: str, product: Product, legs: list[tuple[Location, int, str, str]]) -> bool:
    """Insert a group of moves once per (ref_id, product)."""
    exists = db.session.query(StockMove).filter_by(ref_id=ref_id, product_id=product.id).first()
    if exists:
        return False
    for location, qty, uom, move_type in legs:
        db.session.add(StockMove(
            product_id=product.id,
            location_id=location.id,
            qty=qty,
            uom=uom,
            type=move_type,
            ref_id=ref_id,
        ))
    db.session.flush()
    return True


@system_group.command('seed')
@with_appcontext
def seed_cli():
    """
    Seed demo master data and opening stock. Safe to run repeatedly.

    GULA-1 / KOPI-1 are stocked in grams with 1kg and 250g sale units.
    """
    created_counts = {"users": 0, "locations": 0, "products": 0, "stock groups": 0}
    try:
        for username, role in (("admin", "admin"), ("kasir", "kasir"), ("gudang", "petugas_gudang")):
            _, created = _ensure_user(username, role)
            created_counts["users"] += int(created)

        gudang, created = _ensure_location("GUDANG", "Gudang Utama")
        created_counts["locations"] += int(created)
        etalase, created = _ensure_location("ETALASE", "Etalase Toko")
        created_counts["locations"] += int(created)

        if db.session.query(StoreProfile).first() is None:
            db.session.add(StoreProfile(name="Toko", timezone="Asia/Jakarta"))

        gula, created = _ensure_product(
            "GULA-1", "Gula Pasir", "gram",
            units={"1kg": 1000, "250g": 250},
            prices={"1kg": 15000, "250g": 4000},
        )
        created_counts["products"] += int(created)
        kopi, created = _ensure_product(
            "KOPI-1", "Kopi Bubuk", "gram",
            units={"1kg": 1000, "250g": 250},
            prices={"1kg": 120000, "250g": 30000},
        )
        created_counts["products"] += int(created)

        groups = (
            ("SEED-IN-1", gula, [(gudang, 50, "1kg", MOVE_IN)]),
            ("SEED-IN-2", kopi, [(gudang, 30, "1kg", MOVE_IN)]),
            ("SEED-TF-1", gula, [(gudang, -10, "1kg", MOVE_TRANSFER), (etalase, 10, "1kg", MOVE_TRANSFER)]),
            ("SEED-TF-2", kopi, [(gudang, -20, "250g", MOVE_TRANSFER), (etalase, 20, "250g", MOVE_TRANSFER)]),
        )
        for ref_id, product, legs in groups:
            created_counts["stock groups"] += int(_ensure_moves(ref_id, product, legs))

        if db.session.query(Customer).filter_by(phone="08123").first() is None:
            db.session.add(Customer(
                name="Customer Uji", phone="08123", email="uji@example.com",
                member_code="MEMTEST1", is_active=True,
            ))

        db.session.commit()
    except Exception as e:
        db.session.rollback()
        click.echo(f"FAIL Seed failed: {e}")
        raise

    click.echo("Seed completed.")
    click.echo("Created this run:")
    for key, count in created_counts.items():
        click.echo(f"  {key:<14} {count}")


@click.group('users')
def users_group():
    """Operator and device user commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--role', type=click.Choice(sorted(ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, role):
    """Create a user that can be issued bearer tokens."""
    if db.session.query(User).filter_by(username=username).first():
        click.echo(f"FAIL User '{username}' already exists")
        return
    user = User(username=username, role=role, is_active=True)
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user {user.username} ({user.role}) id={user.id}")


@users_group.command('issue-token')
@click.option('--username', required=True, help='Username')
@with_appcontext
def issue_token_cli(username):
    """Mint a bearer token; the plaintext is printed once and stored only as a hash."""
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        click.echo(f"FAIL User '{username}' not found")
        return
    try:
        session, token = session_service.create_session(user.id)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(token)
    click.echo(f"expires_at={session.expires_at.isoformat()}Z", err=True)


@users_group.command('revoke-token')
@click.option('--token', prompt=True, hide_input=True, help='Bearer token to revoke')
@with_appcontext
def revoke_token_cli(token):
    """Revoke a bearer token, e.g. for a lost or retired device."""
    if session_service.revoke_session(token):
        click.echo("PASS Token revoked")
    else:
        click.echo("FAIL Token unknown or already revoked")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('run-tombstone-retention')
@click.option('--ttl-days', type=int, default=None, help='Override TOMBSTONE_RETENTION_DAYS')
@click.option('--safety-sec', type=int, default=None, help='Override TOMBSTONE_RETENTION_SAFETY_SEC')
@with_appcontext
def run_tombstone_retention_cli(ttl_days, safety_sec):
    """Purge tombstones older than ttl + safety margin."""
    result = retention_service.run_tombstone_retention(ttl_days=ttl_days, safety_sec=safety_sec)
    click.echo(f"Deleted {result['deleted']} tombstone(s) up to {result['threshold']}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
