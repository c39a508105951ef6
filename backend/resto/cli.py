# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/resto/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Create the demo restaurant, four users and a starter inventory.
#
# User inspection/bootstrap:
# - python -m flask users list [--restaurant-id 1]
# - python -m flask users create --restaurant-id 1 --name "Ana" --email ana@resto.local --password "Password123!" --role manager
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --older-than-days 30
#   Delete expired/revoked session tokens older than the window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Restaurant, User, InventoryItem
from .models.auth import ROLES, default_preferences
from .errors import DomainError
from .services import auth_service, session_service, inventory_service, user_service


DEMO_PASSWORD = "Password123!"

DEMO_USERS = [
    ("Usuario Demo", "demo@test.com", "admin"),
    ("Admin Principal", "admin@restaurante.com", "admin"),
    ("Mesero Juan", "mesero@restaurante.com", "employee"),
    ("Cajero Maria", "cajero@restaurante.com", "manager"),
]

DEMO_INVENTORY = [
    # name, category, quantity, cost cents, price cents, unit
    ("Coca-Cola 350ml", "Bebidas", 48, 150000, 300000, "unidad"),
    ("Agua 600ml", "Bebidas", 36, 80000, 200000, "unidad"),
    ("Papas fritas", "Snacks", 20, 120000, 350000, "paquete"),
    ("Hamburguesa clasica", "Comida", 15, 800000, 1800000, "unidad"),
    ("Brownie", "Postres", 4, 300000, 700000, "unidad"),
    ("Queso", "Ingredientes", 6, 1500000, 2500000, "kg"),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables (use migrations for schema changes)."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate every table."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Create the demo restaurant with four users and a starter inventory.

    Idempotent: an existing demo restaurant (matched by contact email) is reused.
    All users share the password "Password123!".
    """
    restaurant = db.session.query(Restaurant).filter_by(contact_email="demo@restaurante.com").first()
    if restaurant:
        click.echo(f"PASS Using existing restaurant: {restaurant.name} (ID: {restaurant.id})")
    else:
        restaurant = Restaurant(
            name="Restaurante Demo",
            address_street="Calle Principal 123",
            address_city="Bogota",
            address_state="Cundinamarca",
            address_zip_code="110111",
            address_country="Colombia",
            contact_phone="+57 300 123 4567",
            contact_email="demo@restaurante.com",
        )
        db.session.add(restaurant)
        db.session.commit()
        click.echo(f"PASS Created restaurant: {restaurant.name} (ID: {restaurant.id})")

    password_hash = auth_service.hash_password(DEMO_PASSWORD)
    for name, email, role in DEMO_USERS:
        if db.session.query(User).filter_by(email=email).first():
            click.echo(f"WARN  User '{email}' already exists, skipping...")
            continue
        db.session.add(User(
            restaurant_id=restaurant.id,
            name=name,
            email=email,
            password_hash=password_hash,
            role=role,
            preferences=default_preferences(),
        ))
        click.echo(f"PASS Created user: {email} ({role})")
    db.session.commit()

    existing_items = db.session.query(InventoryItem).filter_by(restaurant_id=restaurant.id).count()
    if existing_items:
        click.echo(f"WARN  Inventory already has {existing_items} items, skipping...")
    else:
        for name, category, quantity, cost, price, unit in DEMO_INVENTORY:
            inventory_service.create_item({
                "name": name,
                "category": category,
                "quantity": quantity,
                "cost_price_cents": cost,
                "selling_price_cents": price,
                "unit": unit,
            }, restaurant_id=restaurant.id)
        click.echo(f"PASS Created {len(DEMO_INVENTORY)} inventory items")

    click.echo("\nDemo Credentials (CHANGE IN PRODUCTION!):")
    for _, email, role in DEMO_USERS:
        click.echo(f"   {role:<9} -> {email:<26} / {DEMO_PASSWORD}")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@click.option('--restaurant-id', type=int, help='Only users of this restaurant')
@with_appcontext
def list_users(restaurant_id):
    query = db.session.query(User)
    if restaurant_id:
        query = query.filter_by(restaurant_id=restaurant_id)
    users = query.order_by(User.restaurant_id, User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Rest.':<6} {'Email':<32} {'Role':<10} {'Active'}")
    click.echo("=" * 80)
    for user in users:
        active_str = "yes" if user.is_active else "no"
        click.echo(f"{user.id:<5} {user.restaurant_id:<6} {user.email:<32} {user.role:<10} {active_str}")
    click.echo("=" * 80 + "\n")


@users_group.command('create')
@click.option('--restaurant-id', type=int, required=True, help='Restaurant ID')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Login email')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(ROLES), default='employee', show_default=True)
@with_appcontext
def create_user_cli(restaurant_id, name, email, password, role):

    if not db.session.get(Restaurant, restaurant_id):
        click.echo(f"FAIL Restaurant {restaurant_id} not found")
        raise SystemExit(1)

    try:
        user, _ = user_service.create_user(
            {"name": name, "email": email, "password": password, "role": role},
            restaurant_id=restaurant_id,
        )
    except DomainError as e:
        db.session.rollback()
        details = "; ".join(err["message"] for err in getattr(e, "errors", []) or [])
        click.echo(f"FAIL {e.message}{': ' + details if details else ''}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {user.email} ({user.role}) in restaurant {restaurant_id}")


@click.group('maintenance')
def maintenance_group():
    """Housekeeping commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions(older_than_days):
    deleted = session_service.cleanup_expired_sessions(older_than_days)
    click.echo(f"PASS Deleted {deleted} stale session tokens")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
