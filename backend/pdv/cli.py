# Overview: Flask CLI command groups for bootstrap, seeding and stock inspection.

# backend/pdv/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Employees:
# - python -m flask employees create --name "Ana Souza" --email ana@loja.local --role gerente --status ativo
#   Create an employee (prompts if options are omitted).
# - python -m flask employees list
#   List employees with role and status.
#
# Catalog seeding:
# - python -m flask catalog add-variant --product "Vestido Midi" --category vestidos --reference VM-001-P --price 189.90 --store 3 --warehouse 5
#   Create a product (or reuse one by name) and a variant with opening stock.
# - python -m flask catalog list-variants
#   List live variants with store/warehouse quantities.
#
# Stock inspection:
# - python -m flask stock show 5
#   Show quantities of one variant.
# - python -m flask stock movements --variant-id 5 --limit 20
#   Show recent movements (optionally for one variant).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Employee, Product, ProductVariant
from .models.staff import EMPLOYEE_ROLES, EMPLOYEE_STATUSES, ROLE_SELLER, STATUS_ACTIVE
from .services import movement_service
from .services.repository import active_query, get_active_variant
from .services.stock_service import get_quantities
from .validation import LedgerError, parse_money_cents


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create every table that does not exist yet."""
    click.echo("START Initializing PDV database...")
    db.create_all()
    click.echo("PASS Tables ready.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the movement log!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('employees')
def employees_group():
    """Employee seeding and inspection."""


@employees_group.command('create')
@click.option('--name', 'full_name', prompt=True, help='Full name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--role', type=click.Choice(EMPLOYEE_ROLES), default=ROLE_SELLER, show_default=True)
@click.option('--status', type=click.Choice(EMPLOYEE_STATUSES), default=STATUS_ACTIVE, show_default=True)
@with_appcontext
def create_employee_cli(full_name, email, role, status):
    """Create an employee."""
    if db.session.query(Employee).filter_by(email=email).first():
        click.echo(f"FAIL Email already registered: {email}")
        raise SystemExit(1)

    employee = Employee(full_name=full_name, email=email, role=role, status=status)
    db.session.add(employee)
    db.session.commit()
    click.echo(f"PASS Created employee {employee.full_name} (ID: {employee.id}, role: {role}, status: {status})")


@employees_group.command('list')
@with_appcontext
def list_employees():
    """List live employees."""
    employees = active_query(Employee).order_by(Employee.id.asc()).all()
    if not employees:
        click.echo("No employees found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<30} {'Email':<30} {'Role':<14} {'Status'}")
    click.echo("="*90)
    for employee in employees:
        click.echo(
            f"{employee.id:<5} {employee.full_name:<30} {employee.email:<30} "
            f"{employee.role:<14} {employee.status}"
        )
    click.echo("="*90 + "\n")


@click.group('catalog')
def catalog_group():
    """Catalog seeding for development and tests."""


@catalog_group.command('add-variant')
@click.option('--product', 'product_name', required=True, help='Product name (reused if it exists)')
@click.option('--category', default='geral', show_default=True)
@click.option('--reference', required=True, help='Variant reference / SKU')
@click.option('--color')
@click.option('--size')
@click.option('--price', default='0', help='Unit price, e.g. 189.90')
@click.option('--store', 'store_quantity', type=click.IntRange(min=0), default=0)
@click.option('--warehouse', 'warehouse_quantity', type=click.IntRange(min=0), default=0)
@with_appcontext
def add_variant_cli(product_name, category, reference, color, size, price, store_quantity, warehouse_quantity):
    """
    Create a variant with opening stock.

    Opening quantities are written directly on creation; every later change
    goes through the ledger.
    """
    try:
        price_cents = parse_money_cents(price, "price")
    except LedgerError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)

    if active_query(ProductVariant).filter_by(reference=reference).first():
        click.echo(f"FAIL Reference already in use: {reference}")
        raise SystemExit(1)

    product = active_query(Product).filter_by(name=product_name).first()
    if product is None:
        product = Product(name=product_name, category=category)
        db.session.add(product)
        db.session.flush()

    variant = ProductVariant(
        product_id=product.id,
        reference=reference,
        color=color,
        size=size,
        price_cents=price_cents,
        store_quantity=store_quantity,
        warehouse_quantity=warehouse_quantity,
    )
    db.session.add(variant)
    db.session.commit()
    click.echo(
        f"PASS Created variant {variant.reference} (ID: {variant.id}) of {product.name}: "
        f"store={store_quantity} warehouse={warehouse_quantity}"
    )


@catalog_group.command('list-variants')
@with_appcontext
def list_variants_cli():
    """List live variants with quantities."""
    variants = active_query(ProductVariant).order_by(ProductVariant.reference.asc()).all()
    if not variants:
        click.echo("No variants found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Reference':<20} {'Product':<30} {'Price':>10} {'Store':>7} {'Whse':>7}")
    click.echo("="*90)
    for variant in variants:
        name = variant.product.name if variant.product else ""
        click.echo(
            f"{variant.id:<5} {variant.reference:<20} {name:<30} "
            f"{variant.price_cents / 100:>10.2f} {variant.store_quantity:>7} {variant.warehouse_quantity:>7}"
        )
    click.echo("="*90 + "\n")


@click.group('stock')
def stock_group():
    """Stock inspection commands."""


@stock_group.command('show')
@click.argument('variant_id', type=int)
@with_appcontext
def show_stock_cli(variant_id):
    """Show store/warehouse quantities of one variant."""
    try:
        variant = get_active_variant(variant_id)
        level = get_quantities(variant_id)
    except LedgerError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)

    click.echo(f"{variant.reference}: store={level.store} warehouse={level.warehouse} total={level.total}")


@stock_group.command('movements')
@click.option('--variant-id', type=int, help='Only movements of this variant')
@click.option('--limit', type=click.IntRange(min=1, max=500), default=20, show_default=True)
@with_appcontext
def list_movements_cli(variant_id, limit):
    """Show recent stock movements, newest first."""
    movements = movement_service.list_movements(variant_id=variant_id, limit=limit)
    if not movements:
        click.echo("No movements found.")
        return

    for movement in movements:
        click.echo(
            f"{movement.id:<6} {movement.created_at:%Y-%m-%d %H:%M} {movement.kind:<22} "
            f"variant={movement.variant_id:<5} qty={movement.quantity:<5} "
            f"store={movement.store_delta:+d} whse={movement.warehouse_delta:+d} "
            f"{movement.note or ''}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(employees_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(stock_group)
