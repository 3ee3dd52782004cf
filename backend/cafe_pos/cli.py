# Overview: Flask CLI command groups for bootstrap, stock inspection and credit maintenance.

# backend/cafe_pos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (idempotent; use `flask db upgrade` for migrations).
# - python -m flask system seed-categories
#   Create the default menu categories that are missing.
#
# Inventory inspection:
# - python -m flask inventory stock <product_id>
#   Print stock computed from the ledger plus the latest entries.
# - python -m flask inventory low-stock [--threshold 5]
#   List tracked products at or below the threshold.
#
# Credit maintenance:
# - python -m flask credit reconcile [--customer-id <id>]
#   Rebuild stored customer balances from the credit log.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import catalog_service, credit_service, inventory_service, ledger_service
from .validation import PosError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create every table known to the models."""
    from . import models  # noqa: F401
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('seed-categories')
@with_appcontext
def seed_categories():
    """Create missing default categories (case-insensitive match)."""
    created = catalog_service.seed_default_categories()
    for category in created:
        tracked = "countable" if inventory_service.can_track_category(category["name"]) else "not tracked"
        click.echo(f"PASS Created category: {category['name']} ({tracked})")
    if not created:
        click.echo("PASS All default categories already exist")


@click.group('inventory')
def inventory_group():
    """Ledger-derived stock inspection."""


@inventory_group.command('stock')
@click.argument('product_id')
@click.option('--limit', default=10, show_default=True, help='Number of ledger entries to show')
@with_appcontext
def show_stock(product_id, limit):
    """Show computed stock and recent ledger entries for a product."""
    try:
        product = catalog_service.get_product(product_id)
    except PosError as e:
        raise click.ClickException(str(e))

    click.echo(f"{product['name']} ({product['id']}): {ledger_service.current_stock(product['id'])}")
    for entry in ledger_service.iter_history(product["id"], limit=limit):
        direction = f"+{entry['quantity_in']}" if entry["quantity_in"] else f"-{entry['quantity_out']}"
        click.echo(
            f"  {entry['created_at']:%Y-%m-%d %H:%M:%S}  {entry['transaction_type']:<10} {direction:>6}  "
            f"{entry['reference_type'] or ''} {entry['reference_id'] or ''}"
        )


@inventory_group.command('low-stock')
@click.option('--threshold', type=int, default=None, help='Defaults to LOW_STOCK_THRESHOLD')
@with_appcontext
def low_stock(threshold):
    """List tracked products at or below the threshold."""
    products = inventory_service.low_stock_products(threshold)
    if not products:
        click.echo("PASS No products are low on stock")
        return
    for product in products:
        click.echo(f"WARN  {product['name']}: {product['current_stock']}")


@click.group('credit')
def credit_group():
    """Customer credit maintenance."""


@credit_group.command('reconcile')
@click.option('--customer-id', default=None, help='Reconcile a single customer')
@with_appcontext
def reconcile(customer_id):
    """Rewrite stored balances from the credit transaction log."""
    if customer_id:
        try:
            balances = {customer_id: credit_service.reconcile_balance(customer_id)}
        except PosError as e:
            raise click.ClickException(str(e))
    else:
        balances = credit_service.reconcile_all()
    for cid, balance in balances.items():
        click.echo(f"PASS {cid}: {balance}")
    click.echo(f"DONE Reconciled {len(balances)} customer(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(credit_group)
