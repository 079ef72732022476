# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/batchledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to batchledger (PowerShell: $env:FLASK_APP="batchledger").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Business management (MULTI-TENANT):
# - python -m flask businesses list
# - python -m flask businesses create --name "Mama Mboga" --currency KES
#
# Users and items:
# - python -m flask users create --business-id 1 --name "Jane" --email jane@example.com --role cashier
# - python -m flask items create --business-id 1 --name Tomatoes --unit-type kg --sell-price 120
#
# Inspection:
# - python -m flask shifts list --business-id 1 --status open
# - python -m flask stock low --business-id 1

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Business, User
from .models.inventory import UNIT_TYPES
from .models.shifts import SHIFT_STATUS_OPEN, SHIFT_STATUS_CLOSED
from .models.tenancy import USER_ROLES
from .services import adjustment_service, shift_service, tenant_service
from .validation import ValidationError, NotFoundError, ConflictError
from .time_utils import to_utc_z


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create any missing tables."""
    db.create_all()
    click.echo("PASS Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask businesses create' next.")


@click.group('businesses')
def businesses_group():
    """Business (tenant) management."""


@businesses_group.command('list')
@with_appcontext
def list_businesses():
    businesses = db.session.query(Business).order_by(Business.id).all()
    if not businesses:
        click.echo("No businesses found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Name':<30} {'Currency':<10} {'Active':<8} {'Users'}")
    click.echo("="*70)
    for business in businesses:
        user_count = db.session.query(User).filter_by(business_id=business.id).count()
        active_str = "yes" if business.is_active else "no"
        click.echo(f"{business.id:<5} {business.name:<30} {business.currency:<10} {active_str:<8} {user_count}")
    click.echo("")


@businesses_group.command('create')
@click.option('--name', required=True, help='Business name')
@click.option('--currency', default='KES', help='Currency code')
@click.option('--timezone', default='UTC', help='IANA timezone name')
@with_appcontext
def create_business_cli(name, currency, timezone):
    try:
        business = tenant_service.create_business(name=name, currency=currency, timezone=timezone)
    except ValidationError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created business: {business.name} (ID: {business.id})")


@click.group('users')
def users_group():
    """User management."""


@users_group.command('create')
@click.option('--business-id', type=int, required=True, help='Business ID')
@click.option('--name', required=True, help='Display name')
@click.option('--email', required=True, help='Email (unique within the business)')
@click.option('--role', type=click.Choice(USER_ROLES), default='cashier', help='Role')
@with_appcontext
def create_user_cli(business_id, name, email, role):
    try:
        user = tenant_service.create_user(business_id=business_id, name=name, email=email, role=role)
    except (ValidationError, NotFoundError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user: {user.name} ({user.email}) with role '{user.role}' (ID: {user.id})")


@click.group('items')
def items_group():
    """Item catalog management."""


@items_group.command('create')
@click.option('--business-id', type=int, required=True, help='Business ID')
@click.option('--name', required=True, help='Item name')
@click.option('--unit-type', type=click.Choice(UNIT_TYPES), default='piece', help='Unit of measure')
@click.option('--sell-price', default='0', help='Current sell price per unit')
@click.option('--min-stock', default=None, help='Low-stock threshold')
@click.option('--category-id', type=int, default=None, help='Category ID')
@with_appcontext
def create_item_cli(business_id, name, unit_type, sell_price, min_stock, category_id):
    try:
        item = tenant_service.create_item(
            business_id=business_id,
            name=name,
            unit_type=unit_type,
            sell_price=sell_price,
            min_stock_level=min_stock,
            category_id=category_id,
        )
    except (ValidationError, NotFoundError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created item: {item.name} ({item.unit_type}) (ID: {item.id})")


@click.group('shifts')
def shifts_group():
    """Shift inspection."""


@shifts_group.command('list')
@click.option('--business-id', type=int, required=True, help='Business ID')
@click.option('--status', type=click.Choice([SHIFT_STATUS_OPEN, SHIFT_STATUS_CLOSED]), help='Filter by status')
@click.option('--limit', type=int, default=20, help='Max shifts to show')
@with_appcontext
def list_shifts_cli(business_id, status, limit):
    """
    List shifts, newest first.

    Example:
        flask shifts list --business-id 1
        flask shifts list --business-id 1 --status open
    """
    shifts = shift_service.list_shifts(business_id, status=status, limit=limit)
    if not shifts:
        click.echo("No shifts found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'User':<20} {'Status':<8} {'Started':<22} {'Expected':<12} {'Counted':<12} {'Difference'}")
    click.echo("="*100)
    for shift in shifts:
        user = db.session.get(User, shift.user_id)
        username = user.name if user else "Unknown"
        counted = "-" if shift.actual_closing_cash is None else f"{shift.actual_closing_cash:.2f}"
        difference = "-" if shift.cash_difference is None else f"{shift.cash_difference:+.2f}"
        click.echo(
            f"{shift.id:<5} {username:<20} {shift.status:<8} {to_utc_z(shift.started_at):<22} "
            f"{shift.expected_closing_cash:<12.2f} {counted:<12} {difference}"
        )
    click.echo("")


@click.group('stock')
def stock_group():
    """Stock inspection."""


@stock_group.command('low')
@click.option('--business-id', type=int, required=True, help='Business ID')
@with_appcontext
def low_stock_cli(business_id):
    """Active items at or below their minimum stock level."""
    items = adjustment_service.list_low_stock_items(business_id)
    if not items:
        click.echo("No items below minimum stock.")
        return

    click.echo(f"{'ID':<5} {'Name':<30} {'Stock':<12} {'Minimum'}")
    for item in items:
        click.echo(f"{item.id:<5} {item.name:<30} {item.current_stock:<12} {item.min_stock_level}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(businesses_group)
    app.cli.add_command(users_group)
    app.cli.add_command(items_group)
    app.cli.add_command(shifts_group)
    app.cli.add_command(stock_group)
