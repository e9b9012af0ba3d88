# Overview: Flask CLI command groups for bootstrap, catalog inspection, remediation and points.

# backend/stitchline/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create any missing tables (use `flask db upgrade` for managed schemas).
#
# Catalog inspection:
# - python -m flask catalog list
#   Print every wallet type with its keywords and points.
# - python -m flask catalog check "Badge Trifold Wallet" "Gift Wrap"
#   Dry-run product names through the classifier.
#
# Remediation:
# - python -m flask wallets unmapped
#   List wallet line items that have no wallet type yet.
# - python -m flask wallets classify-unmapped
#   Re-run catalog resolution over every unmapped wallet.
#
# Points:
# - python -m flask points daily [--date 2026-01-31] [--staff-id alice]
#   Show the day's points leaderboard.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import points_service, remediation_service
from .services.catalog import DEFAULT_CATALOG
from .services.classifier_service import check_catalog
from .time_utils import parse_iso_date, utc_today


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    from . import models  # noqa: F401
    db.create_all()
    click.echo("PASS Tables created")


# =============================================================================
# CATALOG
# =============================================================================

@click.group('catalog')
def catalog_group():
    """Wallet catalog inspection."""


@catalog_group.command('list')
def catalog_list():
    """List wallet types in declaration order."""
    for entry in DEFAULT_CATALOG:
        click.echo(f"{entry.id:<22} {entry.points} pts  {', '.join(entry.keywords)}")
    click.echo(f"\n{len(DEFAULT_CATALOG)} wallet types")


@catalog_group.command('check')
@click.argument('product_names', nargs=-1, required=True)
def catalog_check(product_names):
    """Show how each product name would be classified."""
    misses = 0
    for row in check_catalog(product_names):
        if row["matched"]:
            click.echo(f"PASS \"{row['product_name']}\" -> {row['wallet_type']} ({row['points']} pts)")
        elif row["item_type"] == "wallet":
            misses += 1
            click.echo(f"FAIL \"{row['product_name']}\" -> wallet, NO MATCH (0 pts)")
        else:
            click.echo(f"SKIP \"{row['product_name']}\" -> accessory")
    if misses:
        raise SystemExit(1)


# =============================================================================
# REMEDIATION
# =============================================================================

@click.group('wallets')
def wallets_group():
    """Unmapped wallet remediation."""


@wallets_group.command('unmapped')
@with_appcontext
def wallets_unmapped():
    """List wallets without a wallet type."""
    items = remediation_service.list_unmapped_line_items()
    if not items:
        click.echo("PASS No unmapped wallets")
        return
    for item in items:
        click.echo(f"{item.id:>6}  order {item.order_number:<10} {item.product_name}")
    click.echo(f"\n{len(items)} unmapped wallets")


@wallets_group.command('classify-unmapped')
@with_appcontext
def wallets_classify_unmapped():
    """Assign wallet types to every unmapped wallet the catalog now matches."""
    report = remediation_service.classify_unmapped_line_items()
    click.echo(f"PASS Resolved {len(report.resolved_ids)} wallets")
    if report.unresolved_ids:
        click.echo(f"WARN Still unmapped: {', '.join(str(i) for i in report.unresolved_ids)}")


# =============================================================================
# POINTS
# =============================================================================

@click.group('points')
def points_group():
    """Daily points ledger."""


@points_group.command('daily')
@click.option('--date', 'date_raw', default=None, help='YYYY-MM-DD (default: today, UTC)')
@click.option('--staff-id', default=None, help='Limit to one sewer')
@with_appcontext
def points_daily(date_raw, staff_id):
    """Print the points leaderboard for one day."""
    try:
        on_date = parse_iso_date(date_raw) or utc_today()
    except ValueError:
        raise click.BadParameter("date must be YYYY-MM-DD", param_hint="--date")

    rows = points_service.get_daily_points(on_date, staff_id=staff_id)
    click.echo(f"Points for {on_date.isoformat()}")
    if not rows:
        click.echo("  (none)")
        return
    for r in rows:
        click.echo(f"  {r.staff_id:<16} {r.staff_name or '':<20} {r.points:>4} pts  {r.orders_completed:>3} wallets")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(wallets_group)
    app.cli.add_command(points_group)
