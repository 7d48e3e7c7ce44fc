# Overview: Flask CLI command groups for bootstrap, tenant management, and the Square sync job.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Tenant management:
# - python -m flask tenants list
#   List all tenants with their Square connection state.
# - python -m flask tenants create --name "Corner Cafe" --slug corner-cafe
#   Create a tenant (team) and its empty integration row.
#
# Square sync (alternative to POST /api/cron/sync):
# - python -m flask sync run [--tenant corner-cafe] [--no-snapshot] [--no-orders]
#   Run the daily snapshot and order sync now.
# - python -m flask sync status
#   Show checkpoint and last run outcome per tenant.

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import SyncState, Tenant
from .services import tenant_service
from .services.integration import get_integration_services
from .services.integration_errors import IntegrationError
from .time_utils import to_utc_z


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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

    click.echo("PASS Database reset complete.")


# =============================================================================
# TENANT MANAGEMENT COMMANDS
# =============================================================================

@click.group('tenants')
def tenants_group():
    """Tenant (team) management commands."""


@tenants_group.command('list')
@with_appcontext
def list_tenants_cli():
    """List all tenants."""
    tenants = tenant_service.list_tenants()

    if not tenants:
        click.echo("No tenants found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Slug':<24} {'Name':<28} {'Square':<10} {'Location'}")
    click.echo("="*80)

    for tenant in tenants:
        integration = tenant.integration
        connected = "Yes" if integration and integration.is_connected else "No"
        location = (integration.location_id if integration else None) or '-'
        click.echo(f"{tenant.id:<5} {tenant.slug:<24} {tenant.name:<28} {connected:<10} {location}")

    click.echo("="*80 + "\n")


@tenants_group.command('create')
@click.option('--name', required=True, help='Tenant name')
@click.option('--slug', required=True, help='URL slug (unique)')
@with_appcontext
def create_tenant_cli(name, slug):
    """Create a new tenant."""
    try:
        tenant = tenant_service.create_tenant(name, slug)
    except IntegrationError as exc:
        click.echo(f"FAIL {exc.message}")
        raise SystemExit(1)

    click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id}, Slug: {tenant.slug})")


# =============================================================================
# SQUARE SYNC COMMANDS
# =============================================================================

@click.group('sync')
def sync_group():
    """Square order sync and inventory snapshot commands."""


@sync_group.command('run')
@click.option('--tenant', 'tenant_slug', help='Only this tenant (slug)')
@click.option('--no-snapshot', is_flag=True, help='Skip the daily inventory snapshot')
@click.option('--no-orders', is_flag=True, help='Skip the Square order sync')
@click.option('--json', 'as_json', is_flag=True, help='Print the run summary as JSON')
@with_appcontext
def run_sync_cli(tenant_slug, no_snapshot, no_orders, as_json):
    """Run the batch sync now."""
    tenant_ids = None
    if tenant_slug:
        try:
            tenant_ids = [tenant_service.get_tenant_by_slug(tenant_slug).id]
        except IntegrationError as exc:
            click.echo(f"FAIL {exc.message}")
            raise SystemExit(1)

    summary = get_integration_services().orchestrator.run(
        tenant_ids,
        snapshot=not no_snapshot,
        sync_orders=not no_orders,
    )

    if as_json:
        click.echo(json.dumps(summary.to_dict(), indent=2))
    else:
        for result in summary.tenants:
            label = "PASS" if result.status == "ok" else ("FAIL" if result.status == "failed" else "SKIP")
            detail = result.error or result.reason or f"{result.orders_created} order(s) created"
            snapshots = "-" if result.snapshots is None else result.snapshots
            click.echo(f"{label} {result.slug:<24} snapshots={snapshots} {detail}")
        click.echo(
            f"\nDONE {len(summary.tenants)} tenant(s): {summary.succeeded} ok, "
            f"{summary.failed} failed, {summary.skipped} skipped"
        )

    if summary.failed:
        raise SystemExit(1)


@sync_group.command('status')
@with_appcontext
def sync_status_cli():
    """Show per-tenant checkpoint and last run outcome."""
    rows = (
        db.session.query(Tenant, SyncState)
        .outerjoin(SyncState, SyncState.tenant_id == Tenant.id)
        .order_by(Tenant.id.asc())
        .all()
    )

    if not rows:
        click.echo("No tenants found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'Slug':<24} {'Checkpoint':<22} {'Last run':<22} {'Status':<9} {'Created':<8} {'Error'}")
    click.echo("="*100)

    for tenant, state in rows:
        if state is None:
            click.echo(f"{tenant.slug:<24} {'-':<22} {'-':<22} {'never':<9} {'-':<8}")
            continue
        click.echo(
            f"{tenant.slug:<24} {to_utc_z(state.checkpoint_at) or '-':<22} {to_utc_z(state.last_run_at) or '-':<22} "
            f"{state.last_status or '-':<9} {state.last_orders_created:<8} {state.last_error or ''}"
        )

    click.echo("="*100 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tenants_group)
    app.cli.add_command(sync_group)
