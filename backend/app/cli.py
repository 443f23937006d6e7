# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (use `flask db upgrade` for managed schemas).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Auctions:
# - python -m flask auctions list [--active]
#   List auctions with phase, bid count and high bid.
# - python -m flask auctions close-expired [--dry-run]
#   Move batches whose auction window has passed to auction_ended,
#   which settles each auction exactly once.
#
# Appointments:
# - python -m flask appointments list --status pending --limit 20
#   List appointments with optional filters.

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import DomainError
from .extensions import db
from .services import auction_service, batch_service, reporting_service
from .time_utils import to_utc_z, utcnow


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables. Existing tables and data are left alone."""
    db.create_all()
    click.echo("PASS Tables created.")


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


@click.group('auctions')
def auctions_group():
    """Waste auction inspection and maintenance."""


@auctions_group.command('list')
@click.option('--active', 'active_only', is_flag=True, help='Only auctions that have not closed')
@with_appcontext
def list_auctions_cli(active_only):
    """List auctions with their batch, phase and bid stats."""
    items = auction_service.list_auctions(active_only=active_only)
    if not items:
        click.echo("No auctions found.")
        return

    click.echo("\n" + "=" * 110)
    click.echo(f"{'ID':<6} {'Batch':<20} {'Status':<20} {'Phase':<10} {'Bids':<6} {'High (cents)':<14} {'Ends':<22}")
    click.echo("=" * 110)
    for item in items:
        high = item["highest_bid_cents"] if item["highest_bid_cents"] is not None else "-"
        click.echo(
            f"{item['id']:<6} {item['batch']['batch_number']:<20} {item['batch']['status']:<20} "
            f"{item['phase']:<10} {item['bid_count']:<6} {str(high):<14} {item['end_time']:<22}"
        )
    click.echo("=" * 110 + "\n")


@auctions_group.command('close-expired')
@click.option('--dry-run', is_flag=True, help='List candidates only; do not change anything')
@with_appcontext
def close_expired_cli(dry_run):
    """
    End batches whose auction window has passed.

    Each batch goes through the normal auction_in_progress -> auction_ended
    transition, so settlement runs once per auction. A batch that another
    worker already closed fails its transition and is reported as skipped.
    """
    now = utcnow()
    candidates = auction_service.find_expired_unsettled(now=now)
    if not candidates:
        click.echo("No expired auctions to close.")
        return

    closed = skipped = 0
    for auction in candidates:
        label = f"auction {auction.id} (batch {auction.batch_id}, ended {to_utc_z(auction.end_time)})"
        if dry_run:
            click.echo(f"WOULD CLOSE {label}")
            continue
        try:
            _, settled = batch_service.transition_batch_status(auction.batch_id, "auction_ended")
        except DomainError as exc:
            skipped += 1
            current_app.logger.warning("Skipped closing %s: %s", label, exc)
            click.echo(f"SKIP {label}: {exc}")
            continue
        closed += 1
        winner = (
            f"winner user {settled.winner_id} at {settled.winning_bid_cents} cents"
            if settled is not None and settled.winner_id is not None
            else "no winner"
        )
        click.echo(f"CLOSED {label}: {winner}")

    if dry_run:
        click.echo(f"{len(candidates)} auction(s) would be closed.")
    else:
        click.echo(f"Closed {closed}, skipped {skipped}.")


@click.group('appointments')
def appointments_group():
    """Appointment inspection."""


@appointments_group.command('list')
@click.option('--status', help='Filter by status')
@click.option('--staff-id', type=int, help='Filter by staff member')
@click.option('--vehicle-id', type=int, help='Filter by vehicle')
@click.option('--limit', type=int, default=50, show_default=True)
@with_appcontext
def list_appointments_cli(status, staff_id, vehicle_id, limit):
    """List appointments, soonest first."""
    try:
        appointments = reporting_service.list_appointments(
            status=status, staff_id=staff_id, vehicle_id=vehicle_id, limit=limit,
        )
    except DomainError as exc:
        raise click.BadParameter(str(exc))

    if not appointments:
        click.echo("No appointments found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<6} {'Number':<18} {'Customer':<24} {'Status':<11} {'Staff':<6} {'Vehicle':<8} {'Time':<22}")
    click.echo("=" * 100)
    for a in appointments:
        click.echo(
            f"{a.id:<6} {a.appointment_number:<18} {a.customer_name[:24]:<24} {a.status:<11} "
            f"{str(a.staff_id or '-'):<6} {str(a.vehicle_id or '-'):<8} {to_utc_z(a.appointment_time):<22}"
        )
    click.echo("=" * 100 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(auctions_group)
    app.cli.add_command(appointments_group)
