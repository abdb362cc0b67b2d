"""
CLI Commands for customer outreach.

These commands can be run manually or via cron jobs:

# Inactive customer offers (run daily at 10 AM)
0 10 * * * cd /app && flask outreach inactive

# Unclaimed reward reminders (run daily at 11 AM)
0 11 * * * cd /app && flask outreach pending-rewards --min-age-days=7
"""
import click
from flask.cli import with_appcontext

from ..extensions import db
from ..models.business import Business
from ..services.outreach_service import run_for_businesses, DEFAULT_REMINDER_AGE_DAYS


@click.group('outreach')
def outreach_cli():
    """Customer outreach commands."""
    pass


def _check_business(business_id):
    if business_id is not None and not db.session.get(Business, business_id):
        click.echo(f"Business {business_id} not found")
        return False
    return True


def _echo_summaries(summaries, dry_run):
    totals = {'processed': 0, 'sent': 0, 'skipped': 0, 'failed': 0}
    for result in summaries:
        click.echo(f"\n{'[DRY RUN] ' if dry_run else ''}Business {result['business_id']}")
        click.echo(f"  Processed: {result['processed']}")
        click.echo(f"  Sent: {result['sent']}")
        click.echo(f"  Skipped: {result['skipped']}")
        click.echo(f"  Failed: {result['failed']}")
        for key in totals:
            totals[key] += result[key]

    click.echo(f"\n{'=' * 40}")
    click.echo(
        f"Total: {totals['processed']} processed, {totals['sent']} sent, "
        f"{totals['skipped']} skipped, {totals['failed']} failed"
    )


@outreach_cli.command('inactive')
@click.option('--business-id', type=int, help='Specific business ID (or all if not specified)')
@click.option('--days', type=click.IntRange(min=1), help='Inactivity threshold (default: business setting)')
@click.option('--dry-run', is_flag=True, help='Preview without sending')
@with_appcontext
def inactive_offers(business_id, days, dry_run):
    """Send come-back offers to customers who stopped visiting."""
    if not _check_business(business_id):
        return

    summaries = run_for_businesses('inactive', business_id=business_id, days=days, dry_run=dry_run)
    _echo_summaries(summaries, dry_run)


@outreach_cli.command('pending-rewards')
@click.option('--business-id', type=int, help='Specific business ID (or all if not specified)')
@click.option('--min-age-days', type=click.IntRange(min=1), default=DEFAULT_REMINDER_AGE_DAYS,
              show_default=True, help='Only rewards at least this old')
@click.option('--dry-run', is_flag=True, help='Preview without sending')
@with_appcontext
def pending_reward_reminders(business_id, min_age_days, dry_run):
    """Remind customers about rewards they have not claimed."""
    if not _check_business(business_id):
        return

    summaries = run_for_businesses(
        'pending-rewards', business_id=business_id, min_age_days=min_age_days, dry_run=dry_run
    )
    _echo_summaries(summaries, dry_run)


def init_app(app):
    """Register outreach commands with Flask app."""
    app.cli.add_command(outreach_cli)
