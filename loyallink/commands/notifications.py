"""
CLI Commands for the notification dead-letter queue.
"""
import click
from flask.cli import with_appcontext

from ..services.notification_service import NotificationService


@click.group('notifications')
def notifications_cli():
    """Notification delivery commands."""
    pass


@notifications_cli.command('retry-failed')
@click.option('--business-id', type=int, help='Only this business (or all if not specified)')
@click.option('--limit', type=click.IntRange(min=1), default=50, show_default=True,
              help='Maximum failed notifications to retry')
@with_appcontext
def retry_failed(business_id, limit):
    """Retry notifications that failed after all delivery attempts."""
    summary = NotificationService(business_id=business_id).retry_failed(limit=limit)

    click.echo(f"Processed: {summary['processed']}")
    click.echo(f"Sent: {summary['sent']}")
    click.echo(f"Still failing: {summary['failed']}")


def init_app(app):
    """Register notification commands with Flask app."""
    app.cli.add_command(notifications_cli)
