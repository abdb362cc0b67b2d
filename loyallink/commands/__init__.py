"""
CLI Commands for LoyalLink.

Usage:
    flask outreach inactive --business-id 1 --days 30   # Offers to inactive customers
    flask outreach pending-rewards --min-age-days 7     # Unclaimed reward reminders
    flask notifications retry-failed --limit 50         # Re-drive failed notifications
"""
from .outreach import init_app as init_outreach_commands
from .notifications import init_app as init_notification_commands


def init_app(app):
    """Register all CLI commands with the Flask app."""
    init_outreach_commands(app)
    init_notification_commands(app)
