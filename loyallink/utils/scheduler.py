"""
Background scheduler for automated outreach.

Handles:
- Inactive customer offers (daily at 10 AM UTC)
- Unclaimed reward reminders (daily at 11 AM UTC)
- Failed notification retries (hourly)
"""
import os
import atexit
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler = None
_flask_app = None  # Flask app reference for job context


def init_scheduler(app):
    """
    Initialize the background scheduler.

    Only runs in production or when ENABLE_SCHEDULER=true, never under testing.
    Only one process per host starts it (SCHEDULER_RUNNING guard).
    """
    global _scheduler, _flask_app

    _flask_app = app

    if app.config.get('TESTING'):
        logger.debug('[Scheduler] Disabled in testing mode')
        return

    if not (os.getenv('FLASK_ENV') == 'production' or os.getenv('ENABLE_SCHEDULER') == 'true'):
        logger.info('[Scheduler] Disabled (set FLASK_ENV=production or ENABLE_SCHEDULER=true)')
        return

    # gunicorn workers share the environment of the master
    if os.getenv('SCHEDULER_RUNNING') == 'true':
        logger.info('[Scheduler] Already running in another process')
        return

    _scheduler = BackgroundScheduler(
        timezone='UTC',
        job_defaults={
            'coalesce': True,  # Combine missed runs
            'max_instances': 1,  # Prevent concurrent runs
            'misfire_grace_time': 3600  # 1 hour grace period
        }
    )

    _scheduler.add_job(
        run_inactive_offers,
        trigger=CronTrigger(hour=10, minute=0),
        id='inactive_offers',
        name='Send inactive customer offers',
        replace_existing=True
    )

    _scheduler.add_job(
        run_pending_reward_reminders,
        trigger=CronTrigger(hour=11, minute=0),
        id='pending_reward_reminders',
        name='Send unclaimed reward reminders',
        replace_existing=True
    )

    _scheduler.add_job(
        run_notification_retries,
        trigger=CronTrigger(minute=30),
        id='notification_retries',
        name='Retry failed notifications',
        replace_existing=True
    )

    _scheduler.start()
    os.environ['SCHEDULER_RUNNING'] = 'true'

    logger.info('[Scheduler] Started with 3 jobs: inactive offers 10:00 UTC, '
                'reward reminders 11:00 UTC, notification retries hourly at :30')

    atexit.register(shutdown_scheduler)


def shutdown_scheduler():
    """Gracefully shutdown the scheduler."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info('[Scheduler] Shutdown complete')


def _run_outreach(task: str, label: str, **kwargs):
    if not _flask_app:
        logger.error('[Scheduler] Flask app not initialized')
        return

    logger.info(f'[Scheduler] Running {label}...')

    with _flask_app.app_context():
        from ..extensions import db
        from ..models.business import Business
        from ..services.outreach_service import run_for_businesses

        sent = 0
        business_ids = [row.id for row in db.session.query(Business.id).all()]
        for business_id in business_ids:
            try:
                for result in run_for_businesses(task, business_id=business_id, **kwargs):
                    sent += result['sent']
            except Exception:
                db.session.rollback()
                logger.exception(f'[Scheduler] {label} failed for business {business_id}')

        logger.info(f'[Scheduler] {label} complete: {sent} sent across {len(business_ids)} businesses')


def run_inactive_offers():
    """Offers to inactive customers of every business. Runs daily at 10 AM."""
    _run_outreach('inactive', 'inactive offers')


def run_pending_reward_reminders():
    """Reminders for rewards pending a week or more. Runs daily at 11 AM."""
    _run_outreach('pending-rewards', 'reward reminders', min_age_days=7)


def run_notification_retries():
    """Re-drive the notification dead-letter queue. Runs hourly."""
    if not _flask_app:
        logger.error('[Scheduler] Flask app not initialized')
        return

    with _flask_app.app_context():
        from ..extensions import db
        from ..services.notification_service import NotificationService

        try:
            summary = NotificationService().retry_failed(limit=100)
            logger.info(
                f'[Scheduler] Notification retries: {summary["sent"]} sent, '
                f'{summary["failed"]} still failing'
            )
        except Exception:
            db.session.rollback()
            logger.exception('[Scheduler] Notification retries failed')
