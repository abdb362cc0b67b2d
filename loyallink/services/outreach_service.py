"""
Outreach Service for LoyalLink.

Automated customer outreach:
- Offers to customers who stopped visiting
- Reminders for rewards minted but never claimed
- Offer campaigns to customers picked on the dashboard

These tasks can be triggered by:
1. Flask CLI commands (for cron jobs)
2. The background scheduler
3. The outreach API endpoints
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Tuple

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models.business import Business
from ..models.campaign import CampaignStatus, OfferCampaign
from ..models.customer import Customer
from ..models.reward import Reward, RewardStatus
from ..utils.exceptions import (
    BusinessNotFoundError,
    CampaignCooldownError,
    CustomerNotFoundError,
    NotificationError,
    ValidationError,
)
from ..utils.validation import clean_str, coerce_int
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

DEFAULT_REMINDER_AGE_DAYS = 7


def _check_days(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f'{name} must be a positive integer', field=name)
    return value


class OutreachService:
    """
    Outreach jobs for one business.

    Usage:
        service = OutreachService(business_id)
        summary = service.send_inactive_offers(dry_run=True)
    """

    def __init__(self, business_id: int, notifier: NotificationService = None):
        self.business_id = business_id
        self.notifier = notifier or NotificationService(business_id=business_id)

    def _get_business(self) -> Business:
        business = db.session.get(Business, self.business_id)
        if not business:
            raise BusinessNotFoundError(self.business_id)
        return business

    def _results(self, dry_run: bool) -> Dict[str, Any]:
        return {
            'business_id': self.business_id,
            'processed': 0,
            'sent': 0,
            'skipped': 0,
            'failed': 0,
            'details': [],
            'dry_run': dry_run,
            'run_date': datetime.utcnow().isoformat(),
        }

    # ==================== INACTIVE CUSTOMERS ====================

    def find_inactive_customers(self, days: int = None) -> List[Customer]:
        """
        Customers whose last visit is older than `days`.

        Defaults to the business's inactive_days_threshold. Customers already
        contacted since their last visit are left out.
        """
        business = self._get_business()
        days = _check_days('days', days if days is not None else business.inactive_days_threshold)
        cutoff = datetime.utcnow() - timedelta(days=days)

        return (
            Customer.query
            .filter(
                Customer.business_id == self.business_id,
                Customer.last_visit.isnot(None),
                Customer.last_visit < cutoff,
                or_(
                    Customer.last_outreach_at.is_(None),
                    Customer.last_outreach_at < Customer.last_visit
                )
            )
            .order_by(Customer.last_visit.asc())
            .all()
        )

    def send_inactive_offers(self, days: int = None, dry_run: bool = False) -> Dict[str, Any]:
        """
        Send the business's come-back offer to inactive customers.

        Args:
            days: Inactivity threshold in days (default: business setting)
            dry_run: If True, report who would be contacted without sending

        Returns:
            Summary of the run
        """
        business = self._get_business()
        results = self._results(dry_run)
        whatsapp_on = bool(business.notification_whatsapp)

        for customer in self.find_inactive_customers(days):
            results['processed'] += 1

            if not customer.email and not (whatsapp_on and customer.phone):
                results['skipped'] += 1
                results['details'].append({
                    'customer_id': customer.id,
                    'status': 'skipped',
                    'reason': 'No reachable channel'
                })
                continue

            if dry_run:
                results['details'].append({'customer_id': customer.id, 'status': 'would_send'})
                continue

            try:
                delivered = self.notifier.send_inactive_offer(customer, business)
            except NotificationError as e:
                delivered = False
                logger.warning(f'Inactive offer to customer {customer.id} failed: {e}')

            if delivered:
                customer.last_outreach_at = datetime.utcnow()
                db.session.commit()
                results['sent'] += 1
                results['details'].append({'customer_id': customer.id, 'status': 'sent'})
            else:
                results['failed'] += 1
                results['details'].append({'customer_id': customer.id, 'status': 'failed'})

        self._log_run('inactive_offers', results)
        return results

    # ==================== PENDING REWARDS ====================

    def find_unclaimed_rewards(self, min_age_days: int = DEFAULT_REMINDER_AGE_DAYS) -> List[Reward]:
        min_age_days = _check_days('min_age_days', min_age_days)
        cutoff = datetime.utcnow() - timedelta(days=min_age_days)

        return (
            Reward.query
            .filter(
                Reward.business_id == self.business_id,
                Reward.status == RewardStatus.PENDING.value,
                Reward.created_at <= cutoff,
                Reward.reminder_sent_at.is_(None)
            )
            .order_by(Reward.created_at.asc())
            .all()
        )

    def send_pending_reward_reminders(
        self,
        min_age_days: int = DEFAULT_REMINDER_AGE_DAYS,
        dry_run: bool = False
    ) -> Dict[str, Any]:
        """Remind customers about pending rewards older than min_age_days. Each reward is reminded once."""
        business = self._get_business()
        results = self._results(dry_run)

        for reward in self.find_unclaimed_rewards(min_age_days):
            results['processed'] += 1
            customer = reward.customer

            if not customer or not customer.email:
                results['skipped'] += 1
                results['details'].append({
                    'reward_id': reward.id,
                    'status': 'skipped',
                    'reason': 'Customer has no email'
                })
                continue

            if dry_run:
                results['details'].append({'reward_id': reward.id, 'status': 'would_send'})
                continue

            try:
                delivered = self.notifier.send_pending_reward_reminder(customer, business, reward)
            except NotificationError as e:
                delivered = False
                logger.warning(f'Reward reminder for reward {reward.id} failed: {e}')

            if delivered:
                reward.reminder_sent_at = datetime.utcnow()
                db.session.commit()
                results['sent'] += 1
                results['details'].append({'reward_id': reward.id, 'status': 'sent'})
            else:
                results['failed'] += 1
                results['details'].append({'reward_id': reward.id, 'status': 'failed'})

        self._log_run('pending_reward_reminders', results)
        return results

    # ==================== OFFER CAMPAIGNS ====================

    def send_offer_campaign(
        self,
        title: str,
        message: str,
        customer_ids: List[int],
        target_filter: str = None
    ) -> Tuple[OfferCampaign, int]:
        """
        Send a one-off offer to selected customers.

        Customers listed on a campaign created within CAMPAIGN_COOLDOWN_HOURS
        are skipped. `{name}` and `{business}` in the message are replaced per
        customer.

        Args:
            title: Campaign title, used as the email subject
            message: Offer text
            customer_ids: Customers of this business to contact
            target_filter: Dashboard filter the customers came from

        Returns:
            Tuple of (campaign, skipped_count)

        Raises:
            ValidationError: Missing title, message or customers
            CustomerNotFoundError: An id is not a customer of this business
            CampaignCooldownError: Every selected customer is in the cooldown window
        """
        title = clean_str(title, 'title')
        message = clean_str(message, 'message')
        if not title:
            raise ValidationError('Campaign title is required', field='title', missing=True)
        if not message:
            raise ValidationError('Campaign message is required', field='message', missing=True)
        if not customer_ids:
            raise ValidationError('Select at least one customer', field='customerIds', missing=True)
        if not isinstance(customer_ids, list):
            raise ValidationError('customerIds must be a list', field='customerIds')
        target_filter = clean_str(target_filter, 'targetFilter') or None

        business = self._get_business()
        requested = list(dict.fromkeys(coerce_int(cid, 'customerIds', required=True) for cid in customer_ids))

        customers = {
            c.id: c for c in Customer.query.filter(
                Customer.business_id == self.business_id,
                Customer.id.in_(requested)
            ).all()
        }
        for customer_id in requested:
            if customer_id not in customers:
                raise CustomerNotFoundError(customer_id)

        cooldown_hours = current_app.config.get('CAMPAIGN_COOLDOWN_HOURS', 24)
        contacted = OfferCampaign.recently_contacted_ids(self.business_id, cooldown_hours)
        eligible = [customers[cid] for cid in requested if cid not in contacted]
        skipped = len(requested) - len(eligible)

        if not eligible:
            raise CampaignCooldownError(cooldown_hours)
        if skipped:
            logger.info(f'Campaign for business {self.business_id}: {skipped} customer(s) skipped by cooldown')

        campaign = OfferCampaign(
            business_id=self.business_id,
            title=title,
            message=message,
            target_filter=target_filter,
            customer_ids=[c.id for c in eligible],
            status=CampaignStatus.SENDING.value,
            sent_count=0,
            failed_count=0,
        )
        db.session.add(campaign)
        db.session.commit()

        results = []
        for customer in eligible:
            try:
                channel = self.notifier.send_offer(customer, business, title, message)
            except NotificationError as e:
                channel = None
                logger.warning(f'Campaign {campaign.id} offer to customer {customer.id} failed: {e}')

            if channel:
                results.append({'customerId': customer.id, 'status': 'sent', 'channel': channel})
            else:
                results.append({'customerId': customer.id, 'status': 'failed', 'channel': None})

        sent = sum(1 for r in results if r['status'] == 'sent')
        failed = len(results) - sent

        if sent == 0:
            campaign.status = CampaignStatus.FAILED.value
        elif failed:
            campaign.status = CampaignStatus.PARTIAL.value
        else:
            campaign.status = CampaignStatus.SENT.value
        campaign.sent_count = sent
        campaign.failed_count = failed
        campaign.results = results
        campaign.completed_at = datetime.utcnow()
        db.session.commit()

        logger.info(
            f'[Outreach] campaign {campaign.id} for business {self.business_id}: '
            f'sent={sent} failed={failed} skipped={skipped} status={campaign.status}'
        )
        return campaign, skipped

    def list_offer_campaigns(self, limit: int = None) -> List[OfferCampaign]:
        """The business's most recent campaigns, newest first."""
        self._get_business()
        limit = limit or current_app.config.get('CAMPAIGN_HISTORY_LIMIT', 50)
        return (
            OfferCampaign.query
            .filter_by(business_id=self.business_id)
            .order_by(OfferCampaign.created_at.desc(), OfferCampaign.id.desc())
            .limit(limit)
            .all()
        )

    def _log_run(self, task_name: str, results: Dict[str, Any]) -> None:
        logger.info(
            f'[Outreach] {task_name} for business {self.business_id}: '
            f'processed={results["processed"]} sent={results["sent"]} '
            f'skipped={results["skipped"]} failed={results["failed"]} dry_run={results["dry_run"]}'
        )


def run_for_businesses(task: str, business_id: int = None, **kwargs) -> List[Dict[str, Any]]:
    """
    Run an outreach task for one business, or for every business.

    Args:
        task: 'inactive' or 'pending-rewards'
        business_id: Limit to one business (default: all)
        **kwargs: Passed to the task method (days / min_age_days, dry_run)

    Returns:
        One summary per business
    """
    if business_id is not None:
        business_ids = [business_id]
    else:
        business_ids = [row.id for row in db.session.query(Business.id).order_by(Business.id).all()]

    summaries = []
    for bid in business_ids:
        service = OutreachService(bid)
        if task == 'inactive':
            summaries.append(service.send_inactive_offers(**kwargs))
        elif task == 'pending-rewards':
            summaries.append(service.send_pending_reward_reminders(**kwargs))
        else:
            raise ValueError(f'Unknown outreach task: {task}')

    logger.info(f'Outreach {task} finished for {len(summaries)} business(es)')
    return summaries
