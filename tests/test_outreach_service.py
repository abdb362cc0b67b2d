"""
Tests for the Outreach Service.

Covers inactive customer offers, unclaimed reward reminders and offer
campaigns, including dry runs, once-per-inactivity contact, once-per-reward
reminders and the campaign cooldown.
"""
import pytest
from datetime import datetime, timedelta
from unittest.mock import MagicMock

from loyallink.extensions import db
from loyallink.models import CampaignStatus, Customer, OfferCampaign, Reward, RewardStatus
from loyallink.services.notification_service import NotificationService
from loyallink.services.outreach_service import OutreachService, run_for_businesses
from loyallink.utils.exceptions import (
    CampaignCooldownError,
    CustomerNotFoundError,
    NotificationError,
    ValidationError,
)


def _ago(days):
    return datetime.utcnow() - timedelta(days=days)


class TestInactiveOffers:
    """Tests for inactive customer outreach."""

    def test_find_inactive_uses_business_threshold(self, app, sample_business, make_customer):
        with app.app_context():
            stale = make_customer(last_visit=_ago(45))
            make_customer(last_visit=_ago(5))
            make_customer()  # never visited

            found = OutreachService(sample_business.id).find_inactive_customers()

            assert [c.id for c in found] == [stale.id]

    def test_explicit_days(self, app, sample_business, make_customer):
        with app.app_context():
            make_customer(last_visit=_ago(45))
            recent = make_customer(last_visit=_ago(10))

            found = OutreachService(sample_business.id).find_inactive_customers(days=7)

            assert recent.id in [c.id for c in found]
            assert len(found) == 2

    def test_send_stamps_and_skips_next_time(self, app, sample_business, make_customer):
        """A contacted customer is not contacted again until they visit again."""
        with app.app_context():
            customer = make_customer(last_visit=_ago(45))
            notifier = MagicMock()
            notifier.send_inactive_offer.return_value = True
            service = OutreachService(sample_business.id, notifier=notifier)

            first = service.send_inactive_offers()
            second = service.send_inactive_offers()

            assert first['sent'] == 1
            assert second['processed'] == 0
            assert db.session.get(Customer, customer.id).last_outreach_at is not None
            notifier.send_inactive_offer.assert_called_once()

    def test_contacted_again_after_new_inactivity(self, app, sample_business, make_customer):
        with app.app_context():
            make_customer(last_visit=_ago(40), last_outreach_at=_ago(60))

            found = OutreachService(sample_business.id).find_inactive_customers()

            assert len(found) == 1

    def test_dry_run_sends_nothing(self, app, sample_business, make_customer):
        with app.app_context():
            customer = make_customer(last_visit=_ago(45))
            notifier = MagicMock()

            results = OutreachService(sample_business.id, notifier=notifier).send_inactive_offers(dry_run=True)

            assert results['dry_run'] is True
            assert results['processed'] == 1
            assert results['sent'] == 0
            notifier.send_inactive_offer.assert_not_called()
            assert db.session.get(Customer, customer.id).last_outreach_at is None

    def test_unreachable_customer_skipped(self, app, sample_business, make_customer):
        with app.app_context():
            make_customer(last_visit=_ago(45), email=None)
            notifier = MagicMock()

            results = OutreachService(sample_business.id, notifier=notifier).send_inactive_offers()

            assert results['skipped'] == 1
            notifier.send_inactive_offer.assert_not_called()

    def test_failed_delivery_not_stamped(self, app, sample_business, make_customer):
        with app.app_context():
            customer = make_customer(last_visit=_ago(45))
            notifier = MagicMock()
            notifier.send_inactive_offer.side_effect = NotificationError('down', channel='email')

            results = OutreachService(sample_business.id, notifier=notifier).send_inactive_offers()

            assert results['failed'] == 1
            assert db.session.get(Customer, customer.id).last_outreach_at is None

    def test_invalid_days(self, app, sample_business):
        with app.app_context():
            with pytest.raises(ValidationError):
                OutreachService(sample_business.id).find_inactive_customers(days=0)


class TestPendingRewardReminders:
    """Tests for unclaimed reward reminders."""

    def _reward(self, business_id, customer_id, token, created_days_ago, status=RewardStatus.PENDING.value):
        reward = Reward(
            business_id=business_id,
            customer_id=customer_id,
            claim_token=token,
            status=status,
            created_at=_ago(created_days_ago),
        )
        db.session.add(reward)
        db.session.commit()
        return reward

    def test_reminds_old_pending_rewards_once(self, app, sample_business, make_customer):
        with app.app_context():
            old = make_customer(visits=5)
            fresh = make_customer(visits=5)
            done = make_customer(visits=0)
            old_reward = self._reward(sample_business.id, old.id, '100001', 10)
            self._reward(sample_business.id, fresh.id, '100002', 2)
            self._reward(sample_business.id, done.id, '100003', 30, status=RewardStatus.COMPLETED.value)

            notifier = MagicMock()
            notifier.send_pending_reward_reminder.return_value = True
            service = OutreachService(sample_business.id, notifier=notifier)

            first = service.send_pending_reward_reminders(min_age_days=7)
            second = service.send_pending_reward_reminders(min_age_days=7)

            assert first['sent'] == 1
            assert second['processed'] == 0
            assert db.session.get(Reward, old_reward.id).reminder_sent_at is not None

    def test_reminder_email_contains_token(self, app, sample_business, sample_customer):
        with app.app_context():
            self._reward(sample_business.id, sample_customer.id, '765432', 8)
            provider = MagicMock()
            notifier = NotificationService(sample_business.id, email_provider=provider)

            results = OutreachService(sample_business.id, notifier=notifier).send_pending_reward_reminders()

            assert results['sent'] == 1
            assert '765432' in provider.send.call_args[0][3]


class TestRunForBusinesses:
    """Tests for the multi-business runner used by the CLI and scheduler."""

    def test_runs_every_business(self, app, sample_business, other_business):
        with app.app_context():
            summaries = run_for_businesses('inactive', dry_run=True)
            assert sorted(s['business_id'] for s in summaries) == sorted([sample_business.id, other_business.id])

    def test_unknown_task(self, app, sample_business):
        with app.app_context():
            with pytest.raises(ValueError):
                run_for_businesses('spam', business_id=sample_business.id)


class TestOfferCampaigns:
    """Tests for offer campaigns and the offer cooldown."""

    def _notifier(self, channel='email'):
        notifier = MagicMock()
        notifier.send_offer.return_value = channel
        return notifier

    def test_sends_and_records_campaign(self, app, sample_business, make_customer):
        with app.app_context():
            first = make_customer()
            second = make_customer()
            notifier = self._notifier('whatsapp')

            campaign, skipped = OutreachService(sample_business.id, notifier=notifier).send_offer_campaign(
                'Half price Tuesday', 'Hi {name}!', [first.id, second.id], target_filter='inactive'
            )

            assert skipped == 0
            assert campaign.status == CampaignStatus.SENT.value
            assert campaign.sent_count == 2
            assert campaign.failed_count == 0
            assert campaign.customer_ids == [first.id, second.id]
            assert campaign.target_filter == 'inactive'
            assert campaign.completed_at is not None
            assert campaign.results[0] == {'customerId': first.id, 'status': 'sent', 'channel': 'whatsapp'}
            assert notifier.send_offer.call_count == 2
            assert notifier.send_offer.call_args[0][2:] == ('Half price Tuesday', 'Hi {name}!')

    def test_duplicate_ids_contacted_once(self, app, sample_business, make_customer):
        with app.app_context():
            customer = make_customer()
            notifier = self._notifier()

            campaign, _ = OutreachService(sample_business.id, notifier=notifier).send_offer_campaign(
                'Deal', 'Hi!', [customer.id, str(customer.id)]
            )

            assert campaign.customer_ids == [customer.id]
            notifier.send_offer.assert_called_once()

    def test_recently_offered_customers_skipped(self, app, sample_business, make_customer):
        with app.app_context():
            offered = make_customer()
            fresh = make_customer()
            service = OutreachService(sample_business.id, notifier=self._notifier())
            service.send_offer_campaign('First', 'Hi!', [offered.id])

            campaign, skipped = service.send_offer_campaign('Second', 'Hi again!', [offered.id, fresh.id])

            assert skipped == 1
            assert campaign.customer_ids == [fresh.id]
            assert campaign.sent_count == 1

    def test_all_recently_offered_rejected(self, app, sample_business, make_customer):
        with app.app_context():
            customer = make_customer()
            service = OutreachService(sample_business.id, notifier=self._notifier())
            service.send_offer_campaign('First', 'Hi!', [customer.id])

            with pytest.raises(CampaignCooldownError) as exc:
                service.send_offer_campaign('Second', 'Hi again!', [customer.id])

            assert exc.value.code == 'CAMPAIGN_COOLDOWN'
            assert OfferCampaign.query.count() == 1

    def test_cooldown_expires(self, app, sample_business, make_customer):
        with app.app_context():
            customer = make_customer()
            service = OutreachService(sample_business.id, notifier=self._notifier())
            earlier, _ = service.send_offer_campaign('First', 'Hi!', [customer.id])
            earlier.created_at = datetime.utcnow() - timedelta(hours=25)
            db.session.commit()

            campaign, skipped = service.send_offer_campaign('Second', 'Hi again!', [customer.id])

            assert skipped == 0
            assert campaign.sent_count == 1

    def test_cooldown_is_per_business(self, app, sample_business, other_business, make_customer):
        with app.app_context():
            customer = make_customer()
            OutreachService(sample_business.id, notifier=self._notifier()).send_offer_campaign(
                'First', 'Hi!', [customer.id]
            )

            assert OfferCampaign.recently_contacted_ids(other_business.id) == set()
            assert OfferCampaign.recently_contacted_ids(sample_business.id) == {customer.id}

    def test_partial_and_failed_status(self, app, sample_business, make_customer):
        with app.app_context():
            first = make_customer()
            second = make_customer()
            third = make_customer()
            notifier = MagicMock()
            notifier.send_offer.side_effect = ['email', None, NotificationError('down', channel='email')]
            service = OutreachService(sample_business.id, notifier=notifier)

            partial, _ = service.send_offer_campaign('Deal', 'Hi!', [first.id, second.id, third.id])

            assert partial.status == CampaignStatus.PARTIAL.value
            assert partial.sent_count == 1
            assert partial.failed_count == 2

            notifier.send_offer.side_effect = None
            notifier.send_offer.return_value = None
            fourth = make_customer()
            failed, _ = service.send_offer_campaign('Deal', 'Hi!', [fourth.id])

            assert failed.status == CampaignStatus.FAILED.value

    def test_customer_of_other_business_rejected(self, app, sample_business, other_business, make_customer):
        with app.app_context():
            customer = make_customer()

            with pytest.raises(CustomerNotFoundError):
                OutreachService(other_business.id, notifier=self._notifier()).send_offer_campaign(
                    'Deal', 'Hi!', [customer.id]
                )

            assert OfferCampaign.query.count() == 0

    @pytest.mark.parametrize('title,message,customer_ids', [
        ('', 'Hi!', [1]),
        ('Deal', '', [1]),
        ('Deal', 'Hi!', []),
        ('Deal', 'Hi!', None),
        ('Deal', 'Hi!', 'all'),
        (42, 'Hi!', [1]),
    ])
    def test_validation(self, app, sample_business, title, message, customer_ids):
        with app.app_context():
            with pytest.raises(ValidationError):
                OutreachService(sample_business.id, notifier=self._notifier()).send_offer_campaign(
                    title, message, customer_ids
                )

    def test_list_newest_first_and_scoped(self, app, sample_business, other_business, make_customer):
        with app.app_context():
            first = make_customer()
            second = make_customer()
            service = OutreachService(sample_business.id, notifier=self._notifier())
            older, _ = service.send_offer_campaign('Older', 'Hi!', [first.id])
            newer, _ = service.send_offer_campaign('Newer', 'Hi!', [second.id])

            campaigns = service.list_offer_campaigns()

            assert [c.id for c in campaigns] == [newer.id, older.id]
            assert OutreachService(other_business.id).list_offer_campaigns() == []
