"""
Tests for the Visit Service.

Covers visit recording, goal evaluation on each visit, reward minting when
the goal is reached, QR lookups and business scoping.
"""
import pytest
from unittest.mock import MagicMock

from loyallink.extensions import db
from loyallink.models import Customer, Visit, Reward
from loyallink.services.notification_service import NotificationService
from loyallink.services.visit_service import VisitService
from loyallink.utils.exceptions import CustomerNotFoundError, ValidationError


class TestRecordVisit:
    """Tests for VisitService.record_visit."""

    def test_increments_counters_and_appends_visit(self, app, sample_business, sample_customer):
        with app.app_context():
            result = VisitService(sample_business.id).record_visit(customer_id=sample_customer.id)

            customer = db.session.get(Customer, sample_customer.id)
            assert result['visits'] == 1
            assert customer.visits == 1
            assert customer.points == 1
            assert customer.last_visit is not None
            assert Visit.query.filter_by(customer_id=customer.id).count() == 1
            assert result['reached_goal'] is False
            assert result['visits_to_next_reward'] == 4
            assert result['reward'] is None

    def test_points_earned_and_notes(self, app, sample_business, sample_customer):
        with app.app_context():
            VisitService(sample_business.id).record_visit(
                customer_id=sample_customer.id, points_earned=3, notes='Birthday visit'
            )

            visit = Visit.query.filter_by(customer_id=sample_customer.id).one()
            assert visit.points_earned == 3
            assert visit.notes == 'Birthday visit'
            assert db.session.get(Customer, sample_customer.id).points == 3

    def test_reaching_goal_mints_reward(self, app, sample_business, sample_customer):
        """visits=4, goal=5: the next visit reaches the goal and mints a reward."""
        with app.app_context():
            customer = db.session.get(Customer, sample_customer.id)
            customer.visits = 4
            db.session.commit()

            result = VisitService(sample_business.id).record_visit(customer_id=sample_customer.id)

            assert result['visits'] == 5
            assert result['reached_goal'] is True
            assert result['reward_number'] == 1
            assert result['reward'] is not None
            assert result['reward'].status == 'pending'
            assert Reward.query.filter_by(customer_id=sample_customer.id).count() == 1

    def test_second_cycle_returns_existing_pending_reward(self, app, sample_business, sample_customer):
        """Reaching the goal again with an unclaimed reward does not mint a second one."""
        with app.app_context():
            customer = db.session.get(Customer, sample_customer.id)
            customer.visits = 4
            db.session.commit()
            service = VisitService(sample_business.id)

            first = service.record_visit(customer_id=sample_customer.id)['reward']
            for _ in range(4):
                service.record_visit(customer_id=sample_customer.id)
            result = service.record_visit(customer_id=sample_customer.id)

            assert result['visits'] == 10
            assert result['reached_goal'] is True
            assert result['reward_number'] == 2
            assert result['reward'].id == first.id
            assert Reward.query.filter_by(customer_id=sample_customer.id).count() == 1

    def test_visit_confirmation_sent_below_goal(self, app, sample_business, sample_customer):
        with app.app_context():
            notifier = MagicMock()

            VisitService(sample_business.id, notifier=notifier).record_visit(customer_id=sample_customer.id)

            notifier.send_visit_confirmation.assert_called_once()
            assert notifier.send_visit_confirmation.call_args[0][2] == 4

    def test_no_confirmation_without_email(self, app, sample_business, make_customer):
        with app.app_context():
            customer = make_customer(email=None)
            notifier = MagicMock()

            VisitService(sample_business.id, notifier=notifier).record_visit(customer_id=customer.id)

            notifier.send_visit_confirmation.assert_not_called()

    def test_visit_survives_notification_failure(self, app, sample_business, sample_customer):
        """A failing email provider never undoes the recorded visit."""
        with app.app_context():
            provider = MagicMock()
            provider.send.side_effect = RuntimeError('provider down')
            notifier = NotificationService(business_id=sample_business.id, email_provider=provider)

            result = VisitService(sample_business.id, notifier=notifier).record_visit(
                customer_id=sample_customer.id
            )

            assert result['visits'] == 1
            assert db.session.get(Customer, sample_customer.id).visits == 1


class TestFindCustomer:
    """Tests for customer resolution."""

    def test_requires_id_or_qr(self, app, sample_business):
        with app.app_context():
            with pytest.raises(ValidationError):
                VisitService(sample_business.id).record_visit()

    def test_lookup_by_qr_data(self, app, sample_business, sample_customer):
        with app.app_context():
            result = VisitService(sample_business.id).record_visit(qr_data='loyallink-5551234567')
            assert result['customer'].id == sample_customer.id

    def test_qr_phone_fallback(self, app, sample_business, sample_customer):
        """An unknown QR payload of the form prefix-phone falls back to the phone."""
        with app.app_context():
            result = VisitService(sample_business.id).record_visit(qr_data='oldcard-5551234567')
            assert result['customer'].id == sample_customer.id

    def test_unknown_customer(self, app, sample_business):
        with app.app_context():
            with pytest.raises(CustomerNotFoundError):
                VisitService(sample_business.id).record_visit(customer_id=99999)

    def test_customer_of_other_business(self, app, other_business, sample_customer):
        with app.app_context():
            with pytest.raises(CustomerNotFoundError):
                VisitService(other_business.id).record_visit(customer_id=sample_customer.id)

            assert db.session.get(Customer, sample_customer.id).visits == 0
