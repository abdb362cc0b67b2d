"""
Tests for the Reward Service.

Covers:
- Issuance gated on the visit goal
- Idempotent issuance (one pending reward per customer)
- Claim token format and per-business uniqueness
- Token collision retries and exhaustion
- Redemption, double redemption and unknown tokens
"""
import re
import pytest
from unittest.mock import patch, MagicMock

from loyallink.extensions import db
from loyallink.models import Customer, Reward, RewardStatus, NotificationLog
from loyallink.services.reward_service import RewardService
from loyallink.utils.exceptions import (
    ClaimTokenExhaustedError,
    CustomerNotFoundError,
    GoalNotReachedError,
    InvalidClaimTokenError,
    RewardAlreadyClaimedError,
)


def _set_visits(customer_id, visits):
    customer = db.session.get(Customer, customer_id)
    customer.visits = visits
    db.session.commit()
    return customer


class TestIssueReward:
    """Tests for RewardService.issue_reward."""

    def test_goal_not_reached(self, app, sample_business, sample_customer):
        """visits=3 < goal=5 refuses issuance and creates no row."""
        with app.app_context():
            _set_visits(sample_customer.id, 3)

            with pytest.raises(GoalNotReachedError) as exc:
                RewardService(sample_business.id).issue_reward(sample_customer.id)

            assert exc.value.message == 'Customer has not reached reward goal yet'
            assert exc.value.status_code == 400
            assert Reward.query.count() == 0

    def test_issue_creates_pending_reward(self, app, sample_business, sample_customer):
        with app.app_context():
            _set_visits(sample_customer.id, 5)

            reward, created = RewardService(sample_business.id).issue_reward(sample_customer.id)

            assert created is True
            assert reward.status == RewardStatus.PENDING.value
            assert reward.business_id == sample_business.id
            assert reward.customer_id == sample_customer.id
            assert reward.reward_title == 'Free Coffee'
            assert reward.points_used == 5

    def test_token_is_six_digits(self, app, sample_business, sample_customer):
        with app.app_context():
            _set_visits(sample_customer.id, 5)

            reward, _ = RewardService(sample_business.id).issue_reward(sample_customer.id)

            assert re.fullmatch(r'[0-9]{6}', reward.claim_token)
            assert 100000 <= int(reward.claim_token) <= 999999

    def test_issue_is_idempotent(self, app, sample_business, sample_customer):
        """Issuing twice returns the same token and no duplicate rows."""
        with app.app_context():
            _set_visits(sample_customer.id, 5)
            service = RewardService(sample_business.id)

            first, created_first = service.issue_reward(sample_customer.id)
            second, created_second = service.issue_reward(sample_customer.id)

            assert created_first is True
            assert created_second is False
            assert first.id == second.id
            assert first.claim_token == second.claim_token
            assert Reward.query.filter_by(customer_id=sample_customer.id).count() == 1

    def test_issue_sends_token_email(self, app, sample_business, sample_customer):
        with app.app_context():
            _set_visits(sample_customer.id, 5)
            notifier = MagicMock()

            reward, _ = RewardService(sample_business.id, notifier=notifier).issue_reward(sample_customer.id)

            notifier.send_reward_token_email.assert_called_once()
            args = notifier.send_reward_token_email.call_args[0]
            assert args[2] == reward.claim_token

    def test_existing_pending_reward_sends_no_email(self, app, sample_business, sample_customer):
        with app.app_context():
            _set_visits(sample_customer.id, 5)
            RewardService(sample_business.id).issue_reward(sample_customer.id)

            notifier = MagicMock()
            RewardService(sample_business.id, notifier=notifier).issue_reward(sample_customer.id)

            notifier.send_reward_token_email.assert_not_called()

    def test_token_email_logged(self, app, sample_business, sample_customer):
        """The console provider records a sent NotificationLog row."""
        with app.app_context():
            _set_visits(sample_customer.id, 5)
            RewardService(sample_business.id).issue_reward(sample_customer.id)

            log = NotificationLog.query.filter_by(template='reward_token').one()
            assert log.status == 'sent'
            assert log.recipient == 'customer@example.com'
            assert log.subject.startswith('[LoyalLink]')

    def test_customer_of_other_business_not_found(self, app, other_business, sample_customer):
        with app.app_context():
            _set_visits(sample_customer.id, 5)

            with pytest.raises(CustomerNotFoundError):
                RewardService(other_business.id).issue_reward(sample_customer.id)

    def test_token_collision_retries(self, app, sample_business, sample_customer, make_customer):
        """A token already used in the business is never reissued."""
        with app.app_context():
            other = make_customer(visits=5)
            db.session.add(Reward(
                business_id=sample_business.id,
                customer_id=other.id,
                claim_token='111111',
                status=RewardStatus.COMPLETED.value,
            ))
            db.session.commit()
            _set_visits(sample_customer.id, 5)

            with patch.object(Reward, 'generate_claim_token', side_effect=['111111', '222222']):
                reward, created = RewardService(sample_business.id).issue_reward(sample_customer.id)

            assert created is True
            assert reward.claim_token == '222222'

    def test_same_token_allowed_in_other_business(self, app, sample_business, other_business, make_customer):
        with app.app_context():
            mine = make_customer(visits=5)
            theirs = Customer(business_id=other_business.id, name='Other', phone='5559990000', visits=3)
            db.session.add(theirs)
            db.session.commit()

            with patch.object(Reward, 'generate_claim_token', return_value='333333'):
                first, _ = RewardService(sample_business.id).issue_reward(mine.id)
                second, _ = RewardService(other_business.id).issue_reward(theirs.id)

            assert first.claim_token == second.claim_token == '333333'
            assert first.business_id != second.business_id

    def test_token_exhaustion_raises(self, app, sample_business, sample_customer, make_customer):
        """Every attempt colliding raises instead of inserting a duplicate."""
        with app.app_context():
            other = make_customer(visits=5)
            db.session.add(Reward(
                business_id=sample_business.id,
                customer_id=other.id,
                claim_token='444444',
                status=RewardStatus.PENDING.value,
            ))
            db.session.commit()
            _set_visits(sample_customer.id, 5)

            with patch.object(Reward, 'generate_claim_token', return_value='444444'):
                with pytest.raises(ClaimTokenExhaustedError) as exc:
                    RewardService(sample_business.id).issue_reward(sample_customer.id)

            assert exc.value.status_code == 503
            assert exc.value.attempts == 10
            assert Reward.query.filter_by(customer_id=sample_customer.id).count() == 0

    def test_concurrent_issue_returns_winner(self, app, sample_business, sample_customer):
        """An insert losing the pending-reward race returns the row that won."""
        with app.app_context():
            _set_visits(sample_customer.id, 5)
            service = RewardService(sample_business.id)

            winner = Reward(
                business_id=sample_business.id,
                customer_id=sample_customer.id,
                claim_token='555555',
                status=RewardStatus.PENDING.value,
            )
            db.session.add(winner)
            db.session.commit()
            winner_id = winner.id

            # The pre-check misses the winner, as if it committed in between
            real_lookup = service.get_pending_reward
            calls = {'n': 0}

            def lookup(customer_id):
                calls['n'] += 1
                if calls['n'] == 1:
                    return None
                return real_lookup(customer_id)

            with patch.object(service, 'get_pending_reward', side_effect=lookup):
                reward, created = service.issue_reward(sample_customer.id)

            assert created is False
            assert reward.id == winner_id
            assert Reward.query.filter_by(customer_id=sample_customer.id).count() == 1


class TestClaimReward:
    """Tests for RewardService.claim_reward."""

    def _issue(self, business_id, customer_id):
        _set_visits(customer_id, 5)
        reward, _ = RewardService(business_id).issue_reward(customer_id)
        return reward.claim_token

    def test_claim_completes_reward_and_resets_visits(self, app, sample_business, sample_customer):
        with app.app_context():
            token = self._issue(sample_business.id, sample_customer.id)

            reward, customer = RewardService(sample_business.id).claim_reward(token)

            assert reward.status == RewardStatus.COMPLETED.value
            assert reward.claimed_at is not None
            assert reward.redeemed_at is not None
            assert customer.visits == 0
            assert db.session.get(Customer, sample_customer.id).visits == 0

    def test_second_claim_fails(self, app, sample_business, sample_customer):
        with app.app_context():
            token = self._issue(sample_business.id, sample_customer.id)
            service = RewardService(sample_business.id)
            service.claim_reward(token)

            with pytest.raises(RewardAlreadyClaimedError) as exc:
                service.claim_reward(token)

            assert exc.value.message == 'This reward has already been claimed'
            assert exc.value.status_code == 400

    def test_unknown_token(self, app, sample_business):
        with app.app_context():
            with pytest.raises(InvalidClaimTokenError) as exc:
                RewardService(sample_business.id).claim_reward('000000')

            assert exc.value.message == 'Invalid token'
            assert exc.value.status_code == 404

    def test_token_scoped_to_business(self, app, sample_business, other_business, sample_customer):
        with app.app_context():
            token = self._issue(sample_business.id, sample_customer.id)

            with pytest.raises(InvalidClaimTokenError):
                RewardService(other_business.id).claim_reward(token)

            assert Reward.query.filter_by(claim_token=token).one().status == RewardStatus.PENDING.value

    def test_lost_race_reports_already_claimed(self, app, sample_business, sample_customer):
        """A claim whose conditional update matches no row fails without resetting visits."""
        with app.app_context():
            token = self._issue(sample_business.id, sample_customer.id)
            service = RewardService(sample_business.id)

            reward_id = Reward.query.filter_by(claim_token=token).one().id
            seen_pending = MagicMock(id=reward_id, is_pending=True)

            with patch('loyallink.services.reward_service.Reward.query') as query:
                query.filter_by.return_value.first.return_value = seen_pending
                query.filter.return_value.update.return_value = 0

                with pytest.raises(RewardAlreadyClaimedError):
                    service.claim_reward(token)

            assert db.session.get(Customer, sample_customer.id).visits == 5

    def test_claim_sends_redeemed_email(self, app, sample_business, sample_customer):
        with app.app_context():
            token = self._issue(sample_business.id, sample_customer.id)
            notifier = MagicMock()

            RewardService(sample_business.id, notifier=notifier).claim_reward(token)

            notifier.send_reward_redeemed_email.assert_called_once()

    def test_new_reward_after_claim(self, app, sample_business, sample_customer):
        """After redemption the customer can earn a new reward with a fresh token."""
        with app.app_context():
            first = self._issue(sample_business.id, sample_customer.id)
            RewardService(sample_business.id).claim_reward(first)

            second = self._issue(sample_business.id, sample_customer.id)

            assert second != first
            assert Reward.query.filter_by(customer_id=sample_customer.id).count() == 2


class TestLookupAndList:
    """Tests for lookup_reward and list_rewards."""

    def test_lookup_returns_reward_customer_business(self, app, sample_business, sample_customer):
        with app.app_context():
            _set_visits(sample_customer.id, 5)
            issued, _ = RewardService(sample_business.id).issue_reward(sample_customer.id)

            reward, customer, business = RewardService(sample_business.id).lookup_reward(issued.claim_token)

            assert reward.id == issued.id
            assert customer.id == sample_customer.id
            assert business.id == sample_business.id

    def test_lookup_unknown_token(self, app, sample_business):
        with app.app_context():
            with pytest.raises(InvalidClaimTokenError):
                RewardService(sample_business.id).lookup_reward('999999')

    def test_list_filters_by_status(self, app, sample_business, sample_customer, make_customer):
        with app.app_context():
            service = RewardService(sample_business.id)
            _set_visits(sample_customer.id, 5)
            claimed, _ = service.issue_reward(sample_customer.id)
            service.claim_reward(claimed.claim_token)

            other = make_customer(visits=5)
            service.issue_reward(other.id)

            assert len(service.list_rewards()) == 2
            pending = service.list_rewards(status='pending')
            assert [r.customer_id for r in pending] == [other.id]
            assert len(service.list_rewards(status='completed')) == 1
            assert len(service.list_rewards(customer_id=sample_customer.id)) == 1
