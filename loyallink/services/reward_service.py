"""
Reward Service for LoyalLink.

Mints and redeems visit rewards for one business.

ISSUANCE:
- A reward can be minted once the customer's visit count reaches the goal
- At most one pending reward exists per customer; issuing again returns it
- Claim tokens are 6 digits and unique within the business, claimed ones
  included, so a token is never reissued

Both rules are enforced by database constraints. The service checks first
for the common path and treats an IntegrityError as a lost race.

REDEMPTION:
- A pending reward moves to completed exactly once, through a conditional
  UPDATE on status
- The customer's visit counter resets to 0 in the same commit
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models.business import Business
from ..models.customer import Customer
from ..models.reward import Reward, RewardStatus
from ..utils.exceptions import (
    BusinessNotFoundError,
    CustomerNotFoundError,
    ClaimTokenExhaustedError,
    GoalNotReachedError,
    InvalidClaimTokenError,
    RewardAlreadyClaimedError,
    ValidationError,
)
from ..utils.validation import clean_str
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


class RewardService:
    """
    Reward issuance and redemption for one business.

    Usage:
        service = RewardService(business_id)

        reward, created = service.issue_reward(customer_id)
        reward, customer = service.claim_reward('482913')
    """

    def __init__(self, business_id: int, notifier: NotificationService = None):
        self.business_id = business_id
        self.notifier = notifier or NotificationService(business_id=business_id)

    # ==================== Lookups ====================

    def _get_business(self) -> Business:
        business = db.session.get(Business, self.business_id)
        if not business:
            raise BusinessNotFoundError(self.business_id)
        return business

    def _get_customer(self, customer_id: int) -> Customer:
        customer = Customer.query.filter_by(id=customer_id, business_id=self.business_id).first()
        if not customer:
            raise CustomerNotFoundError(customer_id)
        return customer

    def get_pending_reward(self, customer_id: int) -> Optional[Reward]:
        return Reward.query.filter_by(
            business_id=self.business_id,
            customer_id=customer_id,
            status=RewardStatus.PENDING.value
        ).first()

    def _token_exists(self, token: str) -> bool:
        return db.session.query(
            Reward.query.filter_by(business_id=self.business_id, claim_token=token).exists()
        ).scalar()

    # ==================== Issuance ====================

    def issue_reward(self, customer_id: int) -> Tuple[Reward, bool]:
        """
        Mint a pending reward for a customer who reached the visit goal.

        Idempotent: a customer with a pending reward gets that reward back.

        Args:
            customer_id: Customer ID within this business

        Returns:
            Tuple of (reward, created)

        Raises:
            CustomerNotFoundError / BusinessNotFoundError
            GoalNotReachedError: visits below the business goal
            ClaimTokenExhaustedError: no free token within the attempt budget
        """
        customer = self._get_customer(customer_id)
        business = self._get_business()

        if (customer.visits or 0) < business.visit_goal:
            raise GoalNotReachedError(customer.visits or 0, business.visit_goal)

        existing = self.get_pending_reward(customer.id)
        if existing:
            logger.info(f'Pending reward {existing.id} already exists for customer {customer.id}')
            return existing, False

        max_attempts = current_app.config.get('CLAIM_TOKEN_MAX_ATTEMPTS', 10)
        for attempt in range(1, max_attempts + 1):
            token = Reward.generate_claim_token()
            if self._token_exists(token):
                logger.debug(f'Claim token collision on attempt {attempt} for business {self.business_id}')
                continue

            reward = Reward(
                business_id=self.business_id,
                customer_id=customer.id,
                claim_token=token,
                status=RewardStatus.PENDING.value,
                reward_title=business.reward_title,
                points_used=business.visit_goal,
            )
            db.session.add(reward)
            try:
                db.session.commit()
            except IntegrityError:
                db.session.rollback()
                # Either a concurrent issue for this customer or a token race
                existing = self.get_pending_reward(customer.id)
                if existing:
                    logger.info(f'Concurrent issue resolved to reward {existing.id} for customer {customer.id}')
                    return existing, False
                logger.warning(f'Claim token insert conflict on attempt {attempt}, retrying')
                continue

            logger.info(f'Reward {reward.id} minted for customer {customer.id} in business {self.business_id}')
            self._notify_issued(customer, business, reward)
            return reward, True

        logger.error(f'Claim token space exhausted for business {self.business_id} after {max_attempts} attempts')
        raise ClaimTokenExhaustedError(max_attempts)

    def _notify_issued(self, customer: Customer, business: Business, reward: Reward) -> None:
        if not customer.email:
            return
        if not business.notification_email:
            logger.info(f'Email notifications disabled for business {business.id}, token email skipped')
            return
        self.notifier.send_reward_token_email(customer, business, reward.claim_token)

    # ==================== Redemption ====================

    def lookup_reward(self, token: str) -> Tuple[Reward, Customer, Business]:
        """
        Find the reward behind a claim token (any status) for display.

        Raises:
            InvalidClaimTokenError: No reward with this token in the business
        """
        token = self._clean_token(token)
        reward = Reward.query.filter_by(business_id=self.business_id, claim_token=token).first()
        if not reward:
            raise InvalidClaimTokenError(token)
        return reward, reward.customer, self._get_business()

    def claim_reward(self, token: str) -> Tuple[Reward, Customer]:
        """
        Redeem a reward by its claim token.

        Marks the reward completed and resets the customer's visit counter
        in one transaction. Only one of two concurrent claims can succeed.

        Raises:
            InvalidClaimTokenError: Unknown token (404)
            RewardAlreadyClaimedError: Token already redeemed (400)
        """
        token = self._clean_token(token)
        reward = Reward.query.filter_by(business_id=self.business_id, claim_token=token).first()
        if not reward:
            raise InvalidClaimTokenError(token)
        if not reward.is_pending:
            raise RewardAlreadyClaimedError(token)

        now = datetime.utcnow()
        updated = Reward.query.filter(
            Reward.id == reward.id,
            Reward.status == RewardStatus.PENDING.value
        ).update(
            {
                Reward.status: RewardStatus.COMPLETED.value,
                Reward.claimed_at: now,
                Reward.redeemed_at: now,
            },
            synchronize_session=False
        )
        if updated == 0:
            db.session.rollback()
            raise RewardAlreadyClaimedError(token)

        Customer.query.filter_by(id=reward.customer_id, business_id=self.business_id).update(
            {Customer.visits: 0, Customer.updated_at: now},
            synchronize_session=False
        )
        db.session.commit()

        # Bulk updates bypass the identity map
        db.session.refresh(reward)
        customer = db.session.get(Customer, reward.customer_id)
        db.session.refresh(customer)

        logger.info(f'Reward {reward.id} claimed for customer {customer.id} in business {self.business_id}')

        business = self._get_business()
        if customer.email and business.notification_email:
            self.notifier.send_reward_redeemed_email(customer, business, reward)

        return reward, customer

    def list_rewards(self, status: str = None, customer_id: int = None) -> List[Reward]:
        """Rewards for the business, newest first."""
        query = Reward.query.filter_by(business_id=self.business_id)
        if status:
            if status not in {s.value for s in RewardStatus}:
                raise ValidationError(f'Invalid status: {status}', field='status')
            query = query.filter_by(status=status)
        if customer_id is not None:
            query = query.filter_by(customer_id=customer_id)
        return query.order_by(Reward.created_at.desc(), Reward.id.desc()).all()

    @staticmethod
    def _clean_token(token) -> str:
        # JSON clients may send the 6 digits as a number
        if isinstance(token, int) and not isinstance(token, bool):
            token = str(token)
        token = clean_str(token, 'token')
        if not token:
            raise ValidationError('Token is required', field='token', missing=True)
        return token
