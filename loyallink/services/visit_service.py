"""
Visit Service for LoyalLink.

Records a customer visit and drives the reward lifecycle:
- Increments the customer's visit counter and lifetime points
- Appends an immutable Visit row
- Evaluates the business's visit goal
- Mints (or returns) the pending reward when the goal is reached
- Sends a visit confirmation when the goal is not reached yet
"""
import logging
from datetime import datetime
from typing import Any, Dict, List

from ..extensions import db
from ..models.business import Business
from ..models.customer import Customer, Visit
from ..utils.exceptions import BusinessNotFoundError, CustomerNotFoundError, ValidationError
from .goal_evaluator import reaches_goal, reward_number, visits_until_next_reward
from .notification_service import NotificationService
from .reward_service import RewardService

logger = logging.getLogger(__name__)


class VisitService:
    """
    Record visits for one business.

    Usage:
        service = VisitService(business_id)
        result = service.record_visit(customer_id=42)
        if result['reached_goal']:
            token = result['reward'].claim_token
    """

    def __init__(self, business_id: int, notifier: NotificationService = None):
        self.business_id = business_id
        self.notifier = notifier or NotificationService(business_id=business_id)

    def get_business(self) -> Business:
        business = db.session.get(Business, self.business_id)
        if not business:
            raise BusinessNotFoundError(self.business_id)
        return business

    def find_customer(self, customer_id: int = None, qr_data: str = None) -> Customer:
        """
        Resolve a customer by id or scanned QR payload, within this business.

        QR payloads are matched on `qr_data` first. Payloads shaped like
        `prefix-phone` fall back to a phone lookup.

        Raises:
            ValidationError: Neither customer_id nor qr_data given
            CustomerNotFoundError: No matching customer in this business
        """
        if customer_id is None and not qr_data:
            raise ValidationError('Either customerId or qrData is required', field='customerId', missing=True)

        query = Customer.query.filter_by(business_id=self.business_id)

        if customer_id is not None:
            customer = query.filter_by(id=customer_id).first()
        else:
            customer = query.filter_by(qr_data=qr_data).first()
            if customer is None and '-' in qr_data:
                phone = qr_data.split('-')[1]
                if phone:
                    logger.debug(f'QR lookup fell back to phone for business {self.business_id}')
                    customer = query.filter_by(phone=phone).first()

        if not customer:
            raise CustomerNotFoundError(customer_id if customer_id is not None else None)
        return customer

    def record_visit(
        self,
        customer_id: int = None,
        qr_data: str = None,
        points_earned: int = 1,
        notes: str = None,
        send_confirmation: bool = True
    ) -> Dict[str, Any]:
        """
        Record one visit and evaluate the reward goal.

        Args:
            customer_id: Customer ID (takes precedence over qr_data)
            qr_data: Scanned QR payload
            points_earned: Lifetime points added for this visit
            notes: Optional staff note stored on the Visit row
            send_confirmation: Email the visit confirmation when the goal is not reached

        Returns:
            Dict with customer, visits, reached_goal, reward_number,
            visits_to_next_reward and reward (None unless the goal was reached)
        """
        business = self.get_business()
        customer = self.find_customer(customer_id=customer_id, qr_data=qr_data)

        now = datetime.utcnow()
        # Increment in SQL, concurrent scans must not lose a visit
        customer.visits = Customer.visits + 1
        customer.points = Customer.points + points_earned
        customer.last_visit = now

        visit = Visit(
            business_id=self.business_id,
            customer_id=customer.id,
            points_earned=points_earned,
            visit_date=now,
            notes=notes
        )
        db.session.add(visit)
        db.session.commit()

        visits = customer.visits
        goal = business.visit_goal
        reached = reaches_goal(visits, goal)

        logger.info(
            f'Visit recorded: business={self.business_id} customer={customer.id} '
            f'visits={visits}/{goal} reached_goal={reached}'
        )

        reward = None
        if reached:
            reward, _created = RewardService(self.business_id, notifier=self.notifier).issue_reward(customer.id)
        elif send_confirmation and customer.email and business.notification_email:
            self.notifier.send_visit_confirmation(customer, business, visits_until_next_reward(visits, goal))

        return {
            'customer': customer,
            'visit': visit,
            'visits': visits,
            'reached_goal': reached,
            'reward_number': reward_number(visits, goal),
            'visits_to_next_reward': visits_until_next_reward(visits, goal),
            'reward': reward,
        }

    def get_visit_history(self, customer_id: int, limit: int = 50) -> List[Visit]:
        """Most recent visits for a customer, newest first."""
        customer = self.find_customer(customer_id=customer_id)
        return (
            customer.visit_records
            .order_by(Visit.visit_date.desc())
            .limit(limit)
            .all()
        )
