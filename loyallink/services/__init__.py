"""
Business logic services for LoyalLink.
"""
from .notification_service import NotificationService
from .reward_service import RewardService
from .visit_service import VisitService
from .customer_service import CustomerService
from .business_service import BusinessService
from .outreach_service import OutreachService

__all__ = [
    'NotificationService',
    'RewardService',
    'VisitService',
    'CustomerService',
    'BusinessService',
    'OutreachService',
]
