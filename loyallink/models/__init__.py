"""
Database models for LoyalLink.
Businesses, their customers, visit history, rewards, offer campaigns and
notification logs.
"""
from .business import Business
from .customer import Customer, Visit
from .reward import Reward, RewardStatus
from .notification import NotificationLog, NotificationChannel, NotificationStatus
from .campaign import OfferCampaign, CampaignStatus

__all__ = [
    'Business',
    'Customer',
    'Visit',
    'Reward',
    'RewardStatus',
    'NotificationLog',
    'NotificationChannel',
    'NotificationStatus',
    'OfferCampaign',
    'CampaignStatus',
]
