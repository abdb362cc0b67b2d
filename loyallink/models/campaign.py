"""
OfferCampaign Model

A one-off offer a business sends to a hand-picked set of customers.
Campaign rows also enforce the offer cooldown: a customer listed on a
campaign created in the last CAMPAIGN_COOLDOWN_HOURS is not offered again.
"""
from datetime import datetime, timedelta
from enum import Enum
from typing import Set
from ..extensions import db


class CampaignStatus(str, Enum):
    SENDING = 'sending'
    SENT = 'sent'
    PARTIAL = 'partial'
    FAILED = 'failed'


class OfferCampaign(db.Model):
    """An offer message sent to selected customers of one business."""
    __tablename__ = 'offer_campaigns'

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), nullable=False, index=True)

    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    target_filter = db.Column(db.String(50))  # dashboard filter the customers were picked from

    # Customers the campaign went out to (after the cooldown filter)
    customer_ids = db.Column(db.JSON, default=list)

    status = db.Column(db.String(20), nullable=False, default=CampaignStatus.SENDING.value)
    sent_count = db.Column(db.Integer, default=0)
    failed_count = db.Column(db.Integer, default=0)
    results = db.Column(db.JSON, default=list)  # [{"customerId": 1, "status": "sent", "channel": "whatsapp"}]

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    completed_at = db.Column(db.DateTime)

    business = db.relationship('Business', backref=db.backref('offer_campaigns', lazy='dynamic'))

    __table_args__ = (
        db.Index('ix_offer_campaigns_business_created', 'business_id', 'created_at'),
    )

    def __repr__(self):
        return f'<OfferCampaign {self.id} {self.status}>'

    @classmethod
    def recently_contacted_ids(cls, business_id: int, hours: int = 24) -> Set[int]:
        """Customer ids listed on the business's campaigns created in the last `hours`."""
        since = datetime.utcnow() - timedelta(hours=hours)
        campaigns = cls.query.filter(
            cls.business_id == business_id,
            cls.created_at >= since
        ).all()

        contacted = set()
        for campaign in campaigns:
            contacted.update(campaign.customer_ids or [])
        return contacted

    def to_dict(self):
        return {
            'id': self.id,
            'business_id': self.business_id,
            'title': self.title,
            'message': self.message,
            'target_filter': self.target_filter,
            'customer_ids': self.customer_ids or [],
            'status': self.status,
            'sent_count': self.sent_count,
            'failed_count': self.failed_count,
            'results': self.results or [],
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }
