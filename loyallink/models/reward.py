"""
Reward model.

A reward is minted when a customer's visit count reaches the business goal
and is redeemed once by presenting its 6-digit claim token.
"""
import secrets
from datetime import datetime
from enum import Enum
from ..extensions import db


class RewardStatus(str, Enum):
    """Lifecycle of a reward. pending -> completed, never backward."""
    PENDING = 'pending'       # Minted, waiting for the claim token
    COMPLETED = 'completed'   # Redeemed at the counter


CLAIM_TOKEN_MIN = 100000
CLAIM_TOKEN_MAX = 999999


class Reward(db.Model):
    """
    Reward earned by a customer at one business.
    """
    __tablename__ = 'rewards'

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False, index=True)

    claim_token = db.Column(db.String(6), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=RewardStatus.PENDING.value)

    reward_title = db.Column(db.String(255))
    points_used = db.Column(db.Integer, default=0)  # Visit goal at mint time

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    claimed_at = db.Column(db.DateTime)
    redeemed_at = db.Column(db.DateTime)
    reminder_sent_at = db.Column(db.DateTime)

    __table_args__ = (
        # Tokens are unique per business, claimed ones included
        db.UniqueConstraint('business_id', 'claim_token', name='uq_business_claim_token'),
        # At most one pending reward per customer per business
        db.Index(
            'uq_rewards_pending_customer',
            'business_id', 'customer_id',
            unique=True,
            sqlite_where=db.text("status = 'pending'"),
            postgresql_where=db.text("status = 'pending'"),
        ),
        db.Index('ix_rewards_business_status', 'business_id', 'status'),
    )

    def __repr__(self):
        return f'<Reward {self.id} {self.claim_token} {self.status}>'

    @property
    def is_pending(self) -> bool:
        return self.status == RewardStatus.PENDING.value

    @staticmethod
    def generate_claim_token() -> str:
        """Random 6-digit claim token, uniform over [100000, 999999]."""
        value = CLAIM_TOKEN_MIN + secrets.randbelow(CLAIM_TOKEN_MAX - CLAIM_TOKEN_MIN + 1)
        return str(value)

    def to_dict(self):
        return {
            'id': self.id,
            'business_id': self.business_id,
            'customer_id': self.customer_id,
            'claim_token': self.claim_token,
            'status': self.status,
            'reward_title': self.reward_title,
            'points_used': self.points_used,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'claimed_at': self.claimed_at.isoformat() if self.claimed_at else None,
            'redeemed_at': self.redeemed_at.isoformat() if self.redeemed_at else None,
        }
