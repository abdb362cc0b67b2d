"""
Notification delivery log.

One row per delivery (email or WhatsApp). Rows left in `failed` status are
the dead-letter queue that `NotificationService.retry_failed` drains.
"""
from datetime import datetime
from enum import Enum
from ..extensions import db


class NotificationChannel(str, Enum):
    EMAIL = 'email'
    WHATSAPP = 'whatsapp'


class NotificationStatus(str, Enum):
    SENT = 'sent'
    FAILED = 'failed'


class NotificationLog(db.Model):
    """Record of a single notification delivery."""
    __tablename__ = 'notification_logs'

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), index=True)

    channel = db.Column(db.String(20), nullable=False)
    recipient = db.Column(db.String(255), nullable=False)
    recipient_name = db.Column(db.String(255))
    subject = db.Column(db.String(500))
    body = db.Column(db.Text)
    template = db.Column(db.String(50))

    status = db.Column(db.String(20), nullable=False)
    attempts = db.Column(db.Integer, default=0)
    last_error = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    sent_at = db.Column(db.DateTime)

    __table_args__ = (
        db.Index('ix_notification_logs_status', 'status', 'created_at'),
    )

    def __repr__(self):
        return f'<NotificationLog {self.id} {self.channel} {self.status}>'

    def to_dict(self):
        return {
            'id': self.id,
            'business_id': self.business_id,
            'customer_id': self.customer_id,
            'channel': self.channel,
            'recipient': self.recipient,
            'subject': self.subject,
            'template': self.template,
            'status': self.status,
            'attempts': self.attempts,
            'last_error': self.last_error,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'sent_at': self.sent_at.isoformat() if self.sent_at else None,
        }
