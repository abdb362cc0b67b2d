"""
Business model.
"""
from datetime import datetime
from ..extensions import db


class Business(db.Model):
    """
    A business running a visit-based loyalty program.
    Every customer, visit and reward row is scoped to one business.
    """
    __tablename__ = 'businesses'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    phone = db.Column(db.String(50))
    website = db.Column(db.String(255))
    description = db.Column(db.Text)
    logo_url = db.Column(db.String(500))

    # Reward program settings
    visit_goal = db.Column(db.Integer, nullable=False, default=5)
    reward_title = db.Column(db.String(255), default='Loyalty Reward')
    reward_description = db.Column(db.Text)
    welcome_message = db.Column(db.Text)
    reward_setup_completed = db.Column(db.Boolean, default=False)
    setup_completed_at = db.Column(db.DateTime)

    # Notification channels
    notification_email = db.Column(db.Boolean, default=True)
    notification_whatsapp = db.Column(db.Boolean, default=False)

    # Inactive customer outreach
    inactive_customer_message = db.Column(db.Text)
    inactive_days_threshold = db.Column(db.Integer, default=30)

    # Subscription metadata
    subscription_plan = db.Column(db.String(50), default='free')  # free, monthly, yearly
    subscription_status = db.Column(db.String(20), default='trial')  # trial, active, expired, cancelled
    subscription_expires_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    customers = db.relationship('Customer', backref='business', lazy='dynamic')
    rewards = db.relationship('Reward', backref='business', lazy='dynamic')

    __table_args__ = (
        db.CheckConstraint('visit_goal >= 1', name='ck_businesses_visit_goal_positive'),
    )

    def __repr__(self):
        return f'<Business {self.id} {self.name}>'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'website': self.website,
            'description': self.description,
            'logo_url': self.logo_url,
            'visit_goal': self.visit_goal,
            'reward_title': self.reward_title,
            'reward_description': self.reward_description,
            'welcome_message': self.welcome_message,
            'reward_setup_completed': self.reward_setup_completed,
            'notification_email': self.notification_email,
            'notification_whatsapp': self.notification_whatsapp,
            'inactive_customer_message': self.inactive_customer_message,
            'inactive_days_threshold': self.inactive_days_threshold,
            'subscription_plan': self.subscription_plan,
            'subscription_status': self.subscription_status,
            'subscription_expires_at': self.subscription_expires_at.isoformat() if self.subscription_expires_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
