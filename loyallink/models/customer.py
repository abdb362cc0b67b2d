"""
Customer and Visit models.
"""
from datetime import datetime
from ..extensions import db


class Customer(db.Model):
    """
    Loyalty program customer. Belongs to exactly one business.

    `visits` counts visits in the current reward cycle and is reset to 0
    when a reward is redeemed. `points` is the lifetime running total.
    """
    __tablename__ = 'customers'

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(50), nullable=False)
    email = db.Column(db.String(255))

    visits = db.Column(db.Integer, nullable=False, default=0)
    points = db.Column(db.Integer, nullable=False, default=0)
    last_visit = db.Column(db.DateTime)

    # QR payload scanned at the counter, and a hosted image of it
    qr_data = db.Column(db.String(255), index=True)
    qr_code_url = db.Column(db.String(500))

    last_outreach_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    visit_records = db.relationship('Visit', backref='customer', lazy='dynamic')
    rewards = db.relationship('Reward', backref='customer', lazy='dynamic')

    __table_args__ = (
        db.UniqueConstraint('business_id', 'phone', name='uq_business_customer_phone'),
    )

    def __repr__(self):
        return f'<Customer {self.id} visits={self.visits}>'

    def days_since_last_visit(self, now: datetime = None):
        if not self.last_visit:
            return None
        now = now or datetime.utcnow()
        return (now - self.last_visit).days

    def to_dict(self):
        return {
            'id': self.id,
            'business_id': self.business_id,
            'name': self.name,
            'phone': self.phone,
            'email': self.email,
            'visits': self.visits,
            'points': self.points,
            'last_visit': self.last_visit.isoformat() if self.last_visit else None,
            'qr_data': self.qr_data,
            'qr_code_url': self.qr_code_url,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class Visit(db.Model):
    """
    A single visit event. Append-only: rows are never updated or deleted.
    """
    __tablename__ = 'visits'

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False, index=True)

    points_earned = db.Column(db.Integer, nullable=False, default=1)
    visit_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    notes = db.Column(db.String(500))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<Visit {self.id} customer={self.customer_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'business_id': self.business_id,
            'customer_id': self.customer_id,
            'points_earned': self.points_earned,
            'visit_date': self.visit_date.isoformat() if self.visit_date else None,
            'notes': self.notes,
        }
