"""
Customer Service for LoyalLink.

Customer registry for one business:
- Registration (registration counts as the first visit)
- Lookup and search
- Listing with activity stats for the dashboard
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models.business import Business
from ..models.customer import Customer
from ..utils.exceptions import BusinessNotFoundError, CustomerNotFoundError, ValidationError
from ..utils.validation import clean_str
from .notification_service import NotificationService
from .visit_service import VisitService

logger = logging.getLogger(__name__)

QR_IMAGE_URL = 'https://api.qrserver.com/v1/create-qr-code/?size=300x300&data={data}'

HIGH_VISITOR_THRESHOLD = 10
LOW_VISITOR_RANGE = (1, 5)


def build_qr_payload(customer_id: int) -> str:
    app_url = current_app.config.get('APP_URL', '').rstrip('/')
    return f'{app_url}/mark-visit/{customer_id}'


def build_qr_image_url(payload: str) -> str:
    return QR_IMAGE_URL.format(data=quote(payload, safe=''))


class CustomerService:
    """
    Customer operations for one business.

    Usage:
        service = CustomerService(business_id)
        customer, is_existing, visit = service.register_customer('Ana', '5551234567', 'ana@example.com')
    """

    def __init__(self, business_id: int, notifier: NotificationService = None):
        self.business_id = business_id
        self.notifier = notifier or NotificationService(business_id=business_id)

    def _get_business(self) -> Business:
        business = db.session.get(Business, self.business_id)
        if not business:
            raise BusinessNotFoundError(self.business_id)
        return business

    # ==================== Registration ====================

    def register_customer(
        self,
        name: str,
        phone: str,
        email: str = None
    ) -> Tuple[Customer, bool, Dict[str, Any]]:
        """
        Register a customer, or record a return visit for a known phone number.

        Args:
            name: Customer name (required)
            phone: Phone number, unique within the business (required)
            email: Optional email for QR and reward emails

        Returns:
            Tuple of (customer, is_existing, visit_result) where visit_result
            is the VisitService.record_visit result for this registration
        """
        name = clean_str(name, 'name')
        phone = clean_str(phone, 'phone')
        email = clean_str(email, 'email') or None

        if not name:
            raise ValidationError('Name is required', field='name', missing=True)
        if not phone:
            raise ValidationError('Phone is required', field='phone', missing=True)
        if email and '@' not in email:
            raise ValidationError('Invalid email address', field='email')

        business = self._get_business()
        visits = VisitService(self.business_id, notifier=self.notifier)

        existing = Customer.query.filter_by(business_id=self.business_id, phone=phone).first()
        if existing:
            return self._register_returning(existing, business, visits, name, email)

        customer = Customer(
            business_id=self.business_id,
            name=name,
            phone=phone,
            email=email,
            visits=0,
            points=0,
        )
        db.session.add(customer)
        try:
            db.session.flush()
            customer.qr_data = build_qr_payload(customer.id)
            customer.qr_code_url = build_qr_image_url(customer.qr_data)
            db.session.commit()
        except IntegrityError:
            # Same phone registered concurrently
            db.session.rollback()
            existing = Customer.query.filter_by(business_id=self.business_id, phone=phone).first()
            if not existing:
                raise
            return self._register_returning(existing, business, visits, name, email)

        logger.info(f'Customer {customer.id} registered with business {self.business_id}')

        visit_result = visits.record_visit(
            customer_id=customer.id,
            notes='Registration visit - Welcome to our loyalty program!',
            send_confirmation=False
        )

        if customer.email and business.notification_email:
            self.notifier.send_welcome_email(customer, business)

        return customer, False, visit_result

    def _register_returning(
        self,
        customer: Customer,
        business: Business,
        visits: VisitService,
        name: str,
        email: Optional[str]
    ) -> Tuple[Customer, bool, Dict[str, Any]]:
        email_changed = bool(email) and email != customer.email

        if name != customer.name:
            customer.name = name
        if email_changed:
            customer.email = email
        db.session.commit()

        logger.info(f'Returning customer {customer.id} re-registered with business {self.business_id}')

        visit_result = visits.record_visit(
            customer_id=customer.id,
            notes='Visit recorded - Welcome back!',
            send_confirmation=False
        )

        if email_changed and business.notification_email:
            self.notifier.send_welcome_email(customer, business)

        return customer, True, visit_result

    # ==================== Lookup ====================

    def get_customer(self, customer_id: int) -> Customer:
        customer = Customer.query.filter_by(id=customer_id, business_id=self.business_id).first()
        if not customer:
            raise CustomerNotFoundError(customer_id)
        return customer

    def search_customers(self, term: str, limit: int = 50) -> List[Customer]:
        """Case-insensitive match on name, email or phone."""
        term = (term or '').strip()
        if not term:
            return []

        pattern = f'%{term}%'
        return (
            Customer.query
            .filter(Customer.business_id == self.business_id)
            .filter(or_(
                Customer.name.ilike(pattern),
                Customer.email.ilike(pattern),
                Customer.phone.ilike(pattern),
            ))
            .order_by(Customer.name.asc())
            .limit(limit)
            .all()
        )

    def list_customers(self) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        """
        All customers of the business, newest first, with activity stats.

        Returns:
            Tuple of (customer dicts with is_active and days_since_last_visit, stats)
        """
        self._get_business()

        now = datetime.utcnow()
        active_days = current_app.config.get('ACTIVE_CUSTOMER_DAYS', 30)
        active_cutoff = now - timedelta(days=active_days)
        low_min, low_max = LOW_VISITOR_RANGE

        customers = (
            Customer.query
            .filter_by(business_id=self.business_id)
            .order_by(Customer.created_at.desc(), Customer.id.desc())
            .all()
        )

        stats = {
            'total': len(customers),
            'active': 0,
            'inactive': 0,
            'high_visitors': 0,
            'low_visitors': 0,
            'new_customers': 0,
        }

        results = []
        for customer in customers:
            is_active = bool(customer.last_visit and customer.last_visit >= active_cutoff)
            visits = customer.visits or 0

            stats['active' if is_active else 'inactive'] += 1
            if visits >= HIGH_VISITOR_THRESHOLD:
                stats['high_visitors'] += 1
            if low_min <= visits <= low_max:
                stats['low_visitors'] += 1
            if customer.created_at and customer.created_at >= active_cutoff:
                stats['new_customers'] += 1

            data = customer.to_dict()
            data['is_active'] = is_active
            data['days_since_last_visit'] = customer.days_since_last_visit(now)
            results.append(data)

        return results, stats
