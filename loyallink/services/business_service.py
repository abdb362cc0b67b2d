"""
Business Service for LoyalLink.

Create, read and update businesses and their reward program settings.
"""
import logging
from datetime import datetime
from typing import Any, Dict

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models.business import Business
from ..utils.exceptions import BusinessNotFoundError, DuplicateError, ValidationError
from ..utils.validation import clean_str

logger = logging.getLogger(__name__)

# Fields a business may change through settings updates
UPDATABLE_FIELDS = (
    'name',
    'phone',
    'website',
    'description',
    'logo_url',
    'visit_goal',
    'reward_title',
    'reward_description',
    'welcome_message',
    'notification_email',
    'notification_whatsapp',
    'inactive_customer_message',
    'inactive_days_threshold',
)

REWARD_SETUP_FIELDS = ('visit_goal', 'reward_title', 'reward_description')

POSITIVE_INT_FIELDS = ('visit_goal', 'inactive_days_threshold')
BOOLEAN_FIELDS = ('notification_email', 'notification_whatsapp')


def _positive_int(field: str, value) -> int:
    if isinstance(value, str) and value.strip().lstrip('-').isdigit():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f'{field} must be an integer', field=field)
    if value < 1:
        raise ValidationError(f'{field} must be at least 1', field=field)
    return value


def _boolean(field: str, value) -> bool:
    if isinstance(value, bool):
        return value
    raise ValidationError(f'{field} must be true or false', field=field)


class BusinessService:
    """Business registry."""

    def get_business(self, business_id: int) -> Business:
        business = db.session.get(Business, business_id)
        if not business:
            raise BusinessNotFoundError(business_id)
        return business

    def create_business(self, data: Dict[str, Any]) -> Business:
        """
        Create a business at signup.

        Args:
            data: Dict with name and email (required) plus optional settings

        Raises:
            ValidationError: Missing name/email or invalid settings
            DuplicateError: Email already registered
        """
        name = clean_str(data.get('name'), 'name')
        email = clean_str(data.get('email'), 'email').lower()

        if not name:
            raise ValidationError('Business name is required', field='name', missing=True)
        if not email:
            raise ValidationError('Business email is required', field='email', missing=True)
        if '@' not in email:
            raise ValidationError('Invalid email address', field='email')

        if Business.query.filter_by(email=email).first():
            raise DuplicateError('Business', f'email {email}')

        business = Business(
            name=name,
            email=email,
            visit_goal=current_app.config.get('DEFAULT_VISIT_GOAL', 5),
            inactive_days_threshold=current_app.config.get('DEFAULT_INACTIVE_DAYS', 30),
        )
        self._apply(business, data, exclude=('name',))

        db.session.add(business)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise DuplicateError('Business', f'email {email}')

        logger.info(f'Business {business.id} created')
        return business

    def update_business(self, business_id: int, data: Dict[str, Any]) -> Business:
        """Update allowed settings. Unknown fields are ignored."""
        business = self.get_business(business_id)
        try:
            self._apply(business, data)
        except ValidationError:
            db.session.rollback()
            raise
        db.session.commit()

        logger.info(f'Business {business.id} settings updated')
        return business

    def _apply(self, business: Business, data: Dict[str, Any], exclude=()) -> None:
        touched_reward = False
        for field in UPDATABLE_FIELDS:
            if field in exclude or field not in data:
                continue
            value = data[field]

            if field in POSITIVE_INT_FIELDS:
                value = _positive_int(field, value)
            elif field in BOOLEAN_FIELDS:
                value = _boolean(field, value)
            elif field == 'name':
                value = clean_str(value, field)
                if not value:
                    raise ValidationError('Business name is required', field='name', missing=True)
            elif value is not None:
                value = clean_str(value, field) or None

            setattr(business, field, value)
            if field in REWARD_SETUP_FIELDS:
                touched_reward = True

        if touched_reward and not business.reward_setup_completed:
            business.reward_setup_completed = True
            business.setup_completed_at = datetime.utcnow()
