"""
Notification Service for LoyalLink.

The one place customer notifications leave the system:
- Welcome email with the customer's QR code on registration
- Visit confirmation (visits remaining until the next reward)
- Reward token email when a reward is minted
- Redemption confirmation
- Inactive customer offers (email and, when enabled, WhatsApp)
- Pending reward reminders
- Offer campaigns (WhatsApp first, email as the fallback)

Delivery policy
---------------
- Email goes through one configured provider (EMAIL_PROVIDER): 'sendgrid'
  delivers through the SendGrid API, 'console' only logs the message.
- WhatsApp goes through Green API when WHATSAPP_INSTANCE_ID and
  WHATSAPP_ACCESS_TOKEN are set; otherwise WhatsApp sends return False.
- Each delivery is attempted NOTIFICATION_MAX_ATTEMPTS times with a linear
  NOTIFICATION_RETRY_BACKOFF delay between attempts.
- Every delivery writes a NotificationLog row. Failed rows are the dead
  letter queue, re-driven by retry_failed().
- NOTIFICATION_FAILURE_POLICY decides what a final failure does:
  'log_and_continue' logs and returns False, 'raise' raises
  NotificationError. The default keeps notification failures from ever
  failing the database operation that triggered them.

Callers must commit their own work before notifying: the log row is
committed here.
"""
import html
import logging
import re
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests
from flask import current_app
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models.notification import NotificationLog, NotificationChannel, NotificationStatus
from ..utils.exceptions import NotificationError, ValidationError

logger = logging.getLogger(__name__)

SUBJECT_PREFIX = '[LoyalLink]'

FAILURE_POLICY_LOG = 'log_and_continue'
FAILURE_POLICY_RAISE = 'raise'


# ==================== Providers ====================

class SendGridEmailProvider:
    """Deliver email through the SendGrid v3 API."""

    name = 'sendgrid'

    def __init__(self, api_key: str, from_email: str, from_name: str):
        self.api_key = api_key
        self.from_email = from_email
        self.from_name = from_name

    def send(self, to_email: str, to_name: Optional[str], subject: str, html_content: str) -> None:
        if not self.api_key:
            raise RuntimeError('SendGrid API key not configured')

        message = Mail(
            from_email=Email(email=self.from_email, name=self.from_name),
            to_emails=To(email=to_email, name=to_name),
            subject=subject,
            html_content=html_content,
            plain_text_content=strip_html(html_content),
        )
        response = SendGridAPIClient(self.api_key).send(message)
        if response.status_code >= 400:
            raise RuntimeError(f'SendGrid returned {response.status_code}')


class ConsoleEmailProvider:
    """Log email instead of sending it (development and tests)."""

    name = 'console'

    def send(self, to_email: str, to_name: Optional[str], subject: str, html_content: str) -> None:
        logger.info(f'[console email] to={to_email} subject={subject!r} ({len(html_content)} chars)')


class GreenApiWhatsAppProvider:
    """Deliver WhatsApp text messages through Green API."""

    name = 'green_api'
    BASE_URL = 'https://api.green-api.com'

    def __init__(self, instance_id: str, access_token: str, timeout: int = 10):
        self.instance_id = instance_id
        self.access_token = access_token
        self.timeout = timeout

    def send(self, phone: str, message: str) -> None:
        url = f'{self.BASE_URL}/waInstance{self.instance_id}/sendMessage/{self.access_token}'
        response = requests.post(
            url,
            json={'chatId': f'{phone}@c.us', 'message': message},
            timeout=self.timeout
        )

        # Bad instance credentials come back as an HTML error page
        if 'text/html' in response.headers.get('content-type', ''):
            raise RuntimeError('WhatsApp API authentication failed, check instance ID and access token')

        response.raise_for_status()


def build_email_provider(config) -> Any:
    provider = (config.get('EMAIL_PROVIDER') or 'sendgrid').lower()
    if provider == 'console':
        return ConsoleEmailProvider()
    if provider == 'sendgrid':
        return SendGridEmailProvider(
            api_key=config.get('SENDGRID_API_KEY'),
            from_email=config.get('EMAIL_FROM', 'noreply@loyallink.com'),
            from_name=config.get('EMAIL_FROM_NAME', 'LoyalLink'),
        )
    raise ValueError(f'Unknown EMAIL_PROVIDER: {provider}')


def build_whatsapp_provider(config) -> Optional[GreenApiWhatsAppProvider]:
    instance_id = config.get('WHATSAPP_INSTANCE_ID')
    access_token = config.get('WHATSAPP_ACCESS_TOKEN')
    if not instance_id or not access_token:
        return None
    return GreenApiWhatsAppProvider(
        instance_id=instance_id,
        access_token=access_token,
        timeout=config.get('NOTIFICATION_TIMEOUT', 10),
    )


# ==================== Helpers ====================

def strip_html(content: str) -> str:
    text = re.sub(r'<[^>]*>', '', content or '')
    return re.sub(r'\n\s*\n+', '\n\n', text).strip()


def normalize_phone(phone: str) -> str:
    """Digits only, with country code 1 added to 10-digit numbers."""
    digits = re.sub(r'\D', '', phone or '')
    if len(digits) == 10:
        return f'1{digits}'
    return digits


# ==================== Templates ====================

_LAYOUT = '''
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
    <h2 style="color: #4f46e5;">{business_name}</h2>
    {content}
    <p style="color: #6b7280; font-size: 12px; margin-top: 30px;">Powered by LoyalLink</p>
</div>
'''

DEFAULT_TEMPLATES = {
    'welcome': {
        'subject': 'Welcome to {business_name}!',
        'html': '''
    <p>Hi {customer_name},</p>
    <p>Thank you for joining the {business_name} loyalty program! {welcome_message}</p>
    <div style="background: #f5f5f5; padding: 20px; border-radius: 8px; text-align: center;">
        <img src="{qr_code_url}" alt="Your QR code" style="width: 220px; height: 220px;" />
        <p>Show this code at {business_name} to record your visits.</p>
    </div>
    <p>Earn <strong>{reward_title}</strong> after {visit_goal} visits.</p>
'''
    },
    'visit_confirmation': {
        'subject': 'Visit #{visits} recorded at {business_name}',
        'html': '''
    <p>Hi {customer_name},</p>
    <p>Thanks for visiting! You now have {visits} visits.</p>
    <p>You need {visits_to_next} more visits to earn your next reward: <strong>{reward_title}</strong>.</p>
'''
    },
    'reward_token': {
        'subject': 'Your reward code for {reward_title} at {business_name}',
        'html': '''
    <p>Hi {customer_name},</p>
    <p>Congratulations! You reached {visit_goal} visits and earned <strong>{reward_title}</strong>.</p>
    <p>{reward_description}</p>
    <div style="background: #fef3c7; padding: 20px; border-radius: 8px; text-align: center;">
        <p>Your claim code</p>
        <p style="font-size: 32px; font-weight: bold; letter-spacing: 6px;">{token}</p>
    </div>
    <p>Show this code to staff at {business_name} to claim your reward, or open <a href="{claim_url}">your reward page</a>.</p>
'''
    },
    'reward_redeemed': {
        'subject': 'Reward claimed at {business_name}',
        'html': '''
    <p>Hi {customer_name},</p>
    <p>Your reward <strong>{reward_title}</strong> has been claimed. Enjoy!</p>
    <p>Your visit count has been reset so you can start earning your next reward.</p>
'''
    },
    'inactive_offer': {
        'subject': 'We miss you at {business_name}!',
        'html': '''
    <p>Hi {customer_name},</p>
    <p>{message}</p>
    <p>You have {visits} of {visit_goal} visits toward <strong>{reward_title}</strong>.</p>
'''
    },
    'pending_reward_reminder': {
        'subject': 'Your {reward_title} is waiting at {business_name}',
        'html': '''
    <p>Hi {customer_name},</p>
    <p>You still have an unclaimed reward: <strong>{reward_title}</strong>.</p>
    <p>Your claim code is <strong>{token}</strong>. Show it to staff on your next visit.</p>
'''
    },
    'offer_campaign': {
        'subject': '{title}',
        'html': '''
    <p style="white-space: pre-line;">{message}</p>
    <p>- {business_name}</p>
'''
    },
}


def render_template(template_key: str, context: Dict[str, Any]) -> Tuple[str, str]:
    """Render (subject, html) for a template, HTML-escaping every value."""
    template = DEFAULT_TEMPLATES[template_key]
    safe = {key: html.escape(str(value)) if value is not None else '' for key, value in context.items()}
    subject = template['subject'].format(**{k: ('' if v is None else str(v)) for k, v in context.items()})
    content = template['html'].format(**safe)
    body = _LAYOUT.format(business_name=safe.get('business_name', ''), content=content)
    return subject, body


def personalize_offer(message: str, customer, business) -> str:
    """Fill the {name} and {business} placeholders of a campaign message."""
    return message.replace('{name}', customer.name or '').replace('{business}', business.name or '')


def _base_context(customer, business) -> Dict[str, Any]:
    return {
        'customer_name': customer.name,
        'business_name': business.name,
        'reward_title': business.reward_title or 'Loyalty Reward',
        'reward_description': business.reward_description or '',
        'visit_goal': business.visit_goal,
        'visits': customer.visits,
    }


# ==================== Service ====================

class NotificationService:
    """
    Single notification interface for the app.

    Usage:
        notifier = NotificationService(business_id=business.id)
        notifier.send_reward_token_email(customer, business, reward.claim_token)

    Providers can be injected (tests, scripts); otherwise they are built
    from the Flask config on first use.
    """

    def __init__(self, business_id: int = None, email_provider=None, whatsapp_provider=None):
        self.business_id = business_id
        self._email_provider = email_provider
        self._whatsapp_provider = whatsapp_provider

    @property
    def email_provider(self):
        if self._email_provider is None:
            self._email_provider = build_email_provider(current_app.config)
        return self._email_provider

    @property
    def whatsapp_provider(self):
        if self._whatsapp_provider is None:
            self._whatsapp_provider = build_whatsapp_provider(current_app.config)
        return self._whatsapp_provider

    # ==================== Channels ====================

    def send_email(
        self,
        recipient_email: str,
        subject: str,
        html_content: str,
        recipient_name: str = None,
        template: str = None,
        customer_id: int = None
    ) -> bool:
        """Send one email. Returns True when delivered."""
        if not recipient_email:
            logger.info(f'No email address for customer {customer_id}, skipping {template or "email"}')
            return False

        if not subject.startswith(SUBJECT_PREFIX):
            subject = f'{SUBJECT_PREFIX} {subject}'

        log = NotificationLog(
            business_id=self.business_id,
            customer_id=customer_id,
            channel=NotificationChannel.EMAIL.value,
            recipient=recipient_email,
            recipient_name=recipient_name,
            subject=subject,
            body=html_content,
            template=template,
        )
        return self._deliver(log)

    def send_whatsapp(self, phone: str, message: str, customer_id: int = None, template: str = None) -> bool:
        """Send one WhatsApp text. Returns False when WhatsApp is not configured."""
        if not phone:
            return False
        if self.whatsapp_provider is None:
            logger.info('WhatsApp not configured, message not sent')
            return False

        log = NotificationLog(
            business_id=self.business_id,
            customer_id=customer_id,
            channel=NotificationChannel.WHATSAPP.value,
            recipient=normalize_phone(phone),
            body=message,
            template=template,
        )
        return self._deliver(log)

    # ==================== Program messages ====================

    def send_welcome_email(self, customer, business) -> bool:
        context = _base_context(customer, business)
        context.update({
            'qr_code_url': customer.qr_code_url or '',
            'welcome_message': business.welcome_message or '',
        })
        subject, body = render_template('welcome', context)
        return self.send_email(customer.email, subject, body, customer.name, 'welcome', customer.id)

    def send_visit_confirmation(self, customer, business, visits_to_next: int) -> bool:
        context = _base_context(customer, business)
        context['visits_to_next'] = visits_to_next
        subject, body = render_template('visit_confirmation', context)
        return self.send_email(customer.email, subject, body, customer.name, 'visit_confirmation', customer.id)

    def send_reward_token_email(self, customer, business, token: str) -> bool:
        context = _base_context(customer, business)
        app_url = current_app.config.get('APP_URL', '').rstrip('/')
        context.update({
            'token': token,
            'claim_url': f'{app_url}/claim-reward/{token}?businessId={business.id}',
        })
        subject, body = render_template('reward_token', context)
        return self.send_email(customer.email, subject, body, customer.name, 'reward_token', customer.id)

    def send_reward_redeemed_email(self, customer, business, reward) -> bool:
        context = _base_context(customer, business)
        context['reward_title'] = reward.reward_title or context['reward_title']
        subject, body = render_template('reward_redeemed', context)
        return self.send_email(customer.email, subject, body, customer.name, 'reward_redeemed', customer.id)

    def send_inactive_offer(self, customer, business) -> bool:
        """Email the inactive offer, and WhatsApp it when the business enabled that channel."""
        message = business.inactive_customer_message or (
            f'It has been a while since your last visit. Come back soon and keep earning toward '
            f'{business.reward_title or "your reward"}!'
        )
        context = _base_context(customer, business)
        context['message'] = message
        subject, body = render_template('inactive_offer', context)

        delivered = self.send_email(customer.email, subject, body, customer.name, 'inactive_offer', customer.id)
        if business.notification_whatsapp and customer.phone:
            text = f'Hi {customer.name}! {message} - {business.name}'
            delivered = self.send_whatsapp(customer.phone, text, customer.id, 'inactive_offer') or delivered
        return delivered

    def send_pending_reward_reminder(self, customer, business, reward) -> bool:
        context = _base_context(customer, business)
        context.update({
            'reward_title': reward.reward_title or context['reward_title'],
            'token': reward.claim_token,
        })
        subject, body = render_template('pending_reward_reminder', context)
        return self.send_email(customer.email, subject, body, customer.name, 'pending_reward_reminder', customer.id)

    def send_offer(self, customer, business, title: str, message: str) -> Optional[str]:
        """
        Deliver one campaign offer.

        WhatsApp is tried first when the customer has a phone and WhatsApp is
        configured. Email is used otherwise, or when the WhatsApp delivery
        failed.

        Returns:
            The channel that delivered the offer, or None
        """
        text = personalize_offer(message, customer, business)

        if customer.phone and self.whatsapp_provider is not None:
            try:
                if self.send_whatsapp(customer.phone, f'{text}\n\n- {business.name}', customer.id, 'offer_campaign'):
                    return NotificationChannel.WHATSAPP.value
            except NotificationError as e:
                logger.warning(f'WhatsApp offer to customer {customer.id} failed, falling back to email: {e}')

        if not customer.email:
            return None

        context = _base_context(customer, business)
        context.update({'title': title, 'message': text})
        subject, body = render_template('offer_campaign', context)
        if self.send_email(customer.email, subject, body, customer.name, 'offer_campaign', customer.id):
            return NotificationChannel.EMAIL.value
        return None

    # ==================== Dead letters ====================

    def list_logs(self, status: str = None, limit: int = 50) -> List[NotificationLog]:
        """Delivery log for the business, newest first. status='failed' lists the dead letters."""
        query = NotificationLog.query
        if self.business_id is not None:
            query = query.filter_by(business_id=self.business_id)
        if status:
            if status not in {s.value for s in NotificationStatus}:
                raise ValidationError(f'Invalid status: {status}', field='status')
            query = query.filter_by(status=status)
        return query.order_by(NotificationLog.created_at.desc(), NotificationLog.id.desc()).limit(limit).all()

    def retry_failed(self, limit: int = 50) -> Dict[str, int]:
        """Re-attempt failed deliveries, oldest first. Scoped to the business when one is set."""
        query = NotificationLog.query.filter_by(status=NotificationStatus.FAILED.value)
        if self.business_id is not None:
            query = query.filter_by(business_id=self.business_id)
        failed = query.order_by(NotificationLog.created_at.asc()).limit(limit).all()

        summary = {'processed': 0, 'sent': 0, 'failed': 0}
        for log in failed:
            summary['processed'] += 1
            try:
                if self._deliver(log):
                    summary['sent'] += 1
                else:
                    summary['failed'] += 1
            except NotificationError:
                summary['failed'] += 1
        return summary

    # ==================== Delivery core ====================

    def _sender_for(self, log: NotificationLog) -> Optional[Callable[[], None]]:
        if log.channel == NotificationChannel.EMAIL.value:
            provider = self.email_provider
            return lambda: provider.send(log.recipient, log.recipient_name, log.subject, log.body)
        if log.channel == NotificationChannel.WHATSAPP.value:
            provider = self.whatsapp_provider
            if provider is None:
                return None
            return lambda: provider.send(log.recipient, log.body)
        return None

    def _attempt(self, send: Callable[[], None]) -> Tuple[bool, int, Optional[Exception]]:
        config = current_app.config
        max_attempts = max(1, int(config.get('NOTIFICATION_MAX_ATTEMPTS', 3)))
        backoff = float(config.get('NOTIFICATION_RETRY_BACKOFF', 0) or 0)

        last_error = None
        for attempt in range(1, max_attempts + 1):
            try:
                send()
                return True, attempt, None
            except Exception as e:  # provider SDK, HTTP and network errors all land here
                last_error = e
                logger.warning(f'Notification attempt {attempt}/{max_attempts} failed: {e}')
                if attempt < max_attempts and backoff:
                    time.sleep(backoff * attempt)
        return False, max_attempts, last_error

    def _deliver(self, log: NotificationLog) -> bool:
        send = self._sender_for(log)
        if send is None:
            ok, attempts, error = False, 0, RuntimeError(f'No provider for channel {log.channel}')
        else:
            ok, attempts, error = self._attempt(send)

        log.attempts = (log.attempts or 0) + attempts
        if ok:
            log.status = NotificationStatus.SENT.value
            log.sent_at = datetime.utcnow()
            log.last_error = None
        else:
            log.status = NotificationStatus.FAILED.value
            log.last_error = str(error)

        self._save_log(log)

        if ok:
            return True

        logger.error(
            f'Notification failed after {attempts} attempts '
            f'(channel={log.channel}, template={log.template}, customer={log.customer_id}): {error}'
        )
        if current_app.config.get('NOTIFICATION_FAILURE_POLICY', FAILURE_POLICY_LOG) == FAILURE_POLICY_RAISE:
            raise NotificationError(
                f'Failed to deliver {log.channel} notification',
                channel=log.channel,
                original_error=error
            )
        return False

    def _save_log(self, log: NotificationLog) -> None:
        try:
            db.session.add(log)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f'Failed to record notification log: {e}')
