"""
Outreach API endpoints for LoyalLink.

Manual triggers for the jobs the scheduler runs daily, plus offer campaigns.
"""
from flask import Blueprint, jsonify, g

from ..middleware.business_auth import require_business
from ..services.outreach_service import OutreachService, DEFAULT_REMINDER_AGE_DAYS
from ..utils.validation import coerce_bool, coerce_int, json_body

outreach_bp = Blueprint('outreach', __name__)


@outreach_bp.route('/outreach/inactive', methods=['POST'])
@require_business
def send_inactive_offers():
    """
    Send come-back offers to inactive customers.

    JSON body:
        businessId: Business ID (required)
        days: Inactivity threshold (default: business setting)
        dryRun: Report without sending (default false)
    """
    data = json_body()
    results = OutreachService(g.business_id).send_inactive_offers(
        days=coerce_int(data.get('days'), 'days', minimum=1),
        dry_run=coerce_bool(data.get('dryRun'), 'dryRun')
    )
    return jsonify({'success': True, 'results': results})


@outreach_bp.route('/outreach/pending-rewards', methods=['POST'])
@require_business
def send_pending_reward_reminders():
    """
    Remind customers about rewards they have not claimed.

    JSON body:
        businessId: Business ID (required)
        minAgeDays: Minimum reward age in days (default 7)
        dryRun: Report without sending (default false)
    """
    data = json_body()
    min_age_days = coerce_int(data.get('minAgeDays'), 'minAgeDays', minimum=1)
    results = OutreachService(g.business_id).send_pending_reward_reminders(
        min_age_days=min_age_days if min_age_days is not None else DEFAULT_REMINDER_AGE_DAYS,
        dry_run=coerce_bool(data.get('dryRun'), 'dryRun')
    )
    return jsonify({'success': True, 'results': results})


@outreach_bp.route('/offer-campaigns', methods=['POST'])
@require_business
def send_offer_campaign():
    """
    Send an offer campaign to selected customers.

    Customers offered within the cooldown window (24 hours) are skipped.

    JSON body:
        businessId: Business ID (required)
        title: Campaign title (required)
        message: Offer text; {name} and {business} are filled per customer (required)
        customerIds: Customers to contact (required)
        targetFilter: Dashboard filter the customers came from
    """
    data = json_body()
    campaign, skipped = OutreachService(g.business_id).send_offer_campaign(
        title=data.get('title'),
        message=data.get('message'),
        customer_ids=data.get('customerIds'),
        target_filter=data.get('targetFilter')
    )

    message = f'Campaign sent! {campaign.sent_count} messages delivered'
    if campaign.failed_count:
        message += f', {campaign.failed_count} failed'
    if skipped:
        message += f', {skipped} skipped (offered recently)'

    return jsonify({
        'success': True,
        'campaign': campaign.to_dict(),
        'campaignId': campaign.id,
        'sentCount': campaign.sent_count,
        'failedCount': campaign.failed_count,
        'skippedCount': skipped,
        'message': message
    }), 201


@outreach_bp.route('/offer-campaigns', methods=['GET'])
@require_business
def list_offer_campaigns():
    """List the business's last 50 offer campaigns, newest first."""
    campaigns = OutreachService(g.business_id).list_offer_campaigns()
    return jsonify({
        'success': True,
        'campaigns': [c.to_dict() for c in campaigns]
    })
