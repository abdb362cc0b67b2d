"""
Visit API endpoints for LoyalLink.

Staff scan a customer's QR code (or pick the customer) to record a visit.
"""
from flask import Blueprint, jsonify, g

from ..middleware.business_auth import require_business
from ..services.visit_service import VisitService
from ..utils.validation import clean_str, coerce_int, json_body

visits_bp = Blueprint('visits', __name__)


@visits_bp.route('/record-visit', methods=['POST'])
@require_business
def record_visit():
    """
    Record a customer visit.

    JSON body:
        businessId: Business ID (required)
        customerId: Customer ID
        qrData: Scanned QR payload (used when customerId is absent)
        notes: Optional staff note

    Returns:
        Visit result, including the reward when the goal was reached
    """
    data = json_body()
    customer_id = coerce_int(data.get('customerId'), 'customerId')
    qr_data = clean_str(data.get('qrData'), 'qrData') or None

    result = VisitService(g.business_id).record_visit(
        customer_id=customer_id,
        qr_data=qr_data,
        notes=clean_str(data.get('notes'), 'notes') or None
    )

    customer = result['customer']
    reward = result['reward']

    if result['reached_goal']:
        message = f'Visit recorded! {customer.name} reached reward #{result["reward_number"]}.'
    else:
        message = (
            f'Visit recorded! {customer.name} needs {result["visits_to_next_reward"]} '
            f'more visits for the next reward.'
        )

    return jsonify({
        'success': True,
        'customer': customer.to_dict(),
        'visits': result['visits'],
        'reachedGoal': result['reached_goal'],
        'rewardNumber': result['reward_number'],
        'visitsToNextReward': result['visits_to_next_reward'],
        'reward': reward.to_dict() if reward else None,
        'message': message
    })
