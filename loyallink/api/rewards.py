"""
Reward API endpoints for LoyalLink.

Handles:
- Minting a reward token once the visit goal is reached
- Looking up a reward by its claim token
- Claiming (redeeming) a reward
- Listing a business's rewards
"""
from flask import Blueprint, request, jsonify, g

from ..middleware.business_auth import require_business
from ..services.reward_service import RewardService
from ..utils.validation import coerce_int, json_body

rewards_bp = Blueprint('rewards', __name__)


@rewards_bp.route('/generate-reward-token', methods=['POST'])
@require_business
def generate_reward_token():
    """
    Mint a claim token for a customer who reached the visit goal.

    JSON body:
        businessId: Business ID (required)
        customerId: Customer ID (required)

    Returns:
        The pending reward and its token. Calling again returns the same
        pending reward.
    """
    data = json_body()
    customer_id = coerce_int(data.get('customerId'), 'customerId', required=True)

    reward, created = RewardService(g.business_id).issue_reward(customer_id)

    return jsonify({
        'success': True,
        'reward': reward.to_dict(),
        'token': reward.claim_token,
        'created': created,
        'message': 'Reward token generated' if created else 'Customer already has a pending reward'
    }), 201 if created else 200


def _claim(token):
    reward, customer = RewardService(g.business_id).claim_reward(token)
    return jsonify({
        'success': True,
        'reward': reward.to_dict(),
        'customer': customer.to_dict(),
        'message': f'Reward claimed! {customer.name} can start earning their next reward.'
    })


@rewards_bp.route('/claim-reward', methods=['POST'])
@require_business
def claim_reward():
    """
    Redeem a reward by claim token.

    JSON body:
        businessId: Business ID (required)
        token: 6-digit claim token (required)
    """
    data = json_body()
    return _claim(data.get('token'))


@rewards_bp.route('/claim-reward/<token>', methods=['POST'])
@require_business
def claim_reward_by_path(token):
    """Redeem a reward with the claim token in the path."""
    return _claim(token)


@rewards_bp.route('/claim-reward/<token>', methods=['GET'])
@require_business
def get_reward_by_token(token):
    """Show the reward behind a claim token, with its customer and business."""
    reward, customer, business = RewardService(g.business_id).lookup_reward(token)
    return jsonify({
        'success': True,
        'reward': reward.to_dict(),
        'customer': customer.to_dict() if customer else None,
        'business': business.to_dict()
    })


@rewards_bp.route('/rewards', methods=['GET'])
@require_business
def list_rewards():
    """
    List rewards for the business, newest first.

    Query params:
        status: pending or completed
        customerId: Only this customer's rewards
    """
    customer_id = coerce_int(request.args.get('customerId'), 'customerId')
    rewards = RewardService(g.business_id).list_rewards(
        status=request.args.get('status') or None,
        customer_id=customer_id
    )

    return jsonify({
        'rewards': [r.to_dict() for r in rewards],
        'count': len(rewards)
    })
