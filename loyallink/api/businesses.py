"""
Business API endpoints for LoyalLink.

Signup and reward program settings.
"""
from flask import Blueprint, jsonify

from ..services.business_service import BusinessService
from ..utils.validation import json_body

businesses_bp = Blueprint('businesses', __name__)


@businesses_bp.route('/businesses', methods=['POST'])
def create_business():
    """
    Create a business.

    JSON body:
        name: Business name (required)
        email: Contact email, unique (required)
        visit_goal: Visits per reward (default 5)
        reward_title, reward_description, welcome_message: Program copy
    """
    data = json_body()
    business = BusinessService().create_business(data)
    return jsonify({'success': True, 'business': business.to_dict()}), 201


@businesses_bp.route('/businesses/<int:business_id>', methods=['GET'])
def get_business(business_id):
    business = BusinessService().get_business(business_id)
    return jsonify({'success': True, 'business': business.to_dict()})


@businesses_bp.route('/businesses/<int:business_id>', methods=['PUT'])
def update_business(business_id):
    """Update business settings. Only known settings fields are applied."""
    data = json_body()
    business = BusinessService().update_business(business_id, data)
    return jsonify({'success': True, 'business': business.to_dict()})
