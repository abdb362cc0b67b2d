"""
Customer API endpoints for LoyalLink.

Handles:
- Customer registration (counts as the first visit)
- Customer list with activity stats
- Customer detail and search
"""
from flask import Blueprint, request, jsonify, g

from ..middleware.business_auth import require_business
from ..services.customer_service import CustomerService
from ..services.visit_service import VisitService
from ..utils.validation import json_body

customers_bp = Blueprint('customers', __name__)


@customers_bp.route('/register-customer', methods=['POST'])
@require_business
def register_customer():
    """
    Register a customer with a business.

    A phone number the business already knows is treated as a return visit.

    JSON body:
        businessId: Business ID (required)
        name: Customer name (required)
        phone: Phone number (required)
        email: Email for the QR code and reward emails
    """
    data = json_body()

    customer, is_existing, visit_result = CustomerService(g.business_id).register_customer(
        name=data.get('name'),
        phone=data.get('phone'),
        email=data.get('email')
    )

    business = g.business
    reward = visit_result['reward']

    if is_existing:
        message = f'Welcome back {customer.name}! Visit recorded and information updated.'
    else:
        message = f'Customer {customer.name} registered successfully with first visit recorded!'

    return jsonify({
        'success': True,
        'customer': customer.to_dict(),
        'isExistingCustomer': is_existing,
        'visits': visit_result['visits'],
        'reachedGoal': visit_result['reached_goal'],
        'reward': reward.to_dict() if reward else None,
        'businessName': business.name,
        'rewardTitle': business.reward_title,
        'visitGoal': business.visit_goal,
        'message': message
    }), 200 if is_existing else 201


@customers_bp.route('/customers', methods=['GET'])
@require_business
def list_customers():
    """List the business's customers with activity stats."""
    customers, stats = CustomerService(g.business_id).list_customers()
    return jsonify({
        'success': True,
        'customers': customers,
        'stats': stats
    })


@customers_bp.route('/customers/search', methods=['GET'])
@require_business
def search_customers():
    """
    Search customers by name, email or phone.

    Query params:
        q: Search term
    """
    customers = CustomerService(g.business_id).search_customers(request.args.get('q', ''))
    return jsonify({
        'success': True,
        'customers': [c.to_dict() for c in customers],
        'count': len(customers)
    })


@customers_bp.route('/customers/<int:customer_id>', methods=['GET'])
@require_business
def get_customer(customer_id):
    """Get a customer with their business and recent visits."""
    customer = CustomerService(g.business_id).get_customer(customer_id)
    visits = VisitService(g.business_id).get_visit_history(customer.id, limit=20)

    return jsonify({
        'success': True,
        'customer': customer.to_dict(),
        'business': g.business.to_dict(),
        'recentVisits': [v.to_dict() for v in visits]
    })
