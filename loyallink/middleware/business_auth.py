"""
Business scoping for LoyalLink API endpoints.

Every customer, visit and reward query runs for exactly one business. The
business is identified by, in order:
1. `businessId` in the JSON body
2. `businessId` query parameter
3. `X-Business-ID` header
"""
from functools import wraps
from flask import request, g

from ..extensions import db
from ..models.business import Business
from ..utils.errors import bad_request, not_found, ErrorCode


def get_business_id_from_request():
    """
    Extract the business id from the current request.

    Returns:
        The raw business id value, or None if not present
    """
    data = request.get_json(silent=True)
    if isinstance(data, dict) and data.get('businessId') not in (None, ''):
        return data.get('businessId')

    business_id = request.args.get('businessId')
    if business_id:
        return business_id

    return request.headers.get('X-Business-ID') or None


def require_business(f):
    """
    Decorator that resolves the business for a request.

    Sets g.business and g.business_id.

    Usage:
        @require_business
        def my_endpoint():
            service = RewardService(g.business_id)
            ...
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw_id = get_business_id_from_request()
        if raw_id is None:
            return bad_request('Business ID is required', ErrorCode.MISSING_FIELD)

        try:
            business_id = int(raw_id)
        except (TypeError, ValueError):
            return bad_request('Invalid business ID', ErrorCode.INVALID_FIELD)

        business = db.session.get(Business, business_id)
        if not business:
            return not_found('Business not found', ErrorCode.BUSINESS_NOT_FOUND)

        g.business_id = business.id
        g.business = business

        return f(*args, **kwargs)

    return decorated_function
