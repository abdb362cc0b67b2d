"""
Middleware package for LoyalLink.
"""
from .business_auth import require_business, get_business_id_from_request

__all__ = ['require_business', 'get_business_id_from_request']
