"""
API blueprints for LoyalLink.
"""
