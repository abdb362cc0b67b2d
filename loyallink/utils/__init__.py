"""
Utility modules for LoyalLink.
"""
from .logging_config import setup_logging
from .errors import (
    ErrorCode,
    error_response,
    bad_request,
    not_found,
    internal_error
)
from .exceptions import (
    LoyalLinkError,
    NotFoundError,
    BusinessNotFoundError,
    CustomerNotFoundError,
    ValidationError,
    DuplicateError,
    GoalNotReachedError,
    InvalidClaimTokenError,
    RewardAlreadyClaimedError,
    ClaimTokenExhaustedError,
    NotificationError
)
