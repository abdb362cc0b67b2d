"""
Custom exceptions for LoyalLink business logic.

Services raise these; the app-level error handler turns them into the
standard JSON error body with the matching HTTP status code.
"""


class LoyalLinkError(Exception):
    """Base exception for all LoyalLink business logic errors."""

    status_code = 400

    def __init__(self, message: str, code: str = "LOYALLINK_ERROR", status_code: int = None):
        self.message = message
        self.code = code
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class NotFoundError(LoyalLinkError):
    """Resource not found."""

    status_code = 404

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} with ID {identifier} not found"
        super().__init__(message, f"{resource.upper()}_NOT_FOUND")


class BusinessNotFoundError(NotFoundError):
    """Business not found."""

    def __init__(self, identifier=None):
        super().__init__("Business", identifier)


class CustomerNotFoundError(NotFoundError):
    """Customer not found (or not part of the business)."""

    def __init__(self, identifier=None):
        super().__init__("Customer", identifier)


class ValidationError(LoyalLinkError):
    """Invalid or missing input data."""

    def __init__(self, message: str, field: str = None, missing: bool = False):
        self.field = field
        if missing:
            code = "MISSING_FIELD"
        elif field:
            code = "INVALID_FIELD"
        else:
            code = "VALIDATION_ERROR"
        super().__init__(message, code)


class DuplicateError(LoyalLinkError):
    """Resource already exists."""

    status_code = 409

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} already exists"
        if identifier:
            message = f"{resource} with {identifier} already exists"
        super().__init__(message, "DUPLICATE_ENTRY")


class GoalNotReachedError(LoyalLinkError):
    """Customer does not have enough visits for a reward."""

    def __init__(self, visits: int, visit_goal: int):
        self.visits = visits
        self.visit_goal = visit_goal
        super().__init__("Customer has not reached reward goal yet", "GOAL_NOT_REACHED")


class InvalidClaimTokenError(LoyalLinkError):
    """No reward exists for the claim token in this business."""

    status_code = 404

    def __init__(self, token: str = None):
        self.token = token
        super().__init__("Invalid token", "INVALID_TOKEN")


class RewardAlreadyClaimedError(LoyalLinkError):
    """Reward behind the claim token has already been redeemed."""

    def __init__(self, token: str = None):
        self.token = token
        super().__init__("This reward has already been claimed", "ALREADY_CLAIMED")


class ClaimTokenExhaustedError(LoyalLinkError):
    """Could not allocate a unique claim token within the attempt budget."""

    status_code = 503

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Could not generate a unique reward token after {attempts} attempts",
            "TOKEN_EXHAUSTED"
        )


class NotificationError(LoyalLinkError):
    """Notification delivery failed under the 'raise' failure policy."""

    status_code = 502

    def __init__(self, message: str, channel: str = None, original_error: Exception = None):
        self.channel = channel
        self.original_error = original_error
        super().__init__(message, "NOTIFICATION_FAILED")


class CampaignCooldownError(LoyalLinkError):
    """Every selected customer already received an offer within the cooldown window."""

    def __init__(self, hours: int):
        self.hours = hours
        super().__init__(
            f"All selected customers have received offers in the last {hours} hours",
            "CAMPAIGN_COOLDOWN"
        )
