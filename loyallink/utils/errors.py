"""
Standardized error response utilities for the LoyalLink API.

Every error body has the same shape:
{
    "error": {
        "message": "User-friendly error message",
        "code": "ERROR_CODE"
    }
}

Usage:
    from loyallink.utils.errors import error_response, ErrorCode

    return error_response("Customer not found", ErrorCode.CUSTOMER_NOT_FOUND, 404)
"""
import logging
from enum import Enum
from flask import jsonify
from typing import Optional

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Validation Errors (400)
    INVALID_REQUEST = "INVALID_REQUEST"
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FIELD = "INVALID_FIELD"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Not Found (404)
    NOT_FOUND = "NOT_FOUND"
    BUSINESS_NOT_FOUND = "BUSINESS_NOT_FOUND"
    CUSTOMER_NOT_FOUND = "CUSTOMER_NOT_FOUND"
    INVALID_TOKEN = "INVALID_TOKEN"

    # Conflict (400, 409)
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    GOAL_NOT_REACHED = "GOAL_NOT_REACHED"
    ALREADY_CLAIMED = "ALREADY_CLAIMED"
    CAMPAIGN_COOLDOWN = "CAMPAIGN_COOLDOWN"

    # External / capacity errors (502, 503)
    NOTIFICATION_FAILED = "NOTIFICATION_FAILED"
    TOKEN_EXHAUSTED = "TOKEN_EXHAUSTED"

    # Server Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"


def error_response(
    message: str,
    code: ErrorCode = ErrorCode.INTERNAL_ERROR,
    status_code: int = 500,
    log_error: bool = True,
    details: Optional[dict] = None
) -> tuple:
    """
    Create a standardized error response.

    Args:
        message: User-friendly error message
        code: Error code from ErrorCode enum (or a plain string code)
        status_code: HTTP status code
        log_error: Whether to log the error
        details: Optional additional details (only logged, never returned)

    Returns:
        Tuple of (response, status_code) for Flask
    """
    code_value = code.value if isinstance(code, ErrorCode) else code

    if log_error and status_code >= 500:
        logger.error(f"API Error [{code_value}]: {message}", extra={"details": details})
    elif log_error and status_code >= 400:
        logger.warning(f"API Error [{code_value}]: {message}", extra={"details": details})

    response = {
        "error": {
            "message": message,
            "code": code_value
        }
    }

    return jsonify(response), status_code


def bad_request(message: str, code: ErrorCode = ErrorCode.INVALID_REQUEST) -> tuple:
    """400 Bad Request error."""
    return error_response(message, code, 400, log_error=False)


def not_found(message: str, code: ErrorCode = ErrorCode.NOT_FOUND) -> tuple:
    """404 Not Found error."""
    return error_response(message, code, 404, log_error=False)


def internal_error(message: str = "An unexpected error occurred", details: Optional[dict] = None) -> tuple:
    """500 Internal Server Error."""
    return error_response(message, ErrorCode.INTERNAL_ERROR, 500, log_error=True, details=details)
