"""Error taxonomy shared by the dispatcher, the upstream client and the tools."""

from typing import Any, Optional
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories of errors for logging and metrics."""
    NETWORK = "network"  # Connection issues, timeouts
    API_ERROR = "api_error"  # Upstream returned an error response
    AUTH_ERROR = "auth_error"  # Upstream rejected the tenant credentials
    RATE_LIMIT = "rate_limit"  # Upstream rate limit exceeded
    VALIDATION = "validation"  # Input validation errors
    BUSINESS_LOGIC = "business_logic"  # Business rule violations
    UNKNOWN = "unknown"


class GatewayError(Exception):
    """Base exception for gateway errors."""
    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.UNKNOWN):
        self.message = message
        self.category = category
        super().__init__(message)


class TenantConfigError(GatewayError):
    """The tenant directory could not be loaded. Fatal at startup."""
    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.VALIDATION)


class UpstreamError(GatewayError):
    """The WooCommerce REST API rejected a call or could not be reached."""
    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message, _category_for_status(status_code))


class BusinessRuleError(GatewayError):
    """A tool refused an operation for a business reason."""
    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.BUSINESS_LOGIC)


def _category_for_status(status_code: Optional[int]) -> ErrorCategory:
    if status_code is None:
        return ErrorCategory.NETWORK
    if status_code == 429:
        return ErrorCategory.RATE_LIMIT
    if status_code in (401, 403):
        return ErrorCategory.AUTH_ERROR
    return ErrorCategory.API_ERROR


def classify_error(error: Exception) -> ErrorCategory:
    """
    Classify an error into a category.

    Args:
        error: The exception to classify

    Returns:
        ErrorCategory used as a log field and metrics label
    """
    if isinstance(error, GatewayError):
        return error.category

    error_str = str(error).lower()

    if isinstance(error, (ConnectionError, TimeoutError)):
        return ErrorCategory.NETWORK

    if any(keyword in error_str for keyword in ['connection', 'timeout', 'network', 'dns', 'refused']):
        return ErrorCategory.NETWORK

    if isinstance(error, (ValueError, TypeError, KeyError)):
        return ErrorCategory.VALIDATION

    return ErrorCategory.UNKNOWN
