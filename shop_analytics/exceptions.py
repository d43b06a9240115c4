"""
Custom exception hierarchy for PrestaShop webservice operations.

Exception Hierarchy:
    PrestaShopError (base)
    ├── PrestaShopConnectionError     - Network failure
    │   └── PrestaShopTimeoutError    - Request exceeded timeout
    ├── PrestaShopAPIError            - API returned error response
    │   ├── PrestaShopAuthError       - 401, bad webservice key
    │   ├── PrestaShopRateLimitError  - 429, too many requests
    │   └── PrestaShopNotFoundError   - 404
    │       └── ProductNotFoundError  - Requested product does not exist
    └── PrestaShopDataError           - Invalid response structure or number

    ValidationError                   - Input validation failed
"""
from typing import Any, Optional


class ErrorCode:
    """Machine-readable error codes exposed to callers."""
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    API_ERROR = "API_ERROR"
    AUTH_FAILED = "AUTH_FAILED"
    RATE_LIMIT = "RATE_LIMIT"
    NOT_FOUND = "NOT_FOUND"
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    INVALID_DATA = "INVALID_DATA"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    INVALID_PARAMETER = "INVALID_PARAMETER"


class PrestaShopError(Exception):
    """Base exception for all PrestaShop-related errors."""

    code: str = ErrorCode.API_ERROR

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        suggestion: Optional[str] = None,
    ):
        self.message = message
        self.details = details
        self.suggestion = suggestion
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class PrestaShopConnectionError(PrestaShopError):
    """Network-related errors (connection refused, DNS, reset...)."""

    code = ErrorCode.NETWORK_ERROR


class PrestaShopTimeoutError(PrestaShopConnectionError):
    """Request did not complete within the configured timeout."""

    code = ErrorCode.TIMEOUT

    def __init__(self, message: str, details: Optional[str] = None, timeout: Optional[float] = None):
        super().__init__(
            message,
            details,
            suggestion="Try reducing the date range or limit parameter.",
        )
        self.timeout = timeout


class PrestaShopAPIError(PrestaShopError):
    """
    API returned an error response.

    Check status_code for specifics.
    """

    code = ErrorCode.API_ERROR

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        status_code: Optional[int] = None,
        suggestion: Optional[str] = None,
    ):
        super().__init__(message, details, suggestion)
        self.status_code = status_code


class PrestaShopAuthError(PrestaShopAPIError):
    """Webservice key rejected (HTTP 401)."""

    code = ErrorCode.AUTH_FAILED

    def __init__(self, message: str = "Authentication failed", details: Optional[str] = None):
        super().__init__(
            message,
            details,
            status_code=401,
            suggestion="Verify your PRESTASHOP_WS_KEY environment variable.",
        )


class PrestaShopRateLimitError(PrestaShopAPIError):
    """Too many requests (HTTP 429)."""

    code = ErrorCode.RATE_LIMIT

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        details: Optional[str] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(
            message,
            details,
            status_code=429,
            suggestion="Please wait before making more requests.",
        )
        self.retry_after = retry_after


class PrestaShopNotFoundError(PrestaShopAPIError):
    """Resource does not exist (HTTP 404)."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, message: str = "Resource not found", details: Optional[str] = None,
                 suggestion: Optional[str] = None):
        super().__init__(message, details, status_code=404, suggestion=suggestion)


class ProductNotFoundError(PrestaShopNotFoundError):
    """A specific product could not be found in the catalog."""

    code = ErrorCode.PRODUCT_NOT_FOUND

    def __init__(self, product_id: int):
        super().__init__(
            f"Product with ID {product_id} not found",
            suggestion="Verify the product_id parameter exists in your PrestaShop catalog.",
        )
        self.product_id = product_id


class PrestaShopDataError(PrestaShopError):
    """
    API response has unexpected structure or unparseable values.

    This indicates a contract violation - the API returned
    data in a format we don't understand.
    """

    code = ErrorCode.INVALID_DATA

    def __init__(self, message: str, details: Optional[str] = None,
                 expected: Optional[str] = None, got: Optional[str] = None):
        super().__init__(message, details)
        self.expected = expected
        self.got = got


class ValidationError(Exception):
    """
    Input validation failed.

    Raised before any remote call is made.
    """

    def __init__(self, field: str, message: str, value: Any = None,
                 code: str = ErrorCode.INVALID_PARAMETER):
        self.field = field
        self.message = message
        self.value = value
        self.code = code
        super().__init__(f"{field}: {message}")

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.field}: {self.message} (got: {self.value!r})"
        return f"{self.field}: {self.message}"
