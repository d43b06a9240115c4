"""
Input validation functions for report parameters.

All validators raise ValidationError on invalid input, before any
request reaches the webservice.
"""

import re
from datetime import date, datetime
from typing import List, Optional, Sequence, Tuple

from shop_analytics.config import MAX_DATE_RANGE_DAYS, MAX_PRODUCTS_PER_REQUEST
from shop_analytics.exceptions import ErrorCode, ValidationError
from shop_analytics.filters import DateRange

SORT_CRITERIA = ("quantity", "revenue")
RESPONSE_FORMATS = ("json", "markdown")
ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def validate_date_string(
    value: str,
    field: str = "date",
    format: str = "%Y-%m-%d"
) -> date:
    """
    Validate and parse a date string.

    Args:
        value: Date string to validate
        field: Field name for error messages
        format: Expected date format (default: YYYY-MM-DD)

    Returns:
        Parsed date object

    Raises:
        ValidationError: If date is invalid or in wrong format
    """
    if not value:
        raise ValidationError(field, "Date is required", value, code=ErrorCode.INVALID_DATE_RANGE)

    if not isinstance(value, str):
        raise ValidationError(field, "Must be a string", value, code=ErrorCode.INVALID_DATE_RANGE)

    if format == "%Y-%m-%d" and not ISO_DATE_PATTERN.match(value):
        raise ValidationError(
            field,
            "Invalid date. Expected YYYY-MM-DD",
            value,
            code=ErrorCode.INVALID_DATE_RANGE,
        )

    try:
        return datetime.strptime(value, format).date()
    except ValueError:
        raise ValidationError(
            field,
            "Invalid date. Expected YYYY-MM-DD",
            value,
            code=ErrorCode.INVALID_DATE_RANGE,
        ) from None


def validate_date_range(
    date_from: str,
    date_to: str,
    max_days: int = MAX_DATE_RANGE_DAYS
) -> DateRange:
    """
    Validate an inclusive reporting period.

    Args:
        date_from: Start date string (YYYY-MM-DD)
        date_to: End date string (YYYY-MM-DD)
        max_days: Maximum allowed days between the two dates

    Returns:
        DateRange

    Raises:
        ValidationError: If dates are invalid, inverted or too far apart
    """
    start = validate_date_string(date_from, "date_from")
    end = validate_date_string(date_to, "date_to")

    if start > end:
        raise ValidationError(
            "date_range",
            "date_from must be before or equal to date_to",
            f"{date_from} to {date_to}",
            code=ErrorCode.INVALID_DATE_RANGE,
        )

    days_diff = (end - start).days
    if days_diff > max_days:
        raise ValidationError(
            "date_range",
            f"Date range exceeds maximum of {max_days} days",
            f"{days_diff} days",
            code=ErrorCode.INVALID_DATE_RANGE,
        )

    return DateRange(start, end)


def validate_limit(
    value: int,
    field: str = "limit",
    min_value: int = 1,
    max_value: int = MAX_PRODUCTS_PER_REQUEST
) -> int:
    """
    Validate a limit/count parameter.

    Raises:
        ValidationError: If limit is not an integer or out of range
    """
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(field, "Must be an integer", value)

    if value < min_value:
        raise ValidationError(field, f"Must be at least {min_value}", value)

    if value > max_value:
        raise ValidationError(field, f"Cannot exceed {max_value}", value)

    return value


def validate_product_id(value: int, field: str = "product_id") -> int:
    """Validate a catalog product ID (positive integer)."""
    if value is None:
        raise ValidationError(field, "Product ID is required")

    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(field, "Must be an integer", value)

    if value <= 0:
        raise ValidationError(field, "Must be a positive integer", value)

    return value


def validate_order_states(
    value: Optional[Sequence[int]],
    field: str = "order_states"
) -> Optional[Tuple[int, ...]]:
    """
    Validate an optional list of order state IDs.

    Returns:
        Tuple of state IDs, or None when no filter is requested
        (None and an empty list both mean "all states").
    """
    if value is None:
        return None

    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        raise ValidationError(field, "Must be a list of integers", value)

    states: List[int] = []
    for state in value:
        if not isinstance(state, int) or isinstance(state, bool) or state <= 0:
            raise ValidationError(field, "Order states must be positive integers", state)
        states.append(state)

    return tuple(states) or None


def validate_sort_by(value: str, field: str = "sort_by") -> str:
    """Validate the top-products sort criterion."""
    if value not in SORT_CRITERIA:
        raise ValidationError(field, f"Must be one of: {', '.join(SORT_CRITERIA)}", value)
    return value


def validate_response_format(value: str, field: str = "response_format") -> str:
    """Validate the requested output format."""
    if not isinstance(value, str):
        raise ValidationError(field, "Must be a string", value)

    value = value.lower().strip()
    if value not in RESPONSE_FORMATS:
        raise ValidationError(field, f"Must be one of: {', '.join(RESPONSE_FORMATS)}", value)
    return value
