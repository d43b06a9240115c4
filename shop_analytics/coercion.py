"""
Parse-or-fail conversion of text-encoded numbers from the webservice.

PrestaShop serializes prices (and sometimes quantities) as strings.
Every value crossing the remote boundary goes through these helpers;
a value that does not parse raises PrestaShopDataError instead of
becoming zero.
"""
from decimal import Decimal, InvalidOperation
from typing import Any

from shop_analytics.exceptions import PrestaShopDataError

ZERO = Decimal("0")


def parse_decimal(value: Any, field: str = "value") -> Decimal:
    """
    Parse a monetary value.

    Accepts str, int, float and Decimal. Rejects None, booleans,
    empty strings and non-finite values (NaN, Infinity).
    """
    if isinstance(value, bool) or value is None:
        raise PrestaShopDataError(
            f"Invalid numeric value for {field}", expected="decimal", got=repr(value)
        )

    if isinstance(value, Decimal):
        result = value
    else:
        text = str(value).strip()
        if not text:
            raise PrestaShopDataError(
                f"Invalid numeric value for {field}", expected="decimal", got=repr(value)
            )
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise PrestaShopDataError(
                f"Invalid numeric value for {field}", expected="decimal", got=repr(value)
            ) from None

    if not result.is_finite():
        raise PrestaShopDataError(
            f"Non-finite numeric value for {field}", expected="decimal", got=repr(value)
        )
    return result


def parse_quantity(value: Any, field: str = "quantity") -> int:
    """Parse a non-negative integer quantity ("3", 3 and "3.0" are accepted)."""
    number = parse_decimal(value, field)

    if number != number.to_integral_value():
        raise PrestaShopDataError(
            f"Quantity {field} is not a whole number", expected="integer", got=repr(value)
        )
    if number < 0:
        raise PrestaShopDataError(
            f"Quantity {field} is negative", expected="integer >= 0", got=repr(value)
        )
    return int(number)


def parse_id(value: Any, field: str = "id") -> int:
    """Parse a positive integer identifier."""
    number = parse_quantity(value, field)
    if number <= 0:
        raise PrestaShopDataError(
            f"Identifier {field} must be positive", expected="integer > 0", got=repr(value)
        )
    return number
