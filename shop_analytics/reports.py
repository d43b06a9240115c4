"""
Report entry points: request validation, aggregation, rendering.

Each report takes a plain parameter dict (as received from a caller),
validates it against a pydantic request model, runs the OrdersService
operation and renders JSON or Markdown. Failures never escape: they are
turned into a user-facing message with a remediation hint.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional

import pydantic
from pydantic import BaseModel, ConfigDict, Field, PositiveInt

from shop_analytics.config import MAX_PRODUCTS_PER_REQUEST
from shop_analytics.exceptions import (
    PrestaShopAPIError,
    PrestaShopAuthError,
    PrestaShopConnectionError,
    PrestaShopDataError,
    PrestaShopError,
    PrestaShopNotFoundError,
    PrestaShopRateLimitError,
    PrestaShopTimeoutError,
    ProductNotFoundError,
    ValidationError,
)
from shop_analytics.formatters import (
    format_product_sales_stats_json,
    format_product_sales_stats_markdown,
    format_top_products_json,
    format_top_products_markdown,
)
from shop_analytics.observability import get_logger
from shop_analytics.orders_service import OrdersService

logger = get_logger(__name__)

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
ORDER_STATES_HELP = (
    "Filter by order states (e.g. [2, 3, 4, 5] for paid/processing/shipped/delivered). "
    "If not provided, ALL order states are included."
)


# ═══════════════════════════════════════════════════════════════════════════════
# REQUEST MODELS
# ═══════════════════════════════════════════════════════════════════════════════

class ProductSalesStatsRequest(BaseModel):
    """Parameters of the product sales statistics report."""

    model_config = ConfigDict(extra="forbid")

    product_id: PositiveInt = Field(..., description="PrestaShop product ID (e.g. 42)")
    date_from: str = Field(..., pattern=DATE_PATTERN, description="Start date (YYYY-MM-DD)")
    date_to: str = Field(..., pattern=DATE_PATTERN, description="End date (YYYY-MM-DD)")
    order_states: Optional[List[PositiveInt]] = Field(None, description=ORDER_STATES_HELP)
    response_format: Literal["json", "markdown"] = Field(
        "markdown", description="'json' for programmatic use or 'markdown' for readability"
    )


class TopProductsRequest(BaseModel):
    """Parameters of the top products report."""

    model_config = ConfigDict(extra="forbid")

    date_from: str = Field(..., pattern=DATE_PATTERN, description="Start date (YYYY-MM-DD)")
    date_to: str = Field(..., pattern=DATE_PATTERN, description="End date (YYYY-MM-DD)")
    limit: int = Field(
        10, ge=1, le=MAX_PRODUCTS_PER_REQUEST, description="Number of products to return"
    )
    sort_by: Literal["quantity", "revenue"] = Field(
        "quantity", description="'quantity' (units sold) or 'revenue' (total sales)"
    )
    order_states: Optional[List[PositiveInt]] = Field(None, description=ORDER_STATES_HELP)
    response_format: Literal["json", "markdown"] = Field(
        "markdown", description="'json' for programmatic use or 'markdown' for readability"
    )


@dataclass
class ReportResult:
    """Rendered report text, or an error message when is_error is set."""
    text: str
    is_error: bool = False


def _schema_error(error: pydantic.ValidationError) -> ValidationError:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "request"
    return ValidationError(field, first.get("msg", "Invalid value"), first.get("input"))


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR MESSAGES
# ═══════════════════════════════════════════════════════════════════════════════

def describe_error(error: BaseException) -> str:
    """Map an exception to a user-facing message with a remediation hint."""
    if isinstance(error, ValidationError):
        return f"Error: Invalid parameter - {error}"

    if isinstance(error, ProductNotFoundError):
        return f"Error: {error.message}\n\nSuggestion: {error.suggestion}"

    if isinstance(error, PrestaShopAuthError):
        return "Authentication failed. Verify your PRESTASHOP_WS_KEY environment variable."

    if isinstance(error, PrestaShopNotFoundError):
        return "Resource not found. Check the product_id or order_id parameter."

    if isinstance(error, PrestaShopRateLimitError):
        wait = f" (retry after {error.retry_after}s)" if error.retry_after else ""
        return f"Rate limit exceeded{wait}. Please wait before making more requests."

    if isinstance(error, PrestaShopTimeoutError):
        return "Request timeout. Try reducing the date range or limit parameter."

    if isinstance(error, PrestaShopConnectionError):
        return (
            "Could not reach the PrestaShop webservice. "
            "Check PRESTASHOP_BASE_URL and your network connection."
        )

    if isinstance(error, PrestaShopDataError):
        return (
            f"The shop returned data that could not be interpreted: {error}. "
            "No partial totals were produced."
        )

    if isinstance(error, PrestaShopAPIError):
        return f"PrestaShop API error ({error.status_code}). Please try again later."

    if isinstance(error, PrestaShopError):
        return f"Error: {error}"

    logger.exception("Unexpected error while building report", exc_info=error)
    return "An unexpected error occurred. Please try again later."


# ═══════════════════════════════════════════════════════════════════════════════
# REPORTS
# ═══════════════════════════════════════════════════════════════════════════════

async def product_sales_stats_report(
    service: OrdersService,
    params: Dict[str, Any],
) -> ReportResult:
    """Sales statistics for one product over a date range."""
    try:
        try:
            request = ProductSalesStatsRequest.model_validate(params)
        except pydantic.ValidationError as e:
            raise _schema_error(e) from e

        stats = await service.get_product_sales_stats(
            request.product_id,
            request.date_from,
            request.date_to,
            request.order_states,
        )

        if request.response_format == "json":
            text = format_product_sales_stats_json(stats)
        else:
            text = format_product_sales_stats_markdown(stats)
        return ReportResult(text)

    except Exception as e:
        logger.warning(f"Product sales report failed: {e}", extra={"error_type": type(e).__name__})
        return ReportResult(describe_error(e), is_error=True)


async def top_products_report(
    service: OrdersService,
    params: Dict[str, Any],
) -> ReportResult:
    """Best-selling products over a date range."""
    try:
        try:
            request = TopProductsRequest.model_validate(params)
        except pydantic.ValidationError as e:
            raise _schema_error(e) from e

        result = await service.get_top_products(
            request.date_from,
            request.date_to,
            request.limit,
            request.sort_by,
            request.order_states,
        )

        if request.response_format == "json":
            text = format_top_products_json(result)
        else:
            text = format_top_products_markdown(result)
        return ReportResult(text)

    except Exception as e:
        logger.warning(f"Top products report failed: {e}", extra={"error_type": type(e).__name__})
        return ReportResult(describe_error(e), is_error=True)
