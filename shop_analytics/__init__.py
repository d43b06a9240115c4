"""
PrestaShop sales analytics.

Read-only statistics over the PrestaShop webservice:
- exceptions: Custom exception hierarchy
- validators: Input validation functions
- prestashop: Async webservice client
- batching: Bounded-concurrency order line fetching
- orders_service: Sales aggregation
- config: Centralized configuration
"""

# Import in dependency order
from shop_analytics.exceptions import (
    PrestaShopError,
    PrestaShopConnectionError,
    PrestaShopTimeoutError,
    PrestaShopAPIError,
    PrestaShopAuthError,
    PrestaShopRateLimitError,
    PrestaShopNotFoundError,
    ProductNotFoundError,
    PrestaShopDataError,
    ValidationError,
)

from shop_analytics.validators import (
    validate_date_string,
    validate_date_range,
    validate_limit,
    validate_product_id,
    validate_order_states,
)

from shop_analytics.prestashop import PrestaShopClient
from shop_analytics.batching import BatchFetcher
from shop_analytics.orders_service import OrdersService
from shop_analytics.truncation import apply_truncation

from shop_analytics.config import config

__version__ = config.version

__all__ = [
    # Exceptions
    "PrestaShopError",
    "PrestaShopConnectionError",
    "PrestaShopTimeoutError",
    "PrestaShopAPIError",
    "PrestaShopAuthError",
    "PrestaShopRateLimitError",
    "PrestaShopNotFoundError",
    "ProductNotFoundError",
    "PrestaShopDataError",
    "ValidationError",
    # Validators
    "validate_date_string",
    "validate_date_range",
    "validate_limit",
    "validate_product_id",
    "validate_order_states",
    # Services
    "PrestaShopClient",
    "BatchFetcher",
    "OrdersService",
    "apply_truncation",
    # Config
    "config",
]
