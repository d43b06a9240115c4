"""
Centralized configuration for PrestaShop sales analytics.

This module provides a single source of truth for all configuration values.
Configuration is loaded from environment variables with sensible defaults.

Usage:
    from shop_analytics.config import config

    api_key = config.api.key
    batch_size = config.batch.batch_size
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name, "")
    return int(value) if value.strip().isdigit() else default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, ""))
    except ValueError:
        return default


@dataclass(frozen=True)
class APIConfig:
    """PrestaShop webservice configuration."""

    base_url: str = field(default_factory=lambda: os.getenv("PRESTASHOP_BASE_URL", ""))
    key: str = field(default_factory=lambda: os.getenv("PRESTASHOP_WS_KEY", ""))
    page_size: int = 100
    request_timeout: float = field(default_factory=lambda: _env_float("PRESTASHOP_TIMEOUT", 30.0))
    max_keepalive_connections: int = 10
    max_connections: int = 20

    # Safety ceilings for auto-pagination
    max_orders: int = 10000
    max_orders_with_date_filter: int = 50000
    max_order_details: int = 1000


@dataclass(frozen=True)
class BatchConfig:
    """Order-detail batch fetching configuration."""

    batch_size: int = field(default_factory=lambda: _env_int("PRESTASHOP_BATCH_SIZE", 50))
    max_concurrent: int = field(default_factory=lambda: _env_int("PRESTASHOP_MAX_CONCURRENT", 5))
    max_orders_per_batch: int = 200  # URL length ceiling
    adaptive: bool = False

    # Adaptive sizing thresholds
    size_small: int = 50    # < 500 orders
    size_medium: int = 100  # 500-2000 orders
    size_large: int = 150   # > 2000 orders


@dataclass(frozen=True)
class LimitsConfig:
    """Request and output limits."""

    character_limit: int = 25000
    max_products_per_request: int = 100
    max_date_range_days: int = 730  # 2 years
    max_markdown_orders: int = 50
    search_max_scan: int = 500


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""

    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    json_format: bool = field(
        default_factory=lambda: os.getenv("LOG_FORMAT", "").lower() == "json"
    )


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""

    name: str = "prestashop-sales-analytics"
    version: str = "1.2.0"
    api: APIConfig = field(default_factory=APIConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Global config instance
config = AppConfig()


# ─── Convenience Exports ──────────────────────────────────────────────────────
VERSION = config.version
CHARACTER_LIMIT = config.limits.character_limit
MAX_DATE_RANGE_DAYS = config.limits.max_date_range_days
MAX_PRODUCTS_PER_REQUEST = config.limits.max_products_per_request
REQUEST_TIMEOUT = config.api.request_timeout


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def validate_config(app_config: AppConfig = None) -> None:
    """
    Validate that all required configuration is present.

    Call this on application startup to fail fast with clear error messages
    instead of cryptic runtime failures.

    Raises:
        ConfigurationError: If required configuration is missing
    """
    cfg = app_config or config
    errors = []

    if not cfg.api.base_url:
        errors.append("PRESTASHOP_BASE_URL is required but not set")
    elif not cfg.api.base_url.startswith(("http://", "https://")):
        errors.append("PRESTASHOP_BASE_URL must start with http:// or https://")

    if not cfg.api.key:
        errors.append("PRESTASHOP_WS_KEY is required but not set")
    elif len(cfg.api.key) != 32:
        errors.append("PRESTASHOP_WS_KEY appears to be invalid (expected 32 characters)")

    if cfg.batch.batch_size < 1:
        errors.append("PRESTASHOP_BATCH_SIZE must be a positive integer")

    if cfg.batch.max_concurrent < 1:
        errors.append("PRESTASHOP_MAX_CONCURRENT must be a positive integer")

    if cfg.api.request_timeout <= 0:
        errors.append("PRESTASHOP_TIMEOUT must be positive")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)
