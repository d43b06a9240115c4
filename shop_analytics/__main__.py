"""
Command-line entry point for the sales reports.

Usage:
    python -m shop_analytics product-stats 42 2024-01-01 2024-01-31 --states 2 3 4 5
    python -m shop_analytics top-products 2024-01-01 2024-03-31 --limit 20 --sort-by revenue
"""
import argparse
import asyncio
import sys
from typing import Any, Dict, List, Optional

from shop_analytics.config import ConfigurationError, config, validate_config
from shop_analytics.observability import correlation_context, get_logger, setup_logging
from shop_analytics.orders_service import OrdersService
from shop_analytics.prestashop import PrestaShopClient
from shop_analytics.reports import ReportResult, product_sales_stats_report, top_products_report

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shop_analytics",
        description="Read-only sales analytics over the PrestaShop webservice",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {config.version}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    stats = subparsers.add_parser("product-stats", help="Sales statistics for one product")
    stats.add_argument("product_id", type=int, help="PrestaShop product ID")
    stats.add_argument("date_from", help="Start date (YYYY-MM-DD)")
    stats.add_argument("date_to", help="End date (YYYY-MM-DD)")

    top = subparsers.add_parser("top-products", help="Best-selling products")
    top.add_argument("date_from", help="Start date (YYYY-MM-DD)")
    top.add_argument("date_to", help="End date (YYYY-MM-DD)")
    top.add_argument("--limit", type=int, default=10, help="Number of products (1-100)")
    top.add_argument("--sort-by", choices=["quantity", "revenue"], default="quantity")

    for sub in (stats, top):
        sub.add_argument(
            "--states", type=int, nargs="+", default=None,
            help="Only count orders in these states (default: all)",
        )
        sub.add_argument(
            "--format", dest="response_format", choices=["json", "markdown"],
            default="markdown",
        )

    return parser


def build_params(args: argparse.Namespace) -> Dict[str, Any]:
    """Report parameters from parsed arguments."""
    params: Dict[str, Any] = {
        "date_from": args.date_from,
        "date_to": args.date_to,
        "response_format": args.response_format,
    }
    if args.states:
        params["order_states"] = args.states
    if args.command == "product-stats":
        params["product_id"] = args.product_id
    else:
        params["limit"] = args.limit
        params["sort_by"] = args.sort_by
    return params


async def run(args: argparse.Namespace) -> ReportResult:
    params = build_params(args)
    async with PrestaShopClient() as client:
        service = OrdersService(client)
        if args.command == "product-stats":
            return await product_sales_stats_report(service, params)
        return await top_products_report(service, params)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(config.logging.level, json_format=config.logging.json_format)

    try:
        validate_config()
    except ConfigurationError as e:
        print(str(e), file=sys.stderr)
        return 2

    with correlation_context() as correlation_id:
        logger.info(f"Running {args.command}", extra={"request_id": correlation_id})
        result = asyncio.run(run(args))

    print(result.text)
    return 1 if result.is_error else 0


if __name__ == "__main__":
    sys.exit(main())
