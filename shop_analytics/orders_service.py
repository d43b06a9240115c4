"""
Sales aggregation over PrestaShop orders.

Two reports, same shape of work:
- get_product_sales_stats: one product's sales over a period
- get_top_products: best-selling products over a period

Both fetch the orders of the period first, then their order lines via
the BatchFetcher, then fold the lines into statistics. Every call
recomputes from scratch; nothing is cached between calls.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Set, Tuple

from shop_analytics.batching import BatchFetcher
from shop_analytics.coercion import ZERO
from shop_analytics.filters import DateRange, OrderFilters
from shop_analytics.models import (
    Order,
    OrderLineDetail,
    OrderSummary,
    Period,
    ProductSalesStats,
    SalesTotals,
    TopProduct,
    TopProductsResult,
)
from shop_analytics.observability import Timer, get_logger
from shop_analytics.validators import (
    validate_date_range,
    validate_limit,
    validate_order_states,
    validate_product_id,
    validate_sort_by,
)

logger = get_logger(__name__)


@dataclass
class _ProductAccumulator:
    """Running totals for one product while folding order lines."""
    name: str
    reference: str
    quantity: int = 0
    revenue: Decimal = ZERO
    order_ids: Set[int] = field(default_factory=set)


def summarize_product_lines(
    details: Sequence[OrderLineDetail],
    orders_by_id: Dict[int, Order],
) -> Tuple[SalesTotals, List[OrderSummary]]:
    """
    Fold one product's order lines into totals and per-order summaries.

    Lines of the same order are merged into a single OrderSummary.
    Lines whose order is not in orders_by_id are ignored.

    Returns:
        (SalesTotals, orders newest first)
    """
    totals = SalesTotals()
    summaries: Dict[int, OrderSummary] = {}

    for detail in details:
        order = orders_by_id.get(detail.order_id)
        if order is None:
            continue

        totals.total_quantity_sold += detail.quantity
        totals.total_revenue_excl_tax += detail.total_price_tax_excl
        totals.total_revenue_incl_tax += detail.total_price_tax_incl

        summary = summaries.get(detail.order_id)
        if summary is None:
            summaries[detail.order_id] = OrderSummary(
                order_id=detail.order_id,
                date=order.date_add,
                quantity=detail.quantity,
                unit_price=detail.unit_price_tax_incl,
                total_price=detail.total_price_tax_incl,
            )
        else:
            summary.quantity += detail.quantity
            summary.total_price += detail.total_price_tax_incl

    # sorted() is stable, so same-date orders keep encounter order
    ordered = sorted(summaries.values(), key=lambda s: s.date, reverse=True)
    totals.number_of_orders = len(ordered)
    return totals, ordered


def rank_products(
    details: Sequence[OrderLineDetail],
    sort_by: str,
) -> List[TopProduct]:
    """
    Fold order lines per product and rank them.

    Sorted descending by quantity or tax-inclusive revenue; ties go to
    the lower product ID. Name and reference come from the first line
    seen for each product.
    """
    products: Dict[int, _ProductAccumulator] = {}

    for detail in details:
        acc = products.get(detail.product_id)
        if acc is None:
            acc = _ProductAccumulator(
                name=detail.product_name,
                reference=detail.product_reference,
            )
            products[detail.product_id] = acc
        acc.quantity += detail.quantity
        acc.revenue += detail.total_price_tax_incl
        acc.order_ids.add(detail.order_id)

    if sort_by == "revenue":
        def sort_key(item):
            return (-item[1].revenue, item[0])
    else:
        def sort_key(item):
            return (-item[1].quantity, item[0])

    return [
        TopProduct(
            rank=rank,
            product_id=product_id,
            product_name=acc.name,
            product_reference=acc.reference,
            total_quantity_sold=acc.quantity,
            total_revenue_incl_tax=acc.revenue,
            number_of_orders=len(acc.order_ids),
        )
        for rank, (product_id, acc) in enumerate(sorted(products.items(), key=sort_key), start=1)
    ]


class OrdersService:
    """Sales statistics computed from the PrestaShop webservice."""

    def __init__(self, client, batch_fetcher: Optional[BatchFetcher] = None):
        """
        Args:
            client: PrestaShopClient
            batch_fetcher: Custom BatchFetcher (defaults to one over client)
        """
        self.client = client
        self.batch_fetcher = batch_fetcher or BatchFetcher(client)

    async def _fetch_period_orders(
        self,
        period: DateRange,
        order_states: Optional[Sequence[int]],
    ) -> List[Order]:
        filters = OrderFilters(
            date_range=period,
            states=tuple(order_states) if order_states else None,
        )
        with Timer("fetch_period_orders", logger):
            orders = await self.client.fetch_all_orders(filters)
        logger.info(
            f"Found {len(orders)} orders between {period.start_str} and {period.end_str}",
            extra={"order_states": list(order_states) if order_states else None}
        )
        return orders

    async def get_product_sales_stats(
        self,
        product_id: int,
        date_from: str,
        date_to: str,
        order_states: Optional[Sequence[int]] = None,
    ) -> ProductSalesStats:
        """
        Aggregate one product's sales over an inclusive period.

        Args:
            product_id: Catalog product ID
            date_from: Period start (YYYY-MM-DD)
            date_to: Period end (YYYY-MM-DD)
            order_states: Only count orders in these states (None = all)

        Returns:
            ProductSalesStats; all zeros when the period has no orders

        Raises:
            ValidationError: Invalid product ID, dates or states
            ProductNotFoundError: Product does not exist
        """
        product_id = validate_product_id(product_id)
        period = validate_date_range(date_from, date_to)
        states = validate_order_states(order_states)

        product = await self.client.fetch_product(product_id)
        stats = ProductSalesStats(
            product_id=product_id,
            product_name=product.display_name,
            product_reference=product.reference,
            period=Period(date_from, date_to),
        )

        orders = await self._fetch_period_orders(period, states)
        if not orders:
            return stats

        orders_by_id = {order.id: order for order in orders}
        details = await self.batch_fetcher.fetch_order_details(
            list(orders_by_id), product_id=product_id
        )

        stats.sales, stats.orders = summarize_product_lines(details, orders_by_id)
        logger.info(
            f"Product {product_id}: {stats.sales.total_quantity_sold} units "
            f"in {stats.sales.number_of_orders} orders"
        )
        return stats

    async def get_top_products(
        self,
        date_from: str,
        date_to: str,
        limit: int = 10,
        sort_by: str = "quantity",
        order_states: Optional[Sequence[int]] = None,
    ) -> TopProductsResult:
        """
        Rank best-selling products over an inclusive period.

        Args:
            date_from: Period start (YYYY-MM-DD)
            date_to: Period end (YYYY-MM-DD)
            limit: Number of products to return (1-100)
            sort_by: "quantity" or "revenue"
            order_states: Only count orders in these states (None = all)

        Returns:
            TopProductsResult; empty product list when nothing sold
        """
        period = validate_date_range(date_from, date_to)
        limit = validate_limit(limit)
        sort_by = validate_sort_by(sort_by)
        states = validate_order_states(order_states)

        result = TopProductsResult(
            period=Period(date_from, date_to),
            sort_by=sort_by,
            total_products_found=0,
            limit=limit,
        )

        orders = await self._fetch_period_orders(period, states)
        if not orders:
            return result

        order_ids = list(dict.fromkeys(order.id for order in orders))
        details = await self.batch_fetcher.fetch_order_details(order_ids)

        ranked = rank_products(details, sort_by)
        result.total_products_found = len(ranked)
        result.products = ranked[:limit]
        return result
