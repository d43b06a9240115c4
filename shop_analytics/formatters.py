"""
JSON and Markdown renderers for sales reports.

Every renderer passes its output through the truncation guard.
"""
import json
from datetime import date, datetime
from typing import Any, Dict, List

from shop_analytics.config import config
from shop_analytics.models import ProductSalesStats, TopProductsResult, money
from shop_analytics.truncation import apply_truncation

MEDALS = {1: "🥇", 2: "🥈", 3: "🥉"}


# ─── Text Formatting Helpers ────────────────────────────────────────────────

def format_money(value) -> str:
    """Two-decimal amount with currency sign."""
    return f"{money(value):.2f} €"


def format_date(value) -> str:
    """DD/MM/YYYY from a date, datetime or YYYY-MM-DD string."""
    if isinstance(value, str):
        value = datetime.strptime(value[:10], "%Y-%m-%d")
    if isinstance(value, (date, datetime)):
        return value.strftime("%d/%m/%Y")
    return str(value)


def _with_truncation(markdown: str) -> str:
    result = apply_truncation(markdown, config.limits.character_limit)
    if result.truncated:
        return result.data + "\n\n---\n\n⚠️ " + result.message
    return markdown


# ─── JSON ───────────────────────────────────────────────────────────────────

def _dump(data: Dict[str, Any]) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _compact_json(data: Dict[str, Any], items_key: str, limit: int) -> str:
    """
    Largest flagged payload that fits under `limit`.

    Trailing entries of data[items_key] are dropped; the rest of the
    payload (totals, period, flags) is kept whole. If even an empty list
    does not fit, only the truncation flag and message are returned.
    """
    items = data[items_key]
    best = None
    low, high = 0, len(items)

    while low <= high:
        keep = (low + high) // 2
        content = _dump({**data, items_key: items[:keep]})
        if len(content) <= limit:
            best = content
            low = keep + 1
        else:
            high = keep - 1

    if best is None:
        return _dump({"truncated": True, "truncation_message": data["truncation_message"]})
    return best


def format_product_sales_stats_json(stats: ProductSalesStats) -> str:
    """
    Serialize product stats as JSON.

    Oversized output keeps the sales totals and as many of the newest
    orders as fit, with `truncated` and `truncation_message` set on both
    `stats` and the payload.
    """
    limit = config.limits.character_limit
    content = _dump(stats.to_dict())
    result = apply_truncation(content, limit)

    if not result.truncated:
        return content

    stats.truncated = True
    stats.truncation_message = result.message
    return _compact_json(stats.to_dict(), "orders", limit)


def format_top_products_json(data: TopProductsResult) -> str:
    """Serialize a top products ranking as JSON, flagged when cut."""
    limit = config.limits.character_limit
    content = _dump(data.to_dict())
    result = apply_truncation(content, limit)

    if not result.truncated:
        return content

    data.truncated = True
    data.truncation_message = result.message
    return _compact_json(data.to_dict(), "products", limit)


# ─── Markdown ───────────────────────────────────────────────────────────────

def format_product_sales_stats_markdown(stats: ProductSalesStats) -> str:
    """Human-readable sales report for one product."""
    sales = stats.sales
    lines: List[str] = [
        f"# Sales statistics - {stats.product_name}",
        "",
        f"**Product ID:** {stats.product_id}",
        f"**Reference:** {stats.product_reference or '-'}",
        f"**Period:** {format_date(stats.period.date_from)} - {format_date(stats.period.date_to)}",
        "",
        "## 📊 Sales summary",
        "",
        f"- **Total quantity sold:** {sales.total_quantity_sold} units",
        f"- **Total revenue (excl. tax):** {format_money(sales.total_revenue_excl_tax)}",
        f"- **Total revenue (incl. tax):** {format_money(sales.total_revenue_incl_tax)}",
        f"- **Average unit price:** {format_money(sales.average_unit_price)}",
        f"- **Number of orders:** {sales.number_of_orders}",
        "",
    ]

    if stats.orders:
        max_orders = config.limits.max_markdown_orders
        lines.extend(["## 📦 Order details", ""])

        for order in stats.orders[:max_orders]:
            lines.extend([
                f"### Order #{order.order_id} - {format_date(order.date)}",
                f"- Quantity: {order.quantity} units",
                f"- Unit price: {format_money(order.unit_price)}",
                f"- Total: {format_money(order.total_price)}",
                "",
            ])

        hidden = len(stats.orders) - max_orders
        if hidden > 0:
            lines.extend([
                f"*... and {hidden} more orders (display limited to {max_orders})*",
                "",
            ])
    else:
        lines.extend([
            "## 📦 No orders",
            "",
            "No sales recorded for this product in the selected period.",
        ])

    return _with_truncation("\n".join(lines))


def format_top_products_markdown(data: TopProductsResult) -> str:
    """Human-readable ranking of best-selling products."""
    sort_label = "Quantity Sold" if data.sort_by == "quantity" else "Revenue"
    lines: List[str] = [
        f"# 🏆 Top {len(data.products)} Products - By {sort_label}",
        "",
        f"**Period:** {format_date(data.period.date_from)} - {format_date(data.period.date_to)}",
        f"**Products found:** {data.total_products_found}",
        "",
    ]

    if not data.products:
        lines.append("No sales recorded in the selected period.")
        return _with_truncation("\n".join(lines))

    lines.extend([
        "| Rank | Product | Reference | Quantity | Revenue (incl. tax) | Orders | Avg. price |",
        "|------|---------|-----------|----------|---------------------|--------|------------|",
    ])
    for product in data.products:
        rank = MEDALS.get(product.rank, str(product.rank))
        lines.append(
            f"| {rank} | {product.product_name} (#{product.product_id}) "
            f"| {product.product_reference or '-'} "
            f"| {product.total_quantity_sold} "
            f"| {format_money(product.total_revenue_incl_tax)} "
            f"| {product.number_of_orders} "
            f"| {format_money(product.average_unit_price)} |"
        )

    if data.has_more:
        lines.extend([
            "",
            f"*{data.total_products_found - len(data.products)} more products available. "
            f"Use limit={data.next_limit} to see more.*",
        ])

    return _with_truncation("\n".join(lines))
