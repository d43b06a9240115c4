"""
Domain models for PrestaShop webservice data.

Provides dataclasses for the remote records (orders, order details,
products) and for the derived sales statistics returned to callers.
Remote records are parsed once here so the aggregation code never
deals with raw JSON or text-encoded numbers.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple, Union

from shop_analytics.coercion import ZERO, parse_decimal, parse_id, parse_quantity
from shop_analytics.exceptions import PrestaShopDataError

PRESTASHOP_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def _parse_datetime(value: Any, field_name: str = "date_add") -> datetime:
    """Parse a PrestaShop timestamp ("2024-01-15 10:30:00" or ISO 8601)."""
    if not value or not isinstance(value, str):
        raise PrestaShopDataError(
            f"Invalid timestamp for {field_name}", expected="datetime string", got=repr(value)
        )
    try:
        return datetime.strptime(value, PRESTASHOP_DATETIME_FORMAT)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise PrestaShopDataError(
            f"Invalid timestamp for {field_name}", expected="datetime string", got=repr(value)
        ) from None


def money(value: Decimal) -> float:
    """Round a monetary Decimal to cents for JSON output."""
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


# ═══════════════════════════════════════════════════════════════════════════════
# PRODUCT NAMES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PlainName:
    """Product name stored as a single string."""
    text: str

    @property
    def display(self) -> str:
        return self.text or "Unknown"

    def matches(self, term: str) -> bool:
        return term.lower() in self.text.lower()


@dataclass(frozen=True)
class LocalizedName:
    """Product name stored per language: [(language_id, text), ...]."""
    variants: Tuple[Tuple[str, str], ...] = ()

    @property
    def display(self) -> str:
        for _, text in self.variants:
            if text:
                return text
        return "Unknown"

    def matches(self, term: str) -> bool:
        needle = term.lower()
        return any(needle in text.lower() for _, text in self.variants if text)


ProductName = Union[PlainName, LocalizedName]


def parse_name(raw: Any) -> ProductName:
    """
    Normalize the webservice name field.

    The webservice returns either a plain string or, for multi-language
    shops, a list like [{"id": "1", "value": "Name EN"}, ...]. Some
    versions return a {language_id: text} mapping instead.
    """
    if raw is None:
        return PlainName("")
    if isinstance(raw, str):
        return PlainName(raw)
    if isinstance(raw, list):
        variants = tuple(
            (str(item.get("id", "")), str(item.get("value") or ""))
            for item in raw
            if isinstance(item, dict)
        )
        return LocalizedName(variants)
    if isinstance(raw, dict):
        variants = tuple(
            (str(key), value) for key, value in raw.items() if isinstance(value, str)
        )
        return LocalizedName(variants)
    return PlainName(str(raw))


# ═══════════════════════════════════════════════════════════════════════════════
# REMOTE RECORDS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Order:
    """Order snapshot from the PrestaShop `orders` resource."""
    id: int
    date_add: datetime
    customer_id: int
    current_state: int
    total_paid_tax_incl: Decimal
    total_paid_tax_excl: Decimal

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Order":
        """Create Order from webservice JSON."""
        return cls(
            id=parse_id(data.get("id"), "order.id"),
            date_add=_parse_datetime(data.get("date_add"), "order.date_add"),
            customer_id=parse_quantity(data.get("id_customer", 0), "order.id_customer"),
            current_state=parse_quantity(data.get("current_state", 0), "order.current_state"),
            total_paid_tax_incl=parse_decimal(
                data.get("total_paid_tax_incl", "0"), "order.total_paid_tax_incl"
            ),
            total_paid_tax_excl=parse_decimal(
                data.get("total_paid_tax_excl", "0"), "order.total_paid_tax_excl"
            ),
        )


@dataclass(frozen=True)
class OrderLineDetail:
    """One product line of an order (`order_details` resource)."""
    id: int
    order_id: int
    product_id: int
    product_name: str
    product_reference: str
    quantity: int
    unit_price_tax_incl: Decimal
    unit_price_tax_excl: Decimal
    total_price_tax_incl: Decimal
    total_price_tax_excl: Decimal

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "OrderLineDetail":
        """Create OrderLineDetail from webservice JSON."""
        return cls(
            id=parse_id(data.get("id"), "order_detail.id"),
            order_id=parse_id(data.get("id_order"), "order_detail.id_order"),
            product_id=parse_id(data.get("product_id"), "order_detail.product_id"),
            product_name=str(data.get("product_name") or "Unknown"),
            product_reference=str(data.get("product_reference") or ""),
            quantity=parse_quantity(data.get("product_quantity"), "order_detail.product_quantity"),
            unit_price_tax_incl=parse_decimal(
                data.get("unit_price_tax_incl"), "order_detail.unit_price_tax_incl"
            ),
            unit_price_tax_excl=parse_decimal(
                data.get("unit_price_tax_excl"), "order_detail.unit_price_tax_excl"
            ),
            total_price_tax_incl=parse_decimal(
                data.get("total_price_tax_incl"), "order_detail.total_price_tax_incl"
            ),
            total_price_tax_excl=parse_decimal(
                data.get("total_price_tax_excl"), "order_detail.total_price_tax_excl"
            ),
        )


@dataclass(frozen=True)
class Product:
    """Product from the PrestaShop catalog."""
    id: int
    name: ProductName
    reference: str = ""
    active: bool = True

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Product":
        """Create Product from webservice JSON."""
        active = data.get("active", True)
        if isinstance(active, str):
            active = active.strip() not in ("0", "", "false")
        return cls(
            id=parse_id(data.get("id"), "product.id"),
            name=parse_name(data.get("name")),
            reference=str(data.get("reference") or ""),
            active=bool(active),
        )

    @property
    def display_name(self) -> str:
        return self.name.display


# ═══════════════════════════════════════════════════════════════════════════════
# AGGREGATION RESULTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class Period:
    """Inclusive reporting period as given by the caller."""
    date_from: str
    date_to: str

    def to_dict(self) -> Dict[str, str]:
        return {"from": self.date_from, "to": self.date_to}


@dataclass
class OrderSummary:
    """One order's contribution to a product's sales."""
    order_id: int
    date: datetime
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "order_id": self.order_id,
            "date": self.date.strftime(PRESTASHOP_DATETIME_FORMAT),
            "quantity": self.quantity,
            "unit_price": money(self.unit_price),
            "total_price": money(self.total_price),
        }


def average_price(revenue: Decimal, quantity: int) -> Decimal:
    """Revenue per unit, or zero when nothing was sold."""
    if quantity <= 0:
        return ZERO
    return revenue / quantity


@dataclass
class SalesTotals:
    """Aggregate sales figures for a product over a period."""
    total_quantity_sold: int = 0
    total_revenue_excl_tax: Decimal = ZERO
    total_revenue_incl_tax: Decimal = ZERO
    number_of_orders: int = 0

    @property
    def average_unit_price(self) -> Decimal:
        return average_price(self.total_revenue_incl_tax, self.total_quantity_sold)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "total_quantity_sold": self.total_quantity_sold,
            "total_revenue_excl_tax": money(self.total_revenue_excl_tax),
            "total_revenue_incl_tax": money(self.total_revenue_incl_tax),
            "average_unit_price": money(self.average_unit_price),
            "number_of_orders": self.number_of_orders,
        }


@dataclass
class ProductSalesStats:
    """Sales statistics for one product over a period."""
    product_id: int
    product_name: str
    product_reference: str
    period: Period
    sales: SalesTotals = field(default_factory=SalesTotals)
    orders: List[OrderSummary] = field(default_factory=list)
    truncated: bool = False
    truncation_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        result = {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_reference": self.product_reference,
            "period": self.period.to_dict(),
            "sales": self.sales.to_dict(),
            "orders": [order.to_dict() for order in self.orders],
            "truncated": self.truncated,
        }
        if self.truncation_message:
            result["truncation_message"] = self.truncation_message
        return result


@dataclass
class TopProduct:
    """Product in a top products ranking."""
    rank: int
    product_id: int
    product_name: str
    product_reference: str
    total_quantity_sold: int
    total_revenue_incl_tax: Decimal
    number_of_orders: int

    @property
    def average_unit_price(self) -> Decimal:
        return average_price(self.total_revenue_incl_tax, self.total_quantity_sold)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "rank": self.rank,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_reference": self.product_reference,
            "total_quantity_sold": self.total_quantity_sold,
            "total_revenue_incl_tax": money(self.total_revenue_incl_tax),
            "number_of_orders": self.number_of_orders,
            "average_unit_price": money(self.average_unit_price),
        }


@dataclass
class TopProductsResult:
    """Ranked best-sellers for a period."""
    period: Period
    sort_by: str
    total_products_found: int
    products: List[TopProduct] = field(default_factory=list)
    limit: int = 10
    truncated: bool = False
    truncation_message: Optional[str] = None

    @property
    def has_more(self) -> bool:
        return self.total_products_found > self.limit

    @property
    def next_limit(self) -> Optional[int]:
        return self.limit * 2 if self.has_more else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        result = {
            "period": self.period.to_dict(),
            "sort_by": self.sort_by,
            "total_products_found": self.total_products_found,
            "products": [product.to_dict() for product in self.products],
            "has_more": self.has_more,
            "truncated": self.truncated,
        }
        if self.next_limit is not None:
            result["next_limit"] = self.next_limit
        if self.truncation_message:
            result["truncation_message"] = self.truncation_message
        return result
