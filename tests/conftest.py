"""
Pytest configuration and shared fixtures.
"""
import asyncio
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from shop_analytics.exceptions import PrestaShopTimeoutError
from shop_analytics.models import Order, OrderLineDetail, PlainName, Product

TEST_API_KEY = "A" * 32
TEST_BASE_URL = "https://shop.example.com"


def order_json(
    order_id: int,
    date_add: str = "2024-01-15 10:00:00",
    state: int = 5,
    total: str = "100.000000",
) -> Dict[str, Any]:
    """Raw order as returned by the webservice (numbers as text)."""
    return {
        "id": order_id,
        "id_customer": "7",
        "date_add": date_add,
        "current_state": str(state),
        "total_paid_tax_incl": total,
        "total_paid_tax_excl": total,
    }


def detail_json(
    detail_id: int,
    order_id: int,
    product_id: int = 42,
    quantity: Any = "1",
    unit_price: str = "10.000000",
    total: Optional[str] = None,
    name: str = "Racing Drone",
    reference: str = "RD-42",
) -> Dict[str, Any]:
    """Raw order line as returned by the webservice."""
    if total is None:
        total = f"{float(unit_price) * int(quantity):.6f}"
    return {
        "id": str(detail_id),
        "id_order": str(order_id),
        "product_id": str(product_id),
        "product_name": name,
        "product_reference": reference,
        "product_quantity": str(quantity),
        "unit_price_tax_incl": unit_price,
        "unit_price_tax_excl": unit_price,
        "total_price_tax_incl": total,
        "total_price_tax_excl": total,
    }


def make_order(order_id: int, date_add: str = "2024-01-15 10:00:00", state: int = 5) -> Order:
    return Order.from_api(order_json(order_id, date_add, state))


def make_detail(detail_id: int, order_id: int, **kwargs) -> OrderLineDetail:
    return OrderLineDetail.from_api(detail_json(detail_id, order_id, **kwargs))


def mock_response(payload: Any = None, status_code: int = 200, headers: Dict[str, str] = None):
    """httpx-like response mock."""
    response = MagicMock()
    response.status_code = status_code
    response.headers = headers or {}
    if payload is None:
        response.content = b""
        response.text = ""
    else:
        response.content = b"{...}"
        response.text = str(payload)
        response.json.return_value = payload
    return response


class FakePrestaShopClient:
    """
    In-memory stand-in for PrestaShopClient.

    Serves orders and order lines from lists and records every call;
    order-line queries honour the order ID and product filters.
    """

    def __init__(
        self,
        orders: List[Order] = None,
        details: List[OrderLineDetail] = None,
        product: Optional[Product] = None,
        detail_delay: float = 0,
    ):
        self.orders = orders or []
        self.details = details or []
        self.product = product or Product(id=42, name=PlainName("Racing Drone"), reference="RD-42")
        self.detail_delay = detail_delay
        self.order_calls: List[Any] = []
        self.detail_calls: List[Any] = []
        self.product_calls: List[int] = []
        self.active_detail_calls = 0
        self.max_active_detail_calls = 0
        self.fail_on_group: Optional[int] = None

    async def fetch_product(self, product_id: int) -> Product:
        self.product_calls.append(product_id)
        return self.product

    async def fetch_all_orders(self, filters=None) -> List[Order]:
        self.order_calls.append(filters)
        return list(self.orders)

    async def fetch_all_order_details(self, filters=None) -> List[OrderLineDetail]:
        self.detail_calls.append(filters)
        call_index = len(self.detail_calls)
        self.active_detail_calls += 1
        self.max_active_detail_calls = max(self.max_active_detail_calls, self.active_detail_calls)
        try:
            if self.fail_on_group == call_index:
                raise PrestaShopTimeoutError("Request timeout after 30s")
            await asyncio.sleep(self.detail_delay)
            wanted = set(filters.order_ids or ())
            return [
                d for d in self.details
                if (not wanted or d.order_id in wanted)
                and (filters.product_id is None or d.product_id == filters.product_id)
            ]
        finally:
            self.active_detail_calls -= 1


@pytest.fixture
def api_key() -> str:
    return TEST_API_KEY


@pytest.fixture
def base_url() -> str:
    return TEST_BASE_URL


@pytest.fixture
def sample_orders() -> List[Order]:
    """Two January orders, the newer one second."""
    return [
        make_order(1001, "2024-01-10 09:00:00"),
        make_order(1002, "2024-01-20 15:30:00"),
    ]


@pytest.fixture
def sample_details() -> List[OrderLineDetail]:
    """Product #42 sold 3 and 5 units for 30.00 and 50.00."""
    return [
        make_detail(1, 1001, quantity=3, unit_price="10.000000", total="30.000000"),
        make_detail(2, 1002, quantity=5, unit_price="10.000000", total="50.000000"),
    ]


@pytest.fixture
def fake_client(sample_orders, sample_details) -> FakePrestaShopClient:
    return FakePrestaShopClient(orders=sample_orders, details=sample_details)
