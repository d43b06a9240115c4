"""
Tests for shop_analytics.prestashop module.
"""
import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from conftest import TEST_API_KEY, TEST_BASE_URL, detail_json, mock_response, order_json
from shop_analytics.exceptions import (
    PrestaShopAPIError,
    PrestaShopAuthError,
    PrestaShopConnectionError,
    PrestaShopDataError,
    PrestaShopRateLimitError,
    PrestaShopTimeoutError,
    ProductNotFoundError,
)
from shop_analytics.filters import OrderDetailFilters, OrderFilters
from shop_analytics.prestashop import PrestaShopClient, normalize_records
from shop_analytics.validators import validate_date_range


def make_client(page_size: int = 100) -> PrestaShopClient:
    return PrestaShopClient(api_key=TEST_API_KEY, base_url=TEST_BASE_URL, page_size=page_size)


def install_responses(client: PrestaShopClient, *responses) -> AsyncMock:
    """Replace the HTTP client so request() returns the given responses in order."""
    request = AsyncMock(side_effect=list(responses))
    client._client = MagicMock()
    client._client.request = request
    return request


def sent_params(request: AsyncMock, call: int = 0) -> dict:
    return request.call_args_list[call].kwargs["params"]


class TestNormalizeRecords:
    """Tests for response shape normalization."""

    def test_list_of_records(self):
        payload = {"orders": [{"id": 1}, {"id": 2}]}
        assert normalize_records(payload, "orders", "order") == [{"id": 1}, {"id": 2}]

    def test_single_object_becomes_list(self):
        payload = {"orders": {"id": 7}}
        assert normalize_records(payload, "orders", "order") == [{"id": 7}]

    def test_wrapped_items_are_unwrapped(self):
        payload = {"orders": [{"order": {"id": 1}}, {"order": {"id": 2}}]}
        assert normalize_records(payload, "orders", "order") == [{"id": 1}, {"id": 2}]

    def test_singular_key(self):
        payload = {"product": {"id": 42}}
        assert normalize_records(payload, "products", "product") == [{"id": 42}]

    def test_empty_array_means_no_results(self):
        assert normalize_records([], "orders", "order") == []

    def test_missing_collection_means_no_results(self):
        assert normalize_records({}, "orders", "order") == []
        assert normalize_records({"orders": []}, "orders", "order") == []

    def test_non_empty_list_payload_rejected(self):
        with pytest.raises(PrestaShopDataError):
            normalize_records([{"id": 1}], "orders", "order")

    def test_scalar_payload_rejected(self):
        with pytest.raises(PrestaShopDataError):
            normalize_records("oops", "orders", "order")

    def test_non_object_record_rejected(self):
        with pytest.raises(PrestaShopDataError):
            normalize_records({"orders": ["1", "2"]}, "orders", "order")


class TestPrestaShopClientInit:
    """Tests for client construction and lifecycle."""

    def test_init_with_credentials(self):
        """Should keep credentials and strip the trailing slash."""
        client = PrestaShopClient(api_key=TEST_API_KEY, base_url=TEST_BASE_URL + "/")
        assert client.api_key == TEST_API_KEY
        assert client.api_url == "https://shop.example.com/api"

    def test_init_without_api_key_raises(self):
        with patch("shop_analytics.prestashop.config") as mock_config:
            mock_config.api.key = ""
            mock_config.api.base_url = TEST_BASE_URL
            with pytest.raises(ValueError, match="PRESTASHOP_WS_KEY is required"):
                PrestaShopClient(api_key=None)

    def test_init_without_base_url_raises(self):
        with patch("shop_analytics.prestashop.config") as mock_config:
            mock_config.api.base_url = ""
            with pytest.raises(ValueError, match="PRESTASHOP_BASE_URL is required"):
                PrestaShopClient(api_key=TEST_API_KEY, base_url=None)

    @pytest.mark.asyncio
    async def test_context_manager(self):
        """Should open and close the HTTP client."""
        client = make_client()
        async with client:
            assert isinstance(client._client, httpx.AsyncClient)
        assert client._client is None

    @pytest.mark.asyncio
    async def test_basic_auth_uses_key_as_username(self):
        client = make_client()
        async with client:
            auth = client._client.auth
            assert isinstance(auth, httpx.BasicAuth)
            request = next(auth.auth_flow(httpx.Request("GET", client.api_url)))
            assert request.headers["Authorization"].startswith("Basic ")


class TestRequests:
    """Tests for the GET path and error mapping."""

    @pytest.mark.asyncio
    async def test_json_output_and_display_fields(self):
        client = make_client()
        request = install_responses(client, mock_response({"orders": [order_json(1)]}))

        await client.fetch_orders()

        kwargs = request.call_args.kwargs
        assert kwargs["method"] == "GET"
        assert kwargs["url"] == "https://shop.example.com/api/orders"
        assert kwargs["params"]["output_format"] == "JSON"
        assert kwargs["params"]["display"].startswith("[id,")
        assert kwargs["params"]["limit"] == "0,100"

    @pytest.mark.asyncio
    async def test_auth_error(self):
        client = make_client()
        install_responses(client, mock_response(status_code=401))

        with pytest.raises(PrestaShopAuthError) as exc_info:
            await client.fetch_orders()

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_rate_limit_with_retry_after(self):
        client = make_client()
        install_responses(client, mock_response(status_code=429, headers={"Retry-After": "30"}))

        with pytest.raises(PrestaShopRateLimitError) as exc_info:
            await client.fetch_orders()

        assert exc_info.value.retry_after == 30

    @pytest.mark.asyncio
    async def test_server_error(self):
        client = make_client()
        install_responses(client, mock_response(status_code=500))

        with pytest.raises(PrestaShopAPIError) as exc_info:
            await client.fetch_order_details()

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_timeout(self):
        client = make_client()
        install_responses(client, httpx.ReadTimeout("timed out"))

        with pytest.raises(PrestaShopTimeoutError):
            await client.fetch_orders()

    @pytest.mark.asyncio
    async def test_connection_error(self):
        client = make_client()
        install_responses(client, httpx.ConnectError("refused"))

        with pytest.raises(PrestaShopConnectionError) as exc_info:
            await client.fetch_orders()

        assert not isinstance(exc_info.value, PrestaShopTimeoutError)

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client = make_client()
        response = mock_response({"orders": []})
        response.json.side_effect = ValueError("Expecting value")
        install_responses(client, response)

        with pytest.raises(PrestaShopDataError):
            await client.fetch_orders()

    @pytest.mark.asyncio
    async def test_not_found_means_no_orders(self):
        client = make_client()
        install_responses(client, mock_response(status_code=404))

        assert await client.fetch_orders() == []

    @pytest.mark.asyncio
    async def test_empty_body_means_no_orders(self):
        client = make_client()
        install_responses(client, mock_response())

        assert await client.fetch_orders() == []

    @pytest.mark.asyncio
    async def test_unparseable_price_fails(self):
        """A malformed amount must fail the call rather than count as zero."""
        client = make_client()
        bad = order_json(1)
        bad["total_paid_tax_incl"] = "n/a"
        install_responses(client, mock_response({"orders": [bad]}))

        with pytest.raises(PrestaShopDataError):
            await client.fetch_orders()


class TestOrders:
    """Tests for order fetching and pagination."""

    @pytest.mark.asyncio
    async def test_date_filter_params(self):
        client = make_client()
        request = install_responses(client, mock_response({"orders": [order_json(1)]}))
        period = validate_date_range("2024-01-01", "2024-01-31")

        await client.fetch_all_orders(OrderFilters(date_range=period, states=(2, 3)))

        params = sent_params(request)
        assert params["filter[date_add]"] == "[2024-01-01 00:00:00,2024-01-31 23:59:59]"
        assert params["date"] == "1"
        assert params["filter[current_state]"] == "[2|3]"

    @pytest.mark.asyncio
    async def test_paginates_until_short_page(self):
        client = make_client(page_size=2)
        request = install_responses(
            client,
            mock_response({"orders": [order_json(1), order_json(2)]}),
            mock_response({"orders": [order_json(3), order_json(4)]}),
            mock_response({"orders": {"id": 5, "date_add": "2024-01-15 10:00:00"}}),
        )

        orders = await client.fetch_all_orders()

        assert [o.id for o in orders] == [1, 2, 3, 4, 5]
        assert [sent_params(request, i)["limit"] for i in range(3)] == ["0,2", "2,2", "4,2"]

    @pytest.mark.asyncio
    async def test_stops_on_empty_page(self):
        client = make_client(page_size=2)
        request = install_responses(
            client,
            mock_response({"orders": [order_json(1), order_json(2)]}),
            mock_response([]),
        )

        orders = await client.fetch_all_orders()

        assert len(orders) == 2
        assert request.call_count == 2

    @pytest.mark.asyncio
    async def test_stops_at_safety_ceiling(self):
        client = make_client(page_size=2)
        request = install_responses(
            client,
            mock_response({"orders": [order_json(1), order_json(2)]}),
            mock_response({"orders": [order_json(3), order_json(4)]}),
        )

        orders = await client.fetch_all_orders(max_results=3)

        assert [o.id for o in orders] == [1, 2, 3]
        assert request.call_count == 2

    @pytest.mark.asyncio
    async def test_order_fields_are_typed(self):
        client = make_client()
        install_responses(
            client,
            mock_response({"orders": [order_json(9, "2024-02-01 08:15:00", state=4, total="19.990000")]}),
        )

        (order,) = await client.fetch_orders()

        assert order.id == 9
        assert order.current_state == 4
        assert str(order.total_paid_tax_incl) == "19.990000"
        assert order.date_add.day == 1


class TestOrderDetails:
    """Tests for order line fetching."""

    @pytest.mark.asyncio
    async def test_order_id_list_filter(self):
        client = make_client()
        request = install_responses(client, mock_response({"order_details": [detail_json(1, 12)]}))

        details = await client.fetch_all_order_details(
            OrderDetailFilters(order_ids=(12, 15, 19), product_id=42)
        )

        params = sent_params(request)
        assert params["filter[id_order]"] == "[12|15|19]"
        assert params["filter[product_id]"] == "42"
        assert details[0].order_id == 12
        assert details[0].quantity == 1

    @pytest.mark.asyncio
    async def test_stops_at_safety_ceiling(self):
        client = make_client(page_size=2)
        install_responses(
            client,
            mock_response({"order_details": [detail_json(1, 10), detail_json(2, 10)]}),
            mock_response({"order_details": [detail_json(3, 11), detail_json(4, 11)]}),
        )

        details = await client.fetch_all_order_details(max_results=3)

        assert [d.id for d in details] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_not_found_means_no_lines(self):
        client = make_client()
        install_responses(client, mock_response(status_code=404))

        assert await client.fetch_all_order_details(OrderDetailFilters(order_ids=(1,))) == []


class TestProducts:
    """Tests for product lookups."""

    @pytest.mark.asyncio
    async def test_fetch_product(self):
        client = make_client()
        request = install_responses(
            client,
            mock_response({"product": {
                "id": "42",
                "name": [{"id": "1", "value": "Racing Drone"}, {"id": "2", "value": "Drone de course"}],
                "reference": "RD-42",
                "active": "1",
            }}),
        )

        product = await client.fetch_product(42)

        assert request.call_args.kwargs["url"].endswith("/api/products/42")
        assert product.id == 42
        assert product.display_name == "Racing Drone"
        assert product.reference == "RD-42"

    @pytest.mark.asyncio
    async def test_missing_product_raises(self):
        client = make_client()
        install_responses(client, mock_response(status_code=404))

        with pytest.raises(ProductNotFoundError) as exc_info:
            await client.fetch_product(999)

        assert exc_info.value.product_id == 999
        assert "999" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_empty_product_response_raises(self):
        client = make_client()
        install_responses(client, mock_response([]))

        with pytest.raises(ProductNotFoundError):
            await client.fetch_product(999)

    @pytest.mark.asyncio
    async def test_search_blank_term_makes_no_request(self):
        client = make_client()
        request = install_responses(client)

        assert await client.search_products_by_name("   ") == []
        request.assert_not_called()

    @pytest.mark.asyncio
    async def test_search_matches_any_language(self):
        client = make_client()
        request = install_responses(
            client,
            mock_response({"products": [
                {"id": "1", "name": [{"id": "1", "value": "Racing Drone"}, {"id": "2", "value": "Drone de course"}]},
                {"id": "2", "name": "Battery pack"},
                {"id": "3", "name": "Mini drone"},
            ]}),
        )

        matches = await client.search_products_by_name("COURSE", limit=5)

        assert [p.id for p in matches] == [1]
        params = sent_params(request)
        assert params["filter[active]"] == "1"
        assert params["limit"] == "300"

    @pytest.mark.asyncio
    async def test_search_respects_limit(self):
        client = make_client()
        install_responses(
            client,
            mock_response({"products": [
                {"id": str(i), "name": f"Drone {i}"} for i in range(1, 6)
            ]}),
        )

        matches = await client.search_products_by_name("drone", limit=2, max_scan=50)

        assert [p.id for p in matches] == [1, 2]


def test_date_range_filter_covers_last_day():
    """The end bound includes orders placed late on the last day."""
    period = validate_date_range("2024-03-01", "2024-03-01")
    assert period.as_filter() == "[2024-03-01 00:00:00,2024-03-01 23:59:59]"
