"""
Tests for shop_analytics.batching module.
"""
import pytest

from conftest import FakePrestaShopClient, make_detail, make_order
from shop_analytics.batching import BatchFetcher, choose_batch_size, chunked
from shop_analytics.exceptions import PrestaShopTimeoutError


class TestChunked:
    """Tests for chunked()."""

    def test_even_split(self):
        assert chunked([1, 2, 3, 4], 2) == [[1, 2], [3, 4]]

    def test_last_group_shorter(self):
        assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]

    def test_empty(self):
        assert chunked([], 3) == []

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            chunked([1, 2], 0)


class TestChooseBatchSize:
    """Tests for adaptive group sizing."""

    def test_thresholds(self):
        assert choose_batch_size(10) == 50
        assert choose_batch_size(499) == 50
        assert choose_batch_size(500) == 100
        assert choose_batch_size(2000) == 100
        assert choose_batch_size(2001) == 150


def many_orders(count: int):
    orders = [make_order(i) for i in range(1, count + 1)]
    details = [make_detail(i, i, quantity=1) for i in range(1, count + 1)]
    return orders, details


class TestBatchFetcher:
    """Tests for BatchFetcher."""

    def test_group_size_is_capped(self):
        fetcher = BatchFetcher(FakePrestaShopClient(), batch_size=500, max_per_batch=200)
        assert fetcher.group_size(1000) == 200

    def test_adaptive_group_size(self):
        fetcher = BatchFetcher(FakePrestaShopClient(), adaptive=True)
        assert fetcher.group_size(3000) == 150

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_calls(self):
        client = FakePrestaShopClient()
        fetcher = BatchFetcher(client)

        assert await fetcher.fetch_order_details([]) == []
        assert client.detail_calls == []

    @pytest.mark.asyncio
    async def test_one_call_per_group(self):
        """120 orders in groups of 50 -> 3 requests."""
        orders, details = many_orders(120)
        client = FakePrestaShopClient(orders=orders, details=details)
        fetcher = BatchFetcher(client, batch_size=50, max_concurrent=5)

        result = await fetcher.fetch_order_details([o.id for o in orders])

        assert len(client.detail_calls) == 3
        assert [len(f.order_ids) for f in client.detail_calls] == [50, 50, 20]
        assert sorted(d.order_id for d in result) == list(range(1, 121))

    @pytest.mark.asyncio
    async def test_every_order_id_requested_once(self):
        orders, details = many_orders(23)
        client = FakePrestaShopClient(orders=orders, details=details)
        fetcher = BatchFetcher(client, batch_size=5, max_concurrent=2)

        await fetcher.fetch_order_details([o.id for o in orders])

        requested = [oid for f in client.detail_calls for oid in f.order_ids]
        assert sorted(requested) == list(range(1, 24))

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        """No more than max_concurrent requests are in flight at once."""
        orders, details = many_orders(40)
        client = FakePrestaShopClient(orders=orders, details=details, detail_delay=0.01)
        fetcher = BatchFetcher(client, batch_size=2, max_concurrent=3)

        await fetcher.fetch_order_details([o.id for o in orders])

        assert len(client.detail_calls) == 20
        assert client.max_active_detail_calls <= 3
        assert client.max_active_detail_calls > 1

    @pytest.mark.asyncio
    async def test_product_filter_forwarded(self):
        orders, _ = many_orders(3)
        details = [
            make_detail(1, 1, product_id=42),
            make_detail(2, 1, product_id=7),
            make_detail(3, 2, product_id=42),
        ]
        client = FakePrestaShopClient(orders=orders, details=details)
        fetcher = BatchFetcher(client)

        result = await fetcher.fetch_order_details([1, 2, 3], product_id=42)

        assert all(f.product_id == 42 for f in client.detail_calls)
        assert sorted(d.id for d in result) == [1, 3]

    @pytest.mark.asyncio
    async def test_group_failure_fails_whole_fetch(self):
        orders, details = many_orders(30)
        client = FakePrestaShopClient(orders=orders, details=details)
        client.fail_on_group = 2
        fetcher = BatchFetcher(client, batch_size=5, max_concurrent=2)

        with pytest.raises(PrestaShopTimeoutError):
            await fetcher.fetch_order_details([o.id for o in orders])

        # The failing wave was the first; later waves never started
        assert len(client.detail_calls) == 2

    @pytest.mark.asyncio
    async def test_failure_cancels_rest_of_wave(self):
        """When a group fails, its siblings are stopped before the error surfaces."""
        orders, details = many_orders(25)
        client = FakePrestaShopClient(orders=orders, details=details, detail_delay=0.05)
        client.fail_on_group = 1
        fetcher = BatchFetcher(client, batch_size=5, max_concurrent=5)

        with pytest.raises(PrestaShopTimeoutError):
            await fetcher.fetch_order_details([o.id for o in orders])

        assert len(client.detail_calls) == 5
        assert client.active_detail_calls == 0

    @pytest.mark.parametrize("kwargs", [
        {"max_concurrent": 0},
        {"max_concurrent": -1},
        {"batch_size": 0},
        {"max_per_batch": 0},
    ])
    def test_invalid_settings(self, kwargs):
        with pytest.raises(ValueError):
            BatchFetcher(FakePrestaShopClient(), **kwargs)
