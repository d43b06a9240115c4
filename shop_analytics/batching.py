"""
Bounded-concurrency batch fetching of order lines.

Order IDs are split into groups sent as one `filter[id_order]=[a|b|c]`
query each (bounded so the URL stays short). Groups are issued in waves
of at most `max_concurrent` concurrent requests; each wave completes
before the next starts, so peak load on the shop is fixed regardless of
how many orders a period has.

A failure in any group aborts the whole fetch.
"""
import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from shop_analytics.config import config
from shop_analytics.filters import OrderDetailFilters
from shop_analytics.models import OrderLineDetail
from shop_analytics.observability import Timer, get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    """Split items into contiguous groups of at most `size`."""
    if size < 1:
        raise ValueError("size must be a positive integer")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def choose_batch_size(order_count: int) -> int:
    """Adaptive group size: bigger groups for bigger periods."""
    if order_count < 500:
        return config.batch.size_small
    if order_count <= 2000:
        return config.batch.size_medium
    return config.batch.size_large


class BatchFetcher:
    """
    Fetch order lines for many orders in bounded waves.

    Usage:
        fetcher = BatchFetcher(client)
        details = await fetcher.fetch_order_details(order_ids, product_id=42)
    """

    def __init__(
        self,
        client,
        batch_size: int = None,
        max_concurrent: int = None,
        max_per_batch: int = None,
        adaptive: bool = None,
    ):
        """
        Args:
            client: PrestaShopClient (anything with fetch_all_order_details)
            batch_size: Order IDs per request (default 50)
            max_concurrent: Requests per wave (default 5)
            max_per_batch: Hard ceiling on IDs per request (default 200)
            adaptive: Pick the group size from the number of orders
        """
        self.client = client
        self.batch_size = config.batch.batch_size if batch_size is None else batch_size
        self.max_concurrent = (
            config.batch.max_concurrent if max_concurrent is None else max_concurrent
        )
        self.max_per_batch = (
            config.batch.max_orders_per_batch if max_per_batch is None else max_per_batch
        )
        self.adaptive = config.batch.adaptive if adaptive is None else adaptive

        if self.batch_size < 1:
            raise ValueError("batch_size must be a positive integer")
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be a positive integer")
        if self.max_per_batch < 1:
            raise ValueError("max_per_batch must be a positive integer")

    def group_size(self, order_count: int) -> int:
        size = choose_batch_size(order_count) if self.adaptive else self.batch_size
        return max(1, min(size, self.max_per_batch))

    async def _run_wave(
        self,
        wave: Sequence[Sequence[int]],
        fetch_group: Callable[[Sequence[int]], Awaitable[List[T]]],
    ) -> List[List[T]]:
        """
        Run one wave concurrently and return results in group order.

        If any group fails, the rest of the wave is cancelled and awaited
        before the error is re-raised, so no request outlives the call.
        """
        tasks = [asyncio.ensure_future(fetch_group(group)) for group in wave]
        try:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        failed = next(
            (task for task in tasks
             if task in done and not task.cancelled() and task.exception() is not None),
            None,
        )
        if failed is not None:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(
                f"Batch wave aborted, cancelled {len(pending)} pending requests",
                extra={"error_type": type(failed.exception()).__name__}
            )
            raise failed.exception()

        return [task.result() for task in tasks]

    async def run_in_waves(
        self,
        groups: Sequence[Sequence[int]],
        fetch_group: Callable[[Sequence[int]], Awaitable[List[T]]],
    ) -> List[T]:
        """
        Run fetch_group for every group, max_concurrent at a time.

        Each wave is awaited in full before the next one starts.
        The first exception propagates once its wave has been cancelled;
        no further waves are issued.
        """
        results: List[T] = []
        waves = chunked(groups, self.max_concurrent)

        for index, wave in enumerate(waves, start=1):
            logger.debug(
                f"Fetching wave {index}/{len(waves)}",
                extra={"groups": len(wave)}
            )
            wave_results = await self._run_wave(wave, fetch_group)
            for group_result in wave_results:
                results.extend(group_result)

        return results

    async def fetch_order_details(
        self,
        order_ids: Sequence[int],
        product_id: Optional[int] = None,
    ) -> List[OrderLineDetail]:
        """
        Fetch order lines for the given orders, optionally for one product.

        Returns:
            Flat list of lines; order across groups is unspecified
        """
        if not order_ids:
            return []

        groups = chunked(order_ids, self.group_size(len(order_ids)))

        async def fetch_group(group: Sequence[int]) -> List[OrderLineDetail]:
            filters = OrderDetailFilters(order_ids=tuple(group), product_id=product_id)
            return await self.client.fetch_all_order_details(filters)

        logger.info(
            f"Fetching order details for {len(order_ids)} orders in {len(groups)} batches",
            extra={"product_id": product_id, "max_concurrent": self.max_concurrent}
        )
        with Timer("batch_fetch_order_details", logger, warn_threshold_ms=10000):
            return await self.run_in_waves(groups, fetch_group)
