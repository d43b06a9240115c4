"""
Async HTTP client for the PrestaShop webservice.

Read-only access to the `orders`, `order_details` and `products`
resources with:
- Connection pooling with httpx
- HTTP basic auth (webservice key as username, empty password)
- limit=offset,count pagination with safety ceilings
- Normalization of single-object vs list responses
- Typed errors for auth, rate limit, timeout and other failures

No retries are performed here: a failed request fails the caller.
"""
from typing import Any, Dict, List, Optional

import httpx

from shop_analytics.config import config
from shop_analytics.exceptions import (
    PrestaShopAPIError,
    PrestaShopAuthError,
    PrestaShopConnectionError,
    PrestaShopDataError,
    PrestaShopNotFoundError,
    PrestaShopRateLimitError,
    PrestaShopTimeoutError,
    ProductNotFoundError,
)
from shop_analytics.filters import OrderDetailFilters, OrderFilters
from shop_analytics.models import Order, OrderLineDetail, Product
from shop_analytics.observability import Timer, get_correlation_id, get_logger

logger = get_logger(__name__)

PAGE_SIZE = config.api.page_size

ORDER_FIELDS = "[id,id_customer,date_add,current_state,total_paid_tax_incl,total_paid_tax_excl]"
ORDER_DETAIL_FIELDS = (
    "[id,id_order,product_id,product_name,product_reference,product_quantity,"
    "unit_price_tax_incl,unit_price_tax_excl,total_price_tax_incl,total_price_tax_excl]"
)
PRODUCT_FIELDS = "[id,name,reference,active]"


def normalize_records(payload: Any, collection: str, item: str) -> List[Dict[str, Any]]:
    """
    Extract a list of records from a webservice response.

    PrestaShop answers with {"orders": [...]} for many results,
    {"orders": {...}} for a single one, and an empty JSON array when
    nothing matches. List items may also be wrapped as {"order": {...}}.
    """
    if isinstance(payload, list):
        if not payload:
            return []
        raise PrestaShopDataError(
            f"Unexpected list response for {collection}", expected="object", got="list"
        )

    if not isinstance(payload, dict):
        raise PrestaShopDataError(
            f"Invalid response type for {collection}",
            expected="object",
            got=type(payload).__name__,
        )

    raw = payload.get(collection)
    if raw is None:
        raw = payload.get(item)
    if not raw:
        return []

    records = raw if isinstance(raw, list) else [raw]

    result = []
    for record in records:
        if isinstance(record, dict) and isinstance(record.get(item), dict):
            record = record[item]
        if not isinstance(record, dict):
            raise PrestaShopDataError(
                f"Invalid {item} record", expected="object", got=type(record).__name__
            )
        result.append(record)
    return result


class PrestaShopClient:
    """
    Async client for the PrestaShop webservice.

    Usage:
        async with PrestaShopClient() as client:
            orders = await client.fetch_all_orders(filters)

        # Or with manual lifecycle:
        client = PrestaShopClient()
        await client.connect()
        try:
            product = await client.fetch_product(42)
        finally:
            await client.close()
    """

    def __init__(
        self,
        api_key: str = None,
        base_url: str = None,
        timeout: float = None,
        page_size: int = PAGE_SIZE,
    ):
        """
        Initialize PrestaShop client.

        Args:
            api_key: Webservice key (defaults to PRESTASHOP_WS_KEY env var)
            base_url: Shop URL without /api (defaults to PRESTASHOP_BASE_URL)
            timeout: Request timeout in seconds
            page_size: Records per page for auto-pagination
        """
        self.api_key = api_key or config.api.key
        self.base_url = (base_url or config.api.base_url).rstrip("/")
        self.timeout = timeout or config.api.request_timeout
        self.page_size = page_size
        self._client: Optional[httpx.AsyncClient] = None

        if not self.api_key:
            raise ValueError("PRESTASHOP_WS_KEY is required")
        if not self.base_url:
            raise ValueError("PRESTASHOP_BASE_URL is required")

    @property
    def api_url(self) -> str:
        return f"{self.base_url}/api"

    async def connect(self) -> None:
        """Create HTTP client with connection pooling."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                auth=httpx.BasicAuth(self.api_key, ""),
                headers={"Accept": "application/json"},
                timeout=self.timeout,
                limits=httpx.Limits(
                    max_keepalive_connections=config.api.max_keepalive_connections,
                    max_connections=config.api.max_connections,
                ),
            )

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "PrestaShopClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _get(self, resource: str, params: Dict[str, str]) -> Any:
        """
        GET a webservice resource and decode its JSON body.

        Raises:
            PrestaShopAuthError: 401
            PrestaShopNotFoundError: 404
            PrestaShopRateLimitError: 429
            PrestaShopAPIError: any other error status
            PrestaShopTimeoutError: request exceeded timeout
            PrestaShopConnectionError: network failure
            PrestaShopDataError: body is not JSON
        """
        if not self._client:
            await self.connect()

        url = f"{self.api_url}/{resource}"
        query = {"output_format": "JSON", **params}

        request_headers = {}
        correlation_id = get_correlation_id()
        if correlation_id:
            request_headers["X-Request-ID"] = correlation_id

        try:
            with Timer(f"prestashop_{resource.split('/')[0]}", logger):
                response = await self._client.request(
                    method="GET",
                    url=url,
                    params=query,
                    headers=request_headers if request_headers else None,
                )
        except httpx.TimeoutException as e:
            logger.error(
                f"Request timeout: GET {resource}",
                extra={"resource": resource, "timeout": self.timeout}
            )
            raise PrestaShopTimeoutError(
                f"Request timeout after {self.timeout}s", timeout=self.timeout
            ) from e
        except httpx.RequestError as e:
            logger.error(
                f"Request failed: GET {resource} - {e}",
                extra={"resource": resource}
            )
            raise PrestaShopConnectionError("Connection to PrestaShop failed", str(e)) from e

        if response.status_code >= 400:
            self._raise_for_status(resource, response)

        if not response.content:
            return []

        try:
            return response.json()
        except ValueError as e:
            raise PrestaShopDataError(
                f"Response from {resource} is not valid JSON",
                details=response.text[:200],
                expected="json",
            ) from e

    def _raise_for_status(self, resource: str, response: httpx.Response) -> None:
        status = response.status_code
        error_text = response.text[:500]

        if status == 404:
            logger.debug(f"Resource not found: {resource}")
            raise PrestaShopNotFoundError(f"Resource {resource} not found", error_text)

        logger.error(
            f"API error {status} on {resource}",
            extra={"resource": resource, "status_code": status}
        )

        if status == 401:
            raise PrestaShopAuthError(details=error_text)

        if status == 429:
            retry_after = response.headers.get("Retry-After", "")
            raise PrestaShopRateLimitError(
                details=error_text,
                retry_after=int(retry_after) if retry_after.isdigit() else None,
            )

        raise PrestaShopAPIError(
            f"API returned {status}",
            details=error_text,
            status_code=status,
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # ORDER METHODS
    # ═══════════════════════════════════════════════════════════════════════════

    async def fetch_orders(
        self,
        filters: Optional[OrderFilters] = None,
        limit: int = PAGE_SIZE,
        offset: int = 0,
    ) -> List[Order]:
        """
        Fetch one page of orders.

        Returns an empty list when nothing matches (including HTTP 404).
        """
        params = {
            "display": ORDER_FIELDS,
            "limit": f"{offset},{limit}",
            **(filters or OrderFilters()).to_params(),
        }
        try:
            payload = await self._get("orders", params)
        except PrestaShopNotFoundError:
            return []
        return [Order.from_api(raw) for raw in normalize_records(payload, "orders", "order")]

    async def fetch_all_orders(
        self,
        filters: Optional[OrderFilters] = None,
        max_results: Optional[int] = None,
    ) -> List[Order]:
        """
        Fetch all orders matching filters, page by page.

        Stops at a safety ceiling: higher when a date filter narrows the
        query, since an unfiltered query could be unbounded.
        """
        filters = filters or OrderFilters()
        if max_results is None:
            max_results = (
                config.api.max_orders_with_date_filter
                if filters.date_range is not None
                else config.api.max_orders
            )

        all_orders: List[Order] = []
        offset = 0

        while True:
            batch = await self.fetch_orders(filters, self.page_size, offset)
            if not batch:
                break

            all_orders.extend(batch)
            offset += self.page_size

            if len(all_orders) >= max_results:
                period = (
                    f" for period {filters.date_range.start_str}..{filters.date_range.end_str}"
                    if filters.date_range is not None else ""
                )
                logger.warning(
                    f"Reached maximum of {max_results} orders{period}",
                    extra={"max_results": max_results}
                )
                del all_orders[max_results:]
                break

            if len(batch) < self.page_size:
                break

        return all_orders

    # ═══════════════════════════════════════════════════════════════════════════
    # ORDER DETAIL METHODS
    # ═══════════════════════════════════════════════════════════════════════════

    async def fetch_order_details(
        self,
        filters: Optional[OrderDetailFilters] = None,
        limit: int = PAGE_SIZE,
        offset: int = 0,
    ) -> List[OrderLineDetail]:
        """Fetch one page of order lines. HTTP 404 means no lines."""
        params = {
            "display": ORDER_DETAIL_FIELDS,
            "limit": f"{offset},{limit}",
            **(filters or OrderDetailFilters()).to_params(),
        }
        try:
            payload = await self._get("order_details", params)
        except PrestaShopNotFoundError:
            return []
        return [
            OrderLineDetail.from_api(raw)
            for raw in normalize_records(payload, "order_details", "order_detail")
        ]

    async def fetch_all_order_details(
        self,
        filters: Optional[OrderDetailFilters] = None,
        max_results: Optional[int] = None,
    ) -> List[OrderLineDetail]:
        """Fetch all order lines matching filters, page by page."""
        if max_results is None:
            max_results = config.api.max_order_details

        all_details: List[OrderLineDetail] = []
        offset = 0

        while True:
            batch = await self.fetch_order_details(filters, self.page_size, offset)
            if not batch:
                break

            all_details.extend(batch)
            offset += self.page_size

            if len(all_details) >= max_results:
                logger.warning(
                    f"Reached maximum of {max_results} order details",
                    extra={"max_results": max_results}
                )
                del all_details[max_results:]
                break

            if len(batch) < self.page_size:
                break

        return all_details

    # ═══════════════════════════════════════════════════════════════════════════
    # PRODUCT METHODS
    # ═══════════════════════════════════════════════════════════════════════════

    async def fetch_product(self, product_id: int) -> Product:
        """
        Fetch a single product.

        Raises:
            ProductNotFoundError: Product is missing or the API answered 404
        """
        try:
            payload = await self._get(
                f"products/{product_id}", {"display": PRODUCT_FIELDS}
            )
        except PrestaShopNotFoundError:
            raise ProductNotFoundError(product_id) from None

        # Either {"product": {...}} or {"products": [{...}]}
        records = normalize_records(payload, "products", "product")
        if not records:
            raise ProductNotFoundError(product_id)
        return Product.from_api(records[0])

    async def search_products_by_name(
        self,
        term: str,
        limit: int = 50,
        max_scan: int = None,
    ) -> List[Product]:
        """
        Search active products by name (case-insensitive substring).

        The webservice cannot filter on multi-language names, so up to
        max_scan products are fetched and matched in memory.

        Args:
            term: Search term
            limit: Maximum number of matches to return
            max_scan: Maximum number of products fetched from the API

        Returns:
            Matching products, at most `limit`
        """
        if not term or not term.strip():
            return []

        needle = term.strip()
        if max_scan is None:
            max_scan = config.limits.search_max_scan
        # Small result sets rarely need the full scan
        scan = min(max_scan, 300) if limit <= 10 else max_scan

        params = {
            "display": PRODUCT_FIELDS,
            "limit": str(scan),
            "filter[active]": "1",
        }
        try:
            payload = await self._get("products", params)
        except PrestaShopNotFoundError:
            return []

        products = [
            Product.from_api(raw)
            for raw in normalize_records(payload, "products", "product")
        ]
        matches = [product for product in products if product.name.matches(needle)]

        logger.debug(
            f"Product search matched {len(matches)} of {len(products)} scanned",
            extra={"term": needle}
        )
        return matches[:limit]
