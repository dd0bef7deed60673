"""Coinbase Exchange public REST API client."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from core.models import Candle, Currency, OrderBookCounts, Product

logger = logging.getLogger(__name__)


class ExchangeError(Exception):
    """An exchange request failed (network, HTTP status or payload)."""


class RateLimiter:
    """Simple rate limiter for API calls."""

    def __init__(self, calls_per_minute: int = 600):
        self.calls_per_minute = calls_per_minute
        self.interval = 60.0 / calls_per_minute
        self.last_call = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait if necessary to respect rate limit."""
        async with self._lock:
            now = asyncio.get_running_loop().time()
            wait_time = self.last_call + self.interval - now
            if wait_time > 0:
                await asyncio.sleep(wait_time)
            self.last_call = asyncio.get_running_loop().time()


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return response.reason_phrase


class CoinbaseRestClient:
    """Anonymous client for candles, products, currencies and order books."""

    BASE_URL = "https://api.exchange.coinbase.com"
    MAX_CANDLES = 300  # per request

    def __init__(
        self,
        base_url: str | None = None,
        rate_limiter: RateLimiter | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or self.BASE_URL
        self.rate_limiter = rate_limiter or RateLimiter()
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Accept": "application/json", "User-Agent": "pair-ranker"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self, method: str, endpoint: str, params: dict[str, Any] | None = None
    ) -> Any:
        """Make an API request with rate limiting."""
        await self.rate_limiter.acquire()
        client = await self._get_client()
        try:
            response = await client.request(method, endpoint, params=params)
        except httpx.HTTPError as e:
            raise ExchangeError(f"{method} {endpoint} failed: {e}") from e

        if response.is_error:
            raise ExchangeError(
                f"{method} {endpoint} returned {response.status_code}: {_error_message(response)}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise ExchangeError(f"{method} {endpoint} returned invalid JSON") from e

    async def get_candles(
        self,
        pair_id: str,
        granularity: int,
        start: float,
        end: float,
    ) -> list[Candle]:
        """
        Fetch candles in a time range, handling pagination.

        Args:
            pair_id: Product id (e.g., "BTC-USD")
            granularity: Candle size in seconds
            start: Oldest open time, Unix seconds (inclusive)
            end: Newest open time, Unix seconds (inclusive)

        Returns:
            Candles ascending by timestamp, without duplicates
        """
        if end < start:
            start, end = end, start

        span = self.MAX_CANDLES * granularity
        by_timestamp: dict[float, Candle] = {}

        chunk_start = start
        while chunk_start <= end:
            chunk_end = min(chunk_start + span - granularity, end)
            params = {
                "granularity": granularity,
                "start": _iso(chunk_start),
                "end": _iso(chunk_end),
            }
            try:
                rows = await self._request("GET", f"/products/{pair_id}/candles", params)
            except ExchangeError as e:
                raise ExchangeError(f"Could not pull '{pair_id}' candles: {e}") from e
            if not isinstance(rows, list):
                raise ExchangeError(f"Malformed '{pair_id}' candles payload")

            # Rows are [time, low, high, open, close, volume], newest first
            for row in rows:
                try:
                    candle = Candle(
                        timestamp=float(row[0]),
                        low=float(row[1]),
                        high=float(row[2]),
                        open=float(row[3]),
                        close=float(row[4]),
                        volume=float(row[5]),
                    )
                except (IndexError, TypeError, ValueError) as e:
                    raise ExchangeError(f"Malformed '{pair_id}' candle row {row!r}: {e}") from e
                if start <= candle.timestamp <= end:
                    by_timestamp[candle.timestamp] = candle

            chunk_start = chunk_end + granularity

        return [by_timestamp[ts] for ts in sorted(by_timestamp)]

    async def get_products(self) -> list[Product]:
        """All products listed on the exchange."""
        data = await self._request("GET", "/products")
        products = []
        for item in data:
            try:
                products.append(Product(
                    id=item["id"],
                    base_currency=item["base_currency"],
                    quote_currency=item["quote_currency"],
                    base_increment=float(item.get("base_increment") or 0.00000001),
                    quote_increment=float(item.get("quote_increment") or 0.00000001),
                    display_name=item.get("display_name", item["id"]),
                    status=item.get("status", "online"),
                    trading_disabled=bool(item.get("trading_disabled", False)),
                    cancel_only=bool(item.get("cancel_only", False)),
                    limit_only=bool(item.get("limit_only", False)),
                    post_only=bool(item.get("post_only", False)),
                    stable_pair=bool(item.get("fx_stablecoin", False)),
                ))
            except (KeyError, ValueError) as e:
                logger.warning("Skipping malformed product %s: %s", item.get("id"), e)
        return products

    async def get_currencies(self) -> list[Currency]:
        """All currencies listed on the exchange."""
        data = await self._request("GET", "/currencies")
        currencies = []
        for item in data:
            try:
                currencies.append(Currency(
                    id=item["id"],
                    name=item.get("name", ""),
                    min_size=float(item.get("min_size") or 0),
                    status=item.get("status", "online"),
                ))
            except (KeyError, ValueError) as e:
                logger.warning("Skipping malformed currency %s: %s", item.get("id"), e)
        return currencies

    async def get_order_book_counts(self, pair_id: str) -> OrderBookCounts:
        """Sum of open order counts on each side of the level-2 book."""
        try:
            book = await self._request("GET", f"/products/{pair_id}/book", {"level": 2})
        except ExchangeError as e:
            raise ExchangeError(f"Could not pull '{pair_id}' level2 book: {e}") from e

        # Entries are [price, size, num_orders]
        try:
            buys = sum(int(entry[2]) for entry in book.get("bids", []))
            sells = sum(int(entry[2]) for entry in book.get("asks", []))
        except (IndexError, TypeError, ValueError, AttributeError) as e:
            raise ExchangeError(f"Malformed '{pair_id}' level2 book: {e}") from e
        return OrderBookCounts(buys=buys, sells=sells)
