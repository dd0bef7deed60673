"""Interfaces of the collaborators an update cycle talks to.

This module provides:
- CandleProvider: exchange data source (candles, listings, order book)
- CandleStore / BucketStore: persistence of candle and bucket history
- Notifier: outbound notification channel
- PushFeed: live broadcast to connected subscribers

The scheduler only depends on these shapes, so tests can hand it
simple fakes.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from core.analysis import AnalysisMessage
from core.models import Bucket, Candle, Currency, OrderBookCounts, Product, RankingRecord


@runtime_checkable
class CandleProvider(Protocol):
    async def get_candles(
        self, pair_id: str, granularity: int, start: float, end: float
    ) -> list[Candle]:
        """Candles with open time in [start, end], ascending."""
        ...

    async def get_products(self) -> list[Product]:
        ...

    async def get_currencies(self) -> list[Currency]:
        ...

    async def get_order_book_counts(self, pair_id: str) -> OrderBookCounts:
        ...


@runtime_checkable
class CandleStore(Protocol):
    async def load_candles(
        self, pair_id: str, since: float | None = None, limit: int | None = None
    ) -> list[Candle]:
        ...

    async def append_candles(self, pair_id: str, candles: list[Candle], max_count: int = 0) -> None:
        ...


@runtime_checkable
class BucketStore(Protocol):
    async def load_buckets(self, pair_id: str, limit: int | None = None) -> list[Bucket]:
        ...

    async def append_buckets(self, pair_id: str, buckets: list[Bucket], max_count: int = 0) -> None:
        ...


@runtime_checkable
class Notifier(Protocol):
    """Fire-and-forget from the caller's side; must not raise."""

    async def publish_ranking(
        self,
        records: list[RankingRecord],
        total_pairs: int,
        total_data_points: int,
        cycle_id: str,
    ) -> None:
        ...

    async def publish_analysis(
        self, kind: str, messages: list[AnalysisMessage], cycle_id: str
    ) -> None:
        ...

    async def publish_changes(self, kind: str, messages: list[str], cycle_id: str) -> None:
        ...


@runtime_checkable
class PushFeed(Protocol):
    async def broadcast(self, event_type: str, data: dict[str, Any]) -> None:
        ...
