"""Rolling in-memory candle series per pair."""

import bisect
import logging
from typing import Callable, Iterable

from core.models.candle import Candle

logger = logging.getLogger(__name__)

# Called with (pair_id, accepted_candles) after a merge adds candles
MergeCallback = Callable[[str, list[Candle]], None]


def _ascending_unique(candles: Iterable[Candle], after: float | None = None) -> list[Candle]:
    result: list[Candle] = []
    last = after
    for candle in sorted(candles, key=lambda c: c.timestamp):
        if last is not None and candle.timestamp <= last:
            continue
        result.append(candle)
        last = candle.timestamp
    return result


class CandleCache:
    """Per-pair candle lists, ascending by timestamp and duplicate-free.

    Each list is capped to ``max_count`` entries, dropping the oldest.
    """

    def __init__(self, on_merge: MergeCallback | None = None):
        self._candles: dict[str, list[Candle]] = {}
        self._seeded: set[str] = set()
        self._on_merge = on_merge

    def get(self, pair_id: str) -> list[Candle]:
        return list(self._candles.get(pair_id, ()))

    def pairs(self) -> list[str]:
        return list(self._candles)

    def last_timestamp(self, pair_id: str) -> float | None:
        candles = self._candles.get(pair_id)
        if not candles:
            return None
        return candles[-1].timestamp

    def total_candles(self) -> int:
        return sum(len(candles) for candles in self._candles.values())

    def is_seeded(self, pair_id: str) -> bool:
        return pair_id in self._seeded

    def seed(
        self,
        pair_id: str,
        candles: Iterable[Candle],
        oldest_allowed: float,
        max_count: int,
    ) -> list[Candle]:
        """Load a pair's persisted history. Only the first call has effect."""
        if pair_id in self._seeded:
            return self.get(pair_id)
        self._seeded.add(pair_id)
        self._candles[pair_id] = self._trim(_ascending_unique(candles), oldest_allowed, max_count)
        logger.debug("Seeded %s with %d candles", pair_id, len(self._candles[pair_id]))
        return self.get(pair_id)

    def merge(
        self,
        pair_id: str,
        new_candles: Iterable[Candle],
        oldest_allowed: float,
        max_count: int,
    ) -> list[Candle]:
        """Append newer candles, then trim by count and age.

        Candles not newer than the last cached one are discarded.
        Returns the pair's resulting series.
        """
        current = self._candles.get(pair_id, [])
        last = current[-1].timestamp if current else None
        accepted = _ascending_unique(new_candles, after=last)

        merged = self._trim(current + accepted, oldest_allowed, max_count)
        self._candles[pair_id] = merged

        if accepted and self._on_merge is not None:
            self._on_merge(pair_id, accepted)
        return list(merged)

    @staticmethod
    def _trim(candles: list[Candle], oldest_allowed: float, max_count: int) -> list[Candle]:
        if max_count > 0 and len(candles) > max_count:
            candles = candles[-max_count:]
        cutoff = bisect.bisect_right(candles, oldest_allowed, key=lambda c: c.timestamp)
        return candles[cutoff:]

    def __len__(self) -> int:
        return len(self._candles)
