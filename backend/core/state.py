"""Ranking store and engine lifecycle state.

The store is owned by the scheduler and handed to readers (API, push
feed). A cycle commits all of its records in one call, so a reader
sees either the previous cycle or the current one, never a mix.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from core.models.ranking import RankFilter, RankingRecord
from core.ranking import sort_rankings


class EngineStatus(str, Enum):
    """Scheduler lifecycle."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    IDLE = "idle"
    UPDATING = "updating"
    DISABLING = "disabling"
    DISABLED = "disabled"


@dataclass(slots=True)
class PairRankings:
    """The two most recent ranking snapshots of one pair."""

    previous: RankingRecord | None = None
    current: RankingRecord | None = None

    def push(self, record: RankingRecord) -> None:
        self.previous = self.current
        self.current = record


class RankingStore:
    """Ranking snapshots per pair plus the active rank filter."""

    def __init__(self, rank_filter: RankFilter | None = None):
        self._pairs: dict[str, PairRankings] = {}
        self._filter = rank_filter or RankFilter()
        self._data_point_total = 0

    def get(self, pair_id: str) -> PairRankings | None:
        return self._pairs.get(pair_id)

    def current(self, pair_id: str) -> RankingRecord | None:
        entry = self._pairs.get(pair_id)
        return entry.current if entry else None

    def previous(self, pair_id: str) -> RankingRecord | None:
        entry = self._pairs.get(pair_id)
        return entry.previous if entry else None

    def current_records(self) -> list[RankingRecord]:
        return [entry.current for entry in self._pairs.values() if entry.current is not None]

    def pair_ids(self) -> list[str]:
        return list(self._pairs)

    def commit(self, records: Iterable[RankingRecord], data_point_total: int) -> None:
        """Rotate in one cycle's records. Pairs not in ``records`` keep theirs."""
        for record in records:
            self._pairs.setdefault(record.pair_id, PairRankings()).push(record)
        self._data_point_total = data_point_total

    @property
    def data_point_total(self) -> int:
        return self._data_point_total

    @property
    def filter(self) -> RankFilter:
        return self._filter

    def set_filter(self, rank_filter: RankFilter) -> None:
        self._filter = rank_filter

    def update_filter(self, changes: dict[str, Any]) -> RankFilter:
        """Apply a partial update; unknown keys raise a ValidationError."""
        self._filter = RankFilter.model_validate({**self._filter.model_dump(), **changes})
        return self._filter

    def sorted(self, rank_filter: RankFilter | None = None) -> list[RankingRecord]:
        """Current records ranked with ``rank_filter`` or the stored filter."""
        return sort_rankings(self.current_records(), rank_filter or self._filter)

    def __len__(self) -> int:
        return len(self._pairs)
