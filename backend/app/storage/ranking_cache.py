"""Rank filter and ranking listing cache.

Keeps the user-set rank filter across restarts and exposes the latest
listing to other processes.

Data structure:
- ranker:filter -> JSON RankFilter
- ranker:rankings -> JSON {cycle_id, timestamp, records: [RankingRecord]}
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from app.storage import cache
from core.models import RankFilter, RankingRecord

logger = logging.getLogger(__name__)


async def save_filter(rank_filter: RankFilter) -> bool:
    """Save the active rank filter.

    Returns:
        True if saved successfully
    """
    if not cache.is_cache_available():
        return False

    return await cache.set_json(cache.KEY_FILTER, rank_filter.model_dump())


async def load_filter() -> RankFilter | None:
    """Load the saved rank filter.

    Returns:
        RankFilter or None if not found or unreadable
    """
    if not cache.is_cache_available():
        return None

    data = await cache.get_json(cache.KEY_FILTER)
    if data is None:
        return None

    try:
        return RankFilter.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Discarding cached rank filter: {e}")
        return None


async def save_rankings(
    records: list[RankingRecord],
    cycle_id: str,
    timestamp: float,
) -> bool:
    """Save the latest sorted listing."""
    if not cache.is_cache_available():
        return False

    data = {
        "cycle_id": cycle_id,
        "timestamp": timestamp,
        "records": [record.model_dump(mode="json") for record in records],
    }
    return await cache.set_json(cache.KEY_RANKINGS, data)


async def load_rankings() -> tuple[str, list[RankingRecord]] | None:
    """Load the latest listing as (cycle_id, records)."""
    if not cache.is_cache_available():
        return None

    data = await cache.get_json(cache.KEY_RANKINGS)
    if not data:
        return None

    try:
        records = [RankingRecord.model_validate(item) for item in data.get("records", [])]
    except ValidationError as e:
        logger.warning(f"Discarding cached rankings: {e}")
        return None
    return data.get("cycle_id", ""), records
