"""Candle and bucket history repositories."""

import logging

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert

from app.storage.database import BucketTable, CandleTable, get_database
from core.models import Bucket, Candle
from core.models.converters import datetime_to_timestamp, timestamp_to_datetime

logger = logging.getLogger(__name__)

_BUCKET_VALUE_FIELDS = [
    name for name in Bucket.__dataclass_fields__ if name != "timestamp"
]


class CandleRepository:
    """Persisted candle history, capped per pair."""

    def __init__(self, granularity: int):
        self.granularity = granularity

    async def load_candles(
        self,
        pair_id: str,
        since: float | None = None,
        limit: int | None = None,
    ) -> list[Candle]:
        """Newest ``limit`` candles at or after ``since``, ascending."""
        async with get_database().session() as session:
            stmt = select(CandleTable).where(
                CandleTable.pair_id == pair_id,
                CandleTable.granularity == self.granularity,
            )
            if since is not None:
                stmt = stmt.where(CandleTable.timestamp >= timestamp_to_datetime(since))
            stmt = stmt.order_by(CandleTable.timestamp.desc())
            if limit:
                stmt = stmt.limit(limit)
            result = await session.execute(stmt)
            rows = result.scalars().all()

            return [
                Candle(
                    timestamp=datetime_to_timestamp(row.timestamp),
                    open=float(row.open),
                    high=float(row.high),
                    low=float(row.low),
                    close=float(row.close),
                    volume=float(row.volume),
                )
                for row in reversed(rows)
            ]

    async def append_candles(
        self,
        pair_id: str,
        candles: list[Candle],
        max_count: int = 0,
        chunk_size: int = 1000,
    ) -> None:
        """Insert candles (existing timestamps are left alone), then cap.

        Args:
            pair_id: Product id
            candles: Candles to store
            max_count: Keep only this many newest candles; 0 keeps all
            chunk_size: Rows per insert (PostgreSQL parameter limit)
        """
        if not candles:
            return

        async with get_database().session() as session:
            for i in range(0, len(candles), chunk_size):
                chunk = candles[i:i + chunk_size]
                values = [
                    {
                        "pair_id": pair_id,
                        "granularity": self.granularity,
                        "timestamp": timestamp_to_datetime(c.timestamp),
                        "open": c.open,
                        "high": c.high,
                        "low": c.low,
                        "close": c.close,
                        "volume": c.volume,
                    }
                    for c in chunk
                ]
                stmt = insert(CandleTable).values(values)
                stmt = stmt.on_conflict_do_nothing(
                    index_elements=["pair_id", "granularity", "timestamp"],
                )
                await session.execute(stmt)

            if max_count > 0:
                await self._trim(session, pair_id, max_count)

        logger.debug("Stored %d candles for %s", len(candles), pair_id)

    async def _trim(self, session, pair_id: str, max_count: int) -> None:
        cutoff_stmt = (
            select(CandleTable.timestamp)
            .where(
                CandleTable.pair_id == pair_id,
                CandleTable.granularity == self.granularity,
            )
            .order_by(CandleTable.timestamp.desc())
            .offset(max_count - 1)
            .limit(1)
        )
        cutoff = (await session.execute(cutoff_stmt)).scalar_one_or_none()
        if cutoff is None:
            return
        await session.execute(
            delete(CandleTable).where(
                CandleTable.pair_id == pair_id,
                CandleTable.granularity == self.granularity,
                CandleTable.timestamp < cutoff,
            )
        )


class BucketRepository:
    """Persisted bucket snapshots, capped per pair."""

    def __init__(self, bucket_length: int):
        self.bucket_length = bucket_length

    async def load_buckets(self, pair_id: str, limit: int | None = None) -> list[Bucket]:
        """Newest ``limit`` stored buckets, ascending, for reading history back."""
        async with get_database().session() as session:
            stmt = (
                select(BucketTable)
                .where(
                    BucketTable.pair_id == pair_id,
                    BucketTable.bucket_length == self.bucket_length,
                )
                .order_by(BucketTable.timestamp.desc())
            )
            if limit:
                stmt = stmt.limit(limit)
            result = await session.execute(stmt)
            rows = result.scalars().all()

            return [
                Bucket(
                    timestamp=datetime_to_timestamp(row.timestamp),
                    **{name: getattr(row, name) for name in _BUCKET_VALUE_FIELDS},
                )
                for row in reversed(rows)
            ]

    async def append_buckets(
        self,
        pair_id: str,
        buckets: list[Bucket],
        max_count: int = 0,
    ) -> None:
        """Upsert buckets; a rebuilt bucket replaces the stored one."""
        if not buckets:
            return

        async with get_database().session() as session:
            values = [
                {
                    "pair_id": pair_id,
                    "bucket_length": self.bucket_length,
                    "timestamp": timestamp_to_datetime(b.timestamp),
                    **{name: getattr(b, name) for name in _BUCKET_VALUE_FIELDS},
                }
                for b in buckets
            ]
            stmt = insert(BucketTable).values(values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["pair_id", "bucket_length", "timestamp"],
                set_={name: getattr(stmt.excluded, name) for name in _BUCKET_VALUE_FIELDS},
            )
            await session.execute(stmt)

            if max_count > 0:
                cutoff_stmt = (
                    select(BucketTable.timestamp)
                    .where(
                        BucketTable.pair_id == pair_id,
                        BucketTable.bucket_length == self.bucket_length,
                    )
                    .order_by(BucketTable.timestamp.desc())
                    .offset(max_count - 1)
                    .limit(1)
                )
                cutoff = (await session.execute(cutoff_stmt)).scalar_one_or_none()
                if cutoff is not None:
                    await session.execute(
                        delete(BucketTable).where(
                            BucketTable.pair_id == pair_id,
                            BucketTable.bucket_length == self.bucket_length,
                            BucketTable.timestamp < cutoff,
                        )
                    )
