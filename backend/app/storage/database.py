"""Database connection and table definitions."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from app.config import get_settings

Base = declarative_base()


class CandleTable(Base):
    """Candle history per pair and candle size."""

    __tablename__ = "candles"

    pair_id = Column(String(32), primary_key=True)
    granularity = Column(Integer, primary_key=True)  # seconds
    timestamp = Column(DateTime(timezone=True), primary_key=True)
    open = Column(Numeric(30, 12), nullable=False)
    high = Column(Numeric(30, 12), nullable=False)
    low = Column(Numeric(30, 12), nullable=False)
    close = Column(Numeric(30, 12), nullable=False)
    volume = Column(Numeric(36, 12), nullable=False)

    __table_args__ = (
        Index("idx_candles_pair_granularity", "pair_id", "granularity"),
    )


class BucketTable(Base):
    """Bucket snapshots per pair and bucket length."""

    __tablename__ = "buckets"

    pair_id = Column(String(32), primary_key=True)
    bucket_length = Column(Integer, primary_key=True)  # seconds
    timestamp = Column(DateTime(timezone=True), primary_key=True)
    data_points = Column(Integer, nullable=False)
    backfilled = Column(Boolean, nullable=False, default=False)
    price_avg = Column(Float, nullable=False)
    price_low = Column(Float, nullable=False)
    price_high = Column(Float, nullable=False)
    price_close = Column(Float, nullable=False)
    diff_avg = Column(Float, nullable=False)
    volume_total = Column(Float, nullable=False)
    volume_avg = Column(Float, nullable=False)
    last_close = Column(Float, nullable=False)
    last_low = Column(Float, nullable=False)
    last_high = Column(Float, nullable=False)
    last_volume = Column(Float, nullable=False)
    close_cv = Column(Float, nullable=False)
    volume_cv = Column(Float, nullable=False)

    __table_args__ = (
        Index("idx_buckets_pair_length", "pair_id", "bucket_length"),
    )


class Database:
    """Database connection manager."""

    def __init__(self, database_url: str | None = None):
        settings = get_settings()
        url = database_url or settings.database_url

        # Convert postgresql:// to postgresql+asyncpg://
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

        # One cycle writes at most one candle batch per pair at a time
        self.engine = create_async_engine(
            url,
            echo=settings.debug,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
            pool_recycle=3600,
            pool_timeout=30,
            connect_args={
                "timeout": 10,
                "command_timeout": 60,
            },
        )
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def create_tables(self) -> None:
        """Create all tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        """Close database connection."""
        await self.engine.dispose()


# Global database instance
_db: Database | None = None


def get_database() -> Database:
    """Get the global database instance."""
    global _db
    if _db is None:
        _db = Database()
    return _db


async def init_database() -> Database:
    """Initialize the database and create tables."""
    db = get_database()
    await db.create_tables()
    return db
