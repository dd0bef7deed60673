"""Data storage layer."""

from app.storage.database import Database, get_database, init_database
from app.storage.candle_repo import BucketRepository, CandleRepository
from app.storage import cache
from app.storage import ranking_cache

__all__ = [
    "Database",
    "get_database",
    "init_database",
    "CandleRepository",
    "BucketRepository",
    "cache",
    "ranking_cache",
]
