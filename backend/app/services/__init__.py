"""Business services."""

from app.services.background import BackgroundTasks
from app.services.notifier import DiscordNotifier
from app.services.reference_data import CurrencyRegistry, ProductRegistry, ReferenceUpdate
from app.services.scheduler import RankingScheduler, Ticker

__all__ = [
    "BackgroundTasks",
    "DiscordNotifier",
    "CurrencyRegistry",
    "ProductRegistry",
    "ReferenceUpdate",
    "RankingScheduler",
    "Ticker",
]
