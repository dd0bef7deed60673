"""Exchange clients."""

from app.clients.coinbase_rest import CoinbaseRestClient, ExchangeError, RateLimiter

__all__ = [
    "CoinbaseRestClient",
    "ExchangeError",
    "RateLimiter",
]
