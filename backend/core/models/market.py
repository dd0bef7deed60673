"""Exchange reference data models."""

from pydantic import BaseModel, ConfigDict


class Product(BaseModel):
    """A tradeable pair as listed by the exchange."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    base_currency: str
    quote_currency: str
    base_increment: float = 0.00000001
    quote_increment: float = 0.00000001
    display_name: str = ""
    status: str = "online"
    trading_disabled: bool = False
    cancel_only: bool = False
    limit_only: bool = False
    post_only: bool = False
    stable_pair: bool = False


class Currency(BaseModel):
    """A currency as listed by the exchange."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str = ""
    min_size: float = 0.0
    status: str = "online"


class OrderBookCounts(BaseModel):
    """Order counts summed over the level-2 book."""

    model_config = ConfigDict(frozen=True)

    buys: int
    sells: int

    @property
    def movement(self) -> float:
        """Buy/sell pressure; falls back to raw buys when there are no sells."""
        if self.sells == 0:
            return float(self.buys)
        return self.buys / self.sells
