"""Exchange reference data: products and currencies.

Registries hold the latest listing and report what changed between
refreshes so the scheduler can publish it.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Generic, Iterable, Literal, TypeVar

from pydantic import BaseModel

from core.models import Currency, Product

logger = logging.getLogger(__name__)

DEFAULT_PRECISION = 8

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass
class ReferenceUpdate(Generic[ModelT]):
    """Result of one registry refresh."""

    added: list[ModelT] = field(default_factory=list)
    updated: list[ModelT] = field(default_factory=list)
    changes: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.added or self.updated)


def _label(key: str) -> str:
    return key.replace("_", " ")


def describe_changes(old: BaseModel, new: BaseModel, item_id: str) -> list[str]:
    """One line per field whose value differs between two versions."""
    old_values = old.model_dump(mode="json")
    changes = []
    for key, value in new.model_dump(mode="json").items():
        if key not in old_values:
            changes.append(f"{item_id}: ['{_label(key)}'] = '{value}' added.")
        elif old_values[key] != value:
            changes.append(
                f"{item_id}: ['{_label(key)}'] changed from '{old_values[key]}' to '{value}'"
            )
    return changes


class _Registry(Generic[ModelT]):
    def __init__(self):
        self._items: dict[str, ModelT] = {}

    def update(self, items: Iterable[ModelT]) -> ReferenceUpdate[ModelT]:
        """Store the listing and report added or modified entries."""
        result: ReferenceUpdate[ModelT] = ReferenceUpdate()
        for item in items:
            old = self._items.get(item.id)
            if old == item:
                continue
            if old is None:
                result.added.append(item)
                result.changes.append(f"{item.id}: added.")
            else:
                result.updated.append(item)
                result.changes.extend(describe_changes(old, item, item.id))
            self._items[item.id] = item
        return result

    def get(self, item_id: str) -> ModelT | None:
        return self._items.get(item_id)

    def all(self) -> list[ModelT]:
        return list(self._items.values())

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)


class CurrencyRegistry(_Registry[Currency]):
    """Currencies listed by the exchange."""


class ProductRegistry(_Registry[Product]):
    """Products (pairs) listed by the exchange."""

    def filter(
        self,
        include: list[str] | None = None,
        exclude: list[str] | None = None,
        stable_pairs: bool = True,
        disabled_trades: bool = True,
    ) -> list[Product]:
        """Products matching the selection.

        Args:
            include: Currencies one side of the pair must be in (empty = any)
            exclude: Currencies neither side may be in, or excluded pair ids
            stable_pairs: Keep stablecoin pairs
            disabled_trades: Keep pairs that are disabled, cancel/limit/post only
        """
        include = include or []
        exclude = exclude or []
        selected = []
        for product in self._items.values():
            sides = (product.base_currency, product.quote_currency)
            if not disabled_trades and (
                product.trading_disabled
                or product.cancel_only
                or product.limit_only
                or product.post_only
                or product.status == "delisted"
            ):
                continue
            if not stable_pairs and product.stable_pair:
                continue
            if include and not any(side in include for side in sides):
                continue
            if product.id in exclude or any(side in exclude for side in sides):
                continue
            selected.append(product)
        return sorted(selected, key=lambda p: p.id)

    def precision(self, pair_id: str) -> tuple[int, int]:
        """Decimal places of (base, quote) increments."""
        product = self._items.get(pair_id)
        if product is None:
            return DEFAULT_PRECISION, DEFAULT_PRECISION
        return _decimals(product.base_increment), _decimals(product.quote_increment)

    def to_fixed(
        self,
        pair_id: str,
        value: float,
        side: Literal["base", "quote"] = "base",
    ) -> float:
        """Round to the pair's base or quote increment (8 places if unknown)."""
        base, quote = self.precision(pair_id)
        return round(value, base if side == "base" else quote)


def _decimals(increment: float) -> int:
    if increment <= 0:
        return DEFAULT_PRECISION
    return round(abs(math.log10(increment)))
