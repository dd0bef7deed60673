"""Pair selection and default filter loaded from ranker.yaml.

Supports:
- Quote currency include/exclude lists
- Explicit pair list that bypasses the product filter
- Default rank filter applied until changed through the API
- No YAML file = all online USD pairs, no filter
"""

import logging
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, model_validator

from core.models import EngineConfig
from core.models.ranking import RankFilter

logger = logging.getLogger(__name__)


class PairSelection(BaseModel):
    """Which exchange products get ranked."""

    include: list[str] = ["USD"]  # quote currencies, empty = all
    exclude: list[str] = []  # base or quote currencies, or pair ids
    stable_pairs: bool = False
    disabled_trades: bool = False
    pairs: list[str] = []  # explicit pair ids, overrides the filters

    @model_validator(mode="after")
    def _normalize(self):
        self.include = [value.upper() for value in self.include]
        self.exclude = [value.upper() for value in self.exclude]
        self.pairs = [value.upper() for value in self.pairs]
        return self


class RankerConfig(BaseModel):
    """Top-level ranker.yaml configuration."""

    selection: PairSelection = PairSelection()
    filter: RankFilter = RankFilter()

    def initial_filter(self, engine_config: EngineConfig) -> RankFilter:
        """The filter with RSI thresholds taken from the engine settings
        unless ranker.yaml sets them.
        """
        update = {}
        if "overbought_threshold" not in self.filter.model_fields_set:
            update["overbought_threshold"] = engine_config.rsi_overbought
        if "oversold_threshold" not in self.filter.model_fields_set:
            update["oversold_threshold"] = engine_config.rsi_oversold
        return self.filter.model_copy(update=update)


_DEFAULT_PATH = Path(__file__).parent.parent / "ranker.yaml"


def load_ranker_config(path: Path | None = None) -> RankerConfig:
    """Load ranker config from YAML file.

    Falls back to defaults if the file doesn't exist.
    """
    config_path = path or _DEFAULT_PATH

    # Settings read the same .env; load it for anything else reading os.environ
    env_path = config_path.parent / ".env"
    load_dotenv(env_path, override=False)

    if not config_path.exists():
        logger.info("No ranker.yaml found at %s, using defaults", config_path)
        return RankerConfig()

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    config = RankerConfig(**raw)
    logger.info(
        "Loaded ranker config: include=%s, exclude=%s, %d explicit pairs, filter count=%d",
        config.selection.include,
        config.selection.exclude,
        len(config.selection.pairs),
        config.filter.count,
    )
    return config
