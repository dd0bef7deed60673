"""Update cycle orchestration.

The scheduler owns the candle cache and the ranking store. Each cycle:

1. Refresh currencies and products, publishing listing changes
2. For every selected pair: seed the cache from storage once, pull the
   missing candles, rebuild buckets, indicators and the ranking record,
   read order-book movement and diff against the previous snapshot
3. Commit all new records to the store in one step
4. Publish the sorted listing and detected transitions

At most one cycle runs at a time. Persistence, notifications and push
feed events run as background tasks and never fail a cycle.
"""

import asyncio
import logging
import time
from collections import defaultdict
from typing import Any, Awaitable, Callable
from uuid import uuid4

from app.clients import ExchangeError
from app.ranker_config import PairSelection
from app.services.background import BackgroundTasks
from app.services.reference_data import CurrencyRegistry, ProductRegistry, ReferenceUpdate
from core.analysis import AnalysisMessage, analyze
from core.buckets import BucketOptions
from core.candle_cache import CandleCache
from core.indicators import IndicatorCalculator
from core.models import Candle, EngineConfig, RankFilter, RankingRecord
from core.pipeline import PairUpdate, StageTimings, build_pair_update
from core.protocol import BucketStore, CandleProvider, CandleStore, Notifier, PushFeed
from core.state import EngineStatus, RankingStore

logger = logging.getLogger(__name__)

# Type aliases for callbacks
SaveFilterCallback = Callable[[RankFilter], Awaitable[Any]]
LoadFilterCallback = Callable[[], Awaitable[RankFilter | None]]
SaveRankingsCallback = Callable[[list[RankingRecord], str, float], Awaitable[Any]]

SHUTDOWN_POLL_INTERVAL = 0.25


class Ticker:
    """Calls ``callback`` at every multiple of ``period_minutes``.

    Ticks fire ``offset`` seconds after the boundary so the exchange has
    closed the candle. Each tick runs as its own task; overlap is left
    to the callback to refuse.
    """

    def __init__(
        self,
        period_minutes: int,
        callback: Callable[[], Awaitable[Any]],
        offset: float = 5.0,
        clock: Callable[[], float] = time.time,
    ):
        self.period = period_minutes * 60
        self.offset = offset
        self._callback = callback
        self._clock = clock
        self._task: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def seconds_until_next(self, now: float | None = None) -> float:
        """Seconds until the next boundary plus offset."""
        now = self._clock() if now is None else now
        elapsed = (now - self.offset) % self.period
        return self.period - elapsed

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run(), name="ranking-ticker")
        logger.info("Ticker started: every %d minutes", self.period // 60)

    def stop(self) -> None:
        """Stop scheduling. Ticks already running are left to finish."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while self._running:
            await asyncio.sleep(self.seconds_until_next())
            if not self._running:
                break
            task = asyncio.create_task(self._callback(), name="ranking-tick")
            self._inflight.add(task)
            task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Scheduled cycle raised: %s", task.exception())


class RankingScheduler:
    """Runs update cycles and serves the resulting rankings."""

    def __init__(
        self,
        config: EngineConfig,
        provider: CandleProvider,
        candle_store: CandleStore | None = None,
        bucket_store: BucketStore | None = None,
        notifier: Notifier | None = None,
        feed: PushFeed | None = None,
        selection: PairSelection | None = None,
        store: RankingStore | None = None,
        products: ProductRegistry | None = None,
        currencies: CurrencyRegistry | None = None,
        background: BackgroundTasks | None = None,
        load_filter: LoadFilterCallback | None = None,
        save_filter: SaveFilterCallback | None = None,
        save_rankings: SaveRankingsCallback | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._config = config
        self._provider = provider
        self._candle_store = candle_store
        self._bucket_store = bucket_store
        self._notifier = notifier
        self._feed = feed
        self._selection = selection or PairSelection()
        self._store = store or RankingStore()
        self._products = products or ProductRegistry()
        self._currencies = currencies or CurrencyRegistry()
        self._background = background or BackgroundTasks()
        self._load_filter = load_filter
        self._save_filter = save_filter
        self._save_rankings = save_rankings
        self._clock = clock

        self._cache = CandleCache(on_merge=self._queue_candle_save)
        self._calculator = IndicatorCalculator(
            windows=config.ma_windows,
            macd_short=config.macd_short,
            macd_long=config.macd_long,
            macd_signal=config.macd_signal,
            rsi_period=config.rsi_period,
        )
        self._ticker: Ticker | None = None

        self._status = EngineStatus.UNINITIALIZED
        self._updating = False
        self._cycle_id: str | None = None
        self._cycles = 0
        self._last_update: float | None = None

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def status(self) -> EngineStatus:
        return self._status

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def store(self) -> RankingStore:
        return self._store

    @property
    def cache(self) -> CandleCache:
        return self._cache

    @property
    def products(self) -> ProductRegistry:
        return self._products

    @property
    def currencies(self) -> CurrencyRegistry:
        return self._currencies

    def is_updating(self) -> bool:
        return self._updating

    def current_cycle_id(self) -> str | None:
        return self._cycle_id

    def get_ranking(self, pair_id: str) -> RankingRecord | None:
        return self._store.current(pair_id)

    def get_sorted_rankings(
        self,
        filter_override: RankFilter | dict[str, Any] | None = None,
    ) -> list[RankingRecord]:
        """Ranked listing using the stored filter or an override.

        A dict override is applied on top of the stored filter.
        """
        if isinstance(filter_override, dict):
            filter_override = RankFilter.model_validate(
                {**self._store.filter.model_dump(), **filter_override}
            )
        return self._store.sorted(filter_override)

    def get_filter(self) -> RankFilter:
        return self._store.filter

    def update_filter(self, changes: dict[str, Any]) -> RankFilter:
        """Change the stored filter and persist it in the background."""
        rank_filter = self._store.update_filter(changes)
        logger.info("Rank filter updated: %s", changes)
        if self._save_filter is not None:
            self._background.submit(self._save_filter(rank_filter), "save-filter")
        return rank_filter

    def get_data_point_total(self) -> int:
        return self._store.data_point_total

    def status_snapshot(self) -> dict[str, Any]:
        return {
            "status": self._status.value,
            "updating": self._updating,
            "cycle_id": self._cycle_id,
            "cycles": self._cycles,
            "last_update": self._last_update,
            "pairs": len(self._store),
            "data_points": self._store.data_point_total,
            "candles": self._cache.total_candles(),
            "update_period_minutes": self._config.update_period_minutes,
        }

    def selected_pairs(self) -> list[str]:
        """Pairs to rank this cycle.

        Falls back to the cached pairs when the product listing is
        unavailable.
        """
        selection = self._selection
        if selection.pairs:
            return list(selection.pairs)

        products = self._products.filter(
            include=selection.include,
            exclude=selection.exclude,
            stable_pairs=selection.stable_pairs,
            disabled_trades=selection.disabled_trades,
        )
        if products:
            return [product.id for product in products]
        return self._cache.pairs()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> bool:
        """Restore the saved filter and run the first cycle."""
        if self._status is not EngineStatus.UNINITIALIZED:
            logger.warning("Initialize called in state %s, ignoring", self._status.value)
            return False

        self._status = EngineStatus.INITIALIZING
        logger.info(
            "Initializing: %ds candles, %d per bucket, %d buckets",
            self._config.granularity,
            self._config.candles_per_bucket,
            self._config.total_buckets,
        )

        if self._load_filter is not None:
            try:
                saved = await self._load_filter()
            except Exception as e:
                logger.warning(f"Failed to load saved rank filter: {e}")
                saved = None
            if saved is not None:
                self._store.set_filter(saved)
                logger.info("Restored rank filter: %s", saved.model_dump())

        if self._status is not EngineStatus.INITIALIZING:
            # disable() arrived while the filter was loading
            logger.info("Ranking disabled during initialize, first cycle skipped")
            return False
        self._status = EngineStatus.IDLE
        return await self.run_cycle()

    async def start(self) -> None:
        """Initialize, then run a cycle every update period."""
        await self.initialize()
        if self._status in (EngineStatus.DISABLING, EngineStatus.DISABLED):
            return
        self._ticker = Ticker(
            self._config.update_period_minutes,
            self.run_cycle,
            clock=self._clock,
        )
        self._ticker.start()

    def disable(self) -> None:
        """Stop starting new cycles. A running cycle finishes. Idempotent."""
        if self._status in (EngineStatus.DISABLING, EngineStatus.DISABLED):
            return
        if self._ticker is not None:
            self._ticker.stop()
        self._status = EngineStatus.DISABLING if self._updating else EngineStatus.DISABLED
        logger.info("Ranking disabled (%s)", self._status.value)

    async def shutdown(self, timeout: float = 30.0) -> bool:
        """Disable, wait for the running cycle, then drain background work.

        Returns False if the cycle or background tasks did not finish
        within ``timeout`` seconds.
        """
        self.disable()

        waited = 0.0
        while self._updating and waited < timeout:
            await asyncio.sleep(SHUTDOWN_POLL_INTERVAL)
            waited += SHUTDOWN_POLL_INTERVAL
        if self._updating:
            logger.warning("Cycle %s still running after %.1fs", self._cycle_id, waited)

        drained = await self._background.drain(timeout=max(timeout - waited, 1.0))
        return drained and not self._updating

    # -------------------------------------------------------------------------
    # Cycle
    # -------------------------------------------------------------------------

    async def run_cycle(self) -> bool:
        """Run one update cycle unless one is running or ranking is disabled.

        Returns True when a cycle ran to completion.
        """
        if self._status in (EngineStatus.DISABLING, EngineStatus.DISABLED):
            logger.info("Ranking disabled, cycle skipped")
            return False
        if self._updating:
            logger.info("Cycle %s still in progress, skipping", self._cycle_id)
            return False

        self._updating = True
        self._status = EngineStatus.UPDATING
        cycle_id = uuid4().hex[:8]
        self._cycle_id = cycle_id
        started = time.perf_counter()
        completed = False

        try:
            await self._update(cycle_id)
            completed = True
        except Exception as e:
            logger.exception(f"Cycle {cycle_id} failed: {e}")
        finally:
            self._updating = False
            if self._status is EngineStatus.UPDATING:
                self._status = EngineStatus.IDLE
            elif self._status is EngineStatus.DISABLING:
                self._status = EngineStatus.DISABLED

        logger.info(
            "Cycle %s %s in %.2fs",
            cycle_id, "completed" if completed else "aborted", time.perf_counter() - started,
        )
        return completed

    async def _update(self, cycle_id: str) -> None:
        now = self._clock()
        options = BucketOptions(
            granularity=self._config.granularity,
            candles_per_bucket=self._config.candles_per_bucket,
            total_buckets=self._config.total_buckets,
            end=now,
        )

        await self._refresh_reference_data(cycle_id)

        pair_ids = self.selected_pairs()
        records: list[RankingRecord] = []
        messages: list[AnalysisMessage] = []
        timings = StageTimings()
        pull_time = 0.0

        for pair_id in pair_ids:
            started = time.perf_counter()
            candles = await self._refresh_candles(pair_id, options)
            movement = await self._movement(pair_id) if candles else None
            pull_time += time.perf_counter() - started

            if not candles:
                logger.debug("%s: no candles, skipped", pair_id)
                continue

            update = self._compute(pair_id, candles, options, movement, now)
            timings.add(update.timings)
            if update.record is None:
                continue

            records.append(update.record)
            messages.extend(analyze(
                self._store.current(pair_id),
                update.record,
                update.last_close,
                overbought=self._config.rsi_overbought,
                oversold=self._config.rsi_oversold,
            ))
            self._queue_bucket_save(update)

        data_points = sum(record.data_points for record in records)
        self._store.commit(records, data_points)
        self._cycles += 1
        self._last_update = now

        logger.info(
            "Cycle %s ranked %d of %d pairs (%s data points, %d transitions)",
            cycle_id, len(records), len(pair_ids), f"{data_points:,}", len(messages),
        )
        logger.debug(
            "Cycle %s timings: pull=%.3fs buckets=%.3fs indicators=%.3fs ranking=%.3fs",
            cycle_id, pull_time, timings.buckets, timings.indicators, timings.ranking,
        )

        self._publish(cycle_id, len(pair_ids), data_points, messages, now)

    def _compute(
        self,
        pair_id: str,
        candles: list[Candle],
        options: BucketOptions,
        movement: float | None,
        now: float,
    ) -> PairUpdate:
        return build_pair_update(
            pair_id,
            candles,
            options,
            self._calculator,
            movement=movement,
            formatter=lambda value: self._products.to_fixed(pair_id, value, "quote"),
            timestamp=now,
        )

    def _oldest_allowed(self, options: BucketOptions) -> float:
        # Candles at or before this are dropped; keep the oldest span's first candle
        return options.start - self._config.granularity

    async def _refresh_candles(self, pair_id: str, options: BucketOptions) -> list[Candle]:
        """Seed from storage once, pull what is missing and merge."""
        granularity = self._config.granularity
        limit = self._config.candle_limit
        oldest_allowed = self._oldest_allowed(options)

        if not self._cache.is_seeded(pair_id):
            stored: list[Candle] = []
            if self._candle_store is not None:
                try:
                    stored = await self._candle_store.load_candles(
                        pair_id, since=options.start, limit=limit
                    )
                except Exception as e:
                    logger.warning(f"{pair_id}: failed to load stored candles: {e}")
            self._cache.seed(pair_id, stored, oldest_allowed, limit)

        last = self._cache.last_timestamp(pair_id)
        start = options.start if last is None else max(last + granularity, options.start)
        newest_closed = options.aligned_end - granularity

        fetched: list[Candle] = []
        if start <= newest_closed:
            try:
                fetched = await self._provider.get_candles(
                    pair_id, granularity, start, newest_closed
                )
            except ExchangeError as e:
                logger.warning(f"{pair_id}: {e}")

        closed = [c for c in fetched if c.timestamp < options.aligned_end]
        return self._cache.merge(pair_id, closed, oldest_allowed, limit)

    async def _movement(self, pair_id: str) -> float | None:
        try:
            counts = await self._provider.get_order_book_counts(pair_id)
        except ExchangeError as e:
            logger.warning(f"{pair_id}: movement unavailable: {e}")
            return None
        return counts.movement

    async def _refresh_reference_data(self, cycle_id: str) -> None:
        initial = len(self._currencies) == 0
        try:
            currencies = await self._provider.get_currencies()
        except ExchangeError as e:
            logger.error(f"Could not refresh currencies: {e}")
        else:
            self._report_changes("currency", self._currencies.update(currencies), cycle_id, initial)

        initial = len(self._products) == 0
        try:
            products = await self._provider.get_products()
        except ExchangeError as e:
            logger.error(f"Could not refresh products: {e}")
        else:
            self._report_changes("product", self._products.update(products), cycle_id, initial)

    def _report_changes(
        self,
        kind: str,
        update: ReferenceUpdate,
        cycle_id: str,
        initial: bool,
    ) -> None:
        if not update.changes:
            return
        if initial:
            logger.info("Loaded %d %s entries", len(update.added), kind)
            return

        logger.info("%d %s changes: %s", len(update.changes), kind, "; ".join(update.changes[:5]))
        if self._notifier is not None:
            self._background.submit(
                self._notifier.publish_changes(kind, update.changes, cycle_id),
                f"notify-{kind}-changes",
            )
        if self._feed is not None:
            self._background.submit(
                self._feed.broadcast(kind, {"cycle_id": cycle_id, "changes": update.changes}),
                f"feed-{kind}",
            )

    # -------------------------------------------------------------------------
    # Background work
    # -------------------------------------------------------------------------

    def _queue_candle_save(self, pair_id: str, candles: list[Candle]) -> None:
        if self._candle_store is None:
            return
        self._background.submit(
            self._candle_store.append_candles(pair_id, candles, self._config.candle_limit),
            f"save-candles-{pair_id}",
        )

    def _queue_bucket_save(self, update: PairUpdate) -> None:
        if not self._config.persist_buckets or self._bucket_store is None:
            return
        self._background.submit(
            self._bucket_store.append_buckets(
                update.pair_id, update.buckets, self._config.total_buckets
            ),
            f"save-buckets-{update.pair_id}",
        )

    def _publish(
        self,
        cycle_id: str,
        total_pairs: int,
        data_points: int,
        messages: list[AnalysisMessage],
        timestamp: float,
    ) -> None:
        ranked = self._store.sorted()

        by_kind: dict[str, list[AnalysisMessage]] = defaultdict(list)
        for message in messages:
            by_kind[message.kind].append(message)

        if self._notifier is not None:
            self._background.submit(
                self._notifier.publish_ranking(ranked, total_pairs, data_points, cycle_id),
                "notify-ranking",
            )
            for kind, kind_messages in by_kind.items():
                self._background.submit(
                    self._notifier.publish_analysis(kind, kind_messages, cycle_id),
                    f"notify-analysis-{kind}",
                )

        if self._feed is not None:
            self._background.submit(
                self._feed.broadcast("ranking", {
                    "cycle_id": cycle_id,
                    "timestamp": timestamp,
                    "data_points": data_points,
                    "records": [record.model_dump(mode="json") for record in ranked],
                }),
                "feed-ranking",
            )
            if messages:
                self._background.submit(
                    self._feed.broadcast("analysis", {
                        "cycle_id": cycle_id,
                        "messages": [
                            {
                                "pair_id": m.pair_id,
                                "kind": m.kind,
                                "signal": m.signal,
                                "text": m.text,
                            }
                            for m in messages
                        ],
                    }),
                    "feed-analysis",
                )
            self._background.submit(
                self._feed.broadcast("status", self.status_snapshot()),
                "feed-status",
            )

        if self._save_rankings is not None:
            self._background.submit(
                self._save_rankings(ranked, cycle_id, timestamp),
                "save-rankings",
            )
