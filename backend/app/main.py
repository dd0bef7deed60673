"""Main application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager

# Configure logging FIRST, before any other imports
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
)

# Reduce noise from third-party libraries (must be set before importing them)
logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine.Engine").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.WARNING)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

# Try to use uvloop for better performance (Unix only)
try:
    import uvloop
    uvloop.install()
    _UVLOOP_ENABLED = True
except ImportError:
    _UVLOOP_ENABLED = False

from app.api import router, manager, websocket_endpoint
from app.clients import CoinbaseRestClient, RateLimiter
from app.config import get_settings
from app.ranker_config import load_ranker_config
from app.services import DiscordNotifier, RankingScheduler
from app.storage import BucketRepository, CandleRepository, cache, get_database, init_database
from app.storage import ranking_cache
from core.state import RankingStore

logger = logging.getLogger(__name__)

# Global services
scheduler: RankingScheduler | None = None
client: CoinbaseRestClient | None = None
notifier: DiscordNotifier | None = None
_scheduler_task: asyncio.Task | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global scheduler, client, notifier, _scheduler_task

    logger.info("Starting Pair Ranker...")
    logger.info(f"Event loop: {'uvloop' if _UVLOOP_ENABLED else 'asyncio'}")

    settings = get_settings()
    # Invalid parameters are fatal before anything is opened
    engine_config = settings.engine_config()
    ranker_config = load_ranker_config()

    # Track initialization state for proper cleanup on failure
    db_initialized = False
    cache_initialized = False

    try:
        # Initialize database with timeout
        try:
            await asyncio.wait_for(init_database(), timeout=30)
            db_initialized = True
            logger.info("Database initialized")
        except asyncio.TimeoutError:
            raise RuntimeError("Database initialization timed out after 30s")

        # Initialize Redis cache with timeout
        try:
            await asyncio.wait_for(cache.init_cache(), timeout=10)
            cache_initialized = True
            if cache.is_cache_available():
                logger.info("Redis cache initialized")
            else:
                logger.warning("Redis cache unavailable - filter changes will not persist")
        except asyncio.TimeoutError:
            logger.warning("Redis cache initialization timed out - running without caching")
            cache_initialized = True  # Mark as initialized to skip cleanup

        client = CoinbaseRestClient(
            base_url=settings.coinbase_api_url,
            rate_limiter=RateLimiter(settings.coinbase_calls_per_minute),
            timeout=settings.request_timeout,
        )
        notifier = DiscordNotifier(
            ranking_webhook=settings.discord_ranking_webhook,
            analysis_webhook=settings.discord_analysis_webhook,
            changes_webhook=settings.discord_changes_webhook,
        )
        if not notifier.enabled:
            logger.info("No Discord webhooks configured - notifications disabled")

        scheduler = RankingScheduler(
            config=engine_config,
            provider=client,
            candle_store=CandleRepository(engine_config.granularity),
            bucket_store=BucketRepository(engine_config.bucket_length),
            notifier=notifier,
            feed=manager,
            selection=ranker_config.selection,
            store=RankingStore(ranker_config.initial_filter(engine_config)),
            load_filter=ranking_cache.load_filter,
            save_filter=ranking_cache.save_filter,
            save_rankings=ranking_cache.save_rankings,
        )

        # Expose scheduler to API routes via app.state
        app.state.scheduler = scheduler

        # First cycle can take minutes on an empty database; serve the API meanwhile
        _scheduler_task = asyncio.create_task(scheduler.start(), name="ranking-scheduler")
        logger.info("Ranking scheduler started")

    except Exception as e:
        logger.error(f"Startup failed: {e}")
        # Cleanup on startup failure
        if client:
            await client.close()
        if notifier:
            await notifier.close()
        if cache_initialized:
            try:
                await cache.close_cache()
            except Exception as cleanup_err:
                logger.warning(f"Error closing cache: {cleanup_err}")
        if db_initialized:
            try:
                db = get_database()
                await db.close()
            except Exception as cleanup_err:
                logger.warning(f"Error closing database: {cleanup_err}")
        raise  # Re-raise to prevent app from starting in broken state

    yield

    # Shutdown
    logger.info("Shutting down...")

    if scheduler:
        # Let the running cycle finish and pending writes land
        clean = await scheduler.shutdown(timeout=settings.shutdown_timeout)
        if not clean:
            logger.warning("Shutdown timed out with work still pending")
    app.state.scheduler = None

    if _scheduler_task and not _scheduler_task.done():
        _scheduler_task.cancel()
        try:
            await _scheduler_task
        except asyncio.CancelledError:
            pass

    if client:
        await client.close()
    if notifier:
        await notifier.close()

    # Close Redis cache
    await cache.close_cache()

    # Close database connections
    try:
        db = get_database()
        await db.close()
        logger.info("Database connections closed")
    except Exception as e:
        logger.warning(f"Error closing database: {e}")

    logger.info("Shutdown complete")


# Create FastAPI app with orjson for faster JSON serialization
app = FastAPI(
    title="Pair Ranker",
    description="Periodic ranking of exchange pairs by bucketed candle statistics",
    version="0.1.0",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include REST routes
app.include_router(router, prefix="/api")

# WebSocket endpoint
app.websocket("/ws")(websocket_endpoint)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Pair Ranker",
        "version": "0.1.0",
        "docs": "/docs",
        "event_loop": "uvloop" if _UVLOOP_ENABLED else "asyncio",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "cache": await cache.ping()}


def main():
    """Run the application."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
