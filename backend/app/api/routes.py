"""REST API routes."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, ConfigDict, ValidationError

from app.services.scheduler import RankingScheduler
from core.models import Product, RankFilter, RankingRecord

logger = logging.getLogger(__name__)

router = APIRouter()


# Response models
class SystemStatus(BaseModel):
    """System status response."""

    status: str
    updating: bool
    cycle_id: Optional[str] = None
    cycles: int
    last_update: Optional[float] = None
    pairs: int
    data_points: int
    candles: int
    update_period_minutes: int


class FilterUpdate(BaseModel):
    """Partial rank filter change."""

    model_config = ConfigDict(extra="forbid")

    close_ratio: Optional[bool] = None
    diff_ratio: Optional[bool] = None
    volume_ratio: Optional[bool] = None
    movement: Optional[bool] = None
    overbought: Optional[bool] = None
    oversold: Optional[bool] = None
    count: Optional[int] = None
    overbought_threshold: Optional[float] = None
    oversold_threshold: Optional[float] = None


# Dependency for the scheduler
def get_scheduler(request: Request) -> RankingScheduler:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Ranking engine not started")
    return scheduler


@router.get("/status", response_model=SystemStatus)
async def get_status(request: Request):
    """Get engine status."""
    return SystemStatus(**get_scheduler(request).status_snapshot())


@router.get("/rankings", response_model=list[RankingRecord])
async def get_rankings(
    request: Request,
    count: Optional[int] = Query(None, ge=0, description="Maximum rankings to return"),
    close_ratio: Optional[bool] = Query(None, description="Only close ratio > 1"),
    diff_ratio: Optional[bool] = Query(None, description="Only diff ratio > 1"),
    volume_ratio: Optional[bool] = Query(None, description="Only volume ratio > 1"),
    movement: Optional[bool] = Query(None, description="Only movement > 1"),
    overbought: Optional[bool] = Query(None, description="Only RSI above overbought"),
    oversold: Optional[bool] = Query(None, description="Only RSI below oversold"),
):
    """Get the ranked listing. Query flags override the stored filter."""
    override = {
        key: value
        for key, value in {
            "count": count,
            "close_ratio": close_ratio,
            "diff_ratio": diff_ratio,
            "volume_ratio": volume_ratio,
            "movement": movement,
            "overbought": overbought,
            "oversold": oversold,
        }.items()
        if value is not None
    }
    return get_scheduler(request).get_sorted_rankings(override or None)


@router.get("/rankings/{pair_id}", response_model=RankingRecord)
async def get_ranking(request: Request, pair_id: str):
    """Get the current ranking record of a pair."""
    record = get_scheduler(request).get_ranking(pair_id.upper())
    if record is None:
        raise HTTPException(status_code=404, detail="Pair not ranked")
    return record


@router.get("/filter", response_model=RankFilter)
async def get_filter(request: Request):
    """Get the active rank filter."""
    return get_scheduler(request).get_filter()


@router.patch("/filter", response_model=RankFilter)
async def update_filter(request: Request, changes: FilterUpdate):
    """Change part of the active rank filter."""
    scheduler = get_scheduler(request)
    try:
        return scheduler.update_filter(changes.model_dump(exclude_none=True))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/products", response_model=list[Product])
async def get_products(
    request: Request,
    quote: Optional[str] = Query(None, description="Filter by quote currency"),
):
    """Get products known to the engine."""
    products = get_scheduler(request).products.all()
    if quote:
        products = [p for p in products if p.quote_currency == quote.upper()]
    return sorted(products, key=lambda p: p.id)
