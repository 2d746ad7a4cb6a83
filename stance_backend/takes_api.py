"""
API endpoints for serving hot takes.

Provides endpoints for:
- Spinning one take per category (with locked categories)
- Re-rolling a single category with exclusions and an intensity range
- Intensity distribution of the served corpus
- Take lookups by id and slug, and filtered listing
"""

import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from stance_backend.dependencies import get_take_selector
from stance_backend.schemas import SpinResponse, TakeResponse, TakesListResponse
from stance_backend.services.categories import get_categories
from stance_backend.services.errors import BackingStoreUnavailable, call_with_timeout
from stance_backend.services.take_model import MAX_INTENSITY, MIN_INTENSITY
from stance_backend.services.take_selector import TakeSelector

logger = logging.getLogger(__name__)


def parse_locked_param(locked: Optional[str]) -> Dict[str, str]:
    """Parse ``philosophy:abc123,work:def456`` into {category: take_id}."""
    result: Dict[str, str] = {}
    if not locked:
        return result
    for pair in locked.split(","):
        category, _, take_id = pair.partition(":")
        category, take_id = category.strip(), take_id.strip()
        if category and take_id:
            result[category] = take_id
    return result


def parse_exclude_param(exclude: Optional[str]) -> list:
    if not exclude:
        return []
    return [take_id for take_id in (part.strip() for part in exclude.split(",")) if take_id]


# Create router
router = APIRouter(prefix="/api", tags=["takes"])


@router.get("/takes/health")
async def health_check():
    return {"status": "healthy", "service": "takes_api"}


@router.get("/spin", response_model=SpinResponse)
async def spin(
    locked: Optional[str] = None,
    selector: TakeSelector = Depends(get_take_selector),
):
    """
    Pick one take per category, keeping locked categories.

    Args:
        locked: Comma-separated ``category:take_id`` pairs

    Returns:
        SpinResponse with takes keyed by category and the category registry
    """
    locked_map = parse_locked_param(locked)
    try:
        takes = await call_with_timeout(selector.spin(locked_map), "spin")
    except BackingStoreUnavailable as e:
        logger.warning(f"Serving empty spin, corpus unavailable: {e}")
        takes = {}

    return SpinResponse(
        hot_takes={name: take.to_dict() for name, take in takes.items()},
        categories=[c.to_dict() for c in get_categories()],
    )


@router.get("/spin-category", response_model=TakeResponse)
async def spin_category(
    category: Optional[str] = None,
    exclude: Optional[str] = None,
    intensity_min: int = Query(MIN_INTENSITY, ge=MIN_INTENSITY, le=MAX_INTENSITY),
    intensity_max: int = Query(MAX_INTENSITY, ge=MIN_INTENSITY, le=MAX_INTENSITY),
    selector: TakeSelector = Depends(get_take_selector),
):
    """Re-roll a single category, skipping ``exclude`` ids."""
    if not category:
        raise HTTPException(status_code=400, detail="category parameter is required")

    try:
        take = await call_with_timeout(
            selector.pick_random(category, parse_exclude_param(exclude), intensity_min, intensity_max),
            "pick_random",
        )
    except BackingStoreUnavailable as e:
        logger.warning(f"Corpus unavailable for spin-category: {e}")
        take = None

    if take is None:
        raise HTTPException(
            status_code=404,
            detail="No hot takes available for this category with requested intensity",
        )
    return take.to_dict()


@router.get("/intensity-distribution", response_model=Dict[int, int])
async def intensity_distribution(
    category: Optional[str] = None,
    selector: TakeSelector = Depends(get_take_selector),
):
    try:
        return await call_with_timeout(selector.intensity_distribution(category), "intensity_distribution")
    except BackingStoreUnavailable as e:
        logger.warning(f"Serving empty intensity distribution: {e}")
        return {level: 0 for level in range(MIN_INTENSITY, MAX_INTENSITY + 1)}


@router.get("/takes", response_model=TakesListResponse)
async def list_takes(
    category: Optional[str] = None,
    tone: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1),
    selector: TakeSelector = Depends(get_take_selector),
):
    try:
        takes = await call_with_timeout(selector.filter_takes(category, tone, limit), "filter_takes")
    except BackingStoreUnavailable as e:
        logger.warning(f"Serving empty take list: {e}")
        takes = []
    return TakesListResponse(takes=[t.to_dict() for t in takes], count=len(takes))


@router.get("/takes/slug/{slug}", response_model=TakeResponse)
async def get_take_by_slug(slug: str, selector: TakeSelector = Depends(get_take_selector)):
    try:
        take = await call_with_timeout(selector.get_take_by_slug(slug), "get_take_by_slug")
    except BackingStoreUnavailable:
        take = None
    if take is None:
        raise HTTPException(status_code=404, detail="Hot take not found")
    return take.to_dict()


@router.get("/takes/{take_id}", response_model=TakeResponse)
async def get_take(take_id: str, selector: TakeSelector = Depends(get_take_selector)):
    try:
        take = await call_with_timeout(selector.resolve_take(take_id), "resolve_take")
    except BackingStoreUnavailable:
        take = None
    if take is None:
        raise HTTPException(status_code=404, detail="Hot take not found")
    return take.to_dict()
