"""
Catalog endpoints with Redis caching on service listings.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.logging import get_logger
from booking_engine.core.security import ROLE_MANAGER, Actor, require_roles
from booking_engine.db.session import get_db
from booking_engine.models.enums import FeeTierKind
from booking_engine.schemas.catalog import (
    CelebrityCreate,
    CelebrityResponse,
    FeeTierCreate,
    FeeTierResponse,
    ServiceCreate,
    ServiceListResponse,
    ServiceResponse,
)
from booking_engine.services import catalog_service
from booking_engine.services.cache_service import (
    get_cached_services,
    invalidate_catalog_cache,
    set_cached_services,
)

logger = get_logger(__name__)
router = APIRouter(tags=["Catalog"])


@router.post("/celebrities", response_model=CelebrityResponse, status_code=status.HTTP_201_CREATED)
async def create_celebrity(
    data: CelebrityCreate,
    actor: Actor = Depends(require_roles(ROLE_MANAGER)),
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.create_celebrity(db, data)


@router.get("/celebrities", response_model=list[CelebrityResponse])
async def list_celebrities(
    available_only: bool = Query(False),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    celebrities, _ = await catalog_service.list_celebrities(db, available_only, page, page_size)
    return celebrities


@router.get("/celebrities/{celebrity_id}", response_model=CelebrityResponse)
async def get_celebrity(celebrity_id: str, db: AsyncSession = Depends(get_db)):
    return await catalog_service.get_celebrity(db, celebrity_id)


@router.post(
    "/celebrities/{celebrity_id}/services",
    response_model=ServiceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_service(
    celebrity_id: str,
    data: ServiceCreate,
    actor: Actor = Depends(require_roles(ROLE_MANAGER)),
    db: AsyncSession = Depends(get_db),
):
    service = await catalog_service.create_service(db, celebrity_id, data)
    # Invalidate cache since the listing has changed
    await invalidate_catalog_cache()
    return service


@router.get("/celebrities/{celebrity_id}/services", response_model=ServiceListResponse)
async def list_services(
    celebrity_id: str,
    active_only: bool = Query(True),
    db: AsyncSession = Depends(get_db),
):
    """
    Bookable services with their add-ons.
    Results are cached in Redis and invalidated on catalog writes.
    """
    cached = await get_cached_services(celebrity_id, active_only)
    if cached:
        logger.info("services_list_cache_hit", celebrity_id=celebrity_id)
        cached["cached"] = True
        return ServiceListResponse(**cached)

    services = await catalog_service.list_services(db, celebrity_id, active_only)
    response_data = {
        "services": [ServiceResponse.model_validate(s).model_dump() for s in services],
        "total": len(services),
        "cached": False,
    }
    await set_cached_services(celebrity_id, active_only, response_data)
    return ServiceListResponse(**response_data)


@router.post("/fee-tiers", response_model=FeeTierResponse, status_code=status.HTTP_201_CREATED)
async def create_fee_tier(
    data: FeeTierCreate,
    actor: Actor = Depends(require_roles(ROLE_MANAGER)),
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.create_fee_tier(db, data)


@router.get("/fee-tiers", response_model=list[FeeTierResponse])
async def list_fee_tiers(
    kind: Optional[FeeTierKind] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.list_fee_tiers(db, kind)
