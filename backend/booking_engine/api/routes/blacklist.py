"""
Managed email blacklist endpoints (staff only).
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.security import ROLE_MANAGER, ROLE_REVIEWER, Actor, require_roles
from booking_engine.db.session import get_db
from booking_engine.schemas.blacklist import BlacklistEntryCreate, BlacklistEntryResponse, BlacklistResponse
from booking_engine.services import blacklist_service

router = APIRouter(prefix="/blacklist", tags=["Risk Review"])


@router.post("/emails", response_model=BlacklistEntryResponse, status_code=status.HTTP_201_CREATED)
async def add_blacklisted_email(
    data: BlacklistEntryCreate,
    actor: Actor = Depends(require_roles(ROLE_REVIEWER, ROLE_MANAGER)),
    db: AsyncSession = Depends(get_db),
):
    """Bookings submitted from a listed address score the `blacklisted_email` signal."""
    return await blacklist_service.add_email(db, data.email, data.reason, actor)


@router.get("/emails", response_model=BlacklistResponse)
async def list_blacklisted_emails(
    actor: Actor = Depends(require_roles(ROLE_REVIEWER, ROLE_MANAGER)),
    db: AsyncSession = Depends(get_db),
):
    entries = await blacklist_service.list_emails(db)
    return BlacklistResponse(
        entries=[BlacklistEntryResponse.model_validate(e) for e in entries],
        total=len(entries),
    )


@router.delete("/emails/{email}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_blacklisted_email(
    email: str,
    actor: Actor = Depends(require_roles(ROLE_REVIEWER, ROLE_MANAGER)),
    db: AsyncSession = Depends(get_db),
):
    await blacklist_service.remove_email(db, email, actor)
