"""
Managed email blacklist.

Entries are keyed by the lowercased address. The risk signal collector
raises `blacklisted_email` for any booking whose contact email is listed.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.exceptions import AlreadyExists, NotFound
from booking_engine.core.logging import get_logger
from booking_engine.core.security import Actor
from booking_engine.models.blacklist import BlacklistedEmail

logger = get_logger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def add_email(db: AsyncSession, email: str, reason: Optional[str], actor: Actor) -> BlacklistedEmail:
    entry = BlacklistedEmail(email=normalize_email(email), reason=reason, added_by=actor.id)
    db.add(entry)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise AlreadyExists(f"Email '{normalize_email(email)}' is already blacklisted", field="email")
    await db.refresh(entry)

    logger.info("email_blacklisted", email=entry.email, added_by=actor.id)
    return entry


async def remove_email(db: AsyncSession, email: str, actor: Actor) -> None:
    entry = await db.scalar(select(BlacklistedEmail).where(BlacklistedEmail.email == normalize_email(email)))
    if entry is None:
        raise NotFound(f"Email '{normalize_email(email)}' is not blacklisted")
    await db.delete(entry)
    await db.flush()

    logger.info("email_unblacklisted", email=entry.email, removed_by=actor.id)


async def list_emails(db: AsyncSession) -> list[BlacklistedEmail]:
    """Newest entries first."""
    result = await db.execute(
        select(BlacklistedEmail).order_by(BlacklistedEmail.created_at.desc(), BlacklistedEmail.email.asc())
    )
    return list(result.scalars().all())
