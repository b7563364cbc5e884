"""
Catalog service handling celebrities, services, add-ons and fee tiers.
"""

from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.exceptions import NotFound, ServiceNotFound, ValidationError
from booking_engine.core.logging import get_logger
from booking_engine.models.celebrity import Celebrity, FeeTier, Service, ServiceAddOn
from booking_engine.models.enums import FeeTierKind
from booking_engine.schemas.catalog import CelebrityCreate, FeeTierCreate, ServiceCreate

logger = get_logger(__name__)


async def create_celebrity(db: AsyncSession, data: CelebrityCreate) -> Celebrity:
    celebrity = Celebrity(**data.model_dump())
    db.add(celebrity)
    await db.flush()
    await db.refresh(celebrity)

    logger.info("celebrity_created", celebrity_id=celebrity.id, name=celebrity.name)
    return celebrity


async def get_celebrity(db: AsyncSession, celebrity_id: str) -> Celebrity:
    celebrity = await db.get(Celebrity, celebrity_id)
    if not celebrity:
        raise NotFound(f"Celebrity {celebrity_id} not found", celebrity_id=celebrity_id)
    return celebrity


async def list_celebrities(
    db: AsyncSession,
    available_only: bool = False,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Celebrity], int]:
    query = select(Celebrity)
    if available_only:
        query = query.where(Celebrity.available.is_(True))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(
        query.order_by(Celebrity.name.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total


async def create_service(db: AsyncSession, celebrity_id: str, data: ServiceCreate) -> Service:
    await get_celebrity(db, celebrity_id)

    service = Service(
        celebrity_id=celebrity_id,
        name=data.name,
        description=data.description,
        base_price=data.base_price,
        currency=data.currency.upper(),
    )
    db.add(service)
    await db.flush()
    for add_on in data.add_ons:
        db.add(ServiceAddOn(service_id=service.id, name=add_on.name, price=add_on.price))
    await db.flush()

    # Reload so the selectin add_ons collection reflects the new rows
    service = await db.get(Service, service.id, populate_existing=True)
    logger.info(
        "service_created",
        service_id=service.id,
        celebrity_id=celebrity_id,
        base_price=service.base_price,
        add_ons=len(service.add_ons),
    )
    return service


async def get_service(db: AsyncSession, service_id: str) -> Service:
    service = await db.get(Service, service_id)
    if not service:
        raise ServiceNotFound(f"Service {service_id} not found", service_id=service_id)
    return service


async def list_services(db: AsyncSession, celebrity_id: str, active_only: bool = True) -> list[Service]:
    await get_celebrity(db, celebrity_id)
    query = select(Service).where(Service.celebrity_id == celebrity_id)
    if active_only:
        query = query.where(Service.active.is_(True))
    result = await db.execute(query.order_by(Service.base_price.asc()))
    return list(result.scalars().all())


async def resolve_add_ons(db: AsyncSession, service: Service, add_on_ids: Iterable[str]) -> list[ServiceAddOn]:
    """Selected add-ons, all of which must belong to `service`."""
    add_on_ids = list(add_on_ids)
    if len(set(add_on_ids)) != len(add_on_ids):
        raise ValidationError("Additional services must not repeat", field="additional_service_ids")
    if not add_on_ids:
        return []

    result = await db.execute(
        select(ServiceAddOn).where(
            ServiceAddOn.id.in_(add_on_ids),
            ServiceAddOn.service_id == service.id,
        )
    )
    found = {add_on.id: add_on for add_on in result.scalars().all()}
    unknown = [add_on_id for add_on_id in add_on_ids if add_on_id not in found]
    if unknown:
        raise ValidationError(
            "Unknown additional services for this service",
            field="additional_service_ids",
            unknown=unknown,
        )
    return [found[add_on_id] for add_on_id in add_on_ids]


async def create_fee_tier(db: AsyncSession, data: FeeTierCreate) -> FeeTier:
    tier = FeeTier(**data.model_dump())
    db.add(tier)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ValidationError(
            f"A {data.kind} tier with code '{data.code}' already exists",
            field="code",
        )
    logger.info("fee_tier_created", kind=tier.kind, code=tier.code, amount=tier.amount)
    return tier


async def list_fee_tiers(db: AsyncSession, kind: Optional[FeeTierKind] = None) -> list[FeeTier]:
    query = select(FeeTier)
    if kind is not None:
        query = query.where(FeeTier.kind == FeeTierKind(kind).value)
    result = await db.execute(query.order_by(FeeTier.kind.asc(), FeeTier.amount.asc()))
    return list(result.scalars().all())


async def tier_amount(db: AsyncSession, kind: FeeTierKind, code: str) -> int:
    """Amount of a travel/security tier; unknown codes are input errors."""
    amount = await db.scalar(
        select(FeeTier.amount).where(FeeTier.kind == kind.value, FeeTier.code == code)
    )
    if amount is None:
        field = "distance_tier" if kind == FeeTierKind.TRAVEL else "security_tier"
        raise ValidationError(f"Unknown {kind.value} tier '{code}'", field=field)
    return amount
