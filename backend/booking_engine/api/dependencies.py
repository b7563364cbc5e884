"""
Request-scoped wiring of the orchestrator and its collaborators.
Tests override the collaborator dependencies, not the orchestrator.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.db.session import get_db
from booking_engine.services.booking_service import AdmissionOrchestrator
from booking_engine.services.interfaces.notifier import Notifier
from booking_engine.services.interfaces.payment_gateway import PaymentGateway
from booking_engine.services.interval_store import IntervalStore
from booking_engine.services.notification_service import get_notifier
from booking_engine.services.payment_service import get_payment_gateway
from booking_engine.services.strategy_factory import get_interval_store


async def get_orchestrator(
    db: AsyncSession = Depends(get_db),
    intervals: IntervalStore = Depends(get_interval_store),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: Notifier = Depends(get_notifier),
) -> AdmissionOrchestrator:
    return AdmissionOrchestrator(db, intervals, gateway, notifier)
