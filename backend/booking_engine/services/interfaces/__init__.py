"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .reservation_lock import ReservationLock
from .local_lock import LocalReservationLock
from .payment_gateway import PaymentGateway, PaymentResult
from .notifier import Notifier

__all__ = ['ReservationLock', 'LocalReservationLock', 'PaymentGateway', 'PaymentResult', 'Notifier']
