"""
Payment gateway interface.
The gateway owns the payment protocol and its timeouts; the engine only
asks it to collect or refund an amount and records the outcome.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PaymentResult:
    success: bool
    reference: Optional[str] = None
    failure_reason: Optional[str] = None


class PaymentGateway(ABC):
    """
    Implementations:
    - SandboxPaymentGateway: deterministic in-process gateway (dev, tests)
    - HttpPaymentGateway: remote gateway over HTTP
    """

    @abstractmethod
    async def collect(
        self,
        booking_id: str,
        amount: int,
        currency: str,
        payment_method_ref: str,
        purpose: str,
    ) -> PaymentResult:
        """
        Charge `amount` minor units against the client's payment method.

        Args:
            purpose: "deposit" or "balance"
        """
        pass

    @abstractmethod
    async def refund(
        self,
        booking_id: str,
        amount: int,
        currency: str,
        payment_reference: Optional[str],
    ) -> PaymentResult:
        """Return `amount` minor units of a previous collection."""
        pass
