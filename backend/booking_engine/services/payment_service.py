"""
Payment gateway implementations.

SandboxPaymentGateway never leaves the process: every collection succeeds
unless the payment method reference starts with "pm_declined", which makes
it usable for local development and end-to-end tests of failure paths.
HttpPaymentGateway talks to a remote gateway and maps transport errors to
failed results rather than exceptions.
"""

import uuid
from typing import Optional

import httpx

from booking_engine.core.config import get_settings
from booking_engine.core.logging import get_logger
from booking_engine.services.interfaces.payment_gateway import PaymentGateway, PaymentResult

logger = get_logger(__name__)

DECLINED_PREFIX = "pm_declined"


class SandboxPaymentGateway(PaymentGateway):
    def __init__(self):
        self.ledger: list[dict] = []

    async def collect(self, booking_id, amount, currency, payment_method_ref, purpose) -> PaymentResult:
        if payment_method_ref.startswith(DECLINED_PREFIX):
            result = PaymentResult(success=False, failure_reason="card_declined")
        else:
            result = PaymentResult(success=True, reference=f"sandbox_{uuid.uuid4().hex[:16]}")
        self.ledger.append({
            "operation": "collect",
            "booking_id": booking_id,
            "amount": amount,
            "currency": currency,
            "purpose": purpose,
            "success": result.success,
            "reference": result.reference,
        })
        return result

    async def refund(self, booking_id, amount, currency, payment_reference) -> PaymentResult:
        result = PaymentResult(success=True, reference=f"sandbox_refund_{uuid.uuid4().hex[:12]}")
        self.ledger.append({
            "operation": "refund",
            "booking_id": booking_id,
            "amount": amount,
            "currency": currency,
            "original_reference": payment_reference,
            "success": True,
            "reference": result.reference,
        })
        return result


class HttpPaymentGateway(PaymentGateway):
    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None,
                 timeout: Optional[float] = None):
        settings = get_settings()
        self.base_url = (base_url or settings.PAYMENT_GATEWAY_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.PAYMENT_GATEWAY_API_KEY
        self.timeout = timeout or settings.PAYMENT_GATEWAY_TIMEOUT

    async def _post(self, path: str, payload: dict, idempotency_key: str) -> PaymentResult:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Idempotency-Key": idempotency_key,
        }
        try:
            async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout) as client:
                response = await client.post(path, json=payload, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("payment_gateway_rejected", path=path, status_code=e.response.status_code)
            return PaymentResult(success=False, failure_reason=f"gateway_status_{e.response.status_code}")
        except httpx.HTTPError as e:
            logger.error("payment_gateway_unreachable", path=path, error=str(e))
            return PaymentResult(success=False, failure_reason="gateway_unavailable")

        if data.get("status") != "succeeded":
            return PaymentResult(success=False, failure_reason=data.get("failure_reason", "declined"))
        return PaymentResult(success=True, reference=data.get("id"))

    async def collect(self, booking_id, amount, currency, payment_method_ref, purpose) -> PaymentResult:
        return await self._post(
            "/payments",
            {
                "amount": amount,
                "currency": currency,
                "payment_method": payment_method_ref,
                "metadata": {"booking_id": booking_id, "purpose": purpose},
            },
            idempotency_key=f"{booking_id}:{purpose}",
        )

    async def refund(self, booking_id, amount, currency, payment_reference) -> PaymentResult:
        return await self._post(
            "/refunds",
            {
                "payment": payment_reference,
                "amount": amount,
                "currency": currency,
                "metadata": {"booking_id": booking_id},
            },
            idempotency_key=f"{booking_id}:refund",
        )


_gateway: Optional[PaymentGateway] = None


def get_payment_gateway() -> PaymentGateway:
    """Get configured payment gateway singleton."""
    global _gateway
    if _gateway is None:
        if get_settings().PAYMENT_GATEWAY == "http":
            _gateway = HttpPaymentGateway()
        else:
            _gateway = SandboxPaymentGateway()
    return _gateway
