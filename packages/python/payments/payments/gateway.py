"""Razorpay Orders API client."""

from __future__ import annotations

import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Protocol

import httpx
from domain_errors import UpstreamFailure
from loguru import logger

from .config import PaymentSettings
from .models import GatewayOrder

CURRENCY_CODES = {
    "dollar": "USD",
    "rupee": "INR",
}

# Razorpay rejects receipts longer than this.
MAX_RECEIPT_LENGTH = 40


def currency_code(currency: str) -> str:
    try:
        return CURRENCY_CODES[getattr(currency, "value", currency)]
    except KeyError as exc:
        raise ValueError(f"Unsupported currency: {currency}") from exc


def to_minor_units(amount: float | Decimal | str) -> int:
    """Convert a major-unit price to an integer count of minor units (half-up)."""

    value = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return int(value * 100)


class PaymentGateway(Protocol):
    key_id: str

    async def create_order(
        self,
        *,
        amount: int,
        currency: str,
        receipt: str,
        notes: Optional[dict[str, str]] = None,
    ) -> GatewayOrder:
        ...


class RazorpayGateway:
    def __init__(self, settings: PaymentSettings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client

    @property
    def key_id(self) -> str:
        return self.settings.key_id

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def create_order(
        self,
        *,
        amount: int,
        currency: str,
        receipt: str,
        notes: Optional[dict[str, str]] = None,
    ) -> GatewayOrder:
        """Open an order for ``amount`` minor units; raises UpstreamFailure on any error."""

        url = f"{self.settings.api_base_url.rstrip('/')}/orders"
        body = {
            "amount": amount,
            "currency": currency,
            "receipt": receipt[:MAX_RECEIPT_LENGTH],
            "notes": notes or {},
        }

        start = time.perf_counter()
        try:
            resp = await self._get_client().post(
                url,
                json=body,
                auth=(self.settings.key_id, self.settings.key_secret),
                timeout=self.settings.timeout_seconds,
            )
        except httpx.RequestError as exc:
            duration = (time.perf_counter() - start) * 1000
            logger.warning(
                "Razorpay order request failed after {duration:.2f} ms: {error}",
                duration=duration,
                error=exc,
            )
            raise UpstreamFailure("Payment gateway unavailable") from exc

        duration = (time.perf_counter() - start) * 1000
        logger.debug(
            "Razorpay create order responded with {status} in {duration:.2f} ms",
            status=resp.status_code,
            duration=duration,
        )

        if not resp.is_success:
            logger.error(
                "Razorpay rejected order ({status}): {body}",
                status=resp.status_code,
                body=resp.text[:500],
            )
            raise UpstreamFailure("Payment gateway error")

        try:
            return GatewayOrder.model_validate(resp.json())
        except ValueError as exc:
            raise UpstreamFailure("Payment gateway returned an invalid order") from exc
