"""Signed gateway webhooks: ``payment.failed`` fails the order, captures settle it."""

from __future__ import annotations

import json
from typing import Any, Optional

from domain_errors import InvalidRequest, InvalidSignature, NotFound
from loguru import logger
from pydantic import BaseModel

from .config import PaymentSettings
from .models import SettlementSource
from .signatures import verify_webhook_signature
from .verifier import PaymentVerifier

SETTLE_EVENTS = {"payment.captured", "order.paid"}
FAIL_EVENTS = {"payment.failed"}


class WebhookOutcome(BaseModel):
    event: str
    order_id: Optional[str] = None
    action: str  # settled | failed | ignored


def _payment_entity(payload: dict[str, Any]) -> dict[str, Any]:
    payment = (payload.get("payment") or {}).get("entity") or {}
    return payment if isinstance(payment, dict) else {}


def _order_entity(payload: dict[str, Any]) -> dict[str, Any]:
    order = (payload.get("order") or {}).get("entity") or {}
    return order if isinstance(order, dict) else {}


class WebhookProcessor:
    def __init__(self, settings: PaymentSettings, verifier: PaymentVerifier):
        self.settings = settings
        self.verifier = verifier

    async def handle(self, body: bytes, signature: Optional[str]) -> WebhookOutcome:
        """Authenticate ``body`` against ``signature`` and apply the event."""

        if not verify_webhook_signature(body, signature, self.settings.webhook_secret):
            logger.warning("Rejected webhook with invalid signature")
            raise InvalidSignature("Invalid webhook signature")

        try:
            envelope = json.loads(body)
        except ValueError as exc:
            raise InvalidRequest("Malformed webhook body") from exc
        if not isinstance(envelope, dict):
            raise InvalidRequest("Malformed webhook body")

        event = str(envelope.get("event") or "")
        payload = envelope.get("payload") or {}
        payment = _payment_entity(payload)
        order_id = payment.get("order_id") or _order_entity(payload).get("id")

        if event not in SETTLE_EVENTS | FAIL_EVENTS or not order_id:
            logger.debug("Ignoring webhook event {event}", event=event)
            return WebhookOutcome(event=event, order_id=order_id, action="ignored")

        if event in FAIL_EVENTS:
            updated = await self.verifier.mark_failed(
                order_id,
                reason=payment.get("error_description"),
                error_code=payment.get("error_code"),
            )
            return WebhookOutcome(
                event=event,
                order_id=order_id,
                action="failed" if updated is not None else "ignored",
            )

        payment_id = payment.get("id")
        if not payment_id:
            logger.info("Webhook {event} for {order_id} has no payment id", event=event, order_id=order_id)
            return WebhookOutcome(event=event, order_id=order_id, action="ignored")

        try:
            await self.verifier.settle(order_id, payment_id, source=SettlementSource.WEBHOOK)
        except NotFound:
            # Orders opened elsewhere on the same gateway account.
            logger.info("Webhook {event} for unknown order {order_id}", event=event, order_id=order_id)
            return WebhookOutcome(event=event, order_id=order_id, action="ignored")
        except InvalidRequest as exc:
            logger.info(
                "Webhook {event} for order {order_id} not applied: {reason}",
                event=event,
                order_id=order_id,
                reason=exc.message,
            )
            return WebhookOutcome(event=event, order_id=order_id, action="ignored")
        return WebhookOutcome(event=event, order_id=order_id, action="settled")
