from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any

import stripe

from app.services.errors import InvalidSignature


@dataclass(frozen=True)
class StripeConfig:
    secret_key: str
    webhook_secret: str
    success_url: str
    cancel_url: str
    price_ids: dict[str, str] = field(default_factory=dict)


class StripeClient:
    TOLERANCE_SECONDS = 300

    def __init__(self, cfg: StripeConfig):
        self.cfg = cfg

    def construct_event(self, payload: bytes, sig_header: str | None) -> dict[str, Any]:
        """
        Verify the Stripe-Signature header and return the event as a plain dict.
        Raises InvalidSignature on a bad signature or a malformed body.
        """
        if not sig_header or not self.cfg.webhook_secret:
            raise InvalidSignature()
        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                body, sig_header, self.cfg.webhook_secret, self.TOLERANCE_SECONDS
            )
            event = json.loads(body)
        except stripe.SignatureVerificationError as e:
            raise InvalidSignature(f"Webhook Error: {e}") from e
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise InvalidSignature("Webhook Error: payload inválido") from e

        if not isinstance(event, dict) or "type" not in event:
            raise InvalidSignature("Webhook Error: payload inválido")
        return event

    async def create_checkout(
        self,
        *,
        email: str,
        price_id: str,
        metadata: dict[str, str],
    ) -> dict[str, Any]:
        """Returns the created checkout session (id, url)."""
        session = await asyncio.to_thread(
            stripe.checkout.Session.create,
            api_key=self.cfg.secret_key,
            mode="subscription",
            payment_method_types=["card"],
            line_items=[{"price": price_id, "quantity": 1}],
            success_url=self.cfg.success_url,
            cancel_url=self.cfg.cancel_url,
            customer_email=email,
            metadata=metadata,
            subscription_data={"metadata": metadata},
        )
        return {"id": session.id, "url": session.url}
