import logging
from typing import Any, Dict

from app.services.errors import InvalidRequest, ProviderUnavailable
from app.services.ledger import Ledger
from app.services.limits import SUBSCRIPTION_CREDITS, subscription_credits
from app.services.stripe_client import StripeClient

logger = logging.getLogger("payments")


def _invoice_metadata(invoice: Dict[str, Any]) -> Dict[str, Any]:
    # newer API versions nest subscription details under "parent"
    parent = invoice.get("parent") or {}
    details = parent.get("subscription_details") or invoice.get("subscription_details") or {}
    return details.get("metadata") or {}


class PaymentEventProcessor:
    """
    Turns signed Stripe events into ledger resets.

    Delivery is at-least-once: the event id goes to the ledger so a replay is
    acknowledged without crediting again.
    """

    def __init__(self, ledger: Ledger, stripe_client: StripeClient):
        self.ledger = ledger
        self.stripe = stripe_client
        self._handlers = {
            "checkout.session.completed": self._on_checkout_completed,
            "invoice.paid": self._on_invoice_paid,
        }

    async def handle(self, payload: bytes, sig_header: str | None) -> Dict[str, Any]:
        event = self.stripe.construct_event(payload, sig_header)

        handler = self._handlers.get(event["type"])
        if handler is None:
            logger.info("event=%s | type=%s ignored", event.get("id"), event["type"])
            return {"received": True}

        obj = (event.get("data") or {}).get("object") or {}
        await handler(event.get("id"), obj)
        return {"received": True}

    async def _on_checkout_completed(self, event_id: str | None, session: Dict[str, Any]) -> None:
        await self._reset(event_id, session.get("metadata") or {}, session.get("customer"))

    async def _on_invoice_paid(self, event_id: str | None, invoice: Dict[str, Any]) -> None:
        # the first invoice of a subscription is covered by checkout.session.completed
        if invoice.get("billing_reason") != "subscription_cycle":
            logger.info("event=%s | invoice billing_reason=%s ignored", event_id, invoice.get("billing_reason"))
            return
        await self._reset(event_id, _invoice_metadata(invoice), invoice.get("customer"))

    async def _reset(self, event_id: str | None, metadata: Dict[str, Any], customer: str | None) -> None:
        email = metadata.get("email")
        allotment = subscription_credits(metadata.get("plan") or "")
        if not email or allotment is None:
            logger.warning("event=%s | missing email/plan in metadata: %r", event_id, metadata)
            return

        plan, credits = allotment
        await self.ledger.reset_for_subscription(
            email, plan, credits, customer, event_id=event_id
        )

    async def create_checkout(self, email: str, plan: str) -> str:
        if not email:
            raise InvalidRequest("Email obrigatório")
        allotment = subscription_credits(plan or "")
        price_id = self.stripe.cfg.price_ids.get(plan or "")
        if allotment is None or not price_id:
            raise InvalidRequest(
                f"Plano inválido. Opções: {', '.join(p.value for p in SUBSCRIPTION_CREDITS)}"
            )

        try:
            session = await self.stripe.create_checkout(
                email=email,
                price_id=price_id,
                metadata={"email": email, "plan": plan},
            )
        except Exception as e:
            logger.exception("checkout creation failed for email=%s: %r", email, e)
            raise ProviderUnavailable("Erro ao criar checkout") from e

        logger.info("email=%s | plan=%s | checkout=%s", email, plan, session["id"])
        return session["url"]
