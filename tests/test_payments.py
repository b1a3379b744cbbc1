"""Tests for Stripe webhook processing and checkout creation."""

import json
from unittest.mock import MagicMock, patch

import pytest

from app.db.models import Plan
from app.services.errors import InvalidRequest, InvalidSignature, ProviderUnavailable


class TestWebhookSignature:
    @pytest.mark.asyncio
    async def test_bad_signature_mutates_nothing(self, payments, checkout_event, sign, db):
        payload = checkout_event()

        with pytest.raises(InvalidSignature) as exc_info:
            await payments.handle(payload.encode(), sign(payload, secret="whsec_other"))

        assert exc_info.value.status == 400
        assert db.accounts == {}

    @pytest.mark.asyncio
    async def test_missing_header(self, payments, checkout_event):
        with pytest.raises(InvalidSignature):
            await payments.handle(checkout_event().encode(), None)

    @pytest.mark.asyncio
    async def test_stale_timestamp_is_rejected(self, payments, checkout_event, sign):
        payload = checkout_event()

        with pytest.raises(InvalidSignature):
            await payments.handle(payload.encode(), sign(payload, timestamp=1_000_000))

    @pytest.mark.asyncio
    async def test_signed_garbage_is_rejected(self, payments, sign):
        payload = "not json"

        with pytest.raises(InvalidSignature):
            await payments.handle(payload.encode(), sign(payload))


class TestSubscriptionEvents:
    @pytest.mark.asyncio
    async def test_checkout_completed_resets_account(self, payments, checkout_event, sign, db):
        payload = checkout_event(plan="pro")

        result = await payments.handle(payload.encode(), sign(payload))

        account = db.accounts["ana@example.com"]
        assert result == {"received": True}
        assert account.plan == Plan.PRO
        assert account.credits == 300
        assert account.billing_customer_ref == "cus_123"

    @pytest.mark.asyncio
    async def test_duplicate_delivery_does_not_double_credit(self, payments, checkout_event, sign, db):
        payload = checkout_event(event_id="evt_dup", plan="basic")

        await payments.handle(payload.encode(), sign(payload))
        await payments.handle(payload.encode(), sign(payload))

        assert db.accounts["ana@example.com"].credits == 100

    @pytest.mark.asyncio
    async def test_renewal_invoice_resets_credits(self, payments, sign, db, ledger):
        await ledger.reset_for_subscription("ana@example.com", Plan.PREMIUM, 1000, "cus_123")
        for _ in range(3):
            await ledger.consume("ana@example.com")
        payload = json.dumps({
            "id": "evt_renew",
            "type": "invoice.paid",
            "data": {"object": {
                "customer": "cus_123",
                "billing_reason": "subscription_cycle",
                "parent": {"subscription_details": {"metadata": {"email": "ana@example.com", "plan": "premium"}}},
            }},
        })

        await payments.handle(payload.encode(), sign(payload))

        assert db.accounts["ana@example.com"].credits == 1000

    @pytest.mark.asyncio
    async def test_first_invoice_is_left_to_checkout(self, payments, sign, db):
        payload = json.dumps({
            "id": "evt_first",
            "type": "invoice.paid",
            "data": {"object": {
                "billing_reason": "subscription_create",
                "subscription_details": {"metadata": {"email": "ana@example.com", "plan": "pro"}},
            }},
        })

        assert await payments.handle(payload.encode(), sign(payload)) == {"received": True}
        assert db.accounts == {}

    @pytest.mark.asyncio
    async def test_other_event_types_are_acknowledged(self, payments, sign, db):
        payload = json.dumps({"id": "evt_x", "type": "customer.created", "data": {"object": {}}})

        assert await payments.handle(payload.encode(), sign(payload)) == {"received": True}
        assert db.accounts == {}

    @pytest.mark.asyncio
    async def test_unknown_plan_is_acknowledged_and_ignored(self, payments, checkout_event, sign, db):
        payload = checkout_event(plan="beta")

        assert await payments.handle(payload.encode(), sign(payload)) == {"received": True}
        assert db.accounts == {}


class TestCreateCheckout:
    @pytest.mark.asyncio
    async def test_checkout_carries_email_and_plan(self, payments):
        session = MagicMock(id="cs_test_1", url="https://checkout.stripe.com/c/cs_test_1")
        with patch("app.services.stripe_client.stripe.checkout.Session.create", return_value=session) as mock_create:
            url = await payments.create_checkout("ana@example.com", "pro")

        assert url == "https://checkout.stripe.com/c/cs_test_1"
        kwargs = mock_create.call_args.kwargs
        assert kwargs["mode"] == "subscription"
        assert kwargs["line_items"] == [{"price": "price_pro", "quantity": 1}]
        assert kwargs["metadata"] == {"email": "ana@example.com", "plan": "pro"}
        assert kwargs["subscription_data"] == {"metadata": {"email": "ana@example.com", "plan": "pro"}}
        assert kwargs["customer_email"] == "ana@example.com"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("plan", ["", "free", "gold"])
    async def test_invalid_plan(self, payments, plan):
        with pytest.raises(InvalidRequest):
            await payments.create_checkout("ana@example.com", plan)

    @pytest.mark.asyncio
    async def test_processor_failure(self, payments):
        with patch(
            "app.services.stripe_client.stripe.checkout.Session.create",
            side_effect=RuntimeError("stripe down"),
        ):
            with pytest.raises(ProviderUnavailable):
                await payments.create_checkout("ana@example.com", "basic")
