import hashlib
import hmac
import json
import time

import pytest

from app.db.connection import FakeDatabase
from app.db.repository import Repository
from app.services.cache import ResponseCache
from app.services.chat import ChatOrchestrator
from app.services.coupons import CouponRedeemer
from app.services.errors import ProviderUnavailable
from app.services.ledger import Ledger
from app.services.payments import PaymentEventProcessor
from app.services.providers import ProviderParams, ProviderRegistry, TextClient
from app.services.stripe_client import StripeClient, StripeConfig

TZ = "America/Sao_Paulo"
WEBHOOK_SECRET = "whsec_test_secret"


class FakeTextClient(TextClient):
    """Answers with a canned text, or raises when fail is set."""

    def __init__(self, name: str, answer: str = "resposta", fail: bool = False):
        self.name = name
        self.answer = answer
        self.fail = fail
        self.calls = []

    def generate(self, system_prompt: str, message: str, params: ProviderParams) -> str:
        self.calls.append((system_prompt, message, params))
        if self.fail:
            raise ProviderUnavailable(f"{self.name} down")
        return f"{self.answer}: {message}"


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def repo(db):
    return Repository(db=db, tz=TZ, free_credits=5)


@pytest.fixture
def ledger(repo):
    return Ledger(repo)


@pytest.fixture
def backends():
    return {
        "gpt-4o-mini": FakeTextClient("openai"),
        "claude-3": FakeTextClient("anthropic"),
        "gemini": FakeTextClient("gemini"),
    }


@pytest.fixture
def providers(backends):
    registry = ProviderRegistry(default="gpt-4o-mini")
    for model_id, client in backends.items():
        registry.register(model_id, client)
    return registry


@pytest.fixture
def cache():
    return ResponseCache(prefix_len=50, max_entries=100)


@pytest.fixture
def orchestrator(ledger, providers, cache):
    return ChatOrchestrator(ledger=ledger, providers=providers, cache=cache, tz=TZ)


@pytest.fixture
def redeemer(ledger, repo):
    return CouponRedeemer(ledger=ledger, repo=repo)


@pytest.fixture
def stripe_client():
    return StripeClient(
        StripeConfig(
            secret_key="sk_test_123",
            webhook_secret=WEBHOOK_SECRET,
            success_url="https://example.test/success",
            cancel_url="https://example.test/cancel",
            price_ids={"basic": "price_basic", "pro": "price_pro", "premium": "price_premium"},
        )
    )


@pytest.fixture
def payments(ledger, stripe_client):
    return PaymentEventProcessor(ledger=ledger, stripe_client=stripe_client)


@pytest.fixture
def sign():
    """Builds a Stripe-Signature header for a payload."""

    def _sign(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
        ts = timestamp if timestamp is not None else int(time.time())
        digest = hmac.new(secret.encode(), f"{ts}.{payload}".encode(), hashlib.sha256).hexdigest()
        return f"t={ts},v1={digest}"

    return _sign


@pytest.fixture
def checkout_event():
    def _event(event_id: str = "evt_1", email: str = "ana@example.com", plan: str = "pro") -> str:
        return json.dumps({
            "id": event_id,
            "type": "checkout.session.completed",
            "data": {"object": {"customer": "cus_123", "metadata": {"email": email, "plan": plan}}},
        })

    return _event
