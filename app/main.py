import asyncio
import logging
from aiohttp import web

from app.config import Settings, settings
from app.db.connection import get_db
from app.db.repository import Repository
from app.services.anthropic_client import ClaudeClient
from app.services.cache import ResponseCache
from app.services.chat import ChatOrchestrator
from app.services.coupons import CouponRedeemer
from app.services.gemini_client import GeminiClient
from app.services.ledger import Ledger
from app.services.openai_client import OpenAIClient
from app.services.payments import PaymentEventProcessor
from app.services.providers import ProviderParams, ProviderRegistry
from app.services.stripe_client import StripeClient, StripeConfig
from app.web.handlers import create_app

logger = logging.getLogger("main")


def build_providers(s: Settings) -> ProviderRegistry:
    providers = ProviderRegistry(
        default=s.openai_model,
        params=ProviderParams(max_tokens=s.max_tokens, temperature=s.temperature),
    )
    # the default entry is always present; the others only when configured
    providers.register(s.openai_model, OpenAIClient(api_key=s.openai_api_key, model=s.openai_model))
    if s.openai_model != "gpt-4o":
        providers.register("gpt-4o", OpenAIClient(api_key=s.openai_api_key, model="gpt-4o"))
    if s.claude_api_key:
        providers.register("claude-3", ClaudeClient(api_key=s.claude_api_key, model=s.claude_model))
    if s.gemini_api_key:
        providers.register("gemini", GeminiClient(api_key=s.gemini_api_key, model=s.gemini_model))
    return providers


async def build_app(s: Settings) -> web.Application:
    db = await get_db(use_fake=s.use_fake_db, dsn=s.pg_dsn)
    repo = Repository(db=db, tz=s.tz, free_credits=s.free_credits)
    ledger = Ledger(repo)

    stripe_client = StripeClient(
        StripeConfig(
            secret_key=s.stripe_secret_key,
            webhook_secret=s.stripe_webhook_secret,
            success_url=s.stripe_success_url,
            cancel_url=s.stripe_cancel_url,
            price_ids=s.stripe_price_ids,
        )
    )

    return create_app(
        ledger=ledger,
        chat_orchestrator=ChatOrchestrator(
            ledger=ledger,
            providers=build_providers(s),
            cache=ResponseCache(prefix_len=s.cache_prefix_len, max_entries=s.cache_max_entries),
            tz=s.tz,
        ),
        coupons=CouponRedeemer(ledger=ledger, repo=repo),
        payments=PaymentEventProcessor(ledger=ledger, stripe_client=stripe_client),
    )


async def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    app = await build_app(settings)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, settings.host, settings.port)
    await site.start()
    logger.info("OABOT API v3.0 listening on %s:%s (fake_db=%s)", settings.host, settings.port, settings.use_fake_db)

    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()


if __name__ == "__main__":
    asyncio.run(main())
