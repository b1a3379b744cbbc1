# HTTP routes: chat, registration, credits, coupons, payments

import json
import logging
from datetime import datetime, timezone

from aiohttp import web

from app.services.chat import ChatOrchestrator
from app.services.coupons import CouponRedeemer
from app.services.errors import InvalidRequest, ServiceError
from app.services.ledger import Ledger
from app.services.payments import PaymentEventProcessor

logger = logging.getLogger("web")

routes = web.RouteTableDef()

LEDGER = web.AppKey("ledger", Ledger)
CHAT = web.AppKey("chat", ChatOrchestrator)
COUPONS = web.AppKey("coupons", CouponRedeemer)
PAYMENTS = web.AppKey("payments", PaymentEventProcessor)


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except ServiceError as e:
        if e.status >= 500:
            logger.warning("%s %s failed: %r", request.method, request.path, e.__cause__ or e)
        return web.json_response(e.to_dict(), status=e.status)
    except web.HTTPException:
        raise
    except Exception:
        logger.exception("unhandled error on %s %s", request.method, request.path)
        return web.json_response({"error": "Erro no processamento"}, status=500)


async def _json(request: web.Request) -> dict:
    try:
        body = await request.json()
    except json.JSONDecodeError as e:
        raise InvalidRequest("JSON inválido") from e
    if not isinstance(body, dict):
        raise InvalidRequest("JSON inválido")
    return body


@routes.get("/")
async def status(request: web.Request):
    return web.json_response({
        "status": "online",
        "service": "OABOT API v3.0",
        "features": [
            "Multi-AI (OpenAI, Claude, Gemini)",
            "Stripe Payments",
            "Coupons",
            "Response Caching",
        ],
        "models": request.app[CHAT].providers.models(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


@routes.post("/chat")
async def chat(request: web.Request):
    body = await _json(request)
    use_cache = body.get("useCache", True)
    if not isinstance(use_cache, bool):
        raise InvalidRequest("useCache deve ser booleano")
    result = await request.app[CHAT].ask(
        email=body.get("email") or "",
        message=body.get("message") or "",
        model=body.get("model"),
        use_cache=use_cache,
    )
    return web.json_response(result.to_dict())


@routes.post("/api/register")
async def register(request: web.Request):
    body = await _json(request)
    email = (body.get("email") or "").strip()
    if not email:
        raise InvalidRequest("Email obrigatório")

    account = await request.app[LEDGER].register(email, body.get("name"))
    if body.get("coupon"):
        await request.app[COUPONS].redeem(email, body["coupon"])
        account = await request.app[LEDGER].balance(email)

    return web.json_response({"success": True, "user": account.to_dict()})


@routes.get("/api/credits/{email}")
async def credits(request: web.Request):
    email = request.match_info["email"]
    account = await request.app[LEDGER].balance(email)
    return web.json_response({
        "email": email,
        "credits": account.credits,
        "plan": account.plan.value,
    })


@routes.post("/coupon/apply")
async def apply_coupon(request: web.Request):
    body = await _json(request)
    added = await request.app[COUPONS].redeem(body.get("email") or "", body.get("code") or "")
    return web.json_response({"success": True, "credits_added": added})


@routes.post("/payment/create-checkout")
async def create_checkout(request: web.Request):
    body = await _json(request)
    url = await request.app[PAYMENTS].create_checkout(body.get("email") or "", body.get("plan") or "")
    return web.json_response({"checkout_url": url})


@routes.post("/payment/webhook")
async def payment_webhook(request: web.Request):
    payload = await request.read()
    result = await request.app[PAYMENTS].handle(payload, request.headers.get("Stripe-Signature"))
    return web.json_response(result)


def create_app(
    ledger: Ledger,
    chat_orchestrator: ChatOrchestrator,
    coupons: CouponRedeemer,
    payments: PaymentEventProcessor,
) -> web.Application:
    app = web.Application(middlewares=[error_middleware])
    app[LEDGER] = ledger
    app[CHAT] = chat_orchestrator
    app[COUPONS] = coupons
    app[PAYMENTS] = payments
    app.add_routes(routes)
    return app
