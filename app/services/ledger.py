import logging
from typing import Tuple

from app.db.models import Account, ChatRecord, Plan
from app.db.repository import Repository
from app.services.errors import InsufficientCredits
from app.services.limits import has_credits

logger = logging.getLogger("ledger")


class Ledger:
    """
    Credit balance and plan of an account.

    Accounts are provisioned lazily wherever a request writes to the ledger:
    authorize, register and reset_for_subscription start from the free
    allotment, grant_bonus starts from zero. Reads (balance, peek) never
    provision. consume is never an entry point: it expects an account that
    authorize has already seen.
    """

    def __init__(self, repo: Repository):
        self.repo = repo

    async def authorize(self, email: str) -> Tuple[bool, int]:
        a = await self.repo.ensure_account(email)
        if not has_credits(a):
            raise InsufficientCredits()
        return True, a.credits

    async def consume(self, email: str, record: ChatRecord | None = None) -> int:
        remaining = await self.repo.consume_credit(email, record)
        logger.info("email=%s | consumed=1 | remaining=%s", email, remaining)
        return remaining

    async def grant_bonus(
        self,
        email: str,
        amount: int,
        plan: Plan,
        coupon_code: str | None = None,
    ) -> Account:
        a = await self.repo.grant_bonus(email, amount, plan, coupon_code=coupon_code)
        logger.info("email=%s | bonus=%s | plan=%s | credits=%s", email, amount, plan.value, a.credits)
        return a

    async def reset_for_subscription(
        self,
        email: str,
        plan: Plan,
        credits: int,
        billing_customer_ref: str | None,
        event_id: str | None = None,
    ) -> bool:
        applied, a = await self.repo.reset_for_subscription(
            email, plan, credits, billing_customer_ref, event_id=event_id
        )
        if applied:
            logger.info("email=%s | reset plan=%s | credits=%s", email, plan.value, a.credits)
        else:
            logger.info("email=%s | event=%s already processed, skipping reset", email, event_id)
        return applied

    async def register(self, email: str, name: str | None = None) -> Account:
        return await self.repo.ensure_account(email, name)

    async def balance(self, email: str) -> Account:
        # read-only: an unknown address reports what it would be provisioned with
        a = await self.repo.get_account(email)
        if a is None:
            return Account(email=email, credits=self.repo.free_credits, plan=Plan.FREE)
        return a

    async def peek(self, email: str) -> int:
        return (await self.balance(email)).credits
