import logging

from app.db.models import Plan
from app.db.repository import Repository
from app.services.errors import CouponExhausted, CouponNotFound, InvalidRequest
from app.services.ledger import Ledger

logger = logging.getLogger("coupons")


class CouponRedeemer:
    def __init__(self, ledger: Ledger, repo: Repository):
        self.ledger = ledger
        self.repo = repo

    async def redeem(self, email: str, code: str) -> int:
        """
        Grants the coupon's bonus and moves the account to the beta plan.
        The use-counter increment and the grant are one transaction.
        """
        code = (code or "").strip()
        if not email or not code:
            raise InvalidRequest("Email e cupom obrigatórios")

        coupon = await self.repo.get_coupon(code)
        if coupon is None:
            raise CouponNotFound()
        if coupon.exhausted:
            raise CouponExhausted()

        # the bounded increment inside grant_bonus is the authoritative check
        await self.ledger.grant_bonus(email, coupon.credits_bonus, Plan.BETA, coupon_code=code)
        logger.info("email=%s | coupon=%s | credits_added=%s", email, code, coupon.credits_bonus)
        return coupon.credits_bonus
