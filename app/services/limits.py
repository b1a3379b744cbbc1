# credit allotments per plan

from app.db.models import Account, Plan

SUBSCRIPTION_CREDITS: dict[Plan, int] = {
    Plan.BASIC: 100,
    Plan.PRO: 300,
    Plan.PREMIUM: 1000,
}

def has_credits(a: Account) -> bool:
    return a.credits > 0

def subscription_credits(plan: str) -> tuple[Plan, int] | None:
    try:
        p = Plan(plan)
    except ValueError:
        return None
    credits = SUBSCRIPTION_CREDITS.get(p)
    if credits is None:
        return None
    return p, credits
