# table structures (dataclass)

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Plan(str, Enum):
    FREE = "free"
    BETA = "beta"
    BASIC = "basic"
    PRO = "pro"
    PREMIUM = "premium"


@dataclass
class Account:
    email: str
    credits: int
    plan: Plan = Plan.FREE
    billing_customer_ref: Optional[str] = None
    name: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "email": self.email,
            "name": self.name,
            "credits": self.credits,
            "plan": self.plan.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class ChatRecord:
    email: str
    question: str
    answer: str
    model_used: str
    timestamp: datetime
    credits_used: int = 1


@dataclass
class Coupon:
    code: str
    max_uses: int
    credits_bonus: int
    current_uses: int = 0

    @property
    def exhausted(self) -> bool:
        return self.current_uses >= self.max_uses
