from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Set

from app.db.models import Account, ChatRecord, Coupon

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS profiles (
    email TEXT PRIMARY KEY,
    name TEXT,
    credits INTEGER NOT NULL CHECK (credits >= 0),
    plan TEXT NOT NULL DEFAULT 'free',
    stripe_customer_id TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS chat_history (
    id BIGSERIAL PRIMARY KEY,
    user_email TEXT NOT NULL REFERENCES profiles(email),
    question TEXT NOT NULL,
    answer TEXT NOT NULL,
    model_used TEXT NOT NULL,
    credits_used INTEGER NOT NULL DEFAULT 1,
    created_at TIMESTAMPTZ NOT NULL
);

CREATE TABLE IF NOT EXISTS coupons (
    code TEXT PRIMARY KEY,
    max_uses INTEGER NOT NULL,
    current_uses INTEGER NOT NULL DEFAULT 0 CHECK (current_uses <= max_uses),
    credits_bonus INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS processed_events (
    event_id TEXT PRIMARY KEY,
    processed_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

@dataclass
class FakeDatabase:
    accounts: Dict[str, Account] = field(default_factory=dict)  # key = email
    chat_history: List[ChatRecord] = field(default_factory=list)
    coupons: Dict[str, Coupon] = field(default_factory=dict)  # key = code
    processed_events: Set[str] = field(default_factory=set)

async def get_db(use_fake: bool, dsn: str):
    """
    use_fake=True -> FakeDatabase.
    Otherwise -> asyncpg pool with the schema in place.
    """
    if use_fake:
        return FakeDatabase()

    import asyncpg  # the fake mode runs without asyncpg installed
    pool = await asyncpg.create_pool(dsn=dsn, min_size=1, max_size=10)
    async with pool.acquire() as conn:
        await conn.execute(SCHEMA_SQL)
    return pool
