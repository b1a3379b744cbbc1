from __future__ import annotations

from typing import Any, List, Optional, Tuple

from app.db.models import Account, ChatRecord, Coupon, Plan
from app.services.errors import (
    AccountNotFound,
    CouponExhausted,
    CouponNotFound,
    InsufficientCredits,
)
from app.utils.time import now_local

PROFILE_COLUMNS = "email, name, credits, plan, stripe_customer_id, created_at"


class Repository:
    """
    Storage for accounts, chat history, coupons and processed billing events.

    Works over a FakeDatabase or an asyncpg.Pool. Every mutation that must not
    race (credit decrement, coupon use, event replay) is one conditional
    statement in Postgres; in fake mode it runs without awaiting, so no other
    task can interleave.
    """

    def __init__(self, db, tz: str, free_credits: int):
        self.db = db  # FakeDatabase or asyncpg.Pool
        self.tz = tz
        self.free_credits = free_credits

    def _is_fake(self) -> bool:
        return hasattr(self.db, "accounts") and hasattr(self.db, "chat_history")

    # -------------------- FAKE --------------------

    def _ensure_account_fake(
        self, email: str, name: str | None = None, credits: int | None = None
    ) -> Account:
        a = self.db.accounts.get(email)
        if a is None:
            a = Account(
                email=email,
                credits=self.free_credits if credits is None else credits,
                plan=Plan.FREE,
                name=name or email.split("@")[0],
                created_at=now_local(self.tz),
            )
            self.db.accounts[email] = a
        elif name:
            a.name = name
        return a

    def _use_coupon_fake(self, code: str) -> Coupon:
        c = self.db.coupons.get(code)
        if c is None:
            raise CouponNotFound()
        if c.exhausted:
            raise CouponExhausted()
        c.current_uses += 1
        return c

    # -------------------- POSTGRES --------------------

    def _row_to_account(self, row: Any) -> Account:
        return Account(
            email=row["email"],
            name=row["name"],
            credits=row["credits"],
            plan=Plan(row["plan"]),
            billing_customer_ref=row["stripe_customer_id"],
            created_at=row["created_at"],
        )

    async def _ensure_account_pg(
        self, conn, email: str, name: str | None = None, credits: int | None = None
    ) -> Account:
        await conn.execute(
            """
            INSERT INTO profiles (email, name, credits, plan, created_at)
            VALUES ($1, $2, $3, 'free', $4)
            ON CONFLICT (email) DO NOTHING
            """,
            email,
            name or email.split("@")[0],
            self.free_credits if credits is None else credits,
            now_local(self.tz),
        )
        if name:
            await conn.execute("UPDATE profiles SET name=$2 WHERE email=$1", email, name)

        row = await conn.fetchrow(
            f"SELECT {PROFILE_COLUMNS} FROM profiles WHERE email=$1 FOR UPDATE",
            email,
        )
        return self._row_to_account(row)

    async def _use_coupon_pg(self, conn, code: str) -> int:
        bonus = await conn.fetchval(
            """
            UPDATE coupons
            SET current_uses = current_uses + 1
            WHERE code=$1 AND current_uses < max_uses
            RETURNING credits_bonus
            """,
            code,
        )
        if bonus is not None:
            return bonus

        exists = await conn.fetchval("SELECT 1 FROM coupons WHERE code=$1", code)
        if exists:
            raise CouponExhausted()
        raise CouponNotFound()

    # -------------------- PUBLIC API --------------------

    async def get_account(self, email: str) -> Optional[Account]:
        if self._is_fake():
            return self.db.accounts.get(email)

        async with self.db.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {PROFILE_COLUMNS} FROM profiles WHERE email=$1",
                email,
            )
            return self._row_to_account(row) if row else None

    async def ensure_account(self, email: str, name: str | None = None) -> Account:
        if self._is_fake():
            return self._ensure_account_fake(email, name)

        async with self.db.acquire() as conn:
            async with conn.transaction():
                return await self._ensure_account_pg(conn, email, name)

    async def consume_credit(self, email: str, record: ChatRecord | None = None) -> int:
        """
        Decrement-if-positive, optionally appending the chat record in the
        same transaction. Returns the remaining credits.
        """
        if self._is_fake():
            a = self.db.accounts.get(email)
            if a is None:
                raise AccountNotFound()
            if a.credits <= 0:
                raise InsufficientCredits()
            a.credits -= 1
            if record is not None:
                self.db.chat_history.append(record)
            return a.credits

        async with self.db.acquire() as conn:
            async with conn.transaction():
                remaining = await conn.fetchval(
                    """
                    UPDATE profiles
                    SET credits = credits - 1
                    WHERE email=$1 AND credits > 0
                    RETURNING credits
                    """,
                    email,
                )
                if remaining is None:
                    exists = await conn.fetchval("SELECT 1 FROM profiles WHERE email=$1", email)
                    if not exists:
                        raise AccountNotFound()
                    raise InsufficientCredits()

                if record is not None:
                    await conn.execute(
                        """
                        INSERT INTO chat_history
                            (user_email, question, answer, model_used, credits_used, created_at)
                        VALUES ($1, $2, $3, $4, $5, $6)
                        """,
                        record.email,
                        record.question,
                        record.answer,
                        record.model_used,
                        record.credits_used,
                        record.timestamp,
                    )
                return remaining

    async def grant_bonus(
        self,
        email: str,
        amount: int,
        plan: Plan,
        coupon_code: str | None = None,
    ) -> Account:
        if self._is_fake():
            if coupon_code is not None:
                self._use_coupon_fake(coupon_code)
            # a bonus on an unknown address starts from zero, not the free allotment
            a = self._ensure_account_fake(email, credits=0)
            a.credits += amount
            a.plan = plan
            return a

        async with self.db.acquire() as conn:
            async with conn.transaction():
                if coupon_code is not None:
                    await self._use_coupon_pg(conn, coupon_code)
                await self._ensure_account_pg(conn, email, credits=0)
                row = await conn.fetchrow(
                    f"""
                    UPDATE profiles
                    SET credits = credits + $2,
                        plan=$3
                    WHERE email=$1
                    RETURNING {PROFILE_COLUMNS}
                    """,
                    email,
                    amount,
                    plan.value,
                )
                return self._row_to_account(row)

    async def reset_for_subscription(
        self,
        email: str,
        plan: Plan,
        credits: int,
        billing_customer_ref: str | None,
        event_id: str | None = None,
    ) -> Tuple[bool, Account]:
        """
        Replace credits and plan. An event_id seen before leaves the account
        untouched; returns (applied, account).
        """
        if self._is_fake():
            if event_id is not None:
                if event_id in self.db.processed_events:
                    return False, self._ensure_account_fake(email)
                self.db.processed_events.add(event_id)
            a = self._ensure_account_fake(email)
            a.plan = plan
            a.credits = credits
            if billing_customer_ref:
                a.billing_customer_ref = billing_customer_ref
            return True, a

        async with self.db.acquire() as conn:
            async with conn.transaction():
                if event_id is not None:
                    inserted = await conn.fetchval(
                        """
                        INSERT INTO processed_events (event_id)
                        VALUES ($1)
                        ON CONFLICT (event_id) DO NOTHING
                        RETURNING event_id
                        """,
                        event_id,
                    )
                    if inserted is None:
                        return False, await self._ensure_account_pg(conn, email)

                await self._ensure_account_pg(conn, email)
                row = await conn.fetchrow(
                    f"""
                    UPDATE profiles
                    SET plan=$2,
                        credits=$3,
                        stripe_customer_id=COALESCE($4, stripe_customer_id)
                    WHERE email=$1
                    RETURNING {PROFILE_COLUMNS}
                    """,
                    email,
                    plan.value,
                    credits,
                    billing_customer_ref,
                )
                return True, self._row_to_account(row)

    async def get_coupon(self, code: str) -> Optional[Coupon]:
        if self._is_fake():
            return self.db.coupons.get(code)

        async with self.db.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT code, max_uses, current_uses, credits_bonus FROM coupons WHERE code=$1",
                code,
            )
            if not row:
                return None
            return Coupon(
                code=row["code"],
                max_uses=row["max_uses"],
                current_uses=row["current_uses"],
                credits_bonus=row["credits_bonus"],
            )

    async def upsert_coupon(self, coupon: Coupon) -> None:
        if self._is_fake():
            self.db.coupons[coupon.code] = coupon
            return

        async with self.db.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO coupons (code, max_uses, current_uses, credits_bonus)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (code) DO UPDATE
                SET max_uses=EXCLUDED.max_uses,
                    credits_bonus=EXCLUDED.credits_bonus
                """,
                coupon.code,
                coupon.max_uses,
                coupon.current_uses,
                coupon.credits_bonus,
            )

    async def get_chat_history(self, email: str, limit: int = 20) -> List[ChatRecord]:
        if limit <= 0:
            return []
        if self._is_fake():
            items = [r for r in self.db.chat_history if r.email == email]
            items.sort(key=lambda r: r.timestamp)
            return items[-limit:]

        async with self.db.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT user_email, question, answer, model_used, credits_used, created_at
                FROM chat_history
                WHERE user_email=$1
                ORDER BY created_at DESC
                LIMIT $2
                """,
                email,
                limit,
            )
            return [
                ChatRecord(
                    email=r["user_email"],
                    question=r["question"],
                    answer=r["answer"],
                    model_used=r["model_used"],
                    credits_used=r["credits_used"],
                    timestamp=r["created_at"],
                )
                for r in reversed(rows)
            ]
