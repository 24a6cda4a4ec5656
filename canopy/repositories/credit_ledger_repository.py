"""Repository for credit, points and subscription storage operations."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from uuid import UUID

from sqlalchemy import and_, select, update, func
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import InterfaceError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.billing.plans import (
    CreditType,
    parse_credit_type,
    parse_plan_tier,
    parse_subscription_status,
)
from canopy.errors import TransientStorageError
from canopy.models.credit_balance import CreditBalance
from canopy.models.points_balance import PointsBalance
from canopy.models.subscription import Subscription
from canopy.repositories.ledger_store import SubscriptionRecord

_TRANSIENT_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)


class CreditLedgerRepository:
    """
    SQLAlchemy implementation of LedgerStore.

    Each operation runs in its own savepoint so a failed statement can be
    retried on the same session without aborting the outer transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def _guard(self) -> AsyncIterator[None]:
        try:
            async with self.db.begin_nested():
                yield
        except _TRANSIENT_ERRORS as exc:
            raise TransientStorageError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Credits
    # ------------------------------------------------------------------
    async def read_credit_balance(self, organization_id: str, credit_type: CreditType) -> int:
        async with self._guard():
            result = await self.db.execute(
                select(CreditBalance.balance).where(
                    and_(
                        CreditBalance.tenant_id == UUID(organization_id),
                        CreditBalance.credit_type == credit_type.value,
                    )
                )
            )
            balance = result.scalar_one_or_none()
        return int(balance or 0)

    async def read_credit_balances(self, organization_id: str) -> dict[CreditType, int]:
        async with self._guard():
            result = await self.db.execute(
                select(CreditBalance.credit_type, CreditBalance.balance).where(
                    CreditBalance.tenant_id == UUID(organization_id)
                )
            )
            rows = result.all()
        return {parse_credit_type(credit_type): int(balance) for credit_type, balance in rows}

    async def increment_credits(self, organization_id: str, credit_type: CreditType, amount: int) -> int:
        stmt = (
            insert(CreditBalance)
            .values(
                tenant_id=UUID(organization_id),
                credit_type=credit_type.value,
                balance=amount,
            )
            .on_conflict_do_update(
                index_elements=[CreditBalance.tenant_id, CreditBalance.credit_type],
                set_={
                    "balance": CreditBalance.balance + amount,
                    "updated_at": func.now(),
                },
            )
            .returning(CreditBalance.balance)
        )
        async with self._guard():
            result = await self.db.execute(stmt)
            balance = result.scalar_one()
        return int(balance)

    async def conditional_decrement_credits(
        self, organization_id: str, credit_type: CreditType, amount: int
    ) -> Optional[int]:
        stmt = (
            update(CreditBalance)
            .where(
                and_(
                    CreditBalance.tenant_id == UUID(organization_id),
                    CreditBalance.credit_type == credit_type.value,
                    CreditBalance.balance >= amount,
                )
            )
            .values(balance=CreditBalance.balance - amount, updated_at=func.now())
            .returning(CreditBalance.balance)
            .execution_options(synchronize_session=False)
        )
        async with self._guard():
            result = await self.db.execute(stmt)
            balance = result.scalar_one_or_none()
        return None if balance is None else int(balance)

    # ------------------------------------------------------------------
    # Points
    # ------------------------------------------------------------------
    async def read_points(self, organization_id: str) -> int:
        async with self._guard():
            result = await self.db.execute(
                select(PointsBalance.balance).where(PointsBalance.tenant_id == UUID(organization_id))
            )
            balance = result.scalar_one_or_none()
        return int(balance or 0)

    async def increment_points(self, organization_id: str, amount: int) -> int:
        stmt = (
            insert(PointsBalance)
            .values(tenant_id=UUID(organization_id), balance=amount)
            .on_conflict_do_update(
                index_elements=[PointsBalance.tenant_id],
                set_={
                    "balance": PointsBalance.balance + amount,
                    "updated_at": func.now(),
                },
            )
            .returning(PointsBalance.balance)
        )
        async with self._guard():
            result = await self.db.execute(stmt)
            balance = result.scalar_one()
        return int(balance)

    async def conditional_decrement_points(self, organization_id: str, amount: int) -> Optional[int]:
        stmt = (
            update(PointsBalance)
            .where(
                and_(
                    PointsBalance.tenant_id == UUID(organization_id),
                    PointsBalance.balance >= amount,
                )
            )
            .values(balance=PointsBalance.balance - amount, updated_at=func.now())
            .returning(PointsBalance.balance)
            .execution_options(synchronize_session=False)
        )
        async with self._guard():
            result = await self.db.execute(stmt)
            balance = result.scalar_one_or_none()
        return None if balance is None else int(balance)

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------
    async def read_subscription(self, organization_id: str) -> Optional[SubscriptionRecord]:
        async with self._guard():
            result = await self.db.execute(
                select(Subscription).where(Subscription.tenant_id == UUID(organization_id))
            )
            row = result.scalar_one_or_none()
        if row is None:
            return None
        return SubscriptionRecord(
            plan_tier=parse_plan_tier(row.plan_tier),
            status=parse_subscription_status(row.status),
            past_due_since=row.past_due_since,
            current_period_end=row.current_period_end,
            cancel_at_period_end=bool(row.cancel_at_period_end),
        )
