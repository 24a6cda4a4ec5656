"""Repository for the purchase idempotency ledger."""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.billing.plans import CreditType
from canopy.models.credit_grant import CreditGrant


class CreditGrantRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_grant(
        self,
        *,
        organization_id: str,
        idempotency_key: str,
        credit_type: CreditType,
        amount: int,
        amount_cents: int,
        points_earned: int,
        source: Optional[str] = None,
    ) -> bool:
        """Insert the grant row; False when the key was already recorded."""
        stmt = (
            insert(CreditGrant)
            .values(
                tenant_id=UUID(organization_id),
                idempotency_key=idempotency_key,
                credit_type=credit_type.value,
                amount=amount,
                amount_cents=amount_cents,
                points_earned=points_earned,
                source=source,
            )
            .on_conflict_do_nothing(index_elements=[CreditGrant.tenant_id, CreditGrant.idempotency_key])
            .returning(CreditGrant.id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def get_by_key(self, organization_id: str, idempotency_key: str) -> Optional[CreditGrant]:
        result = await self.db.execute(
            select(CreditGrant).where(
                and_(
                    CreditGrant.tenant_id == UUID(organization_id),
                    CreditGrant.idempotency_key == idempotency_key,
                )
            )
        )
        return result.scalar_one_or_none()

    async def list_for_tenant(
        self,
        organization_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> List[CreditGrant]:
        """Recorded purchases, newest first."""
        result = await self.db.execute(
            select(CreditGrant)
            .where(CreditGrant.tenant_id == UUID(organization_id))
            .order_by(CreditGrant.created_at.desc(), CreditGrant.id)
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def count_for_tenant(self, organization_id: str) -> int:
        result = await self.db.execute(
            select(func.count(CreditGrant.id)).where(CreditGrant.tenant_id == UUID(organization_id))
        )
        return int(result.scalar_one() or 0)
