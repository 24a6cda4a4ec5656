"""
PipelineStage repository - database operations for organization stages.
"""

from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.models.pipeline_stage import PipelineStage


class PipelineStageRepository:
    """Repository for PipelineStage database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_for_tenant(self, tenant_id: str) -> List[PipelineStage]:
        """All custom stages of a tenant in display order."""
        result = await self.db.execute(
            select(PipelineStage)
            .where(PipelineStage.tenant_id == UUID(tenant_id))
            .order_by(PipelineStage.order_index.asc(), PipelineStage.code.asc())
        )
        return list(result.scalars().all())
