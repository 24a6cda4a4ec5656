"""
CandidateAssignment repository - database operations for CandidateAssignment.
"""

from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.models.candidate_assignment import CandidateAssignment


class CandidateAssignmentRepository:
    """Repository for CandidateAssignment database operations."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    async def get_by_id(
        self,
        tenant_id: str,
        assignment_id: UUID
    ) -> Optional[CandidateAssignment]:
        """Get an assignment by ID for a specific tenant."""
        result = await self.db.execute(
            select(CandidateAssignment).where(
                CandidateAssignment.id == assignment_id,
                CandidateAssignment.tenant_id == UUID(tenant_id)
            )
        )
        return result.scalar_one_or_none()

    async def count_other_active_for_role(
        self,
        tenant_id: str,
        role_id: UUID,
        exclude_assignment_id: UUID,
        closed_stage_keys: Iterable[str],
    ) -> int:
        """Count other applications to the role that are not in a closed stage."""
        result = await self.db.execute(
            select(func.count(CandidateAssignment.id)).where(
                CandidateAssignment.tenant_id == UUID(tenant_id),
                CandidateAssignment.role_id == role_id,
                CandidateAssignment.id != exclude_assignment_id,
                CandidateAssignment.stage_key.not_in(list(closed_stage_keys)),
            )
        )
        return int(result.scalar_one() or 0)
