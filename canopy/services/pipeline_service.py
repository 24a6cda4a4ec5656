"""
Pipeline service - builds an organization's stage registry and plans
transitions for stored applications.
"""

from typing import List
from uuid import UUID

from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.errors import raise_app_error
from canopy.pipeline.stage_registry import (
    DEFAULT_REGISTRY,
    SIDE_BRANCH_PHASES,
    TERMINAL_PHASES,
    PhaseGroup,
    StageDefinition,
    StageRegistry,
    parse_stage_definitions,
)
from canopy.pipeline.transition_planner import (
    StageGateBlock,
    TransitionContext,
    TransitionPlan,
    TransitionPlanner,
)
from canopy.repositories.candidate_assignment_repository import CandidateAssignmentRepository
from canopy.repositories.pipeline_stage_repository import PipelineStageRepository


class PipelineService:
    """Service for pipeline stage and transition logic."""

    def __init__(self, db: AsyncSession, base_registry: StageRegistry = DEFAULT_REGISTRY):
        self.stage_repository = PipelineStageRepository(db)
        self.assignment_repository = CandidateAssignmentRepository(db)
        self.base_registry = base_registry

    async def get_registry(self, tenant_id: str) -> StageRegistry:
        """Built-in stages overlaid with the tenant's custom stages."""
        rows = await self.stage_repository.list_for_tenant(tenant_id)
        custom = parse_stage_definitions(
            {
                "key": row.code,
                "name": row.name,
                "phase_group": row.phase_group,
                "order_index": row.order_index,
                "config": row.config,
            }
            for row in rows
        )
        return self.base_registry.with_custom_stages(custom)

    async def list_stages(self, tenant_id: str) -> List[StageDefinition]:
        registry = await self.get_registry(tenant_id)
        return registry.stages()

    async def plan_for_assignment(
        self,
        tenant_id: str,
        assignment_id: UUID,
        to_stage: str,
    ) -> TransitionPlan:
        """Plan moving a stored application from its current stage to `to_stage`."""
        assignment = await self.assignment_repository.get_by_id(tenant_id, assignment_id)
        if not assignment:
            raise_app_error(status.HTTP_404_NOT_FOUND, "ASSIGNMENT_NOT_FOUND", f"Assignment {assignment_id} not found for this tenant")

        registry = await self.get_registry(tenant_id)
        planner = TransitionPlanner(registry)

        other_active = 0
        if registry.resolve_phase_group(to_stage) == PhaseGroup.HIRED:
            closed = [
                stage.key
                for stage in registry.stages()
                if stage.phase_group in TERMINAL_PHASES or stage.phase_group in SIDE_BRANCH_PHASES
            ]
            other_active = await self.assignment_repository.count_other_active_for_role(
                tenant_id, assignment.role_id, assignment.id, closed
            )

        context = TransitionContext(
            has_offer=assignment.offer_sent_at is not None,
            has_scheduled_interview=assignment.interview_scheduled_at is not None,
            other_active_candidates=other_active,
        )
        return planner.plan_transition(assignment.stage_key, to_stage, context)

    async def stage_gates_for_assignment(
        self,
        tenant_id: str,
        assignment_id: UUID,
        completed_scorecards: int = 0,
        completed_interviews: int = 0,
    ) -> List[StageGateBlock]:
        assignment = await self.assignment_repository.get_by_id(tenant_id, assignment_id)
        if not assignment:
            raise_app_error(status.HTTP_404_NOT_FOUND, "ASSIGNMENT_NOT_FOUND", f"Assignment {assignment_id} not found for this tenant")
        registry = await self.get_registry(tenant_id)
        return TransitionPlanner(registry).evaluate_stage_gates(
            assignment.stage_key, completed_scorecards, completed_interviews
        )
