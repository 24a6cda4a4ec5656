"""
Pipeline router - stage registry and transition-plan endpoints.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from canopy.core.dependencies import OrgContext, get_org_context, get_pipeline_service
from canopy.core.permissions import Roles, raise_if_not_roles
from canopy.pipeline.stage_registry import assignable_phase_groups
from canopy.pipeline.transition_planner import StageGateBlock, TransitionPlan
from canopy.schemas.pipeline import PhaseGroupRead, StageRead
from canopy.services.pipeline_service import PipelineService

router = APIRouter(tags=["pipeline"])


@router.get("/pipeline/phase-groups", response_model=List[PhaseGroupRead])
async def list_assignable_phase_groups():
    """Phase groups a custom stage can be assigned to."""
    return [
        PhaseGroupRead(value=group, label=group.value.replace("_", " ").title())
        for group in assignable_phase_groups()
    ]


@router.get("/pipeline/stages", response_model=List[StageRead])
async def list_stages(
    ctx: OrgContext = Depends(get_org_context),
    service: PipelineService = Depends(get_pipeline_service),
):
    """Built-in and custom stages of the organization, in display order."""
    registry = await service.get_registry(ctx.organization_id)
    stages = []
    for stage in registry.stages():
        stages.append(
            StageRead(
                key=stage.key,
                name=stage.name,
                phase_group=stage.phase_group,
                order_index=stage.order_index,
                is_built_in=stage.is_built_in,
                seeker_section=registry.seeker_section(stage.key),
                required_scorecards=stage.config.required_scorecards if stage.config else None,
                required_interviews=stage.config.required_interviews if stage.config else None,
            )
        )
    return stages


@router.get("/candidate-assignments/{assignment_id}/transition-plan", response_model=TransitionPlan)
async def get_transition_plan(
    assignment_id: UUID,
    to_stage: str = Query(..., min_length=1, max_length=50),
    ctx: OrgContext = Depends(get_org_context),
    service: PipelineService = Depends(get_pipeline_service),
):
    """
    Advisory plan for moving an application to `to_stage`.

    Returns the prompts to confirm before committing; nothing is changed.
    """
    raise_if_not_roles(ctx.role, Roles.PIPELINE_EDITORS, "move candidates")
    return await service.plan_for_assignment(ctx.organization_id, assignment_id, to_stage)


@router.get("/candidate-assignments/{assignment_id}/stage-gates", response_model=List[StageGateBlock])
async def get_stage_gates(
    assignment_id: UUID,
    scorecards: int = Query(0, ge=0),
    interviews: int = Query(0, ge=0),
    ctx: OrgContext = Depends(get_org_context),
    service: PipelineService = Depends(get_pipeline_service),
):
    """Requirements of the current stage that still block advancing."""
    return await service.stage_gates_for_assignment(
        ctx.organization_id, assignment_id, scorecards, interviews
    )
