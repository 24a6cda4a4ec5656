"""
Unit tests for the stage transition planner.
"""

import pytest

from canopy.errors import UnknownStageError
from canopy.pipeline.stage_registry import BUILT_IN_STAGES, DEFAULT_REGISTRY, StageConfig, StageDefinition, PhaseGroup
from canopy.pipeline.transition_planner import (
    ActionKind,
    GateKind,
    TransitionContext,
    TransitionPlanner,
)

pytestmark = pytest.mark.unit

ALL_KEYS = [stage.key for stage in BUILT_IN_STAGES]


@pytest.fixture
def planner():
    return TransitionPlanner(DEFAULT_REGISTRY)


def kinds(plan):
    return [action.kind for action in plan.actions]


def test_screening_to_interview_schedules_interview(planner):
    plan = planner.plan_transition("screening", "interview")

    assert [(a.kind, a.required) for a in plan.actions] == [(ActionKind.SCHEDULE_INTERVIEW, False)]
    assert plan.from_group == PhaseGroup.SCREENING
    assert plan.to_group == PhaseGroup.INTERVIEWING
    assert plan.requires_confirmation is False


def test_interview_to_rejected_requires_rejection(planner):
    plan = planner.plan_transition("interview", "rejected")

    assert [(a.kind, a.required) for a in plan.actions] == [(ActionKind.SEND_REJECTION, True)]
    assert plan.requires_confirmation is True


@pytest.mark.parametrize("from_stage", [k for k in ALL_KEYS if k != "rejected"])
def test_any_move_into_rejected_includes_required_rejection(planner, from_stage):
    plan = planner.plan_transition(from_stage, "rejected")
    rejection = [a for a in plan.actions if a.kind == ActionKind.SEND_REJECTION]
    assert len(rejection) == 1
    assert rejection[0].required is True


@pytest.mark.parametrize("stage", ALL_KEYS)
def test_same_stage_has_no_actions(planner, stage):
    assert planner.plan_transition(stage, stage).actions == []


def test_lateral_move_within_group_has_no_actions(planner):
    assert planner.plan_transition("screening", "qualified").actions == []
    assert planner.plan_transition("qualified", "screening").actions == []


def test_planning_is_idempotent(planner):
    context = TransitionContext(has_offer=False, other_active_candidates=2)
    for from_stage in ALL_KEYS:
        for to_stage in ALL_KEYS:
            first = planner.plan_transition(from_stage, to_stage, context)
            second = planner.plan_transition(from_stage, to_stage, context)
            assert first == second


def test_already_booked_interview_is_not_prompted_again(planner):
    context = TransitionContext(has_scheduled_interview=True)

    assert kinds(planner.plan_transition("screening", "interview", context)) == []
    assert kinds(planner.plan_transition("offer", "interview", context)) == [ActionKind.NOTIFY_TEAM]


def test_interview_to_offer_sends_offer_unless_already_sent(planner):
    assert kinds(planner.plan_transition("interview", "offer")) == [ActionKind.SEND_OFFER]
    assert planner.plan_transition("interview", "offer", TransitionContext(has_offer=True)).actions == []


def test_into_hired(planner):
    plan = planner.plan_transition("offer", "hired", TransitionContext(has_offer=True, other_active_candidates=3))

    assert kinds(plan) == [ActionKind.SUGGEST_REJECT_OTHERS, ActionKind.NOTIFY_TEAM, ActionKind.LOG_MILESTONE]
    assert plan.actions[0].data == {"other_count": 3}
    assert plan.actions[1].data == {"reason": "hired"}


def test_into_hired_without_offer_prompts_offer_first(planner):
    plan = planner.plan_transition("interview", "hired")
    assert kinds(plan) == [ActionKind.SEND_OFFER, ActionKind.NOTIFY_TEAM, ActionKind.LOG_MILESTONE]


def test_withdrawn_only_notifies_team(planner):
    plan = planner.plan_transition("interview", "withdrawn")
    assert kinds(plan) == [ActionKind.NOTIFY_TEAM]
    assert plan.actions[0].data == {"reason": "withdrawn"}


def test_backward_move_is_flagged_as_regression(planner):
    plan = planner.plan_transition("offer", "screening")
    assert kinds(plan) == [ActionKind.NOTIFY_TEAM]
    assert plan.actions[0].data == {"regression": True}
    assert plan.actions[0].required is False


def test_backward_move_keeps_table_actions_before_regression_notice(planner):
    plan = planner.plan_transition("offer", "interview")
    assert kinds(plan) == [ActionKind.SCHEDULE_INTERVIEW, ActionKind.NOTIFY_TEAM]


def test_reopening_closed_application_notifies_team(planner):
    plan = planner.plan_transition("rejected", "screening")
    assert kinds(plan) == [ActionKind.NOTIFY_TEAM]
    assert plan.actions[0].data == {"reason": "reopened"}

    pooled = planner.plan_transition("talent-pool", "interview")
    assert kinds(pooled) == [ActionKind.SCHEDULE_INTERVIEW, ActionKind.NOTIFY_TEAM]
    assert pooled.actions[1].data == {"reason": "reopened"}


def test_moving_out_of_hired_into_side_branch(planner):
    assert kinds(planner.plan_transition("hired", "talent-pool")) == []


def test_unknown_stage_fails_fast(planner):
    with pytest.raises(UnknownStageError):
        planner.plan_transition("applied", "nowhere")
    with pytest.raises(UnknownStageError):
        planner.plan_transition("nowhere", "applied")


def test_custom_stage_resolves_through_its_group():
    registry = DEFAULT_REGISTRY.with_custom_stages(
        [StageDefinition("panel-round", "Panel Round", PhaseGroup.INTERVIEWING, 3)]
    )
    plan = TransitionPlanner(registry).plan_transition("qualified", "panel-round")
    assert kinds(plan) == [ActionKind.SCHEDULE_INTERVIEW]


def test_plan_serializes_actions_and_confirmation_flag(planner):
    payload = planner.plan_transition("screening", "rejected").model_dump(mode="json")
    assert payload["actions"] == [
        {"kind": "SEND_REJECTION", "required": True, "data": {"template": "rejection"}}
    ]
    assert payload["requires_confirmation"] is True


def test_stage_gates():
    registry = DEFAULT_REGISTRY.with_custom_stages(
        [
            StageDefinition(
                "tech-interview",
                "Tech Interview",
                PhaseGroup.INTERVIEWING,
                3,
                config=StageConfig(required_scorecards=2, required_interviews=1),
            )
        ]
    )
    planner = TransitionPlanner(registry)

    blocks = planner.evaluate_stage_gates("tech-interview", completed_scorecards=1)
    assert [(b.kind, b.current, b.required) for b in blocks] == [
        (GateKind.SCORECARDS_REQUIRED, 1, 2),
        (GateKind.INTERVIEWS_REQUIRED, 0, 1),
    ]
    assert planner.evaluate_stage_gates("tech-interview", 2, 1) == []
    assert planner.evaluate_stage_gates("screening") == []
