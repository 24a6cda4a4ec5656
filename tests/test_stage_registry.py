"""
Unit tests for the pipeline stage registry.
"""

import pytest

from canopy.errors import UnknownStageError
from canopy.pipeline.stage_registry import (
    BUILT_IN_STAGES,
    DEFAULT_REGISTRY,
    LINEAR_PHASES,
    PhaseGroup,
    PhaseOrder,
    SeekerSection,
    StageConfig,
    StageRegistry,
    assignable_phase_groups,
    compare_phase_order,
    infer_phase_group,
    parse_stage_definitions,
)

pytestmark = pytest.mark.unit


def test_every_built_in_stage_resolves_to_one_group():
    for stage in BUILT_IN_STAGES:
        assert DEFAULT_REGISTRY.resolve_phase_group(stage.key) == stage.phase_group
    assert len(DEFAULT_REGISTRY) == len({s.key for s in BUILT_IN_STAGES})


def test_unknown_stage_raises():
    with pytest.raises(UnknownStageError) as exc_info:
        DEFAULT_REGISTRY.resolve_phase_group("no-such-stage")
    assert exc_info.value.stage_key == "no-such-stage"
    assert "no-such-stage" not in DEFAULT_REGISTRY


@pytest.mark.parametrize("group", list(PhaseGroup))
def test_compare_same_group_is_equal(group):
    assert compare_phase_order(group, group) == PhaseOrder.EQUAL


def test_compare_follows_linear_order():
    for earlier, later in zip(LINEAR_PHASES, LINEAR_PHASES[1:]):
        assert compare_phase_order(earlier, later) == PhaseOrder.BEFORE
        assert compare_phase_order(later, earlier) == PhaseOrder.AFTER
    assert compare_phase_order(PhaseGroup.SUBMITTED, PhaseGroup.HIRED) == PhaseOrder.BEFORE


@pytest.mark.parametrize("side", [PhaseGroup.REJECTED, PhaseGroup.WITHDRAWN, PhaseGroup.TALENT_POOL])
def test_side_branches_are_incomparable(side):
    for group in LINEAR_PHASES:
        assert compare_phase_order(side, group) == PhaseOrder.INCOMPARABLE
        assert compare_phase_order(group, side) == PhaseOrder.INCOMPARABLE


def test_assignable_groups_exclude_system_groups_in_declaration_order():
    groups = assignable_phase_groups()
    assert groups == LINEAR_PHASES
    # Restartable and deterministic
    assert DEFAULT_REGISTRY.assignable_phase_groups() == groups


@pytest.mark.parametrize(
    "text, expected",
    [
        ("phone-screen", PhaseGroup.SCREENING),
        ("Technical Interview", PhaseGroup.INTERVIEWING),
        ("offer_negotiation", PhaseGroup.OFFER),
        ("onboarding", PhaseGroup.HIRED),
        ("declined", PhaseGroup.REJECTED),
        ("new", PhaseGroup.SUBMITTED),
        ("something else", PhaseGroup.SCREENING),
    ],
)
def test_infer_phase_group(text, expected):
    assert infer_phase_group(text) == expected


def test_parse_stage_definitions_prefers_explicit_group():
    stages = parse_stage_definitions(
        [
            {"code": "panel", "name": "Panel", "phase_group": "interviewing", "order_index": 3},
            {"id": "exec-chat", "name": "Final Interview"},
            {"name": "missing key"},
            {"key": "take-home", "phaseGroup": "NOT_A_GROUP", "config": {"requiredScorecards": 2}},
        ]
    )

    assert [s.key for s in stages] == ["panel", "exec-chat", "take-home"]
    assert stages[0].phase_group == PhaseGroup.INTERVIEWING
    assert stages[0].order_index == 3
    # Key gives nothing, name does
    assert stages[1].phase_group == PhaseGroup.INTERVIEWING
    assert stages[1].order_index == 1
    # Unknown explicit group falls back to inference
    assert stages[2].phase_group == PhaseGroup.SCREENING
    assert stages[2].config == StageConfig(required_scorecards=2, required_interviews=0)
    assert all(not s.is_built_in for s in stages)


def test_custom_stages_return_new_registry():
    custom = parse_stage_definitions(
        [
            {"key": "phone-screen", "name": "Phone Screen", "order_index": 1},
            {"key": "interview", "name": "Onsite", "phase_group": "OFFER", "order_index": 3},
        ]
    )
    registry = DEFAULT_REGISTRY.with_custom_stages(custom)

    assert registry is not DEFAULT_REGISTRY
    assert "phone-screen" in registry
    assert "phone-screen" not in DEFAULT_REGISTRY
    assert registry.resolve_phase_group("phone-screen") == PhaseGroup.SCREENING

    # Renaming a built-in keeps its phase group
    renamed = registry.get_stage("interview")
    assert renamed.name == "Onsite"
    assert renamed.phase_group == PhaseGroup.INTERVIEWING
    assert renamed.is_built_in


def test_default_stages_hide_system_stages():
    keys = [s.key for s in DEFAULT_REGISTRY.default_stages()]
    assert keys == ["applied", "screening", "qualified", "interview", "offer", "hired"]


def test_seeker_sections():
    assert DEFAULT_REGISTRY.seeker_section("applied") == SeekerSection.APPLIED
    assert DEFAULT_REGISTRY.seeker_section("qualified") == SeekerSection.INTERVIEW
    assert DEFAULT_REGISTRY.seeker_section("rejected") == SeekerSection.INELIGIBLE
    assert DEFAULT_REGISTRY.seeker_section("talent-pool") == SeekerSection.APPLIED


def test_phase_progress_within_group():
    progress = DEFAULT_REGISTRY.phase_progress("qualified")
    assert progress == {"current": 2, "total": 2, "stage_names": ["Screening", "Qualified"]}


def test_registry_is_immutable():
    registry = StageRegistry.built_in()
    with pytest.raises(AttributeError):
        registry._stages = ()
