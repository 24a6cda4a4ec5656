"""
Stage transition planner.

Given a proposed move (from_stage -> to_stage) this computes the advisory
side-effect prompts the employer should confirm before committing: schedule
an interview, send a rejection, send an offer, notify the team. Nothing is
sent or written here; the notification dispatcher reads the plan and acts.

Decisions are keyed by (from phase group, to phase group), never by exact
stage keys, so renamed and custom stages behave like their phase group.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from canopy.pipeline.stage_registry import (
    DEFAULT_REGISTRY,
    LINEAR_PHASES,
    SIDE_BRANCH_PHASES,
    TERMINAL_PHASES,
    PhaseGroup,
    PhaseOrder,
    StageRegistry,
)


class ActionKind(str, Enum):
    SCHEDULE_INTERVIEW = "SCHEDULE_INTERVIEW"
    SEND_REJECTION = "SEND_REJECTION"
    SEND_OFFER = "SEND_OFFER"
    NOTIFY_TEAM = "NOTIFY_TEAM"
    SUGGEST_REJECT_OTHERS = "SUGGEST_REJECT_OTHERS"
    LOG_MILESTONE = "LOG_MILESTONE"


class GateKind(str, Enum):
    SCORECARDS_REQUIRED = "SCORECARDS_REQUIRED"
    INTERVIEWS_REQUIRED = "INTERVIEWS_REQUIRED"


class TransitionAction(BaseModel):
    """One confirm-before-you-commit prompt."""

    model_config = ConfigDict(frozen=True)

    kind: ActionKind
    required: bool = False
    data: dict[str, Any] = Field(default_factory=dict)


class TransitionPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    from_stage: str
    to_stage: str
    from_group: PhaseGroup
    to_group: PhaseGroup
    actions: list[TransitionAction] = Field(default_factory=list)

    @computed_field
    @property
    def requires_confirmation(self) -> bool:
        return any(action.required for action in self.actions)


class StageGateBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: GateKind
    stage: str
    current: int
    required: int


@dataclass(frozen=True)
class TransitionContext:
    """
    Facts about the application supplied by the caller.

    Only used to suppress or annotate prompts; the set of candidate actions
    still comes from the phase-group table.
    """

    has_offer: bool = False
    has_scheduled_interview: bool = False
    other_active_candidates: int = 0


_EMPTY_CONTEXT = TransitionContext()

_Matcher = Callable[[PhaseGroup, PhaseGroup], bool]
_Condition = Callable[[TransitionContext], bool]
_DataBuilder = Callable[[TransitionContext], dict[str, Any]]


@dataclass(frozen=True)
class _Rule:
    matches: _Matcher
    kind: ActionKind
    required: bool = False
    data: Optional[_DataBuilder] = None
    when: Optional[_Condition] = None


def _into(group: PhaseGroup) -> _Matcher:
    return lambda _from, to: to == group


def _between(source: PhaseGroup, target: PhaseGroup) -> _Matcher:
    return lambda from_, to: from_ == source and to == target


def _reopened(from_: PhaseGroup, to: PhaseGroup) -> bool:
    closed = from_ in TERMINAL_PHASES or from_ in SIDE_BRANCH_PHASES
    return closed and to in LINEAR_PHASES and to not in TERMINAL_PHASES


def _no_offer(context: TransitionContext) -> bool:
    return not context.has_offer


# Evaluated top to bottom; plan order follows table order.
_ACTION_TABLE: tuple[_Rule, ...] = (
    _Rule(
        _into(PhaseGroup.INTERVIEWING),
        ActionKind.SCHEDULE_INTERVIEW,
        when=lambda ctx: not ctx.has_scheduled_interview,
    ),
    _Rule(_between(PhaseGroup.INTERVIEWING, PhaseGroup.OFFER), ActionKind.SEND_OFFER, when=_no_offer),
    _Rule(_into(PhaseGroup.HIRED), ActionKind.SEND_OFFER, when=_no_offer),
    _Rule(
        _into(PhaseGroup.HIRED),
        ActionKind.SUGGEST_REJECT_OTHERS,
        data=lambda ctx: {"other_count": ctx.other_active_candidates},
        when=lambda ctx: ctx.other_active_candidates > 0,
    ),
    _Rule(_into(PhaseGroup.HIRED), ActionKind.NOTIFY_TEAM, data=lambda _: {"reason": "hired"}),
    _Rule(_into(PhaseGroup.HIRED), ActionKind.LOG_MILESTONE, data=lambda _: {"milestone": "hired"}),
    _Rule(
        _into(PhaseGroup.REJECTED),
        ActionKind.SEND_REJECTION,
        required=True,
        data=lambda _: {"template": "rejection"},
    ),
    _Rule(_into(PhaseGroup.WITHDRAWN), ActionKind.NOTIFY_TEAM, data=lambda _: {"reason": "withdrawn"}),
    _Rule(_reopened, ActionKind.NOTIFY_TEAM, data=lambda _: {"reason": "reopened"}),
)


class TransitionPlanner:
    """Pure decision table over phase-group pairs."""

    def __init__(self, registry: StageRegistry = DEFAULT_REGISTRY):
        self.registry = registry

    def plan_transition(
        self,
        from_stage: str,
        to_stage: str,
        context: Optional[TransitionContext] = None,
    ) -> TransitionPlan:
        """
        Compute the advisory plan for moving a candidate between stages.

        Raises:
            UnknownStageError: if either stage key is not registered.
        """
        from_group = self.registry.resolve_phase_group(from_stage)
        to_group = self.registry.resolve_phase_group(to_stage)
        context = context or _EMPTY_CONTEXT

        actions: list[TransitionAction] = []
        if from_group != to_group:
            actions = self._collect_actions(from_group, to_group, context)

        return TransitionPlan(
            from_stage=from_stage,
            to_stage=to_stage,
            from_group=from_group,
            to_group=to_group,
            actions=actions,
        )

    def _collect_actions(
        self,
        from_group: PhaseGroup,
        to_group: PhaseGroup,
        context: TransitionContext,
    ) -> list[TransitionAction]:
        actions: list[TransitionAction] = []
        seen: set[ActionKind] = set()

        def add(kind: ActionKind, required: bool, data: dict[str, Any]) -> None:
            if kind in seen:
                return
            seen.add(kind)
            actions.append(TransitionAction(kind=kind, required=required, data=data))

        for rule in _ACTION_TABLE:
            if not rule.matches(from_group, to_group):
                continue
            if rule.when is not None and not rule.when(context):
                continue
            add(rule.kind, rule.required, rule.data(context) if rule.data else {})

        if self._is_regression(from_group, to_group):
            add(ActionKind.NOTIFY_TEAM, False, {"regression": True})

        return actions

    def _is_regression(self, from_group: PhaseGroup, to_group: PhaseGroup) -> bool:
        # Terminal and side-branch groups are handled by explicit table rows
        # and must never reach the order comparison.
        excluded = TERMINAL_PHASES | SIDE_BRANCH_PHASES
        if from_group in excluded or to_group in excluded:
            return False
        return self.registry.compare_phase_order(to_group, from_group) == PhaseOrder.BEFORE

    def evaluate_stage_gates(
        self,
        stage_key: str,
        completed_scorecards: int = 0,
        completed_interviews: int = 0,
    ) -> list[StageGateBlock]:
        """
        Requirements of `stage_key` that still block advancing past it.

        Independent of planning: the caller decides whether to enforce them.
        """
        stage = self.registry.get_stage(stage_key)
        config = stage.config
        if config is None:
            return []

        blocks: list[StageGateBlock] = []
        if config.required_scorecards and completed_scorecards < config.required_scorecards:
            blocks.append(
                StageGateBlock(
                    kind=GateKind.SCORECARDS_REQUIRED,
                    stage=stage.key,
                    current=completed_scorecards,
                    required=config.required_scorecards,
                )
            )
        if config.required_interviews and completed_interviews < config.required_interviews:
            blocks.append(
                StageGateBlock(
                    kind=GateKind.INTERVIEWS_REQUIRED,
                    stage=stage.key,
                    current=completed_interviews,
                    required=config.required_interviews,
                )
            )
        return blocks
