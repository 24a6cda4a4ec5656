"""
Pipeline stage registry.

Single source of truth mapping every pipeline stage key to its phase group
and ordering. Organizations may rename built-in stages or add custom ones;
custom stages are always mapped onto one of the phase groups below, so all
downstream behavior (transition prompts, seeker-facing sections) is keyed by
phase group rather than by stage name.

A registry is immutable. The built-in registry is created once at import
time; per-organization registries are derived with `with_custom_stages`,
which returns a new instance.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Sequence

from canopy.errors import UnknownStageError

logger = logging.getLogger(__name__)


class PhaseGroup(str, Enum):
    """Coarse buckets of stages sharing the same side-effect behavior."""

    SUBMITTED = "SUBMITTED"
    SCREENING = "SCREENING"
    INTERVIEWING = "INTERVIEWING"
    OFFER = "OFFER"
    HIRED = "HIRED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"
    TALENT_POOL = "TALENT_POOL"


class PhaseOrder(str, Enum):
    BEFORE = "before"
    AFTER = "after"
    EQUAL = "equal"
    INCOMPARABLE = "incomparable"


class SeekerSection(str, Enum):
    """Sections of the job seeker's application tracker."""

    APPLIED = "applied"
    INTERVIEW = "interview"
    OFFER = "offer"
    HIRED = "hired"
    INELIGIBLE = "ineligible"


# Forward path of the hiring lifecycle, in order.
LINEAR_PHASES: tuple[PhaseGroup, ...] = (
    PhaseGroup.SUBMITTED,
    PhaseGroup.SCREENING,
    PhaseGroup.INTERVIEWING,
    PhaseGroup.OFFER,
    PhaseGroup.HIRED,
)

# Groups with no defined successor.
TERMINAL_PHASES: frozenset[PhaseGroup] = frozenset(
    {PhaseGroup.HIRED, PhaseGroup.REJECTED, PhaseGroup.WITHDRAWN}
)

# Groups outside the forward path; never ordered against anything else.
SIDE_BRANCH_PHASES: frozenset[PhaseGroup] = frozenset(
    {PhaseGroup.REJECTED, PhaseGroup.WITHDRAWN, PhaseGroup.TALENT_POOL}
)

# Managed by the system (reject / withdraw / pool actions), not assignable
# to custom stages.
SYSTEM_PHASES: frozenset[PhaseGroup] = SIDE_BRANCH_PHASES

_PHASE_RANK = {group: index for index, group in enumerate(LINEAR_PHASES)}

_SEEKER_SECTIONS = {
    PhaseGroup.SUBMITTED: SeekerSection.APPLIED,
    PhaseGroup.SCREENING: SeekerSection.INTERVIEW,
    PhaseGroup.INTERVIEWING: SeekerSection.INTERVIEW,
    PhaseGroup.OFFER: SeekerSection.OFFER,
    PhaseGroup.HIRED: SeekerSection.HIRED,
    PhaseGroup.REJECTED: SeekerSection.INELIGIBLE,
    PhaseGroup.WITHDRAWN: SeekerSection.INELIGIBLE,
    # Hidden from the seeker; shown as still applied.
    PhaseGroup.TALENT_POOL: SeekerSection.APPLIED,
}

# Keyword inference for custom stages without an explicit phase group.
# Checked in order; first match wins.
_PHASE_KEYWORDS: tuple[tuple[PhaseGroup, tuple[str, ...]], ...] = (
    (PhaseGroup.SUBMITTED, ("applied", "new", "received", "submission")),
    (
        PhaseGroup.SCREENING,
        (
            "screen", "review", "qualified", "assessment", "evaluate",
            "background", "check", "shortlist",
        ),
    ),
    (
        PhaseGroup.INTERVIEWING,
        (
            "interview", "phone", "technical", "culture", "onsite", "on site",
            "panel", "final", "behavioral", "case study",
        ),
    ),
    (PhaseGroup.OFFER, ("offer", "negotiation", "compensation", "package")),
    (PhaseGroup.HIRED, ("hired", "accepted", "onboarding", "start")),
    (PhaseGroup.REJECTED, ("rejected", "declined", "denied", "disqualified")),
    (PhaseGroup.WITHDRAWN, ("withdrawn", "withdrew", "cancelled")),
)

DEFAULT_INFERRED_PHASE = PhaseGroup.SCREENING


@dataclass(frozen=True)
class StageConfig:
    """Requirements that must be met before a candidate leaves a stage."""

    required_scorecards: int = 0
    required_interviews: int = 0


@dataclass(frozen=True)
class StageDefinition:
    key: str
    name: str
    phase_group: PhaseGroup
    order_index: int = 0
    is_built_in: bool = False
    config: Optional[StageConfig] = None


BUILT_IN_STAGES: tuple[StageDefinition, ...] = (
    StageDefinition("applied", "Applied", PhaseGroup.SUBMITTED, 0, True),
    StageDefinition("screening", "Screening", PhaseGroup.SCREENING, 1, True),
    StageDefinition("qualified", "Qualified", PhaseGroup.SCREENING, 2, True),
    StageDefinition("interview", "Interview", PhaseGroup.INTERVIEWING, 3, True),
    StageDefinition("offer", "Offer", PhaseGroup.OFFER, 4, True),
    StageDefinition("hired", "Hired", PhaseGroup.HIRED, 5, True),
    # Special action stages, not shown as Kanban columns
    StageDefinition("rejected", "Rejected", PhaseGroup.REJECTED, 100, True),
    StageDefinition("withdrawn", "Withdrawn", PhaseGroup.WITHDRAWN, 101, True),
    StageDefinition("talent-pool", "Talent Pool", PhaseGroup.TALENT_POOL, 102, True),
)


def compare_phase_order(a: PhaseGroup, b: PhaseGroup) -> PhaseOrder:
    """
    Compare two phase groups along the forward hiring path.

    Returns EQUAL for identical groups. Side branches (rejected, withdrawn,
    talent pool) are not ordered relative to the forward path, so any
    comparison involving one of them is INCOMPARABLE.
    """
    if a == b:
        return PhaseOrder.EQUAL
    if a in SIDE_BRANCH_PHASES or b in SIDE_BRANCH_PHASES:
        return PhaseOrder.INCOMPARABLE
    return PhaseOrder.BEFORE if _PHASE_RANK[a] < _PHASE_RANK[b] else PhaseOrder.AFTER


def assignable_phase_groups() -> tuple[PhaseGroup, ...]:
    """Phase groups a custom stage may be placed into, in declaration order."""
    return tuple(group for group in PhaseGroup if group not in SYSTEM_PHASES)


def infer_phase_group(stage_key_or_name: str) -> PhaseGroup:
    """Infer a phase group from a stage id or name by keyword matching."""
    normalized = re.sub(r"[-_]+", " ", stage_key_or_name.lower())
    for group, keywords in _PHASE_KEYWORDS:
        if any(keyword in normalized for keyword in keywords):
            return group
    return DEFAULT_INFERRED_PHASE


def _parse_phase_group(value: Any) -> Optional[PhaseGroup]:
    if isinstance(value, PhaseGroup):
        return value
    if not isinstance(value, str) or not value:
        return None
    candidate = value.strip().upper().replace("-", "_")
    try:
        return PhaseGroup(candidate)
    except ValueError:
        return None


def _parse_count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return max(0, value)


def _parse_stage_config(raw: Any) -> Optional[StageConfig]:
    if not isinstance(raw, Mapping):
        return None
    config = StageConfig(
        required_scorecards=_parse_count(raw.get("required_scorecards", raw.get("requiredScorecards"))),
        required_interviews=_parse_count(raw.get("required_interviews", raw.get("requiredInterviews"))),
    )
    if not config.required_scorecards and not config.required_interviews:
        return None
    return config


def parse_stage_definitions(raw_stages: Iterable[Mapping[str, Any]]) -> list[StageDefinition]:
    """
    Parse untyped stage entries (job JSON or ORM rows) into StageDefinitions.

    Each entry needs a key ("key", "code" or "id") and may carry "name",
    "phase_group"/"phaseGroup", "order_index" and "config". An explicit
    phase group wins; a missing or unknown one is inferred from the
    key/name. Entries without a key are skipped.
    """
    definitions: list[StageDefinition] = []
    for position, raw in enumerate(raw_stages):
        key = raw.get("key") or raw.get("code") or raw.get("id")
        if not key or not isinstance(key, str):
            logger.warning("Skipping stage entry without a key at position %s", position)
            continue
        name = raw.get("name") or key
        phase_group = _parse_phase_group(raw.get("phase_group", raw.get("phaseGroup")))
        if phase_group is None:
            phase_group = infer_phase_group(key)
            if phase_group == DEFAULT_INFERRED_PHASE and name != key:
                phase_group = infer_phase_group(str(name))
        order_index = raw.get("order_index")
        definitions.append(
            StageDefinition(
                key=key,
                name=str(name),
                phase_group=phase_group,
                order_index=order_index if isinstance(order_index, int) else position,
                is_built_in=False,
                config=_parse_stage_config(raw.get("config")),
            )
        )
    return definitions


@dataclass(frozen=True)
class StageRegistry:
    """Immutable mapping of stage key to StageDefinition."""

    _stages: tuple[StageDefinition, ...] = BUILT_IN_STAGES
    _by_key: Mapping[str, StageDefinition] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_key: dict[str, StageDefinition] = {}
        for stage in self._stages:
            by_key[stage.key] = stage
        object.__setattr__(self, "_by_key", by_key)

    @classmethod
    def built_in(cls) -> "StageRegistry":
        return cls(BUILT_IN_STAGES)

    def with_custom_stages(self, custom: Sequence[StageDefinition]) -> "StageRegistry":
        """
        Return a new registry with `custom` layered over this one.

        A custom entry reusing a built-in key renames that stage but keeps the
        built-in phase group.
        """
        merged = {stage.key: stage for stage in self._stages}
        for stage in custom:
            existing = merged.get(stage.key)
            if existing is not None and existing.is_built_in:
                merged[stage.key] = StageDefinition(
                    key=existing.key,
                    name=stage.name,
                    phase_group=existing.phase_group,
                    order_index=stage.order_index,
                    is_built_in=True,
                    config=stage.config or existing.config,
                )
            else:
                merged[stage.key] = stage
        return StageRegistry(tuple(merged.values()))

    def get_stage(self, stage_key: str) -> StageDefinition:
        try:
            return self._by_key[stage_key]
        except KeyError:
            raise UnknownStageError(stage_key) from None

    def resolve_phase_group(self, stage_key: str) -> PhaseGroup:
        return self.get_stage(stage_key).phase_group

    def stages(self) -> list[StageDefinition]:
        """All registered stages ordered for display."""
        return sorted(self._stages, key=lambda s: (s.order_index, s.key))

    def default_stages(self) -> list[StageDefinition]:
        """Kanban columns: everything except the system-managed stages."""
        return [s for s in self.stages() if s.phase_group not in SYSTEM_PHASES]

    def assignable_phase_groups(self) -> tuple[PhaseGroup, ...]:
        return assignable_phase_groups()

    def compare_phase_order(self, a: PhaseGroup, b: PhaseGroup) -> PhaseOrder:
        return compare_phase_order(a, b)

    def seeker_section(self, stage_key: str) -> SeekerSection:
        return _SEEKER_SECTIONS[self.resolve_phase_group(stage_key)]

    def phase_progress(self, stage_key: str) -> dict[str, Any]:
        """Where a stage sits among the stages of its own phase group (1-based)."""
        stage = self.get_stage(stage_key)
        group_stages = [s for s in self.stages() if s.phase_group == stage.phase_group]
        return {
            "current": [s.key for s in group_stages].index(stage.key) + 1,
            "total": len(group_stages),
            "stage_names": [s.name for s in group_stages],
        }

    def __contains__(self, stage_key: object) -> bool:
        return stage_key in self._by_key

    def __len__(self) -> int:
        return len(self._by_key)


DEFAULT_REGISTRY = StageRegistry.built_in()
