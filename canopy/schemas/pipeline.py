"""
Pipeline Pydantic schemas.
"""

from typing import Optional

from pydantic import BaseModel

from canopy.pipeline.stage_registry import PhaseGroup, SeekerSection


class StageRead(BaseModel):
    """A resolved pipeline stage (built-in or custom)."""

    key: str
    name: str
    phase_group: PhaseGroup
    order_index: int
    is_built_in: bool
    seeker_section: SeekerSection
    required_scorecards: Optional[int] = None
    required_interviews: Optional[int] = None


class PhaseGroupRead(BaseModel):
    value: PhaseGroup
    label: str
