"""
PipelineStage model.

An organization's custom stage (or renamed built-in stage). Built-in stages
live in code; only organization overrides are stored here.
"""

from typing import Optional

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from canopy.models.base_model import TenantScopedModel


class PipelineStage(TenantScopedModel):
    """
    PipelineStage table - a step in an organization's hiring pipeline.
    
    The order_index determines the display order. phase_group may be empty,
    in which case it is inferred from the code/name when the registry is
    built.
    """
    
    __tablename__ = "pipeline_stage"
    
    # Stage key (e.g., "phone-screen", "panel-interview")
    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    
    # Human-readable name (e.g., "Phone Screen")
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    
    order_index: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    # PhaseGroup value, e.g. "INTERVIEWING"
    phase_group: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
    )

    # Gate requirements, e.g. {"required_scorecards": 2}
    config: Mapped[Optional[dict]] = mapped_column(
        JSONB,
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_pipeline_stage_tenant_code"),
    )
