"""
CandidateAssignment model.

Tracks a candidate's application to a role and where it sits in the pipeline.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, DateTime
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from canopy.models.base_model import TenantScopedModel


class CandidateAssignment(TenantScopedModel):
    """
    CandidateAssignment table - tracks candidates assigned to roles.
    """
    
    __tablename__ = "candidate_assignment"
    
    candidate_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        index=True,
    )
    
    role_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        index=True,
    )
    
    # Current stage key, resolved through the stage registry
    stage_key: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="applied",
    )
    
    # Next interview slot booked for this application, if any
    interview_scheduled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    
    # Set once an offer has been sent for this application
    offer_sent_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    
    source: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )
    
    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
