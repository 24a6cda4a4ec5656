"""
Models package.

Import all models here so they are registered with SQLAlchemy.
"""

from canopy.models.candidate_assignment import CandidateAssignment
from canopy.models.credit_balance import CreditBalance
from canopy.models.credit_grant import CreditGrant
from canopy.models.pipeline_stage import PipelineStage
from canopy.models.points_balance import PointsBalance
from canopy.models.subscription import Subscription

__all__ = [
    "CandidateAssignment",
    "CreditBalance",
    "CreditGrant",
    "PipelineStage",
    "PointsBalance",
    "Subscription",
]
