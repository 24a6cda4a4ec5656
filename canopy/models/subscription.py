"""
Subscription model.

Current plan tier and billing status for an organization, as last synced
from the payment provider.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from canopy.models.base_model import TenantScopedModel


class Subscription(TenantScopedModel):
    __tablename__ = "subscription"

    # PlanTier value, e.g. "GROWTH"
    plan_tier: Mapped[str] = mapped_column(String(50), nullable=False, default="FREE")

    # SubscriptionStatus value, e.g. "ACTIVE"
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="ACTIVE")

    # Set when the status first moves to PAST_DUE; starts the grace window
    past_due_since: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    current_period_end: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", name="uq_subscription_tenant"),
    )
