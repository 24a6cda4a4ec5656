"""
PointsBalance model.

Loyalty points per organization, earned on qualifying purchases.
"""

from sqlalchemy import CheckConstraint, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from canopy.models.base_model import TenantScopedModel


class PointsBalance(TenantScopedModel):
    __tablename__ = "points_balance"

    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("tenant_id", name="uq_points_balance_tenant"),
        CheckConstraint("balance >= 0", name="ck_points_balance_non_negative"),
    )
