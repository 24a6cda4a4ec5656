"""
CreditBalance model.

One row per (organization, credit type). Rows are created lazily on the
first grant and never deleted, only drawn down to zero.
"""

from sqlalchemy import CheckConstraint, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from canopy.models.base_model import TenantScopedModel


class CreditBalance(TenantScopedModel):
    """Consumable credits an organization can spend (e.g. one job listing)."""

    __tablename__ = "credit_balance"

    # CreditType value, e.g. "JOB_LISTING"
    credit_type: Mapped[str] = mapped_column(String(50), nullable=False)

    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("tenant_id", "credit_type", name="uq_credit_balance_tenant_type"),
        CheckConstraint("balance >= 0", name="ck_credit_balance_non_negative"),
    )
