"""
CreditGrant model.

Idempotency ledger for purchase webhooks: each provider event grants credits
at most once per organization.
"""

from typing import Optional

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from canopy.models.base_model import TenantScopedModel


class CreditGrant(TenantScopedModel):
    __tablename__ = "credit_grant"

    # External idempotency key, e.g. the payment provider's event id
    idempotency_key: Mapped[str] = mapped_column(String(255), nullable=False)

    credit_type: Mapped[str] = mapped_column(String(50), nullable=False)

    amount: Mapped[int] = mapped_column(Integer, nullable=False)

    # Purchase amount in cents, used to compute earned points
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    points_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    source: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "idempotency_key", name="uq_credit_grant_idempotency"),
    )
