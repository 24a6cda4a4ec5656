"""
Storage interface used by the credit ledger and feature gates.

Every mutation must be a single atomic storage operation. In particular the
conditional decrements apply "decrement where balance >= amount" in one step
and report whether a row was affected, so concurrent debits can never drive
a balance negative and a retried decrement re-checks sufficiency.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from canopy.billing.plans import CreditType, PlanTier, SubscriptionStatus


@dataclass(frozen=True)
class SubscriptionRecord:
    plan_tier: PlanTier
    status: SubscriptionStatus
    past_due_since: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False


class LedgerStore(Protocol):
    async def read_credit_balance(self, organization_id: str, credit_type: CreditType) -> int:
        """Current balance, 0 when no row exists."""
        ...

    async def read_credit_balances(self, organization_id: str) -> dict[CreditType, int]:
        """Balances for every credit type with a row."""
        ...

    async def increment_credits(self, organization_id: str, credit_type: CreditType, amount: int) -> int:
        """Create-or-increment; returns the new balance."""
        ...

    async def conditional_decrement_credits(
        self, organization_id: str, credit_type: CreditType, amount: int
    ) -> Optional[int]:
        """Decrement if balance >= amount; new balance, or None when insufficient."""
        ...

    async def read_points(self, organization_id: str) -> int:
        ...

    async def increment_points(self, organization_id: str, amount: int) -> int:
        ...

    async def conditional_decrement_points(self, organization_id: str, amount: int) -> Optional[int]:
        ...

    async def read_subscription(self, organization_id: str) -> Optional[SubscriptionRecord]:
        ...
