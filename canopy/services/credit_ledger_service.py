"""
Credit and loyalty points ledger.

Reads always hit the store (no caching across requests) so entitlement
decisions never run on a stale balance. Mutations are single atomic store
operations; debits use the store's conditional decrement and fail rather
than clamp when the balance is insufficient.

Idempotency of grants is the caller's responsibility (see PurchaseService).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from canopy.billing.plans import CreditType
from canopy.core.config import settings
from canopy.errors import InsufficientCreditsError, InsufficientPointsError, InvalidAmountError
from canopy.repositories.ledger_store import LedgerStore
from canopy.services.storage_retry import Sleeper, StorageRetry

logger = logging.getLogger(__name__)

T = TypeVar("T")


def get_points_value_cents(balance: int, point_value_cents: Optional[int] = None) -> int:
    """Monetary value of a points balance in cents."""
    value = settings.POINT_VALUE_CENTS if point_value_cents is None else point_value_cents
    return balance * value


def _require_positive(amount: Any) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmountError(amount)
    return amount


class CreditLedgerService:
    """Per-organization consumable credits and loyalty points."""

    def __init__(
        self,
        store: LedgerStore,
        *,
        retry_attempts: Optional[int] = None,
        retry_backoff_seconds: Optional[float] = None,
        sleeper: Sleeper = asyncio.sleep,
    ):
        self.store = store
        self.retry = StorageRetry(retry_attempts, retry_backoff_seconds, sleeper)

    async def _with_retry(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        return await self.retry.run(operation, call)

    # ------------------------------------------------------------------
    # Credits
    # ------------------------------------------------------------------
    async def get_credits(self, organization_id: str) -> dict[CreditType, int]:
        """Balance for every credit type; types without a row read as 0."""
        stored = await self._with_retry(
            "read_credit_balances", lambda: self.store.read_credit_balances(organization_id)
        )
        return {credit_type: stored.get(credit_type, 0) for credit_type in CreditType}

    async def get_credit_balance(self, organization_id: str, credit_type: CreditType) -> int:
        return await self._with_retry(
            "read_credit_balance", lambda: self.store.read_credit_balance(organization_id, credit_type)
        )

    async def grant_credits(self, organization_id: str, credit_type: CreditType, amount: int) -> int:
        """Add credits, creating the balance row if needed. Returns the new balance."""
        amount = _require_positive(amount)
        balance = await self._with_retry(
            "increment_credits",
            lambda: self.store.increment_credits(organization_id, credit_type, amount),
        )
        logger.info(
            "Granted %s %s credits to org %s (balance %s)", amount, credit_type.value, organization_id, balance
        )
        return balance

    async def debit_credits(self, organization_id: str, credit_type: CreditType, amount: int) -> int:
        """
        Spend credits. Returns the new balance.

        Raises:
            InsufficientCreditsError: when the balance is below `amount`.
        """
        amount = _require_positive(amount)
        balance = await self._with_retry(
            "conditional_decrement_credits",
            lambda: self.store.conditional_decrement_credits(organization_id, credit_type, amount),
        )
        if balance is None:
            logger.info(
                "Debit of %s %s credits refused for org %s: insufficient balance",
                amount,
                credit_type.value,
                organization_id,
            )
            raise InsufficientCreditsError(organization_id, credit_type.value, amount)
        logger.info(
            "Debited %s %s credits from org %s (balance %s)", amount, credit_type.value, organization_id, balance
        )
        return balance

    # ------------------------------------------------------------------
    # Loyalty points
    # ------------------------------------------------------------------
    async def get_points(self, organization_id: str) -> int:
        return await self._with_retry("read_points", lambda: self.store.read_points(organization_id))

    @staticmethod
    def get_points_value_cents(balance: int) -> int:
        return get_points_value_cents(balance)

    async def earn_points(self, organization_id: str, amount: int) -> int:
        amount = _require_positive(amount)
        balance = await self._with_retry(
            "increment_points", lambda: self.store.increment_points(organization_id, amount)
        )
        logger.info("Org %s earned %s points (balance %s)", organization_id, amount, balance)
        return balance

    async def redeem_points(self, organization_id: str, amount: int) -> int:
        """
        Spend points. Returns the new balance.

        Raises:
            InsufficientPointsError: when the balance is below `amount`.
        """
        amount = _require_positive(amount)
        balance = await self._with_retry(
            "conditional_decrement_points",
            lambda: self.store.conditional_decrement_points(organization_id, amount),
        )
        if balance is None:
            raise InsufficientPointsError(organization_id, amount)
        logger.info("Org %s redeemed %s points (balance %s)", organization_id, amount, balance)
        return balance

    # ------------------------------------------------------------------
    # Combined view
    # ------------------------------------------------------------------
    async def get_entitlements(self, organization_id: str) -> dict[str, Any]:
        credits = await self.get_credits(organization_id)
        points = await self.get_points(organization_id)
        return {
            "credits": {credit_type.value: balance for credit_type, balance in credits.items()},
            "points": {"balance": points, "valueCents": self.get_points_value_cents(points)},
        }
