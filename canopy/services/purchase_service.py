"""
Purchase fulfilment for payment webhooks.

The payment provider retries webhooks, so every grant is recorded under the
provider's event id first; a repeated event is acknowledged without granting
credits or points a second time. The idempotency row, the credit grant and
the points accrual share the request's transaction.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

from fastapi import status

from canopy.billing.plans import CreditType
from canopy.core.config import settings
from canopy.errors import raise_app_error
from canopy.repositories.credit_grant_repository import CreditGrantRepository
from canopy.services.credit_ledger_service import CreditLedgerService

logger = logging.getLogger(__name__)


def points_for_purchase(amount_cents: int, points_per_dollar: Optional[int] = None) -> int:
    """Loyalty points earned for a purchase; partial dollars earn nothing."""
    rate = settings.POINTS_PER_DOLLAR if points_per_dollar is None else points_per_dollar
    return max(0, amount_cents) // 100 * rate


class PurchaseService:
    def __init__(self, grants: CreditGrantRepository, ledger: CreditLedgerService):
        self.grants = grants
        self.ledger = ledger

    async def apply_purchase(
        self,
        organization_id: str,
        *,
        idempotency_key: str,
        credit_type: CreditType,
        quantity: int,
        amount_cents: int = 0,
        source: Optional[str] = None,
    ) -> bool:
        """
        Grant purchased credits and earn points once per idempotency key.

        Returns False when the key was already processed.
        """
        if not idempotency_key:
            raise_app_error(
                status.HTTP_400_BAD_REQUEST, "IDEMPOTENCY_KEY_REQUIRED", "An idempotency key is required"
            )
        points = points_for_purchase(amount_cents)

        recorded = await self.grants.record_grant(
            organization_id=organization_id,
            idempotency_key=idempotency_key,
            credit_type=credit_type,
            amount=quantity,
            amount_cents=amount_cents,
            points_earned=points,
            source=source,
        )
        if not recorded:
            logger.info(
                "Purchase %s already applied for org %s, skipping", idempotency_key, organization_id
            )
            return False

        await self.ledger.grant_credits(organization_id, credit_type, quantity)
        if points:
            await self.ledger.earn_points(organization_id, points)
        return True

    async def list_purchases(
        self, organization_id: str, *, limit: int = 50, offset: int = 0
    ) -> Tuple[List[Any], int]:
        """One page of the organization's purchase history plus the total count."""
        items = await self.grants.list_for_tenant(organization_id, limit=limit, offset=offset)
        total = await self.grants.count_for_tenant(organization_id)
        return items, total
