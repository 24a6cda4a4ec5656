"""
Feature gate evaluation.

Decides whether an organization's plan (and, for quota features, its credit
balance) permits an action, and says why not so the caller can render the
right upsell: upgrade the plan or buy credits.

Subscription status degrades linearly ACTIVE -> PAST_DUE -> CANCELED.
PAST_DUE keeps the stored tier for a grace window; anything inactive is
evaluated as FREE regardless of the stored tier, so gates fail closed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from canopy.billing.plans import (
    CONSUMPTION_FEATURES,
    CreditType,
    FeatureKey,
    PlanFeatures,
    PlanTier,
    SubscriptionStatus,
    feature_flag,
    feature_quota,
    get_plan_features,
    is_boolean_feature,
    minimum_tier_for,
)
from canopy.core.config import settings
from canopy.errors import ConfigurationError
from canopy.repositories.ledger_store import LedgerStore, SubscriptionRecord
from canopy.services.storage_retry import Sleeper, StorageRetry
from canopy.utils.time import ensure_aware, utc_now

logger = logging.getLogger(__name__)


class GateReason(str, Enum):
    NONE = "NONE"
    PLAN_INSUFFICIENT = "PLAN_INSUFFICIENT"
    CREDIT_EXHAUSTED = "CREDIT_EXHAUSTED"
    # Quota used up but the overage can be paid with credits
    USES_CREDIT = "USES_CREDIT"


class GateResult(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    allowed: bool
    reason: GateReason
    min_tier: Optional[PlanTier] = None
    credit_type: Optional[CreditType] = None
    effective_tier: Optional[PlanTier] = None


@dataclass(frozen=True)
class GateContext:
    # Current consumption counted against the quota (e.g. active listings)
    usage: int = 0
    # How many units the requested action consumes
    quantity: int = 1


class SubscriptionOverview(BaseModel):
    """What the billing page shows: stored plan, the tier gates actually use, and its features."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    plan_tier: PlanTier
    effective_tier: PlanTier
    status: Optional[SubscriptionStatus] = None
    features: PlanFeatures
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    grace_ends_at: Optional[datetime] = None


_ACTIVE_STATUSES = frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING})


def _grace_ends_at(subscription: SubscriptionRecord, grace_days: Optional[int]) -> Optional[datetime]:
    if subscription.status != SubscriptionStatus.PAST_DUE or subscription.past_due_since is None:
        return None
    grace = timedelta(days=settings.PAST_DUE_GRACE_DAYS if grace_days is None else grace_days)
    return ensure_aware(subscription.past_due_since) + grace


def effective_tier(
    subscription: Optional[SubscriptionRecord],
    now: Optional[datetime] = None,
    grace_days: Optional[int] = None,
) -> PlanTier:
    """Tier the gates should use for this subscription state."""
    if subscription is None:
        return PlanTier.FREE

    if subscription.status in _ACTIVE_STATUSES:
        return subscription.plan_tier

    if subscription.status == SubscriptionStatus.PAST_DUE:
        grace_ends_at = _grace_ends_at(subscription, grace_days)
        if grace_ends_at is None:
            # Grace window start unknown: keep the tier until the sync sets it.
            return subscription.plan_tier
        if (now or utc_now()) <= grace_ends_at:
            return subscription.plan_tier
        return PlanTier.FREE

    return PlanTier.FREE


class FeatureGateService:
    def __init__(
        self,
        store: LedgerStore,
        *,
        grace_days: Optional[int] = None,
        retry_attempts: Optional[int] = None,
        retry_backoff_seconds: Optional[float] = None,
        sleeper: Sleeper = asyncio.sleep,
    ):
        self.store = store
        self.grace_days = grace_days
        self.retry = StorageRetry(retry_attempts, retry_backoff_seconds, sleeper)

    async def _read_subscription(self, organization_id: str) -> Optional[SubscriptionRecord]:
        return await self.retry.run("read_subscription", lambda: self.store.read_subscription(organization_id))

    async def get_effective_tier(self, organization_id: str, now: Optional[datetime] = None) -> PlanTier:
        subscription = await self._read_subscription(organization_id)
        return effective_tier(subscription, now=now, grace_days=self.grace_days)

    async def get_subscription_overview(
        self, organization_id: str, now: Optional[datetime] = None
    ) -> SubscriptionOverview:
        subscription = await self._read_subscription(organization_id)
        tier = effective_tier(subscription, now=now, grace_days=self.grace_days)
        if subscription is None:
            return SubscriptionOverview(
                plan_tier=PlanTier.FREE, effective_tier=tier, features=get_plan_features(tier)
            )
        return SubscriptionOverview(
            plan_tier=subscription.plan_tier,
            effective_tier=tier,
            status=subscription.status,
            features=get_plan_features(tier),
            current_period_end=subscription.current_period_end,
            cancel_at_period_end=subscription.cancel_at_period_end,
            grace_ends_at=_grace_ends_at(subscription, self.grace_days),
        )

    async def get_effective_features(
        self, organization_id: str, now: Optional[datetime] = None
    ) -> tuple[PlanTier, PlanFeatures]:
        tier = await self.get_effective_tier(organization_id, now=now)
        return tier, get_plan_features(tier)

    async def evaluate_gate(
        self,
        organization_id: str,
        feature_key: FeatureKey,
        context: Optional[GateContext] = None,
        now: Optional[datetime] = None,
    ) -> GateResult:
        context = context or GateContext()
        try:
            tier, features = await self.get_effective_features(organization_id, now=now)
            if is_boolean_feature(feature_key):
                return self._evaluate_flag(tier, features, feature_key)
            return await self._evaluate_consumption(organization_id, tier, features, feature_key, context)
        except ConfigurationError:
            logger.exception(
                "Feature gate configuration error for org %s, feature %s", organization_id, feature_key.value
            )
            raise

    def _evaluate_flag(self, tier: PlanTier, features: PlanFeatures, feature_key: FeatureKey) -> GateResult:
        if feature_flag(features, feature_key):
            return GateResult(allowed=True, reason=GateReason.NONE, effective_tier=tier)
        return GateResult(
            allowed=False,
            reason=GateReason.PLAN_INSUFFICIENT,
            min_tier=minimum_tier_for(feature_key),
            effective_tier=tier,
        )

    async def _evaluate_consumption(
        self,
        organization_id: str,
        tier: PlanTier,
        features: PlanFeatures,
        feature_key: FeatureKey,
        context: GateContext,
    ) -> GateResult:
        rule = CONSUMPTION_FEATURES[feature_key]
        quota = feature_quota(features, feature_key)
        if quota is None or context.usage + context.quantity <= quota:
            return GateResult(allowed=True, reason=GateReason.NONE, effective_tier=tier)

        # Only the units beyond the remaining quota are paid with credits
        overage = min(context.quantity, context.usage + context.quantity - quota)
        balance = await self.retry.run(
            "read_credit_balance",
            lambda: self.store.read_credit_balance(organization_id, rule.credit_type),
        )
        if balance >= overage:
            return GateResult(
                allowed=True,
                reason=GateReason.USES_CREDIT,
                credit_type=rule.credit_type,
                effective_tier=tier,
            )

        upgrade = minimum_tier_for(feature_key, usage=context.usage, quantity=context.quantity)
        if upgrade is not None and list(PlanTier).index(upgrade) <= list(PlanTier).index(tier):
            upgrade = None
        return GateResult(
            allowed=False,
            reason=GateReason.CREDIT_EXHAUSTED,
            min_tier=upgrade,
            credit_type=rule.credit_type,
            effective_tier=tier,
        )
