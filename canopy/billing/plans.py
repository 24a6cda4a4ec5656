"""
Plan tiers, credit types and the static plan feature table.

Raw tier / status / credit strings coming back from the database or the
payment provider are parsed into the enums here, at the boundary. A value
that exists in persisted data but not in these tables is a deployment gap
(missing migration or price table entry) and raises ConfigurationError.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from canopy.errors import ConfigurationError


class PlanTier(str, Enum):
    # Declaration order is the commercial upgrade path.
    FREE = "FREE"
    STARTER = "STARTER"
    GROWTH = "GROWTH"
    ENTERPRISE = "ENTERPRISE"


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    TRIALING = "TRIALING"
    PAST_DUE = "PAST_DUE"
    CANCELED = "CANCELED"
    UNPAID = "UNPAID"
    INCOMPLETE = "INCOMPLETE"
    PAUSED = "PAUSED"


class CreditType(str, Enum):
    JOB_LISTING = "JOB_LISTING"
    FEATURED_LISTING = "FEATURED_LISTING"
    LISTING_EXTENSION = "LISTING_EXTENSION"


class FeatureKey(str, Enum):
    # Boolean features
    ANALYTICS = "analytics"
    SLACK_INTEGRATION = "slack_integration"
    CALENDAR_INTEGRATION = "calendar_integration"
    CUSTOM_STAGES = "custom_stages"
    CAREER_PAGE = "career_page"
    API_ACCESS = "api_access"
    BULK_ACTIONS = "bulk_actions"
    # Consumption features
    POST_LISTING = "post_listing"
    FEATURE_LISTING = "feature_listing"


class PlanFeatures(BaseModel):
    """Capabilities of one plan tier. None for a limit means unlimited."""

    model_config = ConfigDict(frozen=True)

    max_active_listings: Optional[int]
    included_featured_listings: Optional[int]
    analytics: bool
    slack_integration: bool
    calendar_integration: bool
    custom_stages: bool
    career_page: bool
    api_access: bool
    bulk_actions: bool


PLAN_FEATURES: Mapping[PlanTier, PlanFeatures] = {
    PlanTier.FREE: PlanFeatures(
        max_active_listings=1,
        included_featured_listings=0,
        analytics=False,
        slack_integration=False,
        calendar_integration=False,
        custom_stages=False,
        career_page=False,
        api_access=False,
        bulk_actions=False,
    ),
    PlanTier.STARTER: PlanFeatures(
        max_active_listings=5,
        included_featured_listings=0,
        analytics=False,
        slack_integration=False,
        calendar_integration=True,
        custom_stages=True,
        career_page=True,
        api_access=False,
        bulk_actions=False,
    ),
    PlanTier.GROWTH: PlanFeatures(
        max_active_listings=25,
        included_featured_listings=3,
        analytics=True,
        slack_integration=True,
        calendar_integration=True,
        custom_stages=True,
        career_page=True,
        api_access=False,
        bulk_actions=True,
    ),
    PlanTier.ENTERPRISE: PlanFeatures(
        max_active_listings=None,
        included_featured_listings=10,
        analytics=True,
        slack_integration=True,
        calendar_integration=True,
        custom_stages=True,
        career_page=True,
        api_access=True,
        bulk_actions=True,
    ),
}


class ConsumptionRule(BaseModel):
    """A quota-limited feature with a credit-funded overage path."""

    model_config = ConfigDict(frozen=True)

    quota_field: str
    credit_type: CreditType


CONSUMPTION_FEATURES: Mapping[FeatureKey, ConsumptionRule] = {
    FeatureKey.POST_LISTING: ConsumptionRule(
        quota_field="max_active_listings", credit_type=CreditType.JOB_LISTING
    ),
    FeatureKey.FEATURE_LISTING: ConsumptionRule(
        quota_field="included_featured_listings", credit_type=CreditType.FEATURED_LISTING
    ),
}

# Provider-side subscription statuses (lower snake case) to ours.
PROVIDER_STATUS_MAP: Mapping[str, SubscriptionStatus] = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.TRIALING,
    "past_due": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "unpaid": SubscriptionStatus.UNPAID,
    "incomplete": SubscriptionStatus.INCOMPLETE,
    "incomplete_expired": SubscriptionStatus.CANCELED,
    "paused": SubscriptionStatus.PAUSED,
}


def get_plan_features(tier: PlanTier) -> PlanFeatures:
    """Feature row for `tier`; a missing row is a fatal configuration error."""
    try:
        return PLAN_FEATURES[tier]
    except KeyError:
        raise ConfigurationError(f"No plan features configured for tier {tier!r}") from None


def is_boolean_feature(feature_key: FeatureKey) -> bool:
    return feature_key not in CONSUMPTION_FEATURES


def feature_flag(features: PlanFeatures, feature_key: FeatureKey) -> bool:
    value = getattr(features, feature_key.value, None)
    if not isinstance(value, bool):
        raise ConfigurationError(f"Feature {feature_key.value!r} is not a boolean plan flag")
    return value


def feature_quota(features: PlanFeatures, feature_key: FeatureKey) -> Optional[int]:
    rule = CONSUMPTION_FEATURES[feature_key]
    return getattr(features, rule.quota_field)


def parse_plan_tier(raw: Any) -> PlanTier:
    if isinstance(raw, PlanTier):
        return raw
    try:
        return PlanTier(str(raw).strip().upper())
    except ValueError:
        raise ConfigurationError(f"Unknown plan tier in persisted data: {raw!r}") from None


def parse_credit_type(raw: Any) -> CreditType:
    if isinstance(raw, CreditType):
        return raw
    try:
        return CreditType(str(raw).strip().upper())
    except ValueError:
        raise ConfigurationError(f"Unknown credit type in persisted data: {raw!r}") from None


def parse_subscription_status(raw: Any) -> SubscriptionStatus:
    """
    Parse our own or the provider's status string.

    Unknown statuses fail closed (CANCELED) so a new provider state can
    never unlock paid features.
    """
    if isinstance(raw, SubscriptionStatus):
        return raw
    text = str(raw or "").strip()
    try:
        return SubscriptionStatus(text.upper())
    except ValueError:
        return PROVIDER_STATUS_MAP.get(text.lower(), SubscriptionStatus.CANCELED)


def minimum_tier_for(feature_key: FeatureKey, usage: int = 0, quantity: int = 1) -> Optional[PlanTier]:
    """Lowest tier that allows the feature (or covers usage + quantity from quota)."""
    for tier in PlanTier:
        features = get_plan_features(tier)
        if is_boolean_feature(feature_key):
            if feature_flag(features, feature_key):
                return tier
            continue
        quota = feature_quota(features, feature_key)
        if quota is None or usage + quantity <= quota:
            return tier
    return None
