"""
Billing router - subscription, entitlements, feature gates, credit and
points mutations, purchase history.
"""

from fastapi import APIRouter, Depends, Header, Query, status

from canopy.billing.plans import FeatureKey
from canopy.core.dependencies import (
    OrgContext,
    get_credit_ledger_service,
    get_feature_gate_service,
    get_org_context,
    get_purchase_service,
)
from canopy.core.permissions import Roles, raise_if_not_roles
from canopy.schemas.billing import (
    CreditBalanceRead,
    CreditDebitRequest,
    CreditGrantRequest,
    EntitlementsRead,
    GrantResultRead,
    PointsRead,
    PointsRedeemRequest,
    PurchaseHistoryRead,
    PurchaseRead,
)
from canopy.services.credit_ledger_service import CreditLedgerService
from canopy.services.feature_gate_service import (
    FeatureGateService,
    GateContext,
    GateResult,
    SubscriptionOverview,
)
from canopy.services.purchase_service import PurchaseService

router = APIRouter(prefix="/billing", tags=["billing"])


@router.get("/subscription", response_model=SubscriptionOverview)
async def get_subscription(
    ctx: OrgContext = Depends(get_org_context),
    gates: FeatureGateService = Depends(get_feature_gate_service),
):
    """Stored plan and status, the tier gates currently apply, and its features."""
    return await gates.get_subscription_overview(ctx.organization_id)


@router.get("/entitlements", response_model=EntitlementsRead)
async def get_entitlements(
    ctx: OrgContext = Depends(get_org_context),
    ledger: CreditLedgerService = Depends(get_credit_ledger_service),
):
    """Credit balances by type plus loyalty points and their value."""
    return await ledger.get_entitlements(ctx.organization_id)


@router.get("/gates/{feature_key}", response_model=GateResult)
async def evaluate_feature_gate(
    feature_key: FeatureKey,
    usage: int = Query(0, ge=0),
    quantity: int = Query(1, ge=1),
    ctx: OrgContext = Depends(get_org_context),
    gates: FeatureGateService = Depends(get_feature_gate_service),
):
    """
    Whether the organization may use a feature right now.

    `usage` is the current consumption for quota features (e.g. active
    listings); `quantity` is what the action would consume.
    """
    return await gates.evaluate_gate(
        ctx.organization_id, feature_key, GateContext(usage=usage, quantity=quantity)
    )


@router.post("/credits/debit", response_model=CreditBalanceRead)
async def debit_credits(
    request: CreditDebitRequest,
    ctx: OrgContext = Depends(get_org_context),
    ledger: CreditLedgerService = Depends(get_credit_ledger_service),
):
    """Spend credits; 402 when the balance is insufficient."""
    raise_if_not_roles(ctx.role, Roles.CREDIT_SPENDERS, "spend credits")
    balance = await ledger.debit_credits(ctx.organization_id, request.credit_type, request.amount)
    return CreditBalanceRead(credit_type=request.credit_type, balance=balance)


@router.post("/credits/grant", response_model=GrantResultRead, status_code=status.HTTP_201_CREATED)
async def grant_credits(
    request: CreditGrantRequest,
    idempotency_key: str = Header(None),
    ctx: OrgContext = Depends(get_org_context),
    purchases: PurchaseService = Depends(get_purchase_service),
    ledger: CreditLedgerService = Depends(get_credit_ledger_service),
):
    """
    Grant credits once per Idempotency-Key (purchase fulfilment, admin top-up).
    """
    raise_if_not_roles(ctx.role, Roles.BILLING_MANAGERS, "grant credits")
    applied = await purchases.apply_purchase(
        ctx.organization_id,
        idempotency_key=idempotency_key,
        credit_type=request.credit_type,
        quantity=request.amount,
        amount_cents=request.amount_cents,
        source=request.source,
    )
    balance = await ledger.get_credit_balance(ctx.organization_id, request.credit_type)
    return GrantResultRead(applied=applied, balance=balance)


@router.post("/points/redeem", response_model=PointsRead)
async def redeem_points(
    request: PointsRedeemRequest,
    ctx: OrgContext = Depends(get_org_context),
    ledger: CreditLedgerService = Depends(get_credit_ledger_service),
):
    raise_if_not_roles(ctx.role, Roles.CREDIT_SPENDERS, "redeem points")
    balance = await ledger.redeem_points(ctx.organization_id, request.amount)
    return PointsRead(balance=balance, value_cents=ledger.get_points_value_cents(balance))


@router.get("/purchases", response_model=PurchaseHistoryRead)
async def list_purchases(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    ctx: OrgContext = Depends(get_org_context),
    purchases: PurchaseService = Depends(get_purchase_service),
):
    """Purchase history, newest first."""
    raise_if_not_roles(ctx.role, Roles.BILLING_MANAGERS, "view purchase history")
    items, total = await purchases.list_purchases(ctx.organization_id, limit=limit, offset=offset)
    return PurchaseHistoryRead(
        items=[PurchaseRead.model_validate(item) for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )
