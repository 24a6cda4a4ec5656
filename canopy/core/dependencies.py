"""
FastAPI dependencies for the application.

Authentication happens upstream; the gateway forwards the organization and
the caller's role as headers and this service trusts them.
"""

from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.core.permissions import Roles
from canopy.db.session import get_db
from canopy.repositories.credit_grant_repository import CreditGrantRepository
from canopy.repositories.credit_ledger_repository import CreditLedgerRepository
from canopy.repositories.ledger_store import LedgerStore
from canopy.services.credit_ledger_service import CreditLedgerService
from canopy.services.feature_gate_service import FeatureGateService
from canopy.services.pipeline_service import PipelineService
from canopy.services.purchase_service import PurchaseService


@dataclass(frozen=True)
class OrgContext:
    """Authenticated (organization, role) pair for the current request."""

    organization_id: str
    role: str


async def get_tenant_id(x_tenant_id: str = Header(None)) -> str:
    """
    Extract and validate tenant_id from header.
    
    Raises 400 if X-Tenant-ID header is missing or not a UUID.
    """
    if not x_tenant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Tenant-ID header is required"
        )
    try:
        return str(UUID(x_tenant_id))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Tenant-ID header must be a UUID"
        )


async def get_org_context(
    tenant_id: str = Depends(get_tenant_id),
    x_user_role: str = Header(None),
) -> OrgContext:
    role = (x_user_role or Roles.VIEWER).strip().lower()
    if role not in Roles.ALL:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Unknown role: {role}"
        )
    return OrgContext(organization_id=tenant_id, role=role)


async def get_ledger_store(db: AsyncSession = Depends(get_db)) -> LedgerStore:
    return CreditLedgerRepository(db)


async def get_credit_ledger_service(store: LedgerStore = Depends(get_ledger_store)) -> CreditLedgerService:
    return CreditLedgerService(store)


async def get_feature_gate_service(store: LedgerStore = Depends(get_ledger_store)) -> FeatureGateService:
    return FeatureGateService(store)


async def get_purchase_service(
    db: AsyncSession = Depends(get_db),
    ledger: CreditLedgerService = Depends(get_credit_ledger_service),
) -> PurchaseService:
    return PurchaseService(CreditGrantRepository(db), ledger)


async def get_pipeline_service(db: AsyncSession = Depends(get_db)) -> PipelineService:
    return PipelineService(db)
