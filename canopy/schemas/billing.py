"""
Billing Pydantic schemas (API request/response shapes).
"""

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from canopy.billing.plans import CreditType


class CamelModel(BaseModel):
    """Serializes snake_case fields as camelCase; accepts either on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreditDebitRequest(CamelModel):
    credit_type: CreditType
    amount: int = Field(1, gt=0)


class CreditGrantRequest(CamelModel):
    credit_type: CreditType
    amount: int = Field(..., gt=0)
    # Purchase total in cents; earns loyalty points
    amount_cents: int = Field(0, ge=0)
    source: str = "manual"


class PointsRedeemRequest(CamelModel):
    amount: int = Field(..., gt=0)


class CreditBalanceRead(CamelModel):
    credit_type: CreditType
    balance: int


class PointsRead(CamelModel):
    balance: int
    value_cents: int


class EntitlementsRead(CamelModel):
    credits: Dict[str, int]
    points: PointsRead


class GrantResultRead(CamelModel):
    applied: bool
    balance: int


class PurchaseRead(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    credit_type: CreditType
    amount: int
    amount_cents: int
    points_earned: int
    source: Optional[str] = None
    created_at: datetime


class PurchaseHistoryRead(CamelModel):
    items: List[PurchaseRead]
    total: int
    limit: int
    offset: int
