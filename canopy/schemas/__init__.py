"""
Schemas package.

Import all schemas here for easy access.
"""

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
from canopy.schemas.pipeline import PhaseGroupRead, StageRead
