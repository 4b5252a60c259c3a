from pydantic import BaseModel
from typing import Optional
from decimal import Decimal


class CommissionUpdateRequest(BaseModel):
    percent: Optional[Decimal] = None


class CommissionResponse(BaseModel):
    percent: Decimal


class EarningsSummaryResponse(BaseModel):
    completed_rides: int
    total_fare: Decimal
    total_commission: Decimal
    commission_percent: Decimal
