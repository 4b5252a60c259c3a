from pydantic import BaseModel, Field, UUID4
from typing import Optional
from datetime import datetime
from uuid import UUID
from decimal import Decimal
from ..models.bid import BidStatus
from .ride import RideResponse


# Request schemas
class BidCreateRequest(BaseModel):
    counter_fare: Optional[Decimal] = None
    note: Optional[str] = Field(None, max_length=1000)


# Response schemas
class BidResponse(BaseModel):
    id: UUID4
    ride_id: UUID4
    driver_id: UUID
    counter_fare: Decimal
    status: BidStatus
    note: str = ""
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BidderInfo(BaseModel):
    id: UUID
    name: str
    phone: str
    vehicle_category: str
    vehicle_size_feet: Optional[int] = None


class BidWithDriverResponse(BidResponse):
    driver: Optional[BidderInfo] = None


class BidCreateResponse(BaseModel):
    bid: BidResponse
    message: str = "Bid submitted successfully"


class BidAcceptResponse(BaseModel):
    ride: RideResponse
    accepted_bid: BidResponse
    message: str = "Bid accepted successfully"


class BidRejectResponse(BaseModel):
    bid: BidResponse
    message: str = "Bid rejected successfully"


class RepairDetail(BaseModel):
    ride_id: UUID4
    kept_bid_id: UUID4
    rejected_count: int
    assigned_driver_id: UUID


class RepairSkipped(BaseModel):
    ride_id: UUID4
    reason: str


class RepairReport(BaseModel):
    affected_rides: int = 0
    details: list[RepairDetail] = []
    skipped: list[RepairSkipped] = []
