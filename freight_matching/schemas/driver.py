from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from uuid import UUID


# Request schemas
class DriverStatusUpdateRequest(BaseModel):
    online: bool


# Response schemas
class DriverStatusResponse(BaseModel):
    driver_id: UUID
    online: bool
    message: str


class DriverProfileResponse(BaseModel):
    id: UUID
    name: str
    phone: str
    vehicle_number: Optional[str] = None
    vehicle_category: str
    vehicle_size_feet: Optional[int] = None
    document_ref: Optional[str] = None
    is_online: bool
    current_lat: Optional[float] = None
    current_lng: Optional[float] = None
    last_location_update: Optional[datetime] = None
    is_frozen: bool
    rating: float
    reviews: int


class VehicleStatsResponse(BaseModel):
    stats: dict[str, int]
    total: int
