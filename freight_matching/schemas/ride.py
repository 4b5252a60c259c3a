from pydantic import BaseModel, Field, UUID4
from typing import Optional
from datetime import datetime
from uuid import UUID
from decimal import Decimal
from ..models.ride import RideStatus, VehicleRoute


class Coordinates(BaseModel):
    lat: Optional[float] = None
    lng: Optional[float] = None


# Request schemas
# Required text fields are checked by RideService so callers get InvalidInput
class RideCreateRequest(BaseModel):
    pickup_location: Optional[str] = Field(None, max_length=500)
    pickup_coordinates: Optional[Coordinates] = None
    dropoff_location: Optional[str] = Field(None, max_length=500)
    dropoff_coordinates: Optional[Coordinates] = None
    material_type: Optional[str] = Field(None, max_length=200)
    offer_fare: Optional[Decimal] = None
    vehicle_category: Optional[str] = Field(None, max_length=50)
    vehicle_size_feet: Optional[int] = None
    estimated_weight: Optional[str] = Field(None, max_length=100)
    vehicle_route: VehicleRoute = VehicleRoute.STANDARD


class LocationUpdateRequest(BaseModel):
    lat: Optional[float] = None
    lng: Optional[float] = None


# Response schemas
class RideResponse(BaseModel):
    id: UUID4
    shipper_id: UUID
    shipper_name: str
    pickup_location: str
    pickup_lat: Optional[float] = None
    pickup_lng: Optional[float] = None
    dropoff_location: str
    dropoff_lat: Optional[float] = None
    dropoff_lng: Optional[float] = None
    material_type: str
    vehicle_category: str
    vehicle_size_feet: Optional[int] = None
    estimated_weight: Optional[str] = None
    vehicle_route: VehicleRoute
    offer_fare: Decimal
    fare_amount: Decimal
    status: RideStatus
    assigned_driver_id: Optional[UUID] = None
    commission_percent: Optional[Decimal] = None
    commission_amount: Optional[Decimal] = None
    driver_lat: Optional[float] = None
    driver_lng: Optional[float] = None
    last_location_update: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RideCreateResponse(BaseModel):
    ride: RideResponse
    shipper_phone: Optional[str] = None
    message: str = "Ride created successfully"


class RideListResponse(BaseModel):
    rides: list[RideResponse]
    total: int


class CurrentRideResponse(BaseModel):
    ride: Optional[RideResponse] = None


class RideOffer(RideResponse):
    """A pending ride as seen by one driver"""
    distance_km: float
    driver_has_bid: bool


class AvailableRidesResponse(BaseModel):
    category: str
    size_feet: Optional[int] = None
    center: Coordinates
    radius_km: float
    total: int
    rides: list[RideOffer]


class DriverLocationResponse(BaseModel):
    ride_id: Optional[UUID4] = None
    driver_id: Optional[UUID] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    last_location_update: Optional[datetime] = None
    status: Optional[RideStatus] = None
