from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging
from uuid import UUID

from ..database import get_db
from ..schemas.ride import (
    RideCreateRequest,
    LocationUpdateRequest,
    RideCreateResponse,
    RideResponse,
    RideListResponse,
    RideOffer,
    AvailableRidesResponse,
    DriverLocationResponse,
)
from ..services.exceptions import RideServiceError
from ..services.matching_service import MatchingService
from ..services.ride_service import RideService
from .deps import Actor, Role, get_current_actor, require_roles, ensure_ride_owner, ensure_ride_driver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rides", tags=["rides"])

# Service instances
ride_service = RideService()
matching_service = MatchingService()


@router.post("", response_model=RideCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_ride(
    ride_data: RideCreateRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.SHIPPER)),
):
    """Create a new freight request"""
    try:
        ride, shipper = await ride_service.create_ride(actor.id, ride_data, db)

        return RideCreateResponse(
            ride=RideResponse.model_validate(ride),
            shipper_phone=shipper.phone,
        )

    except RideServiceError:
        raise
    except Exception as e:
        logger.error(f"Failed to create ride: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create ride"
        )


@router.get("/available", response_model=AvailableRidesResponse)
async def list_available_rides(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.DRIVER)),
):
    """Pending rides matching the calling driver's vehicle, within the matching radius"""
    try:
        result = await matching_service.available_rides(actor.id, db)

        offers = [
            RideOffer(
                **RideResponse.model_validate(offer["ride"]).model_dump(),
                distance_km=offer["distance_km"],
                driver_has_bid=offer["driver_has_bid"],
            )
            for offer in result["rides"]
        ]
        return AvailableRidesResponse(
            category=result["category"],
            size_feet=result["size_feet"],
            center=result["center"],
            radius_km=result["radius_km"],
            total=len(offers),
            rides=offers,
        )

    except RideServiceError:
        raise
    except Exception as e:
        logger.error(f"Failed to list available rides: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch available rides"
        )


@router.get("/shipper/me", response_model=RideListResponse)
async def list_my_rides(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.SHIPPER)),
):
    """Rides created by the calling shipper, latest first"""
    rides = await ride_service.list_shipper_rides(actor.id, db)
    return RideListResponse(
        rides=[RideResponse.model_validate(ride) for ride in rides],
        total=len(rides),
    )


@router.get("/{ride_id}", response_model=RideResponse)
async def get_ride(
    ride_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Get ride details"""
    ride = await ride_service.get_ride(ride_id, db)
    return RideResponse.model_validate(ride)


@router.post("/{ride_id}/accept", response_model=RideResponse)
async def accept_ride(
    ride_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.DRIVER)),
):
    """Driver takes the ride at the offered fare (no bid round)"""
    try:
        ride = await ride_service.accept_ride_direct(ride_id, actor.id, db)
        return RideResponse.model_validate(ride)

    except RideServiceError:
        raise
    except Exception as e:
        logger.error(f"Failed to accept ride: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to accept ride"
        )


@router.post("/{ride_id}/start", response_model=RideResponse)
async def start_ride(
    ride_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.DRIVER, Role.ADMIN)),
):
    """Assigned driver picks up the load (Accepted -> Ongoing)"""
    try:
        ride = await ride_service.get_ride(ride_id, db)
        ensure_ride_driver(ride, actor)

        ride = await ride_service.start_ride(ride_id, db)
        return RideResponse.model_validate(ride)

    except (HTTPException, RideServiceError):
        raise
    except Exception as e:
        logger.error(f"Failed to start ride: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to start ride"
        )


@router.post("/{ride_id}/complete", response_model=RideResponse)
async def complete_ride(
    ride_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.SHIPPER, Role.DRIVER, Role.ADMIN)),
):
    """Mark a ride as completed and snapshot the platform commission"""
    try:
        ride = await ride_service.get_ride(ride_id, db)
        ensure_ride_owner(ride, actor)
        ensure_ride_driver(ride, actor)

        ride = await ride_service.complete_ride(ride_id, db)
        return RideResponse.model_validate(ride)

    except (HTTPException, RideServiceError):
        raise
    except Exception as e:
        logger.error(f"Failed to complete ride: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to complete ride"
        )


@router.patch("/{ride_id}/location", response_model=DriverLocationResponse)
async def update_ride_location(
    ride_id: UUID,
    location: LocationUpdateRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.DRIVER)),
):
    """Push the assigned driver's live position for this ride"""
    try:
        ride = await ride_service.get_ride(ride_id, db)
        ensure_ride_driver(ride, actor)

        snapshot = await ride_service.update_ride_location(ride_id, location.lat, location.lng, db)
        return DriverLocationResponse(**snapshot)

    except (HTTPException, RideServiceError):
        raise
    except Exception as e:
        logger.error(f"Failed to update driver location: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update driver location"
        )


@router.get("/{ride_id}/location", response_model=DriverLocationResponse)
async def get_ride_location(
    ride_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Last known position of the ride's assigned driver"""
    snapshot = await ride_service.get_driver_location(ride_id, db)
    return DriverLocationResponse(**snapshot)
