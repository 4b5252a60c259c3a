from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging
from uuid import UUID

from ..database import get_db
from ..schemas.driver import (
    DriverStatusUpdateRequest,
    DriverStatusResponse,
    DriverProfileResponse,
)
from ..schemas.ride import (
    LocationUpdateRequest,
    DriverLocationResponse,
    RideResponse,
    RideListResponse,
    CurrentRideResponse,
)
from ..services.driver_service import DriverService
from ..services.exceptions import RideServiceError
from .deps import Actor, Role, get_current_actor, require_roles

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/drivers", tags=["drivers"])
driver_service = DriverService()


@router.patch("/me/location", response_model=DriverLocationResponse)
async def update_driver_location(
    location: LocationUpdateRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.DRIVER)),
):
    """Update the calling driver's current position"""
    try:
        driver = await driver_service.update_driver_location(actor.id, location.lat, location.lng, db)

        return DriverLocationResponse(
            driver_id=driver.id,
            lat=driver.current_lat,
            lng=driver.current_lng,
            last_location_update=driver.last_location_update,
        )

    except RideServiceError:
        raise
    except Exception as e:
        logger.error(f"Failed to update driver location: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update location"
        )


@router.put("/me/status", response_model=DriverStatusResponse)
async def update_driver_status(
    status_data: DriverStatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.DRIVER)),
):
    """Go online or offline"""
    try:
        driver = await driver_service.set_online(actor.id, status_data.online, db)

        return DriverStatusResponse(
            driver_id=driver.id,
            online=driver.is_online,
            message=f"Driver is now {'Online' if driver.is_online else 'Offline'}",
        )

    except RideServiceError:
        raise
    except Exception as e:
        logger.error(f"Failed to update driver status: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update status"
        )


@router.get("/me/current-ride", response_model=CurrentRideResponse)
async def get_current_ride(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.DRIVER)),
):
    """The ride the calling driver is committed to, or null"""
    ride = await driver_service.get_current_ride(actor.id, db)
    return CurrentRideResponse(ride=RideResponse.model_validate(ride) if ride else None)


@router.get("/me/completed-rides", response_model=RideListResponse)
async def get_completed_rides(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.DRIVER)),
):
    rides = await driver_service.get_completed_rides(actor.id, db)
    return RideListResponse(
        rides=[RideResponse.model_validate(ride) for ride in rides],
        total=len(rides),
    )


@router.get("/{driver_id}", response_model=DriverProfileResponse)
async def get_driver(
    driver_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Driver profile with rating and frozen flag"""
    profile = await driver_service.get_profile(driver_id, db)
    return DriverProfileResponse(**profile)
