from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from typing import Optional, List, Dict, Any
import logging
from uuid import UUID

from ..models.bid import Bid, BidStatus
from ..models.driver import Driver
from ..models.ride import Ride, RideStatus
from ..utils.geo import distance_km, is_coordinate
from ..config import settings
from .driver_service import DriverService
from .exceptions import InvalidStateError

logger = logging.getLogger(__name__)


class MatchingService:
    """Surface Pending rides to a driver by vehicle fit and pickup distance"""

    def __init__(self, driver_service: Optional[DriverService] = None):
        self.driver_service = driver_service or DriverService()

    async def _candidate_rides(self, driver: Driver, db: AsyncSession) -> List[Ride]:
        """Pending rides whose category and size match the driver's vehicle exactly"""
        size_matches = (
            Ride.vehicle_size_feet.is_(None)
            if driver.vehicle_size_feet is None
            else Ride.vehicle_size_feet == driver.vehicle_size_feet
        )
        stmt = (
            select(Ride)
            .where(
                Ride.status == RideStatus.PENDING,
                Ride.vehicle_category == driver.vehicle_category,
                size_matches,
            )
            .order_by(desc(Ride.created_at))
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def _rides_with_pending_bid(self, driver_id: UUID, db: AsyncSession) -> set:
        stmt = select(Bid.ride_id).where(Bid.driver_id == driver_id, Bid.status == BidStatus.PENDING)
        result = await db.execute(stmt)
        return set(result.scalars().all())

    async def available_rides(self, driver_id: UUID, db: AsyncSession) -> Dict[str, Any]:
        """
        Rides a driver may bid on, newest first.

        A ride qualifies when it is Pending, its vehicle category and size
        equal the driver's, its pickup lies within the matching radius of the
        driver's current location, and it is not assigned to someone else.
        Each offer is annotated with the distance and whether this driver
        already has a pending bid on it.

        Raises:
            NotFoundError: unknown driver
            InvalidStateError: driver offline or without a location fix
        """
        driver = await self.driver_service.get_driver(driver_id, db)
        if not driver.is_online or not driver.has_location:
            raise InvalidStateError("Driver location not available (please go online)")

        radius = settings.matching_radius_km
        response = {
            "category": driver.vehicle_category,
            "size_feet": driver.vehicle_size_feet,
            "center": {"lat": driver.current_lat, "lng": driver.current_lng},
            "radius_km": radius,
            "rides": [],
        }

        # Committed drivers get no new work until their ride completes
        if await self.driver_service.is_frozen(driver.id, db):
            logger.info(f"Driver {driver_id} is frozen; no offers")
            return response

        bid_ride_ids = await self._rides_with_pending_bid(driver.id, db)
        offers = []
        for ride in await self._candidate_rides(driver, db):
            if ride.assigned_driver_id is not None and ride.assigned_driver_id != driver.id:
                continue
            if not is_coordinate(ride.pickup_lat) or not is_coordinate(ride.pickup_lng):
                continue

            distance = distance_km(driver.current_lat, driver.current_lng, ride.pickup_lat, ride.pickup_lng)
            if distance > radius:
                continue

            offers.append({
                "ride": ride,
                "distance_km": round(distance, 2),
                "driver_has_bid": ride.id in bid_ride_ids,
            })

        logger.info(f"Found {len(offers)} rides within {radius} km for driver {driver_id}")
        response["rides"] = offers
        return response
