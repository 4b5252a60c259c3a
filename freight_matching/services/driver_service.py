from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc, func
from typing import Optional, List
import logging
from uuid import UUID

from ..database import utcnow
from ..models.driver import Driver, VehicleCategory
from ..models.ride import Ride, RideStatus
from ..models.rating import PartyKind
from ..utils.geo import is_coordinate
from .event_service import EventService
from .exceptions import InvalidInputError
from .identity_service import IdentityService
from .rating_service import RatingService
from .ride_service import RideService

logger = logging.getLogger(__name__)


class DriverService:

    def __init__(
        self,
        event_service: Optional[EventService] = None,
        ride_service: Optional[RideService] = None,
        rating_service: Optional[RatingService] = None,
        identity_service: Optional[IdentityService] = None,
    ):
        self.event_service = event_service or EventService()
        self.identity_service = identity_service or IdentityService()
        self.ride_service = ride_service or RideService(
            event_service=self.event_service,
            identity_service=self.identity_service,
        )
        self.rating_service = rating_service or RatingService()

    async def get_driver(self, driver_id: UUID, db: AsyncSession) -> Driver:
        return await self.identity_service.require_driver(driver_id, db)

    async def is_frozen(self, driver_id: UUID, db: AsyncSession) -> bool:
        """A driver is frozen while assigned to an Accepted or Ongoing ride"""
        return await self.ride_service.driver_active_ride(driver_id, db) is not None

    async def update_driver_location(self, driver_id: UUID, lat, lng, db: AsyncSession) -> Driver:
        """Record a driver's GPS ping and broadcast it"""
        if not is_coordinate(lat) or not is_coordinate(lng):
            raise InvalidInputError("Valid lat & lng required")

        driver = await self.get_driver(driver_id, db)
        try:
            driver.current_lat = lat
            driver.current_lng = lng
            driver.last_location_update = utcnow()
            await db.commit()
            await db.refresh(driver)

            logger.debug(f"Updated location for driver {driver_id}")

        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to update driver location: {e}")
            raise

        await self.event_service.notify_driver_location({
            "driver_id": str(driver.id),
            "lat": driver.current_lat,
            "lng": driver.current_lng,
            "last_location_update": driver.last_location_update.isoformat(),
        })
        return driver

    async def set_online(self, driver_id: UUID, online: bool, db: AsyncSession) -> Driver:
        """Update driver online/offline status"""
        driver = await self.get_driver(driver_id, db)
        try:
            driver.is_online = online
            await db.commit()
            await db.refresh(driver)

            logger.info(f"Driver {driver_id} is now {'online' if online else 'offline'}")
            return driver

        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to update driver status: {e}")
            raise

    async def get_current_ride(self, driver_id: UUID, db: AsyncSession) -> Optional[Ride]:
        await self.get_driver(driver_id, db)
        return await self.ride_service.driver_active_ride(driver_id, db)

    async def get_completed_rides(self, driver_id: UUID, db: AsyncSession) -> List[Ride]:
        """Completed rides for a driver, latest first"""
        await self.get_driver(driver_id, db)
        stmt = (
            select(Ride)
            .where(Ride.assigned_driver_id == driver_id, Ride.status == RideStatus.COMPLETED)
            .order_by(desc(Ride.completed_at))
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def get_profile(self, driver_id: UUID, db: AsyncSession) -> dict:
        """Driver record with derived frozen flag and rating"""
        driver = await self.get_driver(driver_id, db)
        average, count = await self.rating_service.average_rating(driver.id, PartyKind.DRIVER, db)

        return {
            "id": driver.id,
            "name": driver.full_name,
            "phone": driver.phone,
            "vehicle_number": driver.vehicle_number,
            "vehicle_category": driver.vehicle_category,
            "vehicle_size_feet": driver.vehicle_size_feet,
            "document_ref": driver.document_ref,
            "is_online": driver.is_online,
            "current_lat": driver.current_lat,
            "current_lng": driver.current_lng,
            "last_location_update": driver.last_location_update,
            "is_frozen": await self.is_frozen(driver.id, db),
            "rating": average,
            "reviews": count,
        }

    async def vehicle_stats(self, db: AsyncSession) -> dict:
        """Registered drivers per vehicle category; every category is listed, zero if empty"""
        stmt = select(Driver.vehicle_category, func.count(Driver.id)).group_by(Driver.vehicle_category)
        rows = (await db.execute(stmt)).all()

        stats = {category.value: 0 for category in VehicleCategory}
        for category, count in rows:
            key = category or VehicleCategory.UNCATEGORIZED.value
            stats[key] = stats.get(key, 0) + count

        return {"stats": stats, "total": sum(stats.values())}
