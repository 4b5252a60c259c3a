from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging
from uuid import UUID

from ..models.shipper import Shipper
from ..models.driver import Driver
from .exceptions import NotFoundError

logger = logging.getLogger(__name__)


class IdentityService:
    """Resolve actor ids to the display records mirrored from the identity provider"""

    async def get_shipper(self, shipper_id: UUID, db: AsyncSession) -> Optional[Shipper]:
        return await db.get(Shipper, shipper_id)

    async def require_shipper(self, shipper_id: UUID, db: AsyncSession) -> Shipper:
        shipper = await self.get_shipper(shipper_id, db)
        if shipper is None:
            logger.warning(f"Shipper {shipper_id} not found")
            raise NotFoundError("Shipper not found for given shipper id")
        return shipper

    async def require_driver(self, driver_id: UUID, db: AsyncSession) -> Driver:
        driver = await db.get(Driver, driver_id)
        if driver is None:
            logger.warning(f"Driver {driver_id} not found")
            raise NotFoundError("Driver not found")
        return driver

    @staticmethod
    def driver_contact(driver: Driver) -> dict:
        """Display fields embedded in bid listings and real-time payloads"""
        return {
            "id": str(driver.id),
            "name": driver.full_name,
            "phone": driver.phone,
            "vehicle_category": driver.vehicle_category,
            "vehicle_size_feet": driver.vehicle_size_feet,
        }
