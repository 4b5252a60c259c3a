from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ..database import get_db
from ..schemas.driver import VehicleStatsResponse
from ..services.driver_service import DriverService
from .deps import Actor, get_current_actor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/vehicles", tags=["vehicles"])
driver_service = DriverService()


@router.get("/stats", response_model=VehicleStatsResponse)
async def vehicle_stats(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Registered vehicles per category, counted from driver records"""
    return VehicleStatsResponse(**await driver_service.vehicle_stats(db))
