from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ..database import get_db
from ..schemas.commission import CommissionUpdateRequest, CommissionResponse, EarningsSummaryResponse
from ..services.commission_service import CommissionService
from .deps import Actor, Role, get_current_actor, require_roles

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["commission"])
commission_service = CommissionService()


@router.get("/commission", response_model=CommissionResponse)
async def get_commission(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Current platform commission percent"""
    return CommissionResponse(percent=await commission_service.get_percent(db))


@router.put("/commission", response_model=CommissionResponse)
async def set_commission(
    commission_data: CommissionUpdateRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.ADMIN)),
):
    """Change the commission applied to rides completed from now on"""
    percent = await commission_service.set_percent(commission_data.percent, db)
    logger.info(f"Admin {actor.id} set commission to {percent}%")
    return CommissionResponse(percent=percent)


@router.get("/earnings/summary", response_model=EarningsSummaryResponse)
async def earnings_summary(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.ADMIN)),
):
    """Completed rides, total fare and total commission earned"""
    return EarningsSummaryResponse(**await commission_service.earnings_summary(db))
