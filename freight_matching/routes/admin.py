from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ..database import get_db
from ..schemas.bid import RepairReport
from ..services.bid_service import BidService
from .deps import Actor, Role, require_roles

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])
bid_service = BidService()


@router.post("/repair/duplicate-acceptances", response_model=RepairReport)
async def repair_duplicate_acceptances(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.ADMIN)),
):
    """Keep the latest Accepted bid per ride and reject the others"""
    logger.info(f"Admin {actor.id} started duplicate acceptance repair")
    report = await bid_service.repair_duplicate_acceptances(db)
    return RepairReport(**report)
