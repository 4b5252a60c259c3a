from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging
from uuid import UUID

from ..database import get_db
from ..schemas.bid import (
    BidCreateRequest,
    BidCreateResponse,
    BidResponse,
    BidWithDriverResponse,
    BidderInfo,
    BidAcceptResponse,
    BidRejectResponse,
)
from ..schemas.ride import RideResponse
from ..services.bid_service import BidService
from ..services.exceptions import RideServiceError
from ..services.identity_service import IdentityService
from .deps import Actor, Role, require_roles, ensure_ride_owner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rides", tags=["bids"])

# Service instances
bid_service = BidService()


async def _owned_ride(ride_id: UUID, actor: Actor, db: AsyncSession):
    ride = await bid_service.ride_service.get_ride(ride_id, db)
    ensure_ride_owner(ride, actor)
    return ride


@router.post("/{ride_id}/bids", response_model=BidCreateResponse, status_code=status.HTTP_201_CREATED)
async def submit_bid(
    ride_id: UUID,
    bid_data: BidCreateRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.DRIVER)),
):
    """Driver submits a counter-fare on a ride"""
    try:
        bid = await bid_service.submit_bid(
            ride_id, actor.id, bid_data.counter_fare, db, note=bid_data.note
        )
        return BidCreateResponse(bid=BidResponse.model_validate(bid))

    except RideServiceError:
        raise
    except Exception as e:
        logger.error(f"Failed to submit bid: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to submit bid"
        )


@router.get("/{ride_id}/bids", response_model=list[BidWithDriverResponse])
async def list_bids(
    ride_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.SHIPPER, Role.ADMIN)),
):
    """All bids for a ride (empty list when none)"""
    await _owned_ride(ride_id, actor, db)
    rows = await bid_service.list_bids(ride_id, db)

    return [
        BidWithDriverResponse(
            **BidResponse.model_validate(bid).model_dump(),
            driver=BidderInfo(**IdentityService.driver_contact(driver)) if driver else None,
        )
        for bid, driver in rows
    ]


@router.post("/{ride_id}/bids/{bid_id}/accept", response_model=BidAcceptResponse)
async def accept_bid(
    ride_id: UUID,
    bid_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.SHIPPER, Role.ADMIN)),
):
    """Accept a bid: assign the driver and auto-reject the other bids"""
    try:
        await _owned_ride(ride_id, actor, db)
        ride, bid = await bid_service.accept_bid(ride_id, bid_id, db)

        return BidAcceptResponse(
            ride=RideResponse.model_validate(ride),
            accepted_bid=BidResponse.model_validate(bid),
        )

    except (HTTPException, RideServiceError):
        raise
    except Exception as e:
        logger.error(f"Failed to accept bid: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to accept bid"
        )


@router.post("/{ride_id}/bids/{bid_id}/reject", response_model=BidRejectResponse)
async def reject_bid(
    ride_id: UUID,
    bid_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.SHIPPER, Role.ADMIN)),
):
    """Reject a single bid (ride stays Pending)"""
    try:
        await _owned_ride(ride_id, actor, db)
        bid = await bid_service.reject_bid(ride_id, bid_id, db)

        return BidRejectResponse(bid=BidResponse.model_validate(bid))

    except (HTTPException, RideServiceError):
        raise
    except Exception as e:
        logger.error(f"Failed to reject bid: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reject bid"
        )
