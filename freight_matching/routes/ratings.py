from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging
from uuid import UUID

from ..database import get_db
from ..models.rating import PartyKind
from ..schemas.rating import Party, RatingCreateRequest, RatingResponse, AverageRatingResponse
from ..services.exceptions import RideServiceError
from ..services.rating_service import RatingService
from .deps import Actor, Role, get_current_actor, require_roles

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["ratings"])
rating_service = RatingService()


@router.post("/rides/{ride_id}/ratings", response_model=RatingResponse, status_code=status.HTTP_201_CREATED)
async def submit_rating(
    ride_id: UUID,
    rating_data: RatingCreateRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.SHIPPER, Role.DRIVER)),
):
    """Rate the other party of a completed ride"""
    try:
        rating = await rating_service.submit_rating(
            ride_id,
            actor.party,
            rating_data.ratee,
            rating_data.stars,
            rating_data.comment,
            db,
        )
        return RatingResponse.from_rating(rating)

    except RideServiceError:
        raise
    except Exception as e:
        logger.error(f"Failed to submit rating: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to submit rating"
        )


@router.get("/ratings/{kind}/{subject_id}", response_model=AverageRatingResponse)
async def get_average_rating(
    kind: PartyKind,
    subject_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Average stars and count received by a driver or user"""
    average, count = await rating_service.average_rating(subject_id, kind, db)
    return AverageRatingResponse(
        subject=Party(kind=kind, id=subject_id),
        average=average,
        count=count,
    )
