from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import Optional, Tuple
import logging
from uuid import UUID

from ..models.rating import Rating, PartyKind
from ..models.ride import Ride, RideStatus
from ..schemas.rating import Party
from .exceptions import InvalidInputError, InvalidStateError, NotFoundError

logger = logging.getLogger(__name__)


class RatingService:

    async def submit_rating(
        self,
        ride_id: UUID,
        rater: Optional[Party],
        ratee: Optional[Party],
        stars: Optional[int],
        comment: Optional[str],
        db: AsyncSession,
    ) -> Rating:
        """Record a rating for a completed ride. Ratings are never edited afterwards."""
        if rater is None or ratee is None:
            raise InvalidInputError("rater and ratee (kind and id) are required")
        if isinstance(stars, bool) or not isinstance(stars, int) or not 1 <= stars <= 5:
            raise InvalidInputError("Stars must be between 1 and 5")

        ride = await db.get(Ride, ride_id)
        if ride is None:
            raise NotFoundError("Ride not found")
        if ride.status != RideStatus.COMPLETED:
            raise InvalidStateError("Ride must be completed before rating")

        try:
            rating = Rating(
                ride_id=ride.id,
                rater_kind=rater.kind,
                rater_id=rater.id,
                ratee_kind=ratee.kind,
                ratee_id=ratee.id,
                stars=stars,
                comment=comment.strip() if comment else None,
            )
            db.add(rating)
            await db.commit()
            await db.refresh(rating)

            logger.info(f"{rater.kind.value} {rater.id} rated {ratee.kind.value} {ratee.id} {stars} stars on ride {ride_id}")
            return rating

        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to submit rating: {e}")
            raise

    async def average_rating(
        self,
        subject_id: UUID,
        subject_kind: PartyKind,
        db: AsyncSession,
    ) -> Tuple[float, int]:
        """Average stars (one decimal) and count received by a subject; (0, 0) when unrated"""
        stmt = select(func.avg(Rating.stars), func.count(Rating.id)).where(
            Rating.ratee_kind == subject_kind,
            Rating.ratee_id == subject_id,
        )
        average, count = (await db.execute(stmt)).one()

        if not count:
            return 0.0, 0
        return round(float(average), 1), count
