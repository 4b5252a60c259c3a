from pydantic import BaseModel, Field, UUID4
from typing import Optional
from datetime import datetime
from uuid import UUID
from ..models.rating import PartyKind


class Party(BaseModel):
    kind: PartyKind
    id: UUID


# Request schemas
# The rater is the authenticated actor; the body names who is being rated
class RatingCreateRequest(BaseModel):
    ratee: Optional[Party] = None
    stars: Optional[int] = None
    comment: Optional[str] = Field(None, max_length=2000)


# Response schemas
class RatingResponse(BaseModel):
    id: UUID4
    ride_id: UUID4
    rater: Party
    ratee: Party
    stars: int
    comment: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_rating(cls, rating) -> "RatingResponse":
        return cls(
            id=rating.id,
            ride_id=rating.ride_id,
            rater=Party(kind=rating.rater_kind, id=rating.rater_id),
            ratee=Party(kind=rating.ratee_kind, id=rating.ratee_id),
            stars=rating.stars,
            comment=rating.comment,
            created_at=rating.created_at,
        )


class AverageRatingResponse(BaseModel):
    subject: Party
    average: float
    count: int
