from sqlalchemy import Column, Integer, Text, TIMESTAMP, Enum, ForeignKey, Uuid, CheckConstraint, Index
import uuid
import enum
from ..database import Base, utcnow, enum_values


class PartyKind(str, enum.Enum):
    DRIVER = "Driver"
    USER = "User"


_party_kind = Enum(PartyKind, name="party_kind", values_callable=enum_values)


class Rating(Base):
    """Post-completion rating. Rater and ratee are each a {kind, id} pair."""

    __tablename__ = "ratings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    ride_id = Column(Uuid, ForeignKey("rides.id"), nullable=False, index=True)

    rater_kind = Column(_party_kind, nullable=False)
    rater_id = Column(Uuid, nullable=False)
    ratee_kind = Column(_party_kind, nullable=False)
    ratee_id = Column(Uuid, nullable=False)

    stars = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("stars >= 1 AND stars <= 5", name="chk_rating_stars_range"),
        Index("ix_ratings_ratee", "ratee_kind", "ratee_id"),
    )

    def __repr__(self):
        return f"<Rating(id={self.id}, ride_id={self.ride_id}, ratee={self.ratee_kind}:{self.ratee_id}, stars={self.stars})>"
