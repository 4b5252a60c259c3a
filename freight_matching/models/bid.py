from sqlalchemy import Column, DECIMAL, TIMESTAMP, Text, Enum, ForeignKey, Index, Uuid, CheckConstraint, text
import uuid
import enum
from ..database import Base, utcnow, enum_values


class BidStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Bid(Base):
    """A driver's counter-offer on a ride. Never deleted."""

    __tablename__ = "bids"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    ride_id = Column(Uuid, ForeignKey("rides.id"), nullable=False, index=True)
    driver_id = Column(Uuid, ForeignKey("drivers.id"), nullable=False, index=True)

    counter_fare = Column(DECIMAL(12, 2), nullable=False)
    status = Column(
        Enum(BidStatus, name="bid_status", values_callable=enum_values),
        nullable=False,
        default=BidStatus.PENDING,
    )
    note = Column(Text, nullable=False, default="")

    created_at = Column(TIMESTAMP(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Only one *pending* bid per (ride, driver); accepted/rejected history is kept
    __table_args__ = (
        Index(
            "ix_bids_one_pending_per_driver",
            "ride_id",
            "driver_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("ix_bids_ride_status_created", "ride_id", "status", "created_at"),
        CheckConstraint("counter_fare > 0", name="chk_bid_counter_fare_positive"),
    )

    def __repr__(self):
        return f"<Bid(id={self.id}, ride_id={self.ride_id}, driver_id={self.driver_id}, status={self.status})>"
