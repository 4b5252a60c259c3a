from sqlalchemy import Column, String, DECIMAL, TIMESTAMP, Text, Enum, Float, Integer, ForeignKey, Index, Uuid, text
import uuid
import enum
from ..database import Base, utcnow, enum_values


class RideStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    REJECTED = "rejected"


# A driver is committed ("frozen") while assigned to a ride in one of these
ACTIVE_RIDE_STATUSES = (RideStatus.ACCEPTED, RideStatus.ONGOING)
ASSIGNED_RIDE_STATUSES = (RideStatus.ACCEPTED, RideStatus.ONGOING, RideStatus.COMPLETED)


class VehicleRoute(str, enum.Enum):
    STANDARD = "Standard"
    EXPRESS = "Express"


class Ride(Base):
    __tablename__ = "rides"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    shipper_id = Column(Uuid, ForeignKey("shippers.id"), nullable=False, index=True)
    shipper_name = Column(String(200), nullable=False)

    # Pickup / dropoff (coordinates are optional, text is not)
    pickup_location = Column(Text, nullable=False)
    pickup_lat = Column(Float, nullable=True)
    pickup_lng = Column(Float, nullable=True)
    dropoff_location = Column(Text, nullable=False)
    dropoff_lat = Column(Float, nullable=True)
    dropoff_lng = Column(Float, nullable=True)

    # Load and vehicle requirements
    material_type = Column(String(200), nullable=False)
    vehicle_category = Column(String(50), nullable=False, index=True)
    vehicle_size_feet = Column(Integer, nullable=True)
    estimated_weight = Column(String(100), nullable=True)
    vehicle_route = Column(
        Enum(VehicleRoute, name="vehicle_route", values_callable=enum_values),
        nullable=False,
        default=VehicleRoute.STANDARD,
    )

    # Fare: the shipper's offer, and the agreed fare (counter-fare once a bid wins)
    offer_fare = Column(DECIMAL(12, 2), nullable=False)
    fare_amount = Column(DECIMAL(12, 2), nullable=False)

    status = Column(
        Enum(RideStatus, name="ride_status", values_callable=enum_values),
        nullable=False,
        default=RideStatus.PENDING,
    )
    assigned_driver_id = Column(Uuid, ForeignKey("drivers.id"), nullable=True, index=True)

    # Commission snapshot, written once at completion
    commission_percent = Column(DECIMAL(5, 2), nullable=True)
    commission_amount = Column(DECIMAL(16, 6), nullable=True)

    # Live tracking
    driver_lat = Column(Float, nullable=True)
    driver_lng = Column(Float, nullable=True)
    last_location_update = Column(TIMESTAMP(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    accepted_at = Column(TIMESTAMP(timezone=True), nullable=True)
    started_at = Column(TIMESTAMP(timezone=True), nullable=True)
    completed_at = Column(TIMESTAMP(timezone=True), nullable=True)

    # One active ride per driver
    __table_args__ = (
        Index(
            "ix_rides_one_active_per_driver",
            "assigned_driver_id",
            unique=True,
            postgresql_where=text("status IN ('accepted', 'ongoing')"),
            sqlite_where=text("status IN ('accepted', 'ongoing')"),
        ),
        Index("ix_rides_matching", "status", "vehicle_category", "vehicle_size_feet"),
    )

    def __repr__(self):
        return f"<Ride(id={self.id}, status={self.status}, shipper_id={self.shipper_id}, driver={self.assigned_driver_id})>"
