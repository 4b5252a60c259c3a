from sqlalchemy import Column, String, Boolean, TIMESTAMP, Float, Integer, Uuid, CheckConstraint
from sqlalchemy.orm import validates
from typing import Optional
import uuid
import enum
from ..database import Base, utcnow
from ..services.exceptions import InvalidInputError


class VehicleCategory(str, enum.Enum):
    TRAILER = "Trailer"
    CONTAINER = "Container"
    DUMPER = "Dumper"
    FLATBED = "Flatbed"
    TANKER = "Tanker"
    REEFER = "Reefer"
    PICKUP = "Pickup"
    MINI_TRUCK = "MiniTruck"
    TRUCK = "Truck"
    OTHER = "Other"
    UNCATEGORIZED = "Uncategorized"


_CATEGORY_LOOKUP = {category.value.lower(): category for category in VehicleCategory}


def canonical_category(value: Optional[str]) -> Optional[VehicleCategory]:
    """Case-insensitive lookup ("truck" -> VehicleCategory.TRUCK); None when unknown"""
    if value is None:
        return None
    return _CATEGORY_LOOKUP.get(str(value).strip().lower())


class Driver(Base):
    __tablename__ = "drivers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Identity (owned by the identity provider, mirrored for display)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(30), nullable=False, unique=True)
    vehicle_number = Column(String(50), nullable=True, unique=True)
    license_number = Column(String(50), nullable=True, unique=True)

    # Opaque blob-store reference for uploaded documents
    document_ref = Column(String(500), nullable=True)

    # Vehicle
    vehicle_category = Column(String(50), nullable=False, default=VehicleCategory.UNCATEGORIZED.value)
    vehicle_size_feet = Column(Integer, nullable=True)

    # Availability and location
    is_online = Column(Boolean, default=False, nullable=False)
    current_lat = Column(Float, nullable=True)
    current_lng = Column(Float, nullable=True)
    last_location_update = Column(TIMESTAMP(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "vehicle_size_feet IS NULL OR (vehicle_size_feet >= 6 AND vehicle_size_feet <= 180)",
            name="chk_driver_vehicle_size",
        ),
    )

    @validates("vehicle_category")
    def _normalize_category(self, key, value):
        category = canonical_category(value)
        if category is None:
            raise InvalidInputError(f"Unknown vehicle category: {value}")
        return category.value

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip() or "Driver"

    @property
    def has_location(self) -> bool:
        return self.current_lat is not None and self.current_lng is not None

    def __repr__(self):
        return f"<Driver(id={self.id}, category={self.vehicle_category}, size={self.vehicle_size_feet}, online={self.is_online})>"
