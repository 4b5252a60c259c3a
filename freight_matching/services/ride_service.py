from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, desc
from sqlalchemy.exc import IntegrityError
from typing import Optional, List, Tuple
import logging
from uuid import UUID
from decimal import Decimal

from ..database import utcnow
from ..models.ride import Ride, RideStatus, ACTIVE_RIDE_STATUSES
from ..models.bid import Bid, BidStatus
from ..models.driver import canonical_category
from ..models.shipper import Shipper
from ..schemas.ride import RideCreateRequest, RideResponse, DriverLocationResponse
from ..utils.geo import is_coordinate
from .commission_service import CommissionService, compute_commission, to_decimal
from .event_service import EventService, dump
from .exceptions import (
    RideServiceError,
    NotFoundError,
    InvalidInputError,
    InvalidStateError,
    ConflictError,
)
from .identity_service import IdentityService

logger = logging.getLogger(__name__)


class RideService:
    """Ride lifecycle: Pending -> Accepted -> Ongoing -> Completed (or Rejected)"""

    def __init__(
        self,
        event_service: Optional[EventService] = None,
        commission_service: Optional[CommissionService] = None,
        identity_service: Optional[IdentityService] = None,
    ):
        self.event_service = event_service or EventService()
        self.commission_service = commission_service or CommissionService()
        self.identity_service = identity_service or IdentityService()

    async def create_ride(
        self,
        shipper_id: UUID,
        ride_data: RideCreateRequest,
        db: AsyncSession,
    ) -> Tuple[Ride, Shipper]:
        """Create a new freight request in Pending"""
        shipper = await self.identity_service.require_shipper(shipper_id, db)

        required = {
            "pickup_location": ride_data.pickup_location,
            "dropoff_location": ride_data.dropoff_location,
            "material_type": ride_data.material_type,
            "vehicle_category": ride_data.vehicle_category,
        }
        missing = [name for name, value in required.items() if not value or not value.strip()]
        if missing:
            raise InvalidInputError("All required fields must be filled", {"missing": missing})

        if ride_data.offer_fare is None or not ride_data.offer_fare.is_finite() or ride_data.offer_fare < 0:
            raise InvalidInputError("offer_fare must be a non-negative number")
        if ride_data.vehicle_size_feet is not None and ride_data.vehicle_size_feet <= 0:
            raise InvalidInputError("vehicle_size_feet must be positive")

        pickup_lat, pickup_lng = self._coordinates(ride_data.pickup_coordinates, "pickup")
        dropoff_lat, dropoff_lng = self._coordinates(ride_data.dropoff_coordinates, "dropoff")

        category = canonical_category(ride_data.vehicle_category)

        try:
            ride = Ride(
                shipper_id=shipper.id,
                shipper_name=shipper.name,
                pickup_location=ride_data.pickup_location.strip(),
                pickup_lat=pickup_lat,
                pickup_lng=pickup_lng,
                dropoff_location=ride_data.dropoff_location.strip(),
                dropoff_lat=dropoff_lat,
                dropoff_lng=dropoff_lng,
                material_type=ride_data.material_type.strip(),
                vehicle_category=category.value if category else ride_data.vehicle_category.strip(),
                vehicle_size_feet=ride_data.vehicle_size_feet,
                estimated_weight=ride_data.estimated_weight,
                vehicle_route=ride_data.vehicle_route,
                offer_fare=ride_data.offer_fare,
                fare_amount=ride_data.offer_fare,
                status=RideStatus.PENDING,
            )

            db.add(ride)
            await db.commit()
            await db.refresh(ride)

            logger.info(f"Created ride {ride.id} for shipper {shipper.id}")

        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to create ride: {e}")
            raise

        await self.event_service.notify_ride_created(dump(RideResponse, ride))
        return ride, shipper

    @staticmethod
    def _coordinates(coords, label: str) -> Tuple[Optional[float], Optional[float]]:
        if coords is None or (coords.lat is None and coords.lng is None):
            return None, None
        if not is_coordinate(coords.lat) or not is_coordinate(coords.lng):
            raise InvalidInputError(f"{label} coordinates need numeric lat and lng")
        return coords.lat, coords.lng

    async def get_ride_by_id(self, ride_id: UUID, db: AsyncSession) -> Optional[Ride]:
        """Get ride by ID"""
        try:
            stmt = select(Ride).where(Ride.id == ride_id)
            result = await db.execute(stmt)
            return result.scalar_one_or_none()
        except Exception as e:
            logger.error(f"Failed to get ride {ride_id}: {e}")
            raise

    async def get_ride(self, ride_id: UUID, db: AsyncSession) -> Ride:
        ride = await self.get_ride_by_id(ride_id, db)
        if ride is None:
            raise NotFoundError("Ride not found")
        return ride

    async def list_shipper_rides(self, shipper_id: UUID, db: AsyncSession) -> List[Ride]:
        """All rides created by a shipper, newest first"""
        stmt = select(Ride).where(Ride.shipper_id == shipper_id).order_by(desc(Ride.created_at))
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def driver_active_ride(self, driver_id: UUID, db: AsyncSession) -> Optional[Ride]:
        """The Accepted/Ongoing ride a driver is committed to, if any"""
        stmt = select(Ride).where(
            Ride.assigned_driver_id == driver_id,
            Ride.status.in_(ACTIVE_RIDE_STATUSES),
        )
        result = await db.execute(stmt)
        return result.scalars().first()

    async def assign_driver(
        self,
        ride_id: UUID,
        driver_id: UUID,
        db: AsyncSession,
        fare_amount: Optional[Decimal] = None,
        accepted_bid_id: Optional[UUID] = None,
    ) -> bool:
        """
        Commit a driver to a Pending ride inside the caller's transaction.

        This is the single path that enforces one active ride per driver, used
        by both bid acceptance and direct acceptance. It does not commit.

        Returns:
            False if the ride was no longer Pending (compare-and-set lost).

        Raises:
            ConflictError: the driver is already committed to another ride.
        """
        active = await self.driver_active_ride(driver_id, db)
        if active is not None and active.id != ride_id:
            raise ConflictError(
                "Driver already has an active ride",
                {"active_ride_id": str(active.id)},
            )

        now = utcnow()
        values = {
            "status": RideStatus.ACCEPTED,
            "assigned_driver_id": driver_id,
            "accepted_at": now,
            "updated_at": now,
        }
        if fare_amount is not None:
            values["fare_amount"] = fare_amount

        result = await db.execute(
            update(Ride)
            .where(Ride.id == ride_id, Ride.status == RideStatus.PENDING)
            .values(**values)
        )
        if result.rowcount == 0:
            return False

        # Bidding on this ride is closed
        other_bids = update(Bid).where(Bid.ride_id == ride_id)
        if accepted_bid_id is not None:
            other_bids = other_bids.where(Bid.id != accepted_bid_id)
        rejected = await db.execute(other_bids.values(status=BidStatus.REJECTED, updated_at=now))

        # A committed driver cannot win elsewhere
        withdrawn = await db.execute(
            update(Bid)
            .where(
                Bid.driver_id == driver_id,
                Bid.ride_id != ride_id,
                Bid.status == BidStatus.PENDING,
            )
            .values(status=BidStatus.REJECTED, updated_at=now)
        )

        logger.info(
            f"Assigned driver {driver_id} to ride {ride_id} "
            f"(rejected {rejected.rowcount} bids on ride, {withdrawn.rowcount} pending bids elsewhere)"
        )
        return True

    async def accept_ride_direct(self, ride_id: UUID, driver_id: UUID, db: AsyncSession) -> Ride:
        """Driver takes a Pending ride at the offered fare, without a bid round"""
        ride = await self.get_ride(ride_id, db)
        await self.identity_service.require_driver(driver_id, db)

        if ride.status != RideStatus.PENDING:
            if ride.assigned_driver_id == driver_id and ride.status == RideStatus.ACCEPTED:
                return ride
            raise ConflictError(f"Ride is already {ride.status.value}")

        try:
            assigned = await self.assign_driver(ride.id, driver_id, db)
            if not assigned:
                raise ConflictError("Ride was accepted by another request")
            await db.commit()
            await db.refresh(ride)

            logger.info(f"Driver {driver_id} accepted ride {ride_id} directly")

        except RideServiceError:
            await db.rollback()
            raise
        except IntegrityError as e:
            await db.rollback()
            logger.warning(f"Direct accept of ride {ride_id} lost a race: {e}")
            raise ConflictError("Driver already has an active ride")
        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to accept ride {ride_id}: {e}")
            raise

        await self.event_service.notify_ride_accepted(dump(RideResponse, ride))
        return ride

    async def start_ride(self, ride_id: UUID, db: AsyncSession) -> Ride:
        """Accepted -> Ongoing"""
        ride = await self.get_ride(ride_id, db)
        if ride.status == RideStatus.ONGOING:
            return ride
        if not self._is_valid_status_transition(ride.status, RideStatus.ONGOING):
            raise InvalidStateError(f"Cannot start a ride that is {ride.status.value}")

        try:
            now = utcnow()
            result = await db.execute(
                update(Ride)
                .where(Ride.id == ride_id, Ride.status == RideStatus.ACCEPTED)
                .values(status=RideStatus.ONGOING, started_at=now, updated_at=now)
            )
            if result.rowcount == 0:
                raise ConflictError("Ride status changed concurrently")
            await db.commit()
            await db.refresh(ride)

            logger.info(f"Ride {ride_id} started")

        except RideServiceError:
            await db.rollback()
            raise
        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to start ride {ride_id}: {e}")
            raise

        await self.event_service.notify_ride_started(dump(RideResponse, ride))
        return ride

    async def complete_ride(self, ride_id: UUID, db: AsyncSession) -> Ride:
        """
        Complete an Accepted/Ongoing ride and snapshot the commission on it.

        The percent in effect right now is copied onto the ride, so later
        changes to the commission singleton never alter completed rides.
        Completing an already Completed ride returns it unchanged.
        """
        ride = await self.get_ride(ride_id, db)
        if ride.status == RideStatus.COMPLETED:
            logger.info(f"Ride {ride_id} already completed")
            return ride
        if not self._is_valid_status_transition(ride.status, RideStatus.COMPLETED):
            raise InvalidStateError(f"Cannot complete a ride that is {ride.status.value}")

        try:
            commission = await self.commission_service.get_singleton(db)
            percent = to_decimal(commission.percent)
            amount = compute_commission(ride.fare_amount, percent)

            now = utcnow()
            result = await db.execute(
                update(Ride)
                .where(Ride.id == ride_id, Ride.status.in_(ACTIVE_RIDE_STATUSES))
                .values(
                    status=RideStatus.COMPLETED,
                    commission_percent=percent,
                    commission_amount=amount,
                    completed_at=now,
                    updated_at=now,
                )
            )
            if result.rowcount == 0:
                # Lost to a concurrent completion: report what that one stored
                await db.rollback()
                ride = await self.get_ride(ride_id, db)
                await db.refresh(ride)
                if ride.status == RideStatus.COMPLETED:
                    return ride
                raise ConflictError("Ride status changed concurrently")

            await db.commit()
            await db.refresh(ride)

            logger.info(
                f"Completed ride {ride_id}: fare {ride.fare_amount}, commission {percent}% = {amount}; "
                f"driver {ride.assigned_driver_id} released"
            )

        except RideServiceError:
            await db.rollback()
            raise
        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to complete ride {ride_id}: {e}")
            raise

        await self.event_service.notify_ride_completed(dump(RideResponse, ride))
        return ride

    async def update_ride_location(self, ride_id: UUID, lat, lng, db: AsyncSession) -> dict:
        """Store the assigned driver's live position on the ride"""
        if not is_coordinate(lat) or not is_coordinate(lng):
            raise InvalidInputError("Valid lat and lng required")

        ride = await self.get_ride(ride_id, db)
        try:
            ride.driver_lat = lat
            ride.driver_lng = lng
            ride.last_location_update = utcnow()
            await db.commit()
            await db.refresh(ride)
        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to update location for ride {ride_id}: {e}")
            raise

        snapshot = self._location_snapshot(ride)
        await self.event_service.notify_driver_location(dump(DriverLocationResponse, snapshot))
        return snapshot

    async def get_driver_location(self, ride_id: UUID, db: AsyncSession) -> dict:
        """Last known driver position for a ride; meaningless before assignment"""
        ride = await self.get_ride(ride_id, db)
        if ride.assigned_driver_id is None:
            raise InvalidStateError("No driver assigned to this ride")
        return self._location_snapshot(ride)

    @staticmethod
    def _location_snapshot(ride: Ride) -> dict:
        return {
            "ride_id": ride.id,
            "driver_id": ride.assigned_driver_id,
            "lat": ride.driver_lat,
            "lng": ride.driver_lng,
            "last_location_update": ride.last_location_update,
            "status": ride.status,
        }

    def _is_valid_status_transition(self, current_status: RideStatus, new_status: RideStatus) -> bool:
        """Validate if status transition is allowed"""
        valid_transitions = {
            RideStatus.PENDING: [RideStatus.ACCEPTED, RideStatus.REJECTED],
            RideStatus.ACCEPTED: [RideStatus.ONGOING, RideStatus.COMPLETED, RideStatus.REJECTED],
            RideStatus.ONGOING: [RideStatus.COMPLETED],
            RideStatus.COMPLETED: [],  # Terminal state
            RideStatus.REJECTED: [],  # Terminal state
        }

        return new_status in valid_transitions.get(current_status, [])
