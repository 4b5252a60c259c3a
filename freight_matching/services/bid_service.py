from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, desc, func
from sqlalchemy.exc import IntegrityError
from typing import Optional, List, Tuple
import logging
from uuid import UUID
from decimal import Decimal, InvalidOperation

from ..database import utcnow
from ..models.bid import Bid, BidStatus
from ..models.driver import Driver
from ..models.ride import Ride, RideStatus, ASSIGNED_RIDE_STATUSES
from ..schemas.bid import BidResponse
from ..schemas.ride import RideResponse
from .event_service import EventService, dump
from .exceptions import (
    RideServiceError,
    NotFoundError,
    InvalidInputError,
    InvalidStateError,
    ConflictError,
)
from .identity_service import IdentityService
from .ride_service import RideService

logger = logging.getLogger(__name__)

# Bidding window is closed once a ride has left Pending
CLOSED_FOR_BIDS = ASSIGNED_RIDE_STATUSES + (RideStatus.REJECTED,)


class BidService:
    """Driver bids on rides: submit, accept (assigns the ride), reject, repair"""

    def __init__(
        self,
        event_service: Optional[EventService] = None,
        ride_service: Optional[RideService] = None,
        identity_service: Optional[IdentityService] = None,
    ):
        self.event_service = event_service or EventService()
        self.identity_service = identity_service or IdentityService()
        self.ride_service = ride_service or RideService(
            event_service=self.event_service,
            identity_service=self.identity_service,
        )

    async def _pending_bid(self, ride_id: UUID, driver_id: UUID, db: AsyncSession) -> Optional[Bid]:
        stmt = select(Bid).where(
            Bid.ride_id == ride_id,
            Bid.driver_id == driver_id,
            Bid.status == BidStatus.PENDING,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def submit_bid(
        self,
        ride_id: UUID,
        driver_id: UUID,
        counter_fare,
        db: AsyncSession,
        note: Optional[str] = None,
    ) -> Bid:
        """
        Place a Pending bid for a driver on an open ride.

        At most one Pending bid may exist per (ride, driver). The partial
        unique index is the real guard; the lookup below only lets the
        Conflict carry the id of the bid that is already pending.

        Raises:
            InvalidInputError: counter_fare missing or not positive
            NotFoundError: ride or driver absent
            InvalidStateError: ride no longer open for bids
            ConflictError: a Pending bid already exists (extra["bid_id"])
        """
        if counter_fare is None:
            raise InvalidInputError("counter_fare is required")
        try:
            counter_fare = counter_fare if isinstance(counter_fare, Decimal) else Decimal(str(counter_fare))
        except (InvalidOperation, ValueError):
            raise InvalidInputError("counter_fare must be a number")
        if not counter_fare.is_finite() or counter_fare <= 0:
            raise InvalidInputError("counter_fare must be positive")

        ride = await self.ride_service.get_ride(ride_id, db)
        await self.identity_service.require_driver(driver_id, db)

        if ride.status in CLOSED_FOR_BIDS:
            raise InvalidStateError("Ride is no longer open for bids")

        existing = await self._pending_bid(ride_id, driver_id, db)
        if existing is not None:
            raise ConflictError(
                "Pending bid already exists for this ride by this driver",
                {"bid_id": str(existing.id)},
            )

        try:
            bid = Bid(
                ride_id=ride_id,
                driver_id=driver_id,
                counter_fare=counter_fare,
                note=(note or "").strip(),
                status=BidStatus.PENDING,
            )
            db.add(bid)
            await db.commit()
            await db.refresh(bid)

            logger.info(f"Driver {driver_id} bid {counter_fare} on ride {ride_id}")

        except IntegrityError:
            # A concurrent submission won the partial unique index
            await db.rollback()
            existing = await self._pending_bid(ride_id, driver_id, db)
            logger.info(f"Deduplicated concurrent bid by driver {driver_id} on ride {ride_id}")
            raise ConflictError(
                "Pending bid already exists for this ride by this driver",
                {"bid_id": str(existing.id)} if existing else {},
            )
        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to submit bid: {e}")
            raise

        await self.event_service.notify_bid_placed(str(ride.shipper_id), dump(BidResponse, bid))
        return bid

    async def list_bids(self, ride_id: UUID, db: AsyncSession) -> List[Tuple[Bid, Optional[Driver]]]:
        """All bids on a ride with their bidders, newest first"""
        await self.ride_service.get_ride(ride_id, db)

        stmt = (
            select(Bid, Driver)
            .outerjoin(Driver, Driver.id == Bid.driver_id)
            .where(Bid.ride_id == ride_id)
            .order_by(desc(Bid.created_at))
        )
        result = await db.execute(stmt)
        return [(bid, driver) for bid, driver in result.all()]

    async def accept_bid(self, ride_id: UUID, bid_id: UUID, db: AsyncSession) -> Tuple[Ride, Bid]:
        """
        Accept one bid: the ride is assigned to its driver at the counter-fare
        and every other bid on the ride is rejected, all in one transaction.

        The ride moves out of Pending with a compare-and-set, so of two
        concurrent accepts on the same ride exactly one succeeds. Re-accepting
        the bid that already won is a no-op. A bid left Accepted on a ride that
        is still Pending is accepted again and assigns the ride.
        """
        ride = await self.ride_service.get_ride(ride_id, db)
        bid = await db.get(Bid, bid_id)
        if bid is None:
            raise NotFoundError("Bid not found")
        if bid.ride_id != ride.id:
            raise ConflictError("Bid does not belong to this ride")

        if bid.status == BidStatus.ACCEPTED and ride.assigned_driver_id == bid.driver_id:
            logger.info(f"Bid {bid_id} already accepted for ride {ride_id}")
            return ride, bid
        if ride.status in ASSIGNED_RIDE_STATUSES:
            raise ConflictError("Ride already has an accepted bid")
        if ride.status != RideStatus.PENDING:
            raise InvalidStateError(f"Ride is {ride.status.value}")
        if bid.status == BidStatus.REJECTED:
            raise InvalidStateError("Bid was rejected")

        driver = await self.identity_service.require_driver(bid.driver_id, db)

        try:
            assigned = await self.ride_service.assign_driver(
                ride.id,
                bid.driver_id,
                db,
                fare_amount=bid.counter_fare,
                accepted_bid_id=bid.id,
            )
            if not assigned:
                raise ConflictError("Ride already has an accepted bid")

            result = await db.execute(
                update(Bid)
                .where(Bid.id == bid.id, Bid.status.in_((BidStatus.PENDING, BidStatus.ACCEPTED)))
                .values(status=BidStatus.ACCEPTED, updated_at=utcnow())
            )
            if result.rowcount == 0:
                raise ConflictError("Bid was rejected concurrently")

            await db.commit()
            await db.refresh(ride)
            await db.refresh(bid)

            logger.info(f"Accepted bid {bid_id} on ride {ride_id}; driver {bid.driver_id} committed")

        except RideServiceError:
            await db.rollback()
            raise
        except IntegrityError as e:
            await db.rollback()
            logger.warning(f"Accepting bid {bid_id} violated a uniqueness rule: {e}")
            raise ConflictError("Driver already has an active ride")
        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to accept bid {bid_id}: {e}")
            raise

        await self.event_service.notify_bid_accepted(
            dump(RideResponse, ride),
            dump(BidResponse, bid),
            self.identity_service.driver_contact(driver),
        )
        return ride, bid

    async def reject_bid(self, ride_id: UUID, bid_id: UUID, db: AsyncSession) -> Bid:
        """Reject a single bid; the ride stays open for other bids"""
        bid = await db.get(Bid, bid_id)
        if bid is None:
            raise NotFoundError("Bid not found")
        if bid.ride_id != ride_id:
            raise ConflictError("Bid does not belong to this ride")
        if bid.status == BidStatus.ACCEPTED:
            raise InvalidStateError("Accepted bid cannot be rejected")
        if bid.status == BidStatus.REJECTED:
            return bid

        try:
            bid.status = BidStatus.REJECTED
            await db.commit()
            await db.refresh(bid)

            logger.info(f"Rejected bid {bid_id} on ride {ride_id}")

        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to reject bid {bid_id}: {e}")
            raise

        await self.event_service.notify_bid_rejected(dump(BidResponse, bid))
        return bid

    async def _driver_is_free(self, driver_id: UUID, ride_id: UUID, db: AsyncSession) -> bool:
        active = await self.ride_service.driver_active_ride(driver_id, db)
        return active is None or active.id == ride_id

    async def _repair_ride(self, ride_id: UUID, db: AsyncSession) -> Optional[dict]:
        """
        Keep the newest Accepted bid whose driver can take the ride and reject
        the others, inside a savepoint. Returns None if no bid can be kept.
        """
        stmt = (
            select(Bid.id, Bid.driver_id, Bid.counter_fare)
            .where(Bid.ride_id == ride_id, Bid.status == BidStatus.ACCEPTED)
            .order_by(desc(Bid.updated_at), desc(Bid.created_at))
        )
        accepted = (await db.execute(stmt)).all()
        ride = await self.ride_service.get_ride(ride_id, db)
        completed = ride.status == RideStatus.COMPLETED

        for bid_id, driver_id, counter_fare in accepted:
            # A completed ride holds no driver, so any bidder can be kept on it
            if not completed and not await self._driver_is_free(driver_id, ride_id, db):
                logger.info(f"Ride {ride_id}: passing over bid {bid_id}, driver {driver_id} is on another ride")
                continue

            try:
                async with db.begin_nested():
                    now = utcnow()
                    rejected = await db.execute(
                        update(Bid)
                        .where(
                            Bid.ride_id == ride_id,
                            Bid.status == BidStatus.ACCEPTED,
                            Bid.id != bid_id,
                        )
                        .values(status=BidStatus.REJECTED, updated_at=now)
                    )

                    ride = await self.ride_service.get_ride(ride_id, db)
                    ride.assigned_driver_id = driver_id
                    if not completed:
                        ride.fare_amount = counter_fare
                    if ride.status not in ASSIGNED_RIDE_STATUSES:
                        ride.status = RideStatus.ACCEPTED
                        ride.accepted_at = ride.accepted_at or now
                    await db.flush()
            except IntegrityError as e:
                logger.warning(f"Ride {ride_id}: keeping bid {bid_id} violated a uniqueness rule: {e}")
                continue

            logger.warning(f"Repaired ride {ride_id}: kept bid {bid_id}, rejected {rejected.rowcount}")
            return {
                "ride_id": ride_id,
                "kept_bid_id": bid_id,
                "rejected_count": rejected.rowcount,
                "assigned_driver_id": driver_id,
            }

        return None

    async def repair_duplicate_acceptances(self, db: AsyncSession) -> dict:
        """
        Corrective pass for rides that ended up with more than one Accepted bid.

        Each ride is repaired in its own savepoint: the most recently updated
        Accepted bid whose driver is not committed to another ride is kept, the
        rest are rejected, and the ride points at the kept bid's driver. A ride
        where every accepted bidder is busy elsewhere is left untouched and
        reported under "skipped".
        """
        duplicated = (
            select(Bid.ride_id)
            .where(Bid.status == BidStatus.ACCEPTED)
            .group_by(Bid.ride_id)
            .having(func.count(Bid.id) > 1)
        )
        ride_ids = list((await db.execute(duplicated)).scalars().all())

        details = []
        skipped = []
        try:
            for ride_id in ride_ids:
                detail = await self._repair_ride(ride_id, db)
                if detail is None:
                    skipped.append({
                        "ride_id": ride_id,
                        "reason": "Every accepted bidder is committed to another ride",
                    })
                    logger.warning(f"Skipped repair of ride {ride_id}: no accepted bidder is free")
                else:
                    details.append(detail)

            await db.commit()

        except Exception as e:
            await db.rollback()
            logger.error(f"Repair of duplicate acceptances failed: {e}")
            raise

        logger.info(f"Repair completed: {len(details)} rides affected, {len(skipped)} skipped")
        return {"affected_rides": len(details), "details": details, "skipped": skipped}
