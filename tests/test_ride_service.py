from decimal import Decimal
import uuid

import pytest
from sqlalchemy import update

from freight_matching.database import utcnow
from freight_matching.models.ride import Ride, RideStatus
from freight_matching.schemas.ride import Coordinates
from freight_matching.services.exceptions import (
    ConflictError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)


async def test_create_ride_defaults(db, services, ride_request, make_shipper, publisher):
    shipper = await make_shipper(name="Indus Traders")

    ride, returned_shipper = await services.ride.create_ride(
        shipper.id, ride_request(vehicle_category="  truck "), db
    )

    assert ride.status == RideStatus.PENDING
    assert ride.assigned_driver_id is None
    assert ride.commission_amount is None
    assert ride.vehicle_category == "Truck"
    assert ride.shipper_name == "Indus Traders"
    assert ride.fare_amount == ride.offer_fare == Decimal("1000")
    assert returned_shipper.id == shipper.id
    assert "ride.created" in publisher.event_types()


async def test_create_ride_reports_missing_fields(db, services, ride_request, make_shipper):
    shipper = await make_shipper()

    with pytest.raises(InvalidInputError) as exc_info:
        await services.ride.create_ride(
            shipper.id, ride_request(pickup_location="  ", material_type=None), db
        )
    assert exc_info.value.extra["missing"] == ["pickup_location", "material_type"]


@pytest.mark.parametrize(
    "overrides",
    [
        {"offer_fare": None},
        {"offer_fare": Decimal("-1")},
        {"vehicle_size_feet": 0},
        {"pickup_coordinates": Coordinates(lat=24.8, lng=None)},
    ],
)
async def test_create_ride_rejects_bad_values(db, services, ride_request, make_shipper, overrides):
    shipper = await make_shipper()
    with pytest.raises(InvalidInputError):
        await services.ride.create_ride(shipper.id, ride_request(**overrides), db)


async def test_create_ride_without_coordinates(db, services, ride_request, make_shipper):
    shipper = await make_shipper()
    ride, _ = await services.ride.create_ride(
        shipper.id, ride_request(pickup_coordinates=None, dropoff_coordinates=None), db
    )
    assert ride.pickup_lat is None and ride.pickup_lng is None


async def test_create_ride_unknown_shipper(db, services, ride_request):
    with pytest.raises(NotFoundError):
        await services.ride.create_ride(uuid.uuid4(), ride_request(), db)


async def test_unknown_category_is_kept_verbatim(db, services, ride_request, make_shipper):
    shipper = await make_shipper()
    ride, _ = await services.ride.create_ride(shipper.id, ride_request(vehicle_category="Crane"), db)
    assert ride.vehicle_category == "Crane"


async def test_get_ride_not_found(db, services):
    with pytest.raises(NotFoundError):
        await services.ride.get_ride(uuid.uuid4(), db)


async def test_list_shipper_rides_newest_first(db, services, make_shipper, make_ride):
    shipper = await make_shipper()
    other = await make_shipper(name="Someone Else")
    first = await make_ride(shipper=shipper)
    second = await make_ride(shipper=shipper)
    await make_ride(shipper=other)

    rides = await services.ride.list_shipper_rides(shipper.id, db)
    assert [r.id for r in rides] == [second.id, first.id]


async def test_direct_accept_assigns_driver(db, services, make_ride, make_driver, publisher):
    ride = await make_ride()
    driver = await make_driver()

    ride = await services.ride.accept_ride_direct(ride.id, driver.id, db)

    assert ride.status == RideStatus.ACCEPTED
    assert ride.assigned_driver_id == driver.id
    assert ride.fare_amount == Decimal("1000")
    assert ride.accepted_at is not None
    assert "ride.accepted" in publisher.event_types()

    # Same driver again: unchanged
    again = await services.ride.accept_ride_direct(ride.id, driver.id, db)
    assert again.assigned_driver_id == driver.id


async def test_direct_accept_taken_ride_is_conflict(db, services, make_ride, make_driver):
    ride = await make_ride()
    await services.ride.accept_ride_direct(ride.id, (await make_driver()).id, db)

    with pytest.raises(ConflictError):
        await services.ride.accept_ride_direct(ride.id, (await make_driver()).id, db)


async def test_direct_accept_rejects_pending_bids(db, services, make_ride, make_driver):
    ride = await make_ride()
    bidder = await make_driver()
    taker = await make_driver()
    bid = await services.bid.submit_bid(ride.id, bidder.id, 900, db)

    await services.ride.accept_ride_direct(ride.id, taker.id, db)
    await db.refresh(bid)
    assert bid.status.value == "rejected"


async def test_frozen_driver_cannot_take_second_ride(db, services, make_ride, make_driver, make_shipper):
    shipper = await make_shipper()
    ride_a = await make_ride(shipper=shipper)
    ride_b = await make_ride(shipper=shipper)
    driver = await make_driver()
    ride_b_id, driver_id = ride_b.id, driver.id

    await services.ride.accept_ride_direct(ride_a.id, driver_id, db)

    with pytest.raises(ConflictError):
        await services.ride.accept_ride_direct(ride_b_id, driver_id, db)

    ride_b = await services.ride.get_ride(ride_b_id, db)
    await db.refresh(ride_b)
    assert ride_b.status == RideStatus.PENDING


async def test_driver_released_after_completion(db, services, make_ride, make_driver, make_shipper):
    shipper = await make_shipper()
    ride_a = await make_ride(shipper=shipper)
    ride_b = await make_ride(shipper=shipper)
    driver = await make_driver()

    await services.ride.accept_ride_direct(ride_a.id, driver.id, db)
    await services.ride.complete_ride(ride_a.id, db)

    ride_b = await services.ride.accept_ride_direct(ride_b.id, driver.id, db)
    assert ride_b.assigned_driver_id == driver.id


async def test_start_ride(db, services, make_ride, make_driver, publisher):
    ride = await make_ride()
    with pytest.raises(InvalidStateError):
        await services.ride.start_ride(ride.id, db)

    await services.ride.accept_ride_direct(ride.id, (await make_driver()).id, db)
    ride = await services.ride.start_ride(ride.id, db)

    assert ride.status == RideStatus.ONGOING
    assert ride.started_at is not None
    assert "ride.started" in publisher.event_types()


async def test_complete_pending_ride_is_invalid_state(db, services, make_ride):
    ride = await make_ride()
    with pytest.raises(InvalidStateError):
        await services.ride.complete_ride(ride.id, db)


async def test_commission_snapshot_is_frozen(db, services, make_ride, make_driver, publisher):
    ride = await make_ride(offer_fare=Decimal("1234.50"))
    await services.ride.accept_ride_direct(ride.id, (await make_driver()).id, db)
    await services.ride.start_ride(ride.id, db)
    await services.commission.set_percent(Decimal("7.5"), db)

    ride = await services.ride.complete_ride(ride.id, db)
    assert ride.commission_percent == Decimal("7.5")
    assert ride.commission_amount == Decimal("92.5875")
    assert ride.commission_amount == ride.fare_amount * ride.commission_percent / 100

    # Later commission changes and repeated completion leave the snapshot alone
    await services.commission.set_percent(Decimal("20"), db)
    completed_events = publisher.event_types().count("ride.completed")
    again = await services.ride.complete_ride(ride.id, db)

    assert again.commission_percent == Decimal("7.5")
    assert again.commission_amount == Decimal("92.5875")
    assert publisher.event_types().count("ride.completed") == completed_events


async def test_complete_after_concurrent_completion_keeps_first_snapshot(
    db, services, make_ride, make_driver, publisher
):
    ride = await make_ride()
    await services.ride.accept_ride_direct(ride.id, (await make_driver()).id, db)
    ride_id = ride.id

    # Another request completes the ride at 10%; this session still holds it as Accepted
    await db.execute(
        update(Ride)
        .where(Ride.id == ride_id)
        .values(
            status=RideStatus.COMPLETED,
            commission_percent=Decimal("10"),
            commission_amount=Decimal("100"),
            completed_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    assert ride.status == RideStatus.ACCEPTED

    await services.commission.set_percent(Decimal("25"), db)
    ride = await services.ride.complete_ride(ride_id, db)

    assert ride.status == RideStatus.COMPLETED
    assert ride.commission_percent == Decimal("10")
    assert ride.commission_amount == Decimal("100")
    assert "ride.completed" not in publisher.event_types()


async def test_zero_commission_by_default(db, services, make_ride, make_driver):
    ride = await make_ride()
    await services.ride.accept_ride_direct(ride.id, (await make_driver()).id, db)

    ride = await services.ride.complete_ride(ride.id, db)
    assert ride.commission_amount == Decimal("0.00")


async def test_ride_location_round_trip(db, services, make_ride, make_driver, publisher):
    ride = await make_ride()
    driver = await make_driver()
    await services.ride.accept_ride_direct(ride.id, driver.id, db)

    await services.ride.update_ride_location(ride.id, 24.87, 67.02, db)
    snapshot = await services.ride.get_driver_location(ride.id, db)

    assert snapshot["driver_id"] == driver.id
    assert (snapshot["lat"], snapshot["lng"]) == (24.87, 67.02)
    assert snapshot["last_location_update"] is not None
    assert "driver.locationUpdate" in publisher.event_types()


async def test_ride_location_validation(db, services, make_ride):
    ride = await make_ride()

    with pytest.raises(InvalidInputError):
        await services.ride.update_ride_location(ride.id, None, 67.0, db)
    with pytest.raises(InvalidStateError):
        await services.ride.get_driver_location(ride.id, db)
