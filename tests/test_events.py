from decimal import Decimal

from freight_matching.models.bid import BidStatus
from freight_matching.models.ride import RideStatus
from freight_matching.services.bid_service import BidService
from freight_matching.services.event_service import EventService
from freight_matching.services.ride_service import RideService


async def test_broadcast_failure_does_not_fail_operations(db, make_ride, make_driver, failing_publisher):
    events = EventService(publisher=failing_publisher)
    rides = RideService(event_service=events)
    bids = BidService(event_service=events, ride_service=rides)

    ride = await make_ride()
    driver = await make_driver()

    bid = await bids.submit_bid(ride.id, driver.id, Decimal("900"), db)
    ride, bid = await bids.accept_bid(ride.id, bid.id, db)
    ride = await rides.complete_ride(ride.id, db)

    assert bid.status == BidStatus.ACCEPTED
    assert ride.status == RideStatus.COMPLETED


async def test_publish_reports_failure(failing_publisher):
    events = EventService(publisher=failing_publisher)
    assert await events.publish_ride_event("ride.created", {"id": "x"}) is False


async def test_bid_accepted_payload(db, services, make_ride, make_driver, publisher):
    ride = await make_ride()
    driver = await make_driver(first_name="Kamran", last_name="Ali")
    bid = await services.bid.submit_bid(ride.id, driver.id, Decimal("900"), db)

    await services.bid.accept_bid(ride.id, bid.id, db)

    accepted = [data for ch, data in publisher.events if ch == "ride-events" and data["event_type"] == "bid.accepted"]
    assert len(accepted) == 1
    payload = accepted[0]["data"]
    assert payload["bid_id"] == str(bid.id)
    assert payload["driver"]["name"] == "Kamran Ali"
    assert payload["ride"]["status"] == "accepted"
    assert Decimal(payload["ride"]["fare_amount"]) == Decimal("900")

    driver_notes = [data for ch, data in publisher.events if ch == "driver-notifications"]
    assert driver_notes[-1]["recipient_id"] == str(driver.id)
    assert driver_notes[-1]["data"]["type"] == "bid_accepted"


async def test_bid_placed_notifies_shipper(db, services, make_ride, make_driver, publisher):
    ride = await make_ride()
    await services.bid.submit_bid(ride.id, (await make_driver()).id, Decimal("900"), db)

    assert "bid.placed" in publisher.event_types()
    user_notes = [data for ch, data in publisher.events if ch == "user-notifications"]
    assert user_notes[-1]["recipient_id"] == str(ride.shipper_id)
    assert user_notes[-1]["data"]["type"] == "bid"
