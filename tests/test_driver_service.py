import uuid

import pytest

from freight_matching.models.driver import Driver
from freight_matching.services.exceptions import InvalidInputError, NotFoundError


async def test_set_online(db, services, make_driver):
    driver = await make_driver(online=False)

    driver = await services.driver.set_online(driver.id, True, db)
    assert driver.is_online is True

    driver = await services.driver.set_online(driver.id, False, db)
    assert driver.is_online is False


async def test_update_location(db, services, make_driver, publisher):
    driver = await make_driver(location=None)

    driver = await services.driver.update_driver_location(driver.id, 31.52, 74.35, db)

    assert (driver.current_lat, driver.current_lng) == (31.52, 74.35)
    assert driver.last_location_update is not None
    assert "driver.locationUpdate" in publisher.event_types()


@pytest.mark.parametrize("lat, lng", [(None, 74.35), (31.52, "74.35"), (float("inf"), 0)])
async def test_update_location_validation(db, services, make_driver, lat, lng):
    driver = await make_driver()
    with pytest.raises(InvalidInputError):
        await services.driver.update_driver_location(driver.id, lat, lng, db)


async def test_unknown_driver(db, services):
    with pytest.raises(NotFoundError):
        await services.driver.get_profile(uuid.uuid4(), db)


async def test_current_and_completed_rides(db, services, make_ride, make_driver):
    ride = await make_ride()
    driver = await make_driver()

    assert await services.driver.get_current_ride(driver.id, db) is None

    await services.ride.accept_ride_direct(ride.id, driver.id, db)
    current = await services.driver.get_current_ride(driver.id, db)
    assert current.id == ride.id
    assert (await services.driver.get_profile(driver.id, db))["is_frozen"] is True

    await services.ride.complete_ride(ride.id, db)
    assert await services.driver.get_current_ride(driver.id, db) is None
    completed = await services.driver.get_completed_rides(driver.id, db)
    assert [r.id for r in completed] == [ride.id]


async def test_driver_category_is_canonical(make_driver):
    driver = await make_driver(category="minitruck")
    assert driver.vehicle_category == "MiniTruck"


def test_unknown_driver_category_rejected():
    with pytest.raises(InvalidInputError):
        Driver(first_name="A", last_name="B", phone="+920000", vehicle_category="Spaceship")


async def test_vehicle_stats_counts_every_category(db, services, make_driver):
    await make_driver(category="Truck")
    await make_driver(category="truck")
    await make_driver(category="Reefer")

    result = await services.driver.vehicle_stats(db)

    assert result["total"] == 3
    assert result["stats"]["Truck"] == 2
    assert result["stats"]["Reefer"] == 1
    assert result["stats"]["Tanker"] == 0
    assert set(result["stats"]) >= {"Trailer", "MiniTruck", "Uncategorized"}


async def test_vehicle_stats_without_drivers(db, services):
    result = await services.driver.vehicle_stats(db)
    assert result["total"] == 0
    assert len(result["stats"]) == 11
