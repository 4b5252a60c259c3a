from decimal import Decimal

import pytest

from freight_matching.services.commission_service import compute_commission
from freight_matching.services.exceptions import InvalidInputError


@pytest.mark.parametrize(
    "fare, percent, expected",
    [
        ("1000", "10", "100.00"),
        ("900", "10", "90.00"),
        ("1234.50", "7.5", "92.5875"),
        ("999.99", "12.25", "122.498775"),
        ("500", "0", "0.00"),
    ],
)
def test_compute_commission(fare, percent, expected):
    assert compute_commission(Decimal(fare), Decimal(percent)) == Decimal(expected)


async def test_default_percent(db, services):
    assert await services.commission.get_percent(db) == Decimal("0")


@pytest.mark.parametrize("percent", [None, -1, 101, "ten", Decimal("NaN")])
async def test_set_percent_validation(db, services, percent):
    with pytest.raises(InvalidInputError):
        await services.commission.set_percent(percent, db)


async def test_set_percent_round_trip(db, services):
    await services.commission.set_percent(Decimal("12.5"), db)
    assert await services.commission.get_percent(db) == Decimal("12.5")


async def test_earnings_summary(db, services, make_ride, make_driver, make_shipper):
    shipper = await make_shipper()
    await services.commission.set_percent(10, db)

    for fare in ("1000", "500"):
        ride = await make_ride(shipper=shipper, offer_fare=Decimal(fare))
        await services.ride.accept_ride_direct(ride.id, (await make_driver()).id, db)
        await services.ride.complete_ride(ride.id, db)

    # Still pending: not counted
    await make_ride(shipper=shipper)

    summary = await services.commission.earnings_summary(db)
    assert summary["completed_rides"] == 2
    assert summary["total_fare"] == Decimal("1500.00")
    assert summary["total_commission"] == Decimal("150.00")
    assert summary["commission_percent"] == Decimal("10")
