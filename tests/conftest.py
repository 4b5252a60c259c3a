from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from freight_matching.database import Base
from freight_matching.models import bid, commission, driver, rating, ride, shipper  # noqa: F401
from freight_matching.models.driver import Driver
from freight_matching.models.shipper import Shipper
from freight_matching.schemas.ride import Coordinates, RideCreateRequest
from freight_matching.services.bid_service import BidService
from freight_matching.services.commission_service import CommissionService
from freight_matching.services.driver_service import DriverService
from freight_matching.services.event_service import EventService
from freight_matching.services.identity_service import IdentityService
from freight_matching.services.matching_service import MatchingService
from freight_matching.services.rating_service import RatingService
from freight_matching.services.ride_service import RideService

# Karachi port area; every test ride picks up here unless overridden
PICKUP = (24.8607, 67.0011)
DROPOFF = (24.9056, 67.0822)


class FakePublisher:
    """Stands in for the Redis client; records every publish"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.events = []

    async def publish_event(self, channel, event_data):
        if self.fail:
            raise ConnectionError("broadcaster unavailable")
        self.events.append((channel, event_data))

    def event_types(self, channel="ride-events"):
        return [data["event_type"] for ch, data in self.events if ch == channel]


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def failing_publisher():
    return FakePublisher(fail=True)


@pytest.fixture
def services(publisher):
    events = EventService(publisher=publisher)
    identity = IdentityService()
    commissions = CommissionService()
    ratings = RatingService()
    rides = RideService(events, commissions, identity)
    bids = BidService(events, rides, identity)
    drivers = DriverService(events, rides, ratings, identity)
    return SimpleNamespace(
        events=events,
        identity=identity,
        commission=commissions,
        rating=ratings,
        ride=rides,
        bid=bids,
        driver=drivers,
        matching=MatchingService(drivers),
    )


@pytest.fixture
def make_shipper(db):
    async def factory(name="Acme Logistics", phone="+92300000000"):
        shipper = Shipper(name=name, phone=phone)
        db.add(shipper)
        await db.commit()
        return shipper

    return factory


@pytest.fixture
def make_driver(db):
    counter = {"n": 0}

    async def factory(category="Truck", size=20, online=True, location=PICKUP, **fields):
        counter["n"] += 1
        driver = Driver(
            first_name=fields.pop("first_name", "Driver"),
            last_name=fields.pop("last_name", str(counter["n"])),
            phone=fields.pop("phone", f"+9231100000{counter['n']:02d}"),
            vehicle_category=category,
            vehicle_size_feet=size,
            is_online=online,
            current_lat=location[0] if location else None,
            current_lng=location[1] if location else None,
            **fields,
        )
        db.add(driver)
        await db.commit()
        return driver

    return factory


def build_ride_request(**overrides) -> RideCreateRequest:
    data = {
        "pickup_location": "Karachi Port",
        "pickup_coordinates": Coordinates(lat=PICKUP[0], lng=PICKUP[1]),
        "dropoff_location": "SITE Industrial Area",
        "dropoff_coordinates": Coordinates(lat=DROPOFF[0], lng=DROPOFF[1]),
        "material_type": "Cement",
        "offer_fare": Decimal("1000"),
        "vehicle_category": "Truck",
        "vehicle_size_feet": 20,
    }
    data.update(overrides)
    return RideCreateRequest(**data)


@pytest.fixture
def make_ride(db, services, make_shipper):
    async def factory(shipper=None, **overrides):
        shipper = shipper or await make_shipper()
        ride, _ = await services.ride.create_ride(shipper.id, build_ride_request(**overrides), db)
        return ride

    return factory


@pytest.fixture
def ride_request():
    return build_ride_request
