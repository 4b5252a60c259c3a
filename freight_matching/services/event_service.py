import logging
from typing import Dict, Any
from datetime import datetime, timezone
import uuid

from ..utils.redis_client import redis_client

logger = logging.getLogger(__name__)


class EventService:
    """Publish domain events and notifications to the real-time broadcaster (Redis).

    Publishing is fire-and-forget: a broadcast failure is logged and dropped,
    never raised, because the persisted entity state is the source of truth.
    """

    # Event channels
    RIDE_EVENTS_CHANNEL = "ride-events"
    DRIVER_NOTIFICATIONS_CHANNEL = "driver-notifications"
    USER_NOTIFICATIONS_CHANNEL = "user-notifications"

    def __init__(self, publisher=None):
        self.publisher = publisher or redis_client

    async def _publish(self, channel: str, message: Dict[str, Any]) -> bool:
        try:
            await self.publisher.publish_event(channel, message)
            return True
        except Exception as e:
            logger.error(f"Dropped broadcast on {channel}: {e}", exc_info=True)
            return False

    async def publish_ride_event(self, event_type: str, event_data: Dict[str, Any]) -> bool:
        """Publish ride-related events"""
        event = {
            "event_id": str(uuid.uuid4()),
            "event_type": event_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": "freight-matching",
            "data": event_data,
        }
        published = await self._publish(self.RIDE_EVENTS_CHANNEL, event)
        if published:
            logger.info(f"Published ride event: {event_type}")
        return published

    async def publish_driver_notification(self, driver_id: str, notification_data: Dict[str, Any]) -> bool:
        """Publish notification to specific driver"""
        notification = {
            "notification_id": str(uuid.uuid4()),
            "recipient_type": "driver",
            "recipient_id": driver_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": notification_data,
        }
        return await self._publish(self.DRIVER_NOTIFICATIONS_CHANNEL, notification)

    async def publish_user_notification(self, user_id: str, notification_data: Dict[str, Any]) -> bool:
        """Publish notification to specific shipper"""
        notification = {
            "notification_id": str(uuid.uuid4()),
            "recipient_type": "user",
            "recipient_id": user_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": notification_data,
        }
        return await self._publish(self.USER_NOTIFICATIONS_CHANNEL, notification)

    # Specific event publishers for common scenarios

    async def notify_ride_created(self, ride_data: Dict[str, Any]):
        """Notify when a shipper creates a ride"""
        await self.publish_ride_event("ride.created", ride_data)

        await self.publish_user_notification(
            ride_data["shipper_id"],
            {
                "type": "ride",
                "title": "Ride Created",
                "message": "Your ride has been created successfully.",
                "ride_id": ride_data["id"],
            },
        )

    async def notify_bid_placed(self, shipper_id: str, bid_data: Dict[str, Any]):
        """Notify when a driver places a bid"""
        await self.publish_ride_event("bid.placed", bid_data)

        await self.publish_user_notification(
            shipper_id,
            {
                "type": "bid",
                "title": "New Bid Received",
                "message": "A driver has placed a bid on your ride.",
                "ride_id": bid_data["ride_id"],
                "bid_id": bid_data["id"],
            },
        )

    async def notify_bid_accepted(self, ride_data: Dict[str, Any], bid_data: Dict[str, Any], driver_data: Dict[str, Any]):
        """Notify when the shipper accepts a bid (full payload for driver-side navigation)"""
        payload = {
            "ride_id": ride_data["id"],
            "bid_id": bid_data["id"],
            "driver_id": driver_data["id"],
            "status": "Accepted",
            "ride": ride_data,
            "driver": driver_data,
        }
        await self.publish_ride_event("bid.accepted", payload)
        await self.publish_ride_event("bid.updated", payload)

        await self.publish_driver_notification(
            driver_data["id"],
            {
                "type": "bid_accepted",
                "message": "Your bid was accepted. Head to the pickup location.",
                "ride": ride_data,
            },
        )

        await self.publish_user_notification(
            ride_data["shipper_id"],
            {
                "type": "bid",
                "title": "Driver Assigned",
                "message": f"You accepted {driver_data['name']}'s bid.",
                "ride_id": ride_data["id"],
                "bid_id": bid_data["id"],
            },
        )

    async def notify_bid_rejected(self, bid_data: Dict[str, Any]):
        """Notify when a single bid is rejected (ride stays open)"""
        await self.publish_ride_event(
            "bid.updated",
            {
                "ride_id": bid_data["ride_id"],
                "bid_id": bid_data["id"],
                "status": "Rejected",
            },
        )

        await self.publish_driver_notification(
            bid_data["driver_id"],
            {
                "type": "bid_rejected",
                "message": "Your bid was not accepted.",
                "ride_id": bid_data["ride_id"],
                "bid_id": bid_data["id"],
            },
        )

    async def notify_ride_accepted(self, ride_data: Dict[str, Any]):
        """Notify when a driver takes a ride directly (no bid round)"""
        await self.publish_ride_event("ride.accepted", ride_data)

        await self.publish_user_notification(
            ride_data["shipper_id"],
            {
                "type": "ride",
                "title": "Driver Assigned",
                "message": "A driver accepted your ride.",
                "ride_id": ride_data["id"],
                "driver_id": ride_data["assigned_driver_id"],
            },
        )

    async def notify_ride_started(self, ride_data: Dict[str, Any]):
        """Notify when the assigned driver starts the trip"""
        await self.publish_ride_event("ride.started", ride_data)

    async def notify_ride_completed(self, ride_data: Dict[str, Any]):
        """Notify when ride is completed"""
        await self.publish_ride_event(
            "ride.completed",
            {"ride_id": ride_data["id"], "status": "Completed", "ride": ride_data},
        )

        await self.publish_user_notification(
            ride_data["shipper_id"],
            {
                "type": "ride",
                "title": "Ride Completed",
                "message": f"Your ride was completed. Fare: {ride_data['fare_amount']}",
                "ride_id": ride_data["id"],
            },
        )

    async def notify_driver_location(self, location_data: Dict[str, Any]):
        """Broadcast a live driver position"""
        await self.publish_ride_event("driver.locationUpdate", location_data)


def dump(schema_cls, obj, **extra) -> Dict[str, Any]:
    """Serialize an ORM object through a response schema into a JSON-safe dict"""
    data = schema_cls.model_validate(obj).model_dump(mode="json")
    data.update(extra)
    return data
