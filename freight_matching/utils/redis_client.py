import redis.asyncio as redis
import json
import logging
from typing import Optional, Any, Dict
from ..config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    def __init__(self):
        self.redis: Optional[redis.Redis] = None

    async def connect(self):
        """Connect to Redis"""
        try:
            self.redis = redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                retry_on_timeout=True,
                socket_keepalive=True,
            )
            # Test connection
            await self.redis.ping()
            logger.info("Connected to Redis successfully")
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise

    async def disconnect(self):
        """Disconnect from Redis"""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            logger.info("Disconnected from Redis")

    async def publish_event(self, channel: str, event_data: Dict[str, Any]):
        """Publish event to Redis channel"""
        if self.redis is None:
            raise RuntimeError("Redis client is not connected")
        await self.redis.publish(channel, json.dumps(event_data, default=str))
        logger.debug(f"Published event to {channel}: {event_data.get('event_type')}")

    async def health_check(self) -> bool:
        """Check Redis health"""
        try:
            if self.redis is None:
                return False
            await self.redis.ping()
            return True
        except Exception as e:
            logger.error(f"Redis health check failed: {e}")
            return False


# Global Redis client instance
redis_client = RedisClient()
