"""Redis async connection pool and event publishing."""

from __future__ import annotations

import json

import redis.asyncio as aioredis

from ridescrow.config import settings
from .models import RideEventModel

_pool = aioredis.ConnectionPool.from_url(
    settings.redis_url, decode_responses=True
)


async def get_redis() -> aioredis.Redis:
    """Return a Redis client backed by the shared connection pool."""
    return aioredis.Redis(connection_pool=_pool)


def event_message(event: RideEventModel) -> str:
    """Wire form of an outbox row as seen by subscribers."""
    return json.dumps(
        {
            "sequence": event.id,
            "type": event.event_type,
            "ride_id": event.ride_id,
            "payload": event.payload,
            "created_at": event.created_at.isoformat() if event.created_at else None,
        },
        sort_keys=True,
    )


class EventPublisher:
    """Publishes outbox rows to a Redis pub/sub channel."""

    def __init__(self, client: aioredis.Redis, channel: str | None = None):
        self.redis = client
        self.channel = channel or settings.events_channel

    async def publish(self, event: RideEventModel) -> int:
        """Publish one event; returns the number of subscribers reached."""
        return await self.redis.publish(self.channel, event_message(event))
