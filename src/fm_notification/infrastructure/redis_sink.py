"""RedisNotificationSink — publishes outbox events on a Redis pub/sub channel.

The real-time delivery layer (WebSocket push, e-mail) subscribes to the channel;
formatting and fan-out to devices happen there.
"""

import json

import redis.asyncio as aioredis

from config.settings import settings
from src.fm_common.redis_client import get_redis
from src.fm_notification.domain.events import NotificationEvent


class RedisNotificationSink:
    def __init__(
        self,
        redis: aioredis.Redis | None = None,
        channel: str | None = None,
    ) -> None:
        self._redis = redis
        self._channel = channel or settings.NOTIFICATION_CHANNEL

    async def deliver(self, event: NotificationEvent) -> None:
        redis = self._redis or await get_redis()
        await redis.publish(self._channel, json.dumps(event.to_message()))
