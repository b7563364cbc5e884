"""
Notifier implementations.

LogNotifier writes events to the structured log (a log shipper forwards
them). RedisNotifier publishes JSON messages on a pub/sub channel that the
notification subsystem subscribes to.
"""

import json
from datetime import datetime, timezone
from typing import Optional

from redis.exceptions import RedisError

from booking_engine.core.config import get_settings
from booking_engine.core.logging import get_logger
from booking_engine.core.metrics import redis_connection_errors
from booking_engine.infrastructure.redis_client import get_redis
from booking_engine.services.interfaces.notifier import Notifier

logger = get_logger(__name__)


class LogNotifier(Notifier):
    async def publish(self, event_type: str, payload: dict) -> None:
        logger.info("notification_published", event_type=event_type, **payload)


class RedisNotifier(Notifier):
    def __init__(self, channel: Optional[str] = None):
        self.channel = channel or get_settings().NOTIFICATION_CHANNEL

    async def publish(self, event_type: str, payload: dict) -> None:
        message = json.dumps(
            {
                "type": event_type,
                "emitted_at": datetime.now(timezone.utc).isoformat(),
                "payload": payload,
            },
            default=str,
        )
        client = await get_redis()
        if client is None:
            logger.warning("notification_not_delivered", event_type=event_type, reason="redis_unavailable")
            return
        try:
            await client.publish(self.channel, message)
        except RedisError as e:
            redis_connection_errors.inc()
            logger.error("notification_publish_failed", event_type=event_type, error=str(e))


_notifier: Optional[Notifier] = None


def get_notifier() -> Notifier:
    global _notifier
    if _notifier is None:
        _notifier = RedisNotifier() if get_settings().NOTIFIER == "redis" else LogNotifier()
    return _notifier
