"""Redis Pub/Sub for real-time pushes to connected users.

Job handlers (which may run in a separate worker process) publish to
``realtime:<channel>``; the API process subscribes to ``realtime:*`` and
forwards each message to the matching WebSocket connections. Delivery is
best effort: publish returns False instead of raising.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import redis.asyncio as redis

from auditflow.core.config import get_settings

logger = logging.getLogger(__name__)

USER_CHANNEL_PREFIX = "user:"


def user_channel(user_id: str) -> str:
    """Logical channel carrying pushes for one user."""
    return f"{USER_CHANNEL_PREFIX}{user_id}"


class _RedisPubSubBase:
    """Shared Redis connection and channel naming."""

    CHANNEL_PREFIX = "realtime"

    def __init__(self, redis_client: redis.Redis | None = None) -> None:
        """Initialize. Pass redis_client for DI/testing."""
        self.redis = redis_client
        self.settings = get_settings()
        self._connected = redis_client is not None

    async def connect(self) -> None:
        """Establish Redis connection. Call on startup."""
        if self._connected or not self.settings.redis_enabled:
            return
        if self.redis is None:
            try:
                self.redis = redis.Redis(
                    host=self.settings.redis_host,
                    port=self.settings.redis_port,
                    db=self.settings.redis_db,
                    password=(
                        self.settings.redis_password.get_secret_value()
                        if self.settings.redis_password
                        else None
                    ),
                    decode_responses=True,
                    socket_connect_timeout=5,
                )
                await self.redis.ping()
                self._connected = True
                logger.info("Redis pub/sub connected")
            except (redis.ConnectionError, redis.TimeoutError) as e:
                logger.warning("Redis pub/sub connection failed: %s", e)
                self._connected = False
                self.redis = None

    async def disconnect(self) -> None:
        """Close Redis connection. Call on shutdown."""
        if self.redis:
            await self.redis.aclose()
            self._connected = False
            self.redis = None
            logger.info("Redis pub/sub disconnected")

    def is_available(self) -> bool:
        """Return True if Redis is connected."""
        return self._connected and self.redis is not None

    def _get_channel(self, channel: str) -> str:
        return f"{self.CHANNEL_PREFIX}:{channel}"


class RealtimePublisher(_RedisPubSubBase):
    """Publishes JSON messages to realtime channels. Implements IRealtimeChannel."""

    async def send(self, channel: str, payload: dict[str, Any]) -> bool:
        """Publish payload on channel.

        Returns:
            True if published, False if Redis is unavailable or publish failed.
        """
        if not self.is_available() or self.redis is None:
            logger.debug("Redis not available, skipping push to %s", channel)
            return False
        try:
            await self.redis.publish(self._get_channel(channel), json.dumps(payload, default=str))
            logger.debug("Published realtime message to %s", channel)
        except Exception:
            logger.exception("Failed to publish realtime message to %s", channel)
            return False
        else:
            return True


async def run_realtime_broadcast(app: Any) -> None:
    """Forward realtime:user:* messages to that user's WebSocket connections.

    Started as a background task from lifespan when Redis is enabled.
    Cancelling the task stops the loop.
    """
    subscriber = _RedisPubSubBase()
    await subscriber.connect()
    if not subscriber.is_available() or subscriber.redis is None:
        logger.warning("Redis not available, realtime broadcast not started")
        return
    pattern = f"{_RedisPubSubBase.CHANNEL_PREFIX}:{USER_CHANNEL_PREFIX}*"
    pubsub = subscriber.redis.pubsub()
    try:
        await pubsub.psubscribe(pattern)
        logger.info("Subscribed to %s for WebSocket broadcast", pattern)
        async for message in pubsub.listen():
            if message["type"] != "pmessage":
                continue
            channel = message.get("channel") or ""
            if isinstance(channel, bytes):
                channel = channel.decode()
            user_id = channel.split(USER_CHANNEL_PREFIX, 1)[-1]
            if not user_id:
                continue
            try:
                data = json.loads(message["data"])
            except (json.JSONDecodeError, KeyError, TypeError):
                logger.exception("Failed to parse realtime message on %s", channel)
                continue
            manager = getattr(app.state, "ws_manager", None)
            if manager is not None:
                await manager.send_to_user(user_id, data)
    except asyncio.CancelledError:
        logger.info("Realtime broadcast task cancelled")
    except Exception:
        logger.exception("Realtime broadcast error")
    finally:
        await pubsub.punsubscribe()
        await pubsub.aclose()
        await subscriber.disconnect()
