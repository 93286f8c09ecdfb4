"""Messaging: Redis pub/sub for real-time pushes."""

from auditflow.infrastructure.messaging.redis_pubsub import (
    RealtimePublisher,
    run_realtime_broadcast,
    user_channel,
)

__all__ = ["RealtimePublisher", "run_realtime_broadcast", "user_channel"]
