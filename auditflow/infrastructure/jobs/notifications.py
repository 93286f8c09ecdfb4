"""Notification job family: persist the row, then push it in real time."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auditflow.application.dtos.jobs import JobResult
from auditflow.application.interfaces import IRealtimeChannel
from auditflow.domain.exceptions import ValidationException
from auditflow.infrastructure.messaging.redis_pubsub import user_channel
from auditflow.infrastructure.persistence.repositories.notification_repo import (
    NotificationRepository,
)

logger = logging.getLogger(__name__)

NOTIFICATION_QUEUE = "notifications"
SEND_NOTIFICATION_JOB = "send-notification"


class NotificationJobHandler:
    """Handler for send-notification jobs.

    The row is committed before the push so a lost push never loses the
    notification; the client sees it on its next list call.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        channel: IRealtimeChannel | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.channel = channel

    async def __call__(self, job: JobResult) -> dict[str, Any]:
        payload = job.payload
        user_id = payload.get("user_id")
        if not user_id:
            raise ValidationException("Notification job has no user_id", field="user_id")

        async with self.session_factory() as session:
            async with session.begin():
                notification = await NotificationRepository(session).create_notification(
                    user_id,
                    payload.get("title") or "",
                    payload.get("message") or "",
                    type=payload.get("type") or "info",
                    link=payload.get("link"),
                    metadata={**(payload.get("metadata") or {}), "job_id": job.id},
                )

        pushed = False
        if self.channel is not None:
            try:
                pushed = await self.channel.send(
                    user_channel(user_id),
                    {"event": "notification", "data": notification.to_payload()},
                )
            except Exception:
                logger.exception(
                    "Real-time push of notification %s to %s failed", notification.id, user_id
                )
        if not pushed:
            logger.warning(
                "Notification %s stored but not pushed to %s", notification.id, user_id
            )
        return {"notification_id": notification.id, "pushed": pushed}
