"""Notification repository."""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from auditflow.application.dtos.notification import NotificationResult
from auditflow.infrastructure.persistence.models.notification import Notification
from auditflow.infrastructure.persistence.repositories.base import BaseRepository
from auditflow.shared.enums import NotificationType
from auditflow.shared.utils.datetime import ensure_utc


def _to_result(n: Notification) -> NotificationResult:
    """Map Notification ORM to NotificationResult DTO."""
    return NotificationResult(
        id=n.id,
        user_id=n.user_id,
        title=n.title,
        message=n.message,
        type=n.type,
        link=n.link,
        is_read=n.is_read,
        metadata=dict(n.metadata_ or {}),
        created_at=ensure_utc(n.created_at),  # type: ignore[arg-type]
    )


class NotificationRepository(BaseRepository[Notification]):
    """Notification repository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, Notification)

    async def create_notification(
        self,
        user_id: str,
        title: str,
        message: str,
        *,
        type: NotificationType | str = NotificationType.INFO,
        link: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> NotificationResult:
        row = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=NotificationType(type).value,
            link=link,
            is_read=False,
            metadata_=dict(metadata or {}),
        )
        return _to_result(await self._add(row))

    async def list_for_user(
        self, user_id: str, *, unread_only: bool = False, limit: int = 50
    ) -> list[NotificationResult]:
        q = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            q = q.where(Notification.is_read.is_(False))
        q = q.order_by(Notification.created_at.desc()).limit(limit)
        result = await self.db.execute(q)
        return [_to_result(row) for row in result.scalars().all()]

    async def count_unread(self, user_id: str) -> int:
        result = await self.db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id, Notification.is_read.is_(False)
            )
        )
        return int(result.scalar_one())

    async def mark_read(self, notification_id: str, user_id: str) -> NotificationResult | None:
        """Mark one of user_id's notifications read; None if it is not theirs."""
        row = await self._get_row(notification_id)
        if row is None or row.user_id != user_id:
            return None
        row.is_read = True
        return _to_result(await self._save(row))

    async def mark_all_read(self, user_id: str) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        return result.rowcount or 0
