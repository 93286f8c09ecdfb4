"""In-app notification ORM model."""

from typing import Any

import sqlalchemy as sa
from sqlalchemy import JSON, Boolean, CheckConstraint, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from auditflow.infrastructure.persistence.database import Base
from auditflow.infrastructure.persistence.models.mixins import (
    CuidMixin,
    TimestampMixin,
)
from auditflow.infrastructure.persistence.models.workflow import _in_values
from auditflow.shared.enums import NotificationType


class Notification(CuidMixin, TimestampMixin, Base):
    """Notification delivered to one user. Table: notification."""

    __tablename__ = "notification"

    user_id: Mapped[str] = mapped_column(String, nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(
        String, nullable=False, default=NotificationType.INFO.value
    )
    link: Mapped[str | None] = mapped_column(String, nullable=True)
    is_read: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=sa.false()
    )
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )

    __table_args__ = (
        Index("ix_notification_user_read", "user_id", "is_read"),
        CheckConstraint(
            _in_values("type", NotificationType.values()),
            name="notification_type_check",
        ),
    )
