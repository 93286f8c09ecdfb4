"""User directory, delegation and round-robin cursor ORM models.

The directory is the resolver's read model: external sync jobs write it,
the assignment resolver reads it.
"""

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from auditflow.infrastructure.persistence.database import Base
from auditflow.infrastructure.persistence.models.mixins import (
    CuidMixin,
    TimestampMixin,
)


class AppUser(CuidMixin, TimestampMixin, Base):
    """Directory user. Table: app_user."""

    __tablename__ = "app_user"

    email: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    external_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sa.true()
    )


class Role(CuidMixin, TimestampMixin, Base):
    """Role name (e.g. MANAGER). Table: role. Lookups are case-insensitive."""

    __tablename__ = "role"

    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)


class UserRole(CuidMixin, TimestampMixin, Base):
    """User-role membership. Table: user_role."""

    __tablename__ = "user_role"

    user_id: Mapped[str] = mapped_column(
        String, ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role_id: Mapped[str] = mapped_column(
        String, ForeignKey("role.id", ondelete="CASCADE"), nullable=False, index=True
    )

    __table_args__ = (UniqueConstraint("user_id", "role_id", name="uq_user_role"),)


class Delegation(CuidMixin, TimestampMixin, Base):
    """Time-bounded delegation of a user's work. Table: delegation.

    role NULL delegates every role the user holds.
    """

    __tablename__ = "delegation"

    from_user_id: Mapped[str] = mapped_column(
        String, ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False
    )
    to_user_id: Mapped[str] = mapped_column(
        String, ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str | None] = mapped_column(String, nullable=True)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sa.true()
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_delegation_from_user_active", "from_user_id", "is_active"),
        CheckConstraint("start_date < end_date", name="delegation_date_range_check"),
        CheckConstraint("from_user_id <> to_user_id", name="delegation_not_self_check"),
    )


class AssignmentCursor(Base):
    """Round-robin rotation cursor, one row per role. Table: assignment_cursor.

    version is bumped on every write so concurrent resolvers can detect a
    lost update (compare-and-set).
    """

    __tablename__ = "assignment_cursor"

    role: Mapped[str] = mapped_column(String, primary_key=True)
    last_user_id: Mapped[str | None] = mapped_column(String, nullable=True)
    version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )
