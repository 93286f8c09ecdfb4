"""User directory repository: role membership reads and sync upserts."""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from auditflow.application.dtos.sync import UserRecord
from auditflow.application.dtos.workflow import DirectoryUser
from auditflow.application.interfaces.repositories import UpsertOutcome
from auditflow.infrastructure.persistence.models.directory import AppUser, Role, UserRole

logger = logging.getLogger(__name__)


def _to_result(u: AppUser) -> DirectoryUser:
    """Map AppUser ORM to DirectoryUser DTO."""
    return DirectoryUser(id=u.id, email=u.email, name=u.name, is_active=u.is_active)


class UserDirectoryRepository:
    """User directory repository. Implements IUserDirectoryRepository."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def list_active_users_with_role(self, role: str) -> list[DirectoryUser]:
        """Active users holding role (case-insensitive), in stable email order."""
        result = await self.db.execute(
            select(AppUser)
            .join(UserRole, UserRole.user_id == AppUser.id)
            .join(Role, Role.id == UserRole.role_id)
            .where(func.lower(Role.name) == role.lower(), AppUser.is_active.is_(True))
            .order_by(AppUser.email.asc())
        )
        return [_to_result(row) for row in result.scalars().unique().all()]

    async def get_users(self, user_ids: list[str]) -> dict[str, DirectoryUser]:
        if not user_ids:
            return {}
        result = await self.db.execute(select(AppUser).where(AppUser.id.in_(user_ids)))
        return {row.id: _to_result(row) for row in result.scalars().all()}

    async def get_by_email(self, email: str) -> DirectoryUser | None:
        result = await self.db.execute(
            select(AppUser).where(func.lower(AppUser.email) == email.lower())
        )
        row = result.scalar_one_or_none()
        return _to_result(row) if row else None

    async def get_user_roles(self, user_id: str) -> list[str]:
        result = await self.db.execute(
            select(Role.name)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(UserRole.user_id == user_id)
            .order_by(Role.name.asc())
        )
        return list(result.scalars().all())

    async def create_user(
        self, email: str, name: str | None = None, *, is_active: bool = True
    ) -> DirectoryUser:
        """Create a directory user; return created entity."""
        user = AppUser(email=email.lower(), name=name, is_active=is_active)
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)
        return _to_result(user)

    async def ensure_role(self, name: str) -> str:
        result = await self.db.execute(
            select(Role).where(func.lower(Role.name) == name.lower())
        )
        role = result.scalar_one_or_none()
        if role is None:
            role = Role(name=name)
            self.db.add(role)
            await self.db.flush()
        return role.id

    async def assign_role(self, user_id: str, role: str) -> None:
        role_id = await self.ensure_role(role)
        result = await self.db.execute(
            select(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
        )
        if result.scalar_one_or_none() is None:
            self.db.add(UserRole(user_id=user_id, role_id=role_id))
            await self.db.flush()

    async def upsert_user(self, record: UserRecord) -> UpsertOutcome:
        """Create or update a user from a sync record, matching by email.

        Returns "skipped" when nothing changed. Roles are only added, never
        removed, so a partial source cannot strip local grants. Runs in a
        savepoint: a failing record rolls back alone.
        """
        async with self.db.begin_nested():
            return await self._upsert(record)

    async def _upsert(self, record: UserRecord) -> UpsertOutcome:
        email = record.email.strip().lower()
        result = await self.db.execute(
            select(AppUser).where(func.lower(AppUser.email) == email)
        )
        user = result.scalar_one_or_none()
        outcome: UpsertOutcome
        if user is None:
            user = AppUser(
                email=email,
                name=record.name,
                external_id=record.external_id,
                is_active=record.is_active,
            )
            self.db.add(user)
            await self.db.flush()
            outcome = "created"
        else:
            changed = False
            for attr, value in (
                ("name", record.name),
                ("external_id", record.external_id),
                ("is_active", record.is_active),
            ):
                if value is not None and getattr(user, attr) != value:
                    setattr(user, attr, value)
                    changed = True
            outcome = "updated" if changed else "skipped"

        existing = {r.lower() for r in await self.get_user_roles(user.id)}
        for role in record.roles:
            if role.lower() not in existing:
                await self.assign_role(user.id, role)
                existing.add(role.lower())
                if outcome == "skipped":
                    outcome = "updated"
        await self.db.flush()
        logger.debug("Directory upsert %s: %s", email, outcome)
        return outcome
