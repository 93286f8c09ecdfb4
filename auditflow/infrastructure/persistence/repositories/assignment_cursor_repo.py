"""Round-robin cursor repository (one row per role, optimistic versioning)."""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from auditflow.infrastructure.persistence.models.directory import AssignmentCursor


class AssignmentCursorRepository:
    """Cursor repository. Implements IAssignmentCursorRepository."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @staticmethod
    def _key(role: str) -> str:
        return role.lower()

    async def get(self, role: str) -> tuple[str | None, int] | None:
        result = await self.db.execute(
            select(AssignmentCursor.last_user_id, AssignmentCursor.version).where(
                AssignmentCursor.role == self._key(role)
            )
        )
        row = result.one_or_none()
        if row is None:
            return None
        return row[0], int(row[1])

    async def compare_and_set(
        self, role: str, expected_version: int, last_user_id: str
    ) -> bool:
        """Conditional UPDATE; rowcount 0 means another resolver moved the cursor."""
        result = await self.db.execute(
            update(AssignmentCursor)
            .where(
                AssignmentCursor.role == self._key(role),
                AssignmentCursor.version == expected_version,
            )
            .values(last_user_id=last_user_id, version=expected_version + 1)
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) == 1

    async def insert(self, role: str, last_user_id: str) -> bool:
        try:
            async with self.db.begin_nested():
                self.db.add(
                    AssignmentCursor(
                        role=self._key(role), last_user_id=last_user_id, version=1
                    )
                )
        except IntegrityError:
            return False
        return True

    async def force_set(self, role: str, last_user_id: str) -> None:
        current = await self.get(role)
        if current is None:
            await self.insert(role, last_user_id)
            return
        await self.db.execute(
            update(AssignmentCursor)
            .where(AssignmentCursor.role == self._key(role))
            .values(last_user_id=last_user_id, version=AssignmentCursor.version + 1)
            .execution_options(synchronize_session=False)
        )
