"""Base repository: generic row access shared by the DTO-returning repositories."""

from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auditflow.domain.exceptions import ResourceNotFoundException
from auditflow.infrastructure.persistence.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Base repository with row lookup and create/save helpers.

    Subclasses expose DTOs only; ORM rows never leave the repository.
    """

    def __init__(self, db: AsyncSession, model: type[ModelType]) -> None:
        self.db = db
        self.model = model

    async def _get_row(
        self, entity_id: str, *, for_update: bool = False
    ) -> ModelType | None:
        """Return a single row by primary key, or None.

        for_update adds SELECT ... FOR UPDATE (ignored by SQLite).
        """
        model: Any = self.model
        stmt = select(self.model).where(model.id == entity_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _require_row(self, entity_id: str, *, for_update: bool = False) -> ModelType:
        """Like _get_row but raises ResourceNotFoundException."""
        row = await self._get_row(entity_id, for_update=for_update)
        if row is None:
            raise ResourceNotFoundException(self.model.__name__, entity_id)
        return row

    async def _add(self, obj: ModelType) -> ModelType:
        """Persist a new row and load server defaults."""
        self.db.add(obj)
        await self.db.flush()
        await self.db.refresh(obj)
        return obj

    async def _save(self, obj: ModelType) -> ModelType:
        """Flush pending changes on an attached row and reload it."""
        await self.db.flush()
        await self.db.refresh(obj)
        return obj
