"""Delegation repository."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from auditflow.application.dtos.workflow import DelegationResult
from auditflow.infrastructure.persistence.models.directory import Delegation
from auditflow.infrastructure.persistence.repositories.base import BaseRepository
from auditflow.shared.utils.datetime import ensure_utc


def _to_result(d: Delegation) -> DelegationResult:
    """Map Delegation ORM to DelegationResult DTO."""
    return DelegationResult(
        id=d.id,
        from_user_id=d.from_user_id,
        to_user_id=d.to_user_id,
        role=d.role,
        start_date=ensure_utc(d.start_date),  # type: ignore[arg-type]
        end_date=ensure_utc(d.end_date),  # type: ignore[arg-type]
        is_active=d.is_active,
        reason=d.reason,
        created_at=ensure_utc(d.created_at),  # type: ignore[arg-type]
    )


class DelegationRepository(BaseRepository[Delegation]):
    """Delegation repository. Implements IDelegationRepository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, Delegation)

    async def get_by_id(self, delegation_id: str) -> DelegationResult | None:
        row = await self._get_row(delegation_id)
        return _to_result(row) if row else None

    async def create_delegation(
        self,
        from_user_id: str,
        to_user_id: str,
        start_date: datetime,
        end_date: datetime,
        *,
        role: str | None = None,
        reason: str | None = None,
    ) -> DelegationResult:
        """Create delegation; return created entity."""
        row = Delegation(
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            role=role,
            start_date=start_date,
            end_date=end_date,
            is_active=True,
            reason=reason,
        )
        return _to_result(await self._add(row))

    async def deactivate(self, delegation_id: str) -> DelegationResult | None:
        row = await self._get_row(delegation_id)
        if row is None:
            return None
        row.is_active = False
        return _to_result(await self._save(row))

    async def list_for_user(
        self, user_id: str, *, active_only: bool = True
    ) -> list[DelegationResult]:
        q = select(Delegation).where(
            or_(Delegation.from_user_id == user_id, Delegation.to_user_id == user_id)
        )
        if active_only:
            q = q.where(Delegation.is_active.is_(True))
        result = await self.db.execute(q.order_by(Delegation.start_date.desc()))
        return [_to_result(row) for row in result.scalars().all()]

    async def get_active_for_users(
        self, user_ids: list[str], role: str | None, now: datetime
    ) -> dict[str, DelegationResult]:
        """Active delegations covering now, keyed by delegating user.

        A delegation with no role covers every role; roles compare
        case-insensitively. When several match, the most recently started
        one wins.
        """
        if not user_ids:
            return {}
        q = select(Delegation).where(
            Delegation.from_user_id.in_(user_ids),
            Delegation.is_active.is_(True),
            Delegation.start_date <= now,
            Delegation.end_date >= now,
        )
        if role is not None:
            q = q.where(
                or_(Delegation.role.is_(None), func.lower(Delegation.role) == role.lower())
            )
        result = await self.db.execute(q.order_by(Delegation.start_date.asc()))
        found: dict[str, DelegationResult] = {}
        for row in result.scalars().all():
            found[row.from_user_id] = _to_result(row)
        return found
