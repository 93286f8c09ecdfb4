"""Delegation management (create, deactivate, list)."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from auditflow.application.dtos.workflow import DelegationResult
from auditflow.application.interfaces.repositories import (
    IDelegationRepository,
    IUserDirectoryRepository,
)
from auditflow.domain.exceptions import ResourceNotFoundException, ValidationException
from auditflow.shared.utils.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)


class DelegationService:
    """Creates and ends delegations read by the assignment resolver."""

    def __init__(
        self,
        delegations: IDelegationRepository,
        users: IUserDirectoryRepository,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.delegations = delegations
        self.users = users
        self.clock = clock

    async def create(
        self,
        from_user_id: str,
        to_user_id: str,
        start_date: datetime,
        end_date: datetime,
        *,
        role: str | None = None,
        reason: str | None = None,
    ) -> DelegationResult:
        start = ensure_utc(start_date)
        end = ensure_utc(end_date)
        if from_user_id == to_user_id:
            raise ValidationException("Cannot delegate to yourself", field="to_user_id")
        if start >= end:  # type: ignore[operator]
            raise ValidationException("start_date must be before end_date", field="end_date")
        if end <= self.clock():  # type: ignore[operator]
            raise ValidationException("end_date must be in the future", field="end_date")
        found = await self.users.get_users([from_user_id, to_user_id])
        for user_id in (from_user_id, to_user_id):
            if user_id not in found:
                raise ResourceNotFoundException("user", user_id)
        if not found[to_user_id].is_active:
            raise ValidationException("Delegate is not an active user", field="to_user_id")
        delegation = await self.delegations.create_delegation(
            from_user_id,
            to_user_id,
            start,  # type: ignore[arg-type]
            end,  # type: ignore[arg-type]
            role=role,
            reason=reason,
        )
        logger.info(
            "Delegation %s: %s -> %s (role %s)",
            delegation.id,
            from_user_id,
            to_user_id,
            role or "*",
        )
        return delegation

    async def deactivate(self, delegation_id: str) -> DelegationResult:
        delegation = await self.delegations.deactivate(delegation_id)
        if delegation is None:
            raise ResourceNotFoundException("delegation", delegation_id)
        return delegation

    async def list_for_user(
        self, user_id: str, active_only: bool = True
    ) -> list[DelegationResult]:
        return await self.delegations.list_for_user(user_id, active_only=active_only)
