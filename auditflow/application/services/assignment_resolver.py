"""Assignment resolver: picks the user who receives a role-targeted step.

Pipeline, always in this order:
    1. enumerate active holders of the role (stable email order);
    2. availability: a user with an active delegation covering now is
       replaced by the end of its delegation chain (when that user is
       active and the chain does not loop back);
    3. strategy: round robin, least workload or random.

Resolution never fails a workflow transition. Lookup errors degrade to the
first holder of the role, and a role with no members yields None so the
engine can create an unassigned step.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Awaitable, Callable
from datetime import datetime

from auditflow.application.dtos.workflow import DelegationResult, DirectoryUser
from auditflow.application.interfaces.repositories import (
    IAssignmentCursorRepository,
    IDelegationRepository,
    IStepAssignmentRepository,
    IUserDirectoryRepository,
)
from auditflow.domain.enums import AssignmentStrategy
from auditflow.shared.utils.datetime import utc_now

logger = logging.getLogger(__name__)

# (email of the member whose turn it is, user id actually assigned)
Candidate = tuple[str, str]


def coerce_strategy(
    value: AssignmentStrategy | str | None,
    default: AssignmentStrategy = AssignmentStrategy.WORKLOAD,
) -> AssignmentStrategy:
    """Map a node's strategy string (``round-robin`` or ``round_robin``) to the enum."""
    if value is None or value == "":
        return default
    if isinstance(value, AssignmentStrategy):
        return value
    try:
        return AssignmentStrategy(value.strip().lower().replace("-", "_"))
    except ValueError:
        logger.warning("Unknown assignment strategy %r; using %s", value, default.value)
        return default


def next_after_cursor(candidates: list[Candidate], cursor_key: str | None) -> str:
    """First candidate whose key sorts strictly after cursor_key, wrapping to the first."""
    if cursor_key is not None:
        for key, user_id in candidates:
            if key > cursor_key:
                return user_id
    return candidates[0][1]


class AssignmentResolver:
    """Resolves role -> user id. Implements IAssignmentResolver.

    Stateless apart from the persistent round-robin cursor, which is advanced
    with an optimistic compare-and-set and falls back to last-writer-wins
    after max_cursor_retries lost races.
    """

    def __init__(
        self,
        users: IUserDirectoryRepository,
        delegations: IDelegationRepository,
        assignments: IStepAssignmentRepository,
        cursors: IAssignmentCursorRepository,
        *,
        default_strategy: AssignmentStrategy = AssignmentStrategy.WORKLOAD,
        max_cursor_retries: int = 3,
        clock: Callable[[], datetime] = utc_now,
        rng: random.Random | None = None,
    ) -> None:
        self.users = users
        self.delegations = delegations
        self.assignments = assignments
        self.cursors = cursors
        self.default_strategy = default_strategy
        self.max_cursor_retries = max(1, max_cursor_retries)
        self.clock = clock
        self.rng = rng or random.Random()
        self._strategies: dict[
            AssignmentStrategy,
            Callable[[str, list[Candidate]], Awaitable[str]],
        ] = {
            AssignmentStrategy.ROUND_ROBIN: self._round_robin,
            AssignmentStrategy.WORKLOAD: self._least_workload,
            AssignmentStrategy.RANDOM: self._random,
        }

    async def resolve(
        self, role: str, strategy: AssignmentStrategy | str | None = None
    ) -> str | None:
        """Return the user id that should receive a step for role, or None."""
        chosen = coerce_strategy(strategy, self.default_strategy)
        try:
            members = await self.users.list_active_users_with_role(role)
            if not members:
                logger.info("Role %s has no active members; step stays unassigned", role)
                return None
            candidates = await self._available_candidates(role, members)
            if not candidates:
                logger.warning(
                    "No available candidate for role %s; falling back to %s",
                    role,
                    members[0].id,
                )
                return members[0].id
            return await self._strategies[chosen](role, candidates)
        except Exception:
            logger.exception(
                "Assignment resolution failed for role %s (strategy %s); "
                "falling back to first user with role",
                role,
                chosen.value,
            )
            return await self._first_user_with_role(role)

    async def substitute_delegate(self, user_id: str, role: str | None = None) -> str:
        """Return the end of user_id's active delegation chain for role, or user_id itself."""
        try:
            stand_in = (await self._follow_delegations([user_id], role)).get(user_id)
        except Exception:
            logger.exception("Delegation lookup failed for user %s", user_id)
            return user_id
        return stand_in or user_id

    async def _follow_delegations(
        self, user_ids: list[str], role: str | None
    ) -> dict[str, str | None]:
        """Map each user to the user that finally receives its work.

        A user without an active delegation maps to itself. A delegated user
        maps to the end of its chain, or None when the chain loops or ends at
        an inactive or unknown user.
        """
        now = self.clock()
        delegations: dict[str, DelegationResult] = {}
        looked_up: set[str] = set()
        frontier = set(user_ids)
        while frontier:
            found = await self.delegations.get_active_for_users(sorted(frontier), role, now)
            delegations.update(found)
            looked_up |= frontier
            frontier = {d.to_user_id for d in found.values()} - looked_up

        directory = await self.users.get_users(
            sorted({d.to_user_id for d in delegations.values()})
        )
        resolved: dict[str, str | None] = {}
        for user_id in user_ids:
            current: str | None = user_id
            visited = {user_id}
            while current in delegations:
                current = delegations[current].to_user_id
                if current in visited:
                    logger.warning("Delegation chain from %s loops back to %s", user_id, current)
                    current = None
                    break
                visited.add(current)
            if current is not None and current != user_id:
                delegate = directory.get(current)
                if delegate is None or not delegate.is_active:
                    current = None
            resolved[user_id] = current
        return resolved

    async def _available_candidates(
        self, role: str, members: list[DirectoryUser]
    ) -> list[Candidate]:
        """Members in email order, delegated ones replaced by their stand-in.

        A user reached twice keeps its first position only.
        """
        stand_ins = await self._follow_delegations([m.id for m in members], role)
        seen: set[str] = set()
        candidates: list[Candidate] = []
        for member in members:
            user_id = stand_ins.get(member.id)
            if user_id is None or user_id in seen:
                continue
            seen.add(user_id)
            candidates.append((member.email, user_id))
        return candidates

    async def _cursor_key(
        self, last_user_id: str | None, candidates: list[Candidate]
    ) -> str | None:
        """Sort key of the last pick; a pick that is no longer a candidate keeps its email."""
        if not last_user_id:
            return None
        for key, user_id in candidates:
            if user_id == last_user_id:
                return key
        last = (await self.users.get_users([last_user_id])).get(last_user_id)
        return last.email if last is not None else None

    async def _round_robin(self, role: str, candidates: list[Candidate]) -> str:
        for _ in range(self.max_cursor_retries):
            current = await self.cursors.get(role)
            if current is None:
                chosen = candidates[0][1]
                if await self.cursors.insert(role, chosen):
                    return chosen
                continue
            last_user_id, version = current
            cursor_key = await self._cursor_key(last_user_id, candidates)
            chosen = next_after_cursor(candidates, cursor_key)
            if await self.cursors.compare_and_set(role, version, chosen):
                return chosen
            logger.debug("Round-robin cursor for %s moved concurrently; retrying", role)

        current = await self.cursors.get(role)
        last_user_id = current[0] if current else None
        cursor_key = await self._cursor_key(last_user_id, candidates)
        chosen = next_after_cursor(candidates, cursor_key)
        logger.warning(
            "Round-robin cursor for %s contended %d times; last writer wins",
            role,
            self.max_cursor_retries,
        )
        await self.cursors.force_set(role, chosen)
        return chosen

    async def _least_workload(self, role: str, candidates: list[Candidate]) -> str:
        user_ids = [user_id for _, user_id in candidates]
        workloads = await self.assignments.get_workloads(user_ids, self.clock())
        # min() keeps the first minimal element, so ties go to enumeration order.
        return min(user_ids, key=lambda uid: workloads[uid].total_workload)

    async def _random(self, role: str, candidates: list[Candidate]) -> str:
        return self.rng.choice(candidates)[1]

    async def _first_user_with_role(self, role: str) -> str | None:
        try:
            members = await self.users.list_active_users_with_role(role)
        except Exception:
            logger.exception("Fallback lookup for role %s failed", role)
            return None
        return members[0].id if members else None
