"""AssignmentResolver tests: strategies, delegation substitution and fallbacks."""

import random
from collections import Counter
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from auditflow.application.dtos.workflow import DelegationResult, DirectoryUser, UserWorkload
from auditflow.application.services.assignment_resolver import (
    AssignmentResolver,
    coerce_strategy,
    next_after_cursor,
)
from auditflow.domain.enums import AssignmentStrategy
from auditflow.infrastructure.persistence.models.directory import AppUser
from auditflow.infrastructure.persistence.repositories import (
    AssignmentCursorRepository,
    DelegationRepository,
    StepAssignmentRepository,
    UserDirectoryRepository,
)

NOW = datetime(2026, 1, 5, 9, 0, tzinfo=UTC)


def _user(user_id: str, active: bool = True) -> DirectoryUser:
    return DirectoryUser(id=user_id, email=f"{user_id}@example.com", name=user_id, is_active=active)


def _delegation(from_user: str, to_user: str) -> DelegationResult:
    return DelegationResult(
        id=f"d-{from_user}",
        from_user_id=from_user,
        to_user_id=to_user,
        role=None,
        start_date=NOW - timedelta(days=1),
        end_date=NOW + timedelta(days=1),
        is_active=True,
        reason=None,
        created_at=NOW,
    )


@pytest.fixture
def repos():
    """Mocked directory, delegation, assignment and cursor repositories."""
    users = AsyncMock()
    users.list_active_users_with_role = AsyncMock(
        return_value=[_user("a"), _user("b"), _user("c")]
    )
    users.get_users = AsyncMock(return_value={})
    delegations = AsyncMock()
    delegations.get_active_for_users = AsyncMock(return_value={})
    assignments = AsyncMock()
    assignments.get_workloads = AsyncMock(
        side_effect=lambda ids, now: {uid: UserWorkload(user_id=uid) for uid in ids}
    )
    cursors = AsyncMock()
    return users, delegations, assignments, cursors


def _resolver(repos, **kwargs) -> AssignmentResolver:
    users, delegations, assignments, cursors = repos
    return AssignmentResolver(
        users, delegations, assignments, cursors, clock=lambda: NOW, **kwargs
    )


def test_coerce_strategy() -> None:
    assert coerce_strategy("round-robin") is AssignmentStrategy.ROUND_ROBIN
    assert coerce_strategy("Round_Robin") is AssignmentStrategy.ROUND_ROBIN
    assert coerce_strategy(None) is AssignmentStrategy.WORKLOAD
    assert coerce_strategy("bogus", AssignmentStrategy.RANDOM) is AssignmentStrategy.RANDOM


def test_next_after_cursor_wraps() -> None:
    candidates = [("a@x.com", "a"), ("b@x.com", "b"), ("c@x.com", "c")]
    assert next_after_cursor(candidates, None) == "a"
    assert next_after_cursor(candidates, "a@x.com") == "b"
    assert next_after_cursor(candidates, "c@x.com") == "a"
    # a key that is no longer a candidate still orders the rotation
    assert next_after_cursor(candidates, "bb@x.com") == "c"


async def test_role_without_members_resolves_to_none(repos) -> None:
    repos[0].list_active_users_with_role = AsyncMock(return_value=[])
    assert await _resolver(repos).resolve("EMPTY") is None


async def test_least_workload_with_ties_in_enumeration_order(repos) -> None:
    loads = {
        "a": UserWorkload(user_id="a", pending_count=3),
        "b": UserWorkload(user_id="b", pending_count=1),
        "c": UserWorkload(user_id="c", overdue_count=1),
    }
    repos[2].get_workloads = AsyncMock(return_value=loads)
    # b has 1, c has 2 (overdue weighs double)
    assert await _resolver(repos).resolve("R", "workload") == "b"

    repos[2].get_workloads = AsyncMock(
        return_value={uid: UserWorkload(user_id=uid) for uid in "abc"}
    )
    assert await _resolver(repos).resolve("R", "workload") == "a"


async def test_round_robin_advances_cursor(repos) -> None:
    cursors = repos[3]
    cursors.get = AsyncMock(return_value=("a", 4))
    cursors.compare_and_set = AsyncMock(return_value=True)
    assert await _resolver(repos).resolve("R", AssignmentStrategy.ROUND_ROBIN) == "b"
    cursors.compare_and_set.assert_awaited_once_with("R", 4, "b")


async def test_round_robin_first_pick_inserts_cursor(repos) -> None:
    cursors = repos[3]
    cursors.get = AsyncMock(return_value=None)
    cursors.insert = AsyncMock(return_value=True)
    assert await _resolver(repos).resolve("R", "round_robin") == "a"
    cursors.insert.assert_awaited_once_with("R", "a")


async def test_round_robin_contention_falls_back_to_last_writer_wins(repos) -> None:
    cursors = repos[3]
    cursors.get = AsyncMock(return_value=("b", 1))
    cursors.compare_and_set = AsyncMock(return_value=False)
    cursors.force_set = AsyncMock()
    chosen = await _resolver(repos, max_cursor_retries=2).resolve("R", "round_robin")
    assert chosen == "c"
    assert cursors.compare_and_set.await_count == 2
    cursors.force_set.assert_awaited_once_with("R", "c")


async def test_random_is_one_of_the_candidates(repos) -> None:
    resolver = _resolver(repos, rng=random.Random(3))
    picks = {await resolver.resolve("R", "random") for _ in range(20)}
    assert picks <= {"a", "b", "c"}
    assert len(picks) > 1


async def test_delegated_member_replaced_by_delegate(repos) -> None:
    users, delegations, assignments, _ = repos
    delegations.get_active_for_users = AsyncMock(return_value={"a": _delegation("a", "z")})
    users.get_users = AsyncMock(return_value={"z": _user("z")})
    assert await _resolver(repos).resolve("R", "workload") == "z"
    called_ids = assignments.get_workloads.await_args.args[0]
    assert called_ids == ["z", "b", "c"]


async def test_inactive_delegate_removes_member(repos) -> None:
    users, delegations, assignments, _ = repos
    delegations.get_active_for_users = AsyncMock(return_value={"a": _delegation("a", "z")})
    users.get_users = AsyncMock(return_value={"z": _user("z", active=False)})
    assert await _resolver(repos).resolve("R", "workload") == "b"


async def test_everyone_unavailable_falls_back_to_first_member(repos) -> None:
    users, delegations, _, _ = repos
    delegations.get_active_for_users = AsyncMock(
        return_value={uid: _delegation(uid, "gone") for uid in "abc"}
    )
    assert await _resolver(repos).resolve("R") == "a"


async def test_lookup_failure_falls_back_to_first_user_with_role(repos) -> None:
    repos[1].get_active_for_users = AsyncMock(side_effect=RuntimeError("db down"))
    assert await _resolver(repos).resolve("R") == "a"


async def test_substitute_delegate(repos) -> None:
    users, delegations, _, _ = repos
    delegations.get_active_for_users = AsyncMock(return_value={"a": _delegation("a", "z")})
    users.get_users = AsyncMock(return_value={"z": _user("z")})
    resolver = _resolver(repos)
    assert await resolver.substitute_delegate("a") == "z"
    delegations.get_active_for_users = AsyncMock(return_value={})
    assert await resolver.substitute_delegate("a") == "a"


def _chain(links: dict[str, str]) -> AsyncMock:
    """get_active_for_users double answering only for the ids it is asked about."""
    table = {src: _delegation(src, dst) for src, dst in links.items()}
    return AsyncMock(side_effect=lambda ids, role, now: {u: table[u] for u in ids if u in table})


async def test_delegate_who_also_delegates_is_skipped(repos) -> None:
    users, delegations, _, _ = repos
    users.list_active_users_with_role = AsyncMock(return_value=[_user("a"), _user("b")])
    users.get_users = AsyncMock(side_effect=lambda ids: {u: _user(u) for u in ids})
    delegations.get_active_for_users = _chain({"a": "b", "b": "c"})
    resolver = _resolver(repos)
    for strategy in ("workload", "random"):
        assert await resolver.resolve("R", strategy) == "c"
    assert await resolver.substitute_delegate("a", "R") == "c"


async def test_delegation_loop_makes_members_unavailable(repos) -> None:
    users, delegations, assignments, _ = repos
    users.get_users = AsyncMock(side_effect=lambda ids: {u: _user(u) for u in ids})
    delegations.get_active_for_users = _chain({"a": "b", "b": "a"})
    resolver = _resolver(repos)
    assert await resolver.resolve("R", "workload") == "c"
    assert assignments.get_workloads.await_args.args[0] == ["c"]
    assert await resolver.substitute_delegate("a", "R") == "a"


async def test_round_robin_rotates_over_persisted_cursor(session_factory, seed_users, clock) -> None:
    """Against the database: successive picks rotate in email order and wrap."""
    ids = await seed_users(
        {
            "ann@example.com": ["AUDITOR"],
            "ben@example.com": ["auditor"],
            "cat@example.com": ["AUDITOR"],
            "dan@example.com": ["OTHER"],
        }
    )
    picks = []
    for _ in range(4):
        async with session_factory() as session:
            async with session.begin():
                resolver = AssignmentResolver(
                    UserDirectoryRepository(session),
                    DelegationRepository(session),
                    StepAssignmentRepository(session),
                    AssignmentCursorRepository(session),
                    clock=clock,
                )
                picks.append(await resolver.resolve("Auditor", "round-robin"))
    expected = [ids["ann@example.com"], ids["ben@example.com"], ids["cat@example.com"]]
    assert picks == expected + expected[:1]


def _db_resolver(session, clock) -> AssignmentResolver:
    return AssignmentResolver(
        UserDirectoryRepository(session),
        DelegationRepository(session),
        StepAssignmentRepository(session),
        AssignmentCursorRepository(session),
        clock=clock,
    )


async def _pick(session_factory, clock, role: str, strategy: str = "round_robin") -> str | None:
    async with session_factory() as session:
        async with session.begin():
            return await _db_resolver(session, clock).resolve(role, strategy)


async def test_delegation_role_matches_case_insensitively(
    session_factory, seed_users, clock
) -> None:
    ids = await seed_users({"a@x.com": ["auditor"], "b@x.com": ["auditor"]})
    async with session_factory() as session:
        async with session.begin():
            await DelegationRepository(session).create_delegation(
                ids["a@x.com"],
                ids["b@x.com"],
                clock() - timedelta(days=1),
                clock() + timedelta(days=1),
                role="AUDITOR",
            )
    picks = [await _pick(session_factory, clock, "auditor") for _ in range(2)]
    assert picks == [ids["b@x.com"], ids["b@x.com"]]


async def test_rotation_continues_after_last_pick_leaves(
    session_factory, seed_users, clock
) -> None:
    ids = await seed_users({f"{n}@x.com": ["AUDITOR"] for n in "abc"})
    assert await _pick(session_factory, clock, "AUDITOR") == ids["a@x.com"]
    assert await _pick(session_factory, clock, "AUDITOR") == ids["b@x.com"]

    async with session_factory() as session:
        async with session.begin():
            (await session.get(AppUser, ids["b@x.com"])).is_active = False

    assert await _pick(session_factory, clock, "AUDITOR") == ids["c@x.com"]
    assert await _pick(session_factory, clock, "AUDITOR") == ids["a@x.com"]


async def test_round_robin_is_fair_as_members_join(session_factory, seed_users, clock) -> None:
    ids = await seed_users({f"{n}@x.com": ["AUDITOR"] for n in "abc"})
    picks = [await _pick(session_factory, clock, "AUDITOR") for _ in range(6)]
    assert Counter(picks) == {ids[f"{n}@x.com"]: 2 for n in "abc"}

    ids |= await seed_users({"d@x.com": ["AUDITOR"]})
    picks = [await _pick(session_factory, clock, "AUDITOR") for _ in range(4)]
    assert picks == [ids[f"{n}@x.com"] for n in "dabc"]
