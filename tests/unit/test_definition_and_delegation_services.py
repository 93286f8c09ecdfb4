"""WorkflowDefinitionService and DelegationService with mocked repositories."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from auditflow.application.dtos.workflow import DirectoryUser
from auditflow.application.services.definition_service import WorkflowDefinitionService
from auditflow.application.services.delegation_service import DelegationService
from auditflow.application.services.template_catalog import instantiate_workflow_template
from auditflow.domain.entities.workflow_graph import WorkflowGraph
from auditflow.domain.exceptions import ResourceNotFoundException, ValidationException

NOW = datetime(2026, 1, 5, 9, 0, tzinfo=UTC)


def _definition(version: int = 1, **overrides):
    definition = MagicMock()
    definition.id = overrides.get("id", f"def-v{version}")
    definition.name = "Engagement approval"
    definition.entity_type = "engagement"
    definition.description = None
    definition.version = version
    definition.is_active = overrides.get("is_active", True)
    return definition


@pytest.fixture
def definitions() -> AsyncMock:
    repo = AsyncMock()
    repo.get_latest_version = AsyncMock(return_value=None)
    repo.create_definition = AsyncMock(
        side_effect=lambda name, entity_type, graph, **kw: _definition(kw["version"])
    )
    return repo


class TestWorkflowDefinitionService:
    async def test_publish_valid_graph(self, definitions) -> None:
        graph = instantiate_workflow_template("standard-process")
        result = await WorkflowDefinitionService(definitions).publish(
            "Engagement approval", "engagement", graph
        )
        assert result.published
        assert result.definition.version == 1
        definitions.deactivate_other_versions.assert_awaited_once_with(
            "Engagement approval", "def-v1"
        )

    async def test_invalid_graph_is_not_saved(self, definitions) -> None:
        result = await WorkflowDefinitionService(definitions).publish(
            "Broken", "engagement", WorkflowGraph()
        )
        assert not result.published
        assert [i.code for i in result.validation.errors] == ["empty_workflow"]
        definitions.create_definition.assert_not_awaited()

    async def test_same_name_publishes_next_version(self, definitions) -> None:
        definitions.get_latest_version = AsyncMock(return_value=_definition(3))
        result = await WorkflowDefinitionService(definitions).publish(
            "Engagement approval", "engagement", instantiate_workflow_template("standard-process")
        )
        assert result.definition.version == 4

    async def test_blank_name_rejected(self, definitions) -> None:
        with pytest.raises(ValidationException):
            await WorkflowDefinitionService(definitions).publish(" ", "engagement", WorkflowGraph())

    async def test_unreferenced_definition_edited_in_place(self, definitions) -> None:
        definitions.get_by_id = AsyncMock(return_value=_definition(1))
        definitions.count_instances = AsyncMock(return_value=0)
        definitions.replace_graph = AsyncMock(return_value=_definition(1))
        graph = instantiate_workflow_template("standard-process")
        result = await WorkflowDefinitionService(definitions).update("def-v1", graph)
        assert result.definition.version == 1
        definitions.replace_graph.assert_awaited_once()
        definitions.create_definition.assert_not_awaited()

    async def test_referenced_definition_gets_new_version(self, definitions) -> None:
        definitions.get_by_id = AsyncMock(return_value=_definition(1))
        definitions.count_instances = AsyncMock(return_value=2)
        definitions.get_latest_version = AsyncMock(return_value=_definition(1))
        graph = instantiate_workflow_template("standard-process")
        result = await WorkflowDefinitionService(definitions).update("def-v1", graph)
        assert result.definition.version == 2
        definitions.replace_graph.assert_not_awaited()

    async def test_get_unknown(self, definitions) -> None:
        definitions.get_by_id = AsyncMock(return_value=None)
        with pytest.raises(ResourceNotFoundException):
            await WorkflowDefinitionService(definitions).get("nope")


def _user(user_id: str, active: bool = True) -> DirectoryUser:
    return DirectoryUser(id=user_id, email=f"{user_id}@example.com", name=None, is_active=active)


class TestDelegationService:
    @pytest.fixture
    def service(self) -> DelegationService:
        users = AsyncMock()
        users.get_users = AsyncMock(return_value={"a": _user("a"), "b": _user("b")})
        delegations = AsyncMock()
        delegations.create_delegation = AsyncMock(return_value=MagicMock(id="d1"))
        return DelegationService(delegations, users, clock=lambda: NOW)

    async def test_create(self, service) -> None:
        await service.create("a", "b", NOW, NOW + timedelta(days=3), role="AUDITOR")
        service.delegations.create_delegation.assert_awaited_once_with(
            "a", "b", NOW, NOW + timedelta(days=3), role="AUDITOR", reason=None
        )

    async def test_naive_dates_are_utc(self, service) -> None:
        start = NOW.replace(tzinfo=None)
        await service.create("a", "b", start, start + timedelta(days=1))
        args = service.delegations.create_delegation.await_args.args
        assert args[2] == NOW

    @pytest.mark.parametrize(
        ("to_user", "start", "end", "match"),
        [
            ("a", NOW, NOW + timedelta(days=1), "yourself"),
            ("b", NOW + timedelta(days=2), NOW + timedelta(days=1), "before"),
            ("b", NOW - timedelta(days=3), NOW - timedelta(days=1), "future"),
        ],
    )
    async def test_invalid_ranges(self, service, to_user, start, end, match) -> None:
        with pytest.raises(ValidationException, match=match):
            await service.create("a", to_user, start, end)

    async def test_unknown_user(self, service) -> None:
        with pytest.raises(ResourceNotFoundException):
            await service.create("a", "zed", NOW, NOW + timedelta(days=1))

    async def test_inactive_delegate(self, service) -> None:
        service.users.get_users = AsyncMock(return_value={"a": _user("a"), "b": _user("b", False)})
        with pytest.raises(ValidationException, match="active"):
            await service.create("a", "b", NOW, NOW + timedelta(days=1))

    async def test_deactivate_unknown(self, service) -> None:
        service.delegations.deactivate = AsyncMock(return_value=None)
        with pytest.raises(ResourceNotFoundException):
            await service.deactivate("nope")
