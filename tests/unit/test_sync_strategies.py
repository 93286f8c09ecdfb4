"""Sync field mapping and source strategies (REST, directory, CSV)."""

from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest

from auditflow.application.dtos.sync import SyncConfigResult, UserRecord
from auditflow.domain.exceptions import UnqueueableOperationException, ValidationException
from auditflow.infrastructure.sync import (
    CsvImportStrategy,
    DirectorySyncStrategy,
    RestApiSyncStrategy,
    apply_records,
    build_queued_strategy,
    map_record,
)
from auditflow.infrastructure.sync.rest import build_auth_headers, extract_records, has_more_pages


def _config(source_type: str = "rest_api", **settings: Any) -> SyncConfigResult:
    return SyncConfigResult(
        id="cfg1",
        name="HR system",
        source_type=source_type,
        is_active=True,
        settings=settings,
        field_mapping={},
        last_sync_at=None,
        last_sync_status=None,
        created_at=datetime(2026, 1, 1, tzinfo=UTC),
    )


@pytest.fixture
def upserter() -> AsyncMock:
    mock = AsyncMock()
    mock.upsert_user = AsyncMock(return_value="created")
    return mock


class TestMapping:
    def test_default_mapping(self) -> None:
        record = map_record(
            {"email": "ann@example.com", "name": " Ann ", "id": 7, "active": "no", "roles": "R1; R2,R1"},
            None,
        )
        assert record == UserRecord(
            email="ann@example.com",
            name="Ann",
            external_id="7",
            is_active=False,
            roles=("R1", "R2"),
        )

    def test_nested_source_paths(self) -> None:
        record = map_record(
            {"profile": {"mail": "bo@example.com"}, "groups": ["A", "B"]},
            {"profile.mail": "email", "groups": "roles", "ignored": "password"},
        )
        assert (record.email, record.roles, record.is_active) == ("bo@example.com", ("A", "B"), True)

    @pytest.mark.parametrize("raw", [{}, {"email": ""}, {"email": "not-an-address"}])
    def test_record_without_valid_email(self, raw) -> None:
        with pytest.raises(ValidationException, match="email"):
            map_record(raw, None)

    async def test_apply_records_counts_outcomes(self, upserter) -> None:
        upserter.upsert_user.side_effect = ["created", "updated", "skipped", RuntimeError("db")]
        records = [
            {"email": f"u{i}@example.com"} for i in range(4)
        ] + [{"email": "broken"}]
        result = await apply_records(records, None, upserter)
        assert (result.total_records, result.created_count, result.updated_count) == (5, 1, 1)
        assert (result.skipped_count, result.failed_count) == (1, 2)
        assert result.success is False
        assert [e.record for e in result.errors] == ["u3@example.com", "broken"]

    async def test_non_object_record_counted_as_failure(self, upserter) -> None:
        result = await apply_records([{"email": "a@x.com"}, "bob@x.com", None], None, upserter)
        assert (result.total_records, result.created_count, result.failed_count) == (3, 1, 2)
        assert [e.record for e in result.errors] == ["'bob@x.com'", "None"]
        assert "Expected an object, got str" in result.errors[0].message
        upserter.upsert_user.assert_awaited_once()


class TestRestHelpers:
    def test_extract_records(self) -> None:
        assert extract_records([{"a": 1}]) == [{"a": 1}]
        assert extract_records({"users": [{"a": 1}]}) == [{"a": 1}]
        assert extract_records({"results": []}) == []
        assert extract_records("nonsense") == []

    def test_has_more_pages(self) -> None:
        assert has_more_pages({"hasMore": False}, 1, 2, 2) is False
        assert has_more_pages({"next": "/p2"}, 1, 2, 2) is True
        assert has_more_pages({"pagination": {"total": 5}}, 2, 2, 2) is True
        assert has_more_pages({"pagination": {"total": 4}}, 2, 2, 2) is False
        assert has_more_pages([1, 2], 1, 2, 2) is True
        assert has_more_pages([1], 1, 2, 1) is False

    def test_auth_headers(self) -> None:
        assert build_auth_headers({"api_key": "t"})["Authorization"] == "Bearer t"
        assert build_auth_headers({"api_key": "dTpw", "auth_type": "Basic"})["Authorization"] == "Basic dTpw"
        headers = build_auth_headers({"api_key": "k", "auth_type": "ApiKey", "headers": {"X-T": "1"}})
        assert headers["X-API-Key"] == "k"
        assert headers["X-T"] == "1"
        assert "Authorization" not in build_auth_headers({})
        with pytest.raises(ValidationException):
            build_auth_headers({"api_key": "k", "auth_type": "Digest"})


class TestRestApiSyncStrategy:
    async def test_pages_until_source_says_done(self, upserter) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            page = int(request.url.params["page"])
            if page == 1:
                body = {"data": [{"email": "a@example.com"}, {"email": "b@example.com"}], "hasMore": True}
            else:
                body = {"data": [{"email": "c@example.com"}], "hasMore": False}
            return httpx.Response(200, json=body)

        config = _config(base_url="https://hr.example.com/", api_key="secret", page_size=2)
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            result = await RestApiSyncStrategy(config, upserter, client=client).sync("admin")

        assert result.total_records == 3
        assert result.created_count == 3
        assert [str(r.url) for r in seen] == [
            "https://hr.example.com/users?page=1&limit=2",
            "https://hr.example.com/users?page=2&limit=2",
        ]
        assert seen[0].headers["Authorization"] == "Bearer secret"

    async def test_http_error_propagates(self, upserter) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        async with httpx.AsyncClient(transport=transport) as client:
            strategy = RestApiSyncStrategy(_config(base_url="https://hr.example.com"), upserter, client=client)
            with pytest.raises(httpx.HTTPStatusError):
                await strategy.sync()
        upserter.upsert_user.assert_not_awaited()

    async def test_missing_base_url(self, upserter) -> None:
        with pytest.raises(ValidationException, match="base_url"):
            await RestApiSyncStrategy(_config(), upserter).sync()


class FakeDirectoryClient:
    def __init__(self, entries: list[dict[str, Any]]) -> None:
        self.entries = entries
        self.closed = False

    async def search_users(self) -> list[dict[str, Any]]:
        return self.entries

    async def close(self) -> None:
        self.closed = True


class TestDirectorySyncStrategy:
    async def test_ldap_attributes_mapped_by_default(self, upserter) -> None:
        client = FakeDirectoryClient(
            [{"mail": ["ann@example.com"], "cn": ["Ann"], "uid": ["ann"], "memberOf": ["AUDITOR"]}]
        )
        result = await DirectorySyncStrategy(_config("ldap"), upserter, client).sync()
        assert result.created_count == 1
        assert client.closed
        record = upserter.upsert_user.await_args.args[0]
        assert record == UserRecord(
            email="ann@example.com", name="Ann", external_id="ann", roles=("AUDITOR",)
        )


class TestCsvImportStrategy:
    async def test_rows_with_bad_email_counted_as_failed(self, upserter) -> None:
        content = "email,name,roles\r\nann@example.com,Ann,AUDITOR\r\nbob,Bob,\r\n".encode("utf-8-sig")
        result = await CsvImportStrategy(_config("csv"), upserter, content).sync()
        assert (result.total_records, result.created_count, result.failed_count) == (2, 1, 1)

    async def test_custom_delimiter(self, upserter) -> None:
        content = "email;name\nann@example.com;Ann\n"
        result = await CsvImportStrategy(_config("csv", delimiter=";"), upserter, content).sync()
        assert result.created_count == 1
        assert upserter.upsert_user.await_args.args[0].name == "Ann"

    async def test_empty_file_rejected(self, upserter) -> None:
        with pytest.raises(ValidationException, match="header"):
            await CsvImportStrategy(_config("csv"), upserter, "").sync()


class TestBuildQueuedStrategy:
    def test_rest_and_directory(self, upserter) -> None:
        assert isinstance(build_queued_strategy(_config(), upserter), RestApiSyncStrategy)
        client = FakeDirectoryClient([])
        strategy = build_queued_strategy(
            _config("ldap"), upserter, directory_client_factory=lambda config: client
        )
        assert isinstance(strategy, DirectorySyncStrategy)
        assert strategy.client is client

    def test_directory_needs_client_factory(self, upserter) -> None:
        with pytest.raises(ValidationException):
            build_queued_strategy(_config("ldap"), upserter)

    @pytest.mark.parametrize("source", ["csv", "webhook", "manual"])
    def test_request_bound_sources_are_unqueueable(self, upserter, source) -> None:
        with pytest.raises(UnqueueableOperationException):
            build_queued_strategy(_config(source), upserter)
