"""SyncService and the external-sync job handler against SQLite.

Every service call gets its own session: SyncService commits its own units
of work and the queue writes through separate sessions.
"""

from contextlib import asynccontextmanager
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest

from auditflow.domain.exceptions import (
    InvalidTransitionException,
    QueueClosedException,
    ResourceNotFoundException,
    UnqueueableOperationException,
    ValidationException,
)
from auditflow.infrastructure.jobs.sync_jobs import (
    EXTERNAL_SYNC_JOB,
    SyncJobHandler,
    sync_idempotency_key,
)
from auditflow.infrastructure.persistence.repositories import (
    SyncConfigRepository,
    SyncLogRepository,
    UserDirectoryRepository,
)
from auditflow.infrastructure.queue import JobQueue, JobWorker
from auditflow.infrastructure.services import SyncService
from auditflow.shared.enums import JobState, SyncStatus

HR_USERS = [
    {"email": "ann@example.com", "name": "Ann", "id": "e1", "roles": ["AUDITOR"]},
    {"email": "ben@example.com", "name": "Ben", "id": "e2"},
    {"email": "broken"},
]


@pytest.fixture
def sync_queue(session_factory, clock) -> JobQueue:
    return JobQueue(session_factory, "external-sync", clock=clock, default_attempts=2)


@pytest.fixture
def service_scope(session_factory, sync_queue, clock):
    @asynccontextmanager
    async def scope():
        async with session_factory() as session:
            yield SyncService(session, sync_queue, clock=clock)

    return scope


async def _create(service_scope, name: str, source: str, **kwargs: Any):
    async with service_scope() as service:
        return await service.create_config(name, source, **kwargs)


def _hr_client(status: int = 200) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if status != 200:
            return httpx.Response(status)
        return httpx.Response(200, json={"data": HR_USERS, "hasMore": False})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestConfigs:
    async def test_rest_config_needs_base_url(self, service_scope) -> None:
        with pytest.raises(ValidationException, match="base_url"):
            await _create(service_scope, "HR", "rest_api")

    async def test_unknown_source_type(self, service_scope) -> None:
        with pytest.raises(ValidationException) as exc_info:
            await _create(service_scope, "HR", "ftp")
        assert exc_info.value.details == {"field": "source_type"}

    async def test_unknown_config(self, service_scope) -> None:
        with pytest.raises(ResourceNotFoundException):
            async with service_scope() as service:
                await service.trigger_manual_sync("missing")


class TestTrigger:
    async def test_trigger_creates_pending_log_and_keyed_job(
        self, service_scope, sync_queue
    ) -> None:
        config = await _create(
            service_scope, "HR", "rest_api", settings={"base_url": "https://hr.example.com"}
        )
        async with service_scope() as service:
            triggered = await service.trigger_manual_sync(config.id, triggered_by="admin")

        log = triggered.sync_log
        assert log.status == SyncStatus.PENDING.value
        assert log.job_id == triggered.job_id
        job = await sync_queue.get_job(triggered.job_id)
        assert job.name == EXTERNAL_SYNC_JOB
        assert job.idempotency_key == sync_idempotency_key(log.id)
        assert job.payload == {"sync_log_id": log.id, "config_id": config.id}

    @pytest.mark.parametrize("source", ["csv", "webhook", "manual"])
    async def test_request_bound_sources_rejected_without_side_effects(
        self, service_scope, sync_queue, source
    ) -> None:
        config = await _create(service_scope, "Upload", source)
        with pytest.raises(UnqueueableOperationException):
            async with service_scope() as service:
                await service.trigger_manual_sync(config.id)
        async with service_scope() as service:
            assert await service.list_logs(config.id) == []
        assert (await sync_queue.get_queue_status()).waiting == 0

    async def test_inactive_config(self, service_scope) -> None:
        config = await _create(
            service_scope, "HR", "ldap", is_active=False
        )
        with pytest.raises(ValidationException, match="inactive"):
            async with service_scope() as service:
                await service.trigger_manual_sync(config.id)

    async def test_cancel_before_start_fails_log(self, service_scope, sync_queue) -> None:
        config = await _create(service_scope, "Dir", "ldap")
        async with service_scope() as service:
            triggered = await service.trigger_manual_sync(config.id)
        async with service_scope() as service:
            log = await service.cancel_sync_job(triggered.job_id)
        assert log.status == SyncStatus.FAILED.value
        assert log.error_message == "Cancelled by user"
        with pytest.raises(ResourceNotFoundException):
            async with service_scope() as service:
                await service.cancel_sync_job(triggered.job_id)

    async def test_running_job_cannot_be_cancelled(self, service_scope, sync_queue) -> None:
        config = await _create(service_scope, "Dir", "ldap")
        async with service_scope() as service:
            triggered = await service.trigger_manual_sync(config.id)
        await sync_queue.claim_next()
        with pytest.raises(InvalidTransitionException):
            async with service_scope() as service:
                await service.cancel_sync_job(triggered.job_id)

    async def test_closed_queue_fails_the_new_log(self, service_scope, sync_queue) -> None:
        config = await _create(service_scope, "Dir", "ldap")
        await sync_queue.close()
        with pytest.raises(QueueClosedException):
            async with service_scope() as service:
                await service.trigger_manual_sync(config.id)
        async with service_scope() as service:
            [log] = await service.list_logs(config.id)
        assert log.status == SyncStatus.FAILED.value
        assert log.error_message.startswith("Could not queue sync job")
        assert log.job_id is None


class TestCsvImport:
    async def test_import_upserts_and_finishes_log(self, service_scope, session_factory) -> None:
        config = await _create(service_scope, "Upload", "csv")
        content = "email,name,roles\nann@example.com,Ann,AUDITOR;REVIEWER\nbob,Bob,\n"
        async with service_scope() as service:
            log = await service.import_csv(config.id, content, triggered_by="admin")
        assert log.status == SyncStatus.COMPLETED.value
        assert (log.total_records, log.created_count, log.failed_count) == (2, 1, 1)
        assert log.error_details[0]["record"] == "bob"

        async with session_factory() as session:
            users = UserDirectoryRepository(session)
            ann = await users.get_by_email("ANN@example.com")
            assert await users.get_user_roles(ann.id) == ["AUDITOR", "REVIEWER"]

    async def test_import_into_non_csv_config(self, service_scope) -> None:
        config = await _create(service_scope, "Dir", "ldap")
        with pytest.raises(ValidationException, match="not a CSV"):
            async with service_scope() as service:
                await service.import_csv(config.id, "email\n")

    async def test_headerless_file_fails_log(self, service_scope) -> None:
        config = await _create(service_scope, "Upload", "csv")
        async with service_scope() as service:
            log = await service.import_csv(config.id, "")
        assert log.status == SyncStatus.FAILED.value


class TestSyncJobHandler:
    async def test_job_runs_sync_and_completes_log(
        self, service_scope, sync_queue, session_factory, clock
    ) -> None:
        config = await _create(
            service_scope, "HR", "rest_api", settings={"base_url": "https://hr.example.com"}
        )
        async with service_scope() as service:
            triggered = await service.trigger_manual_sync(config.id)

        async with _hr_client() as client:
            handler = SyncJobHandler(session_factory, http_client=client, clock=clock)
            worker = JobWorker(sync_queue, {EXTERNAL_SYNC_JOB: handler})
            assert await worker.run_until_idle() == 1

        job = await sync_queue.get_job(triggered.job_id)
        assert job.state == JobState.COMPLETED.value
        assert job.result["created_count"] == 2
        async with session_factory() as session:
            log = await SyncLogRepository(session).get_by_id(triggered.sync_log.id)
            assert await UserDirectoryRepository(session).get_by_email("ben@example.com")
        assert log.status == SyncStatus.COMPLETED.value
        assert (log.created_count, log.failed_count) == (2, 1)

        repeat = await handler(job)
        assert repeat["skipped"] is True

    async def test_failed_attempts_leave_log_running_until_last(
        self, service_scope, sync_queue, session_factory, clock
    ) -> None:
        config = await _create(
            service_scope, "HR", "rest_api", settings={"base_url": "https://hr.example.com"}
        )
        async with service_scope() as service:
            triggered = await service.trigger_manual_sync(config.id)
        log_id = triggered.sync_log.id

        async with _hr_client(status=500) as client:
            worker = JobWorker(
                sync_queue,
                {EXTERNAL_SYNC_JOB: SyncJobHandler(session_factory, http_client=client, clock=clock)},
            )
            await worker.process_next()
            async with session_factory() as session:
                first = await SyncLogRepository(session).get_by_id(log_id)
            assert first.status == SyncStatus.RUNNING.value
            assert (await sync_queue.get_job(triggered.job_id)).state == JobState.DELAYED.value

            clock.advance(minutes=5)
            await worker.process_next()

        async with session_factory() as session:
            final = await SyncLogRepository(session).get_by_id(log_id)
        assert final.status == SyncStatus.FAILED.value
        assert "HTTPStatusError" in final.error_message
        assert (await sync_queue.get_job(triggered.job_id)).state == JobState.FAILED.value

    async def test_missing_config_fails_log_without_retry(
        self, service_scope, sync_queue, session_factory, clock, monkeypatch
    ) -> None:
        config = await _create(service_scope, "Dir", "ldap")
        async with service_scope() as service:
            triggered = await service.trigger_manual_sync(config.id)
        monkeypatch.setattr(SyncConfigRepository, "get_by_id", AsyncMock(return_value=None))

        worker = JobWorker(
            sync_queue, {EXTERNAL_SYNC_JOB: SyncJobHandler(session_factory, clock=clock)}
        )
        assert await worker.run_until_idle() == 1

        job = await sync_queue.get_job(triggered.job_id)
        assert (job.state, job.attempts_made) == (JobState.COMPLETED.value, 1)
        assert job.result["status"] == SyncStatus.FAILED.value
        async with session_factory() as session:
            log = await SyncLogRepository(session).get_by_id(triggered.sync_log.id)
        assert log.status == SyncStatus.FAILED.value
        assert "no longer exists" in log.error_message
