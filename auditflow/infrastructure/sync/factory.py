"""Picks the sync strategy for a config's source type."""

from __future__ import annotations

import httpx

from auditflow.application.dtos.sync import SyncConfigResult
from auditflow.application.interfaces import ISyncStrategy, IUserUpserter
from auditflow.domain.exceptions import UnqueueableOperationException, ValidationException
from auditflow.infrastructure.sync.directory import (
    DirectoryClientFactory,
    DirectorySyncStrategy,
)
from auditflow.infrastructure.sync.rest import RestApiSyncStrategy
from auditflow.shared.enums import SyncSourceType


def build_queued_strategy(
    config: SyncConfigResult,
    upserter: IUserUpserter,
    *,
    http_client: httpx.AsyncClient | None = None,
    directory_client_factory: DirectoryClientFactory | None = None,
    page_size: int = 100,
    timeout_seconds: float = 30.0,
) -> ISyncStrategy:
    """Strategy for a source that a background job can drive on its own."""
    source = SyncSourceType(config.source_type)
    if source is SyncSourceType.REST_API:
        return RestApiSyncStrategy(
            config,
            upserter,
            client=http_client,
            page_size=page_size,
            timeout_seconds=timeout_seconds,
        )
    if source is SyncSourceType.LDAP:
        if directory_client_factory is None:
            raise ValidationException(
                f"No directory client configured for sync config '{config.name}'"
            )
        return DirectorySyncStrategy(config, upserter, directory_client_factory(config))
    raise UnqueueableOperationException(
        f"{source.value} sync", "this source needs request input and runs in-request only"
    )
