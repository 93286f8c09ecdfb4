"""Directory (LDAP-style) sync over an injected IDirectoryClient."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from auditflow.application.dtos.sync import SyncConfigResult, SyncResult
from auditflow.application.interfaces import IDirectoryClient, IUserUpserter
from auditflow.infrastructure.sync.mapping import apply_records

logger = logging.getLogger(__name__)

DirectoryClientFactory = Callable[[SyncConfigResult], IDirectoryClient]

# Conventional LDAP attribute names used when a config has no field_mapping.
LDAP_FIELD_MAPPING: dict[str, str] = {
    "mail": "email",
    "cn": "name",
    "uid": "external_id",
    "memberOf": "roles",
}


def _flatten(entry: dict[str, Any]) -> dict[str, Any]:
    """Directory attributes arrive as lists; single values are unwrapped, memberOf kept."""
    flat: dict[str, Any] = {}
    for key, value in entry.items():
        if isinstance(value, list) and len(value) == 1 and key != "memberOf":
            flat[key] = value[0]
        else:
            flat[key] = value
    return flat


class DirectorySyncStrategy:
    """Implements ISyncStrategy for source_type ldap."""

    def __init__(
        self,
        config: SyncConfigResult,
        upserter: IUserUpserter,
        client: IDirectoryClient,
    ) -> None:
        self.config = config
        self.upserter = upserter
        self.client = client

    async def sync(self, triggered_by: str | None = None) -> SyncResult:
        logger.info(
            "Directory sync %s started (triggered by %s)",
            self.config.name,
            triggered_by or "system",
        )
        try:
            entries = await self.client.search_users()
        finally:
            await self.client.close()
        records = [_flatten(e) for e in entries]
        return await apply_records(
            records, self.config.field_mapping or LDAP_FIELD_MAPPING, self.upserter
        )
