"""REST pull: page through an HR/identity API with httpx."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from auditflow.application.dtos.sync import SyncConfigResult, SyncResult
from auditflow.application.interfaces import IUserUpserter
from auditflow.domain.exceptions import ValidationException
from auditflow.infrastructure.sync.mapping import apply_records

logger = logging.getLogger(__name__)

MAX_PAGES = 100
_RECORD_KEYS = ("data", "users", "results")


def extract_records(body: Any) -> list[dict[str, Any]]:
    """Records from a plain array or from a data/users/results envelope."""
    if isinstance(body, list):
        return body
    if isinstance(body, dict):
        for key in _RECORD_KEYS:
            value = body.get(key)
            if isinstance(value, list):
                return value
    logger.warning("Unrecognized REST sync response shape; treating as empty")
    return []


def has_more_pages(body: Any, page: int, page_size: int, received: int) -> bool:
    if isinstance(body, dict):
        for key in ("hasMore", "has_more"):
            if key in body:
                return bool(body[key])
        if "next" in body:
            return body["next"] is not None
        pagination = body.get("pagination")
        if isinstance(pagination, dict):
            total = pagination.get("total")
            if total is not None:
                return page * page_size < int(total)
    return received >= page_size and page < MAX_PAGES


def build_auth_headers(settings: dict[str, Any]) -> dict[str, str]:
    headers = {"Accept": "application/json"}
    headers.update(settings.get("headers") or {})
    api_key = settings.get("api_key")
    if api_key:
        auth_type = str(settings.get("auth_type") or "Bearer").lower()
        if auth_type == "bearer":
            headers["Authorization"] = f"Bearer {api_key}"
        elif auth_type == "basic":
            # api_key already holds base64(user:password)
            headers["Authorization"] = f"Basic {api_key}"
        elif auth_type == "apikey":
            headers["X-API-Key"] = str(api_key)
        else:
            raise ValidationException(f"Unsupported auth_type: {settings.get('auth_type')}")
    return headers


class RestApiSyncStrategy:
    """Implements ISyncStrategy for source_type rest_api.

    Config settings: base_url, users_endpoint (default /users), auth_type
    (Bearer, Basic or ApiKey), api_key, headers, page_size.
    """

    def __init__(
        self,
        config: SyncConfigResult,
        upserter: IUserUpserter,
        *,
        client: httpx.AsyncClient | None = None,
        page_size: int = 100,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.config = config
        self.upserter = upserter
        self._client = client
        self.page_size = int(config.settings.get("page_size") or page_size)
        self.timeout_seconds = timeout_seconds

    async def sync(self, triggered_by: str | None = None) -> SyncResult:
        logger.info(
            "REST sync %s started (triggered by %s)", self.config.name, triggered_by or "system"
        )
        records = await self.fetch_records()
        result = await apply_records(records, self.config.field_mapping, self.upserter)
        logger.info(
            "REST sync %s finished: %d records, %d failed",
            self.config.name,
            result.total_records,
            result.failed_count,
        )
        return result

    async def fetch_records(self) -> list[dict[str, Any]]:
        settings = self.config.settings
        base_url = settings.get("base_url")
        if not base_url:
            raise ValidationException("REST sync config has no base_url", field="base_url")
        url = str(base_url).rstrip("/") + str(settings.get("users_endpoint") or "/users")
        headers = build_auth_headers(settings)

        client = self._client or httpx.AsyncClient(timeout=self.timeout_seconds)
        records: list[dict[str, Any]] = []
        try:
            page = 1
            while True:
                response = await client.get(
                    url, params={"page": page, "limit": self.page_size}, headers=headers
                )
                response.raise_for_status()
                body = response.json()
                batch = extract_records(body)
                records.extend(batch)
                logger.debug("REST sync %s page %d: %d records", self.config.name, page, len(batch))
                if not batch or not has_more_pages(body, page, self.page_size, len(batch)):
                    break
                page += 1
        finally:
            if self._client is None:
                await client.aclose()
        return records
