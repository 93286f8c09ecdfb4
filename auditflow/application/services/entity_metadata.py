"""Metadata map handed to the engine for decision-condition evaluation."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from auditflow.shared.utils.datetime import utc_now


def build_entity_metadata(
    entity_type: str,
    entity_id: str,
    core_fields: Mapping[str, Any] | None = None,
    custom_fields: Mapping[str, Any] | None = None,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Build the opaque map conditions are evaluated against.

    Core fields sit at the top level (``amount > 1000``); custom field values
    are reached through ``customFields.<name>``.
    """
    metadata: dict[str, Any] = {"entityType": entity_type, "entityId": entity_id}
    metadata.update(core_fields or {})
    metadata["customFields"] = dict(custom_fields or {})
    metadata["timestamp"] = (now or utc_now()).isoformat()
    return metadata
