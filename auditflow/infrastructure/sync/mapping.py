"""Field mapping from source records to UserRecord, and the shared apply loop.

A config's field_mapping maps a source path (dot notation for nested
values, e.g. ``profile.mail``) to an internal field: email, name,
external_id, is_active or roles.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from auditflow.application.dtos.sync import SyncResult, UserRecord
from auditflow.application.interfaces import IUserUpserter
from auditflow.domain.exceptions import ValidationException

logger = logging.getLogger(__name__)

INTERNAL_FIELDS = frozenset({"email", "name", "external_id", "is_active", "roles"})

DEFAULT_FIELD_MAPPING: dict[str, str] = {
    "email": "email",
    "name": "name",
    "id": "external_id",
    "active": "is_active",
    "roles": "roles",
}

_FALSE_STRINGS = frozenset({"false", "0", "no", "n", "inactive", "disabled"})


def get_nested_value(record: dict[str, Any], path: str) -> Any:
    current: Any = record
    for key in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return bool(value)


def _as_roles(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        parts: Iterable[Any] = value.replace(";", ",").split(",")
    elif isinstance(value, (list, tuple, set)):
        parts = value
    else:
        return ()
    return tuple(dict.fromkeys(str(p).strip() for p in parts if str(p).strip()))


def map_record(raw: dict[str, Any], field_mapping: dict[str, str] | None) -> UserRecord:
    """Build a UserRecord from one source record.

    Raises:
        ValidationException: the mapped record has no usable email.
    """
    mapping = field_mapping or DEFAULT_FIELD_MAPPING
    mapped: dict[str, Any] = {}
    for source_path, internal in mapping.items():
        if internal not in INTERNAL_FIELDS:
            continue
        value = get_nested_value(raw, source_path)
        if value is not None and value != "":
            mapped[internal] = value

    email = str(mapped.get("email", "")).strip()
    if not email or "@" not in email:
        raise ValidationException("Record has no valid email", field="email")
    external_id = mapped.get("external_id")
    return UserRecord(
        email=email,
        name=str(mapped["name"]).strip() if "name" in mapped else None,
        external_id=str(external_id) if external_id is not None else None,
        is_active=_as_bool(mapped.get("is_active", True)),
        roles=_as_roles(mapped.get("roles")),
    )


def describe_record(raw: Any, field_mapping: dict[str, str] | None) -> str:
    """Short identifier for error reports: the email or id, else the first values."""
    if not isinstance(raw, dict):
        return repr(raw)[:80]
    for source_path, internal in (field_mapping or DEFAULT_FIELD_MAPPING).items():
        if internal in ("email", "external_id"):
            value = get_nested_value(raw, source_path)
            if value:
                return str(value)
    return str(list(raw.values())[:2])


async def apply_records(
    records: list[Any],
    field_mapping: dict[str, str] | None,
    upserter: IUserUpserter,
) -> SyncResult:
    """Map and upsert every record. Per-record failures are counted, not raised."""
    result = SyncResult(total_records=len(records))
    for raw in records:
        label = repr(raw)[:80]
        try:
            label = describe_record(raw, field_mapping)
            if not isinstance(raw, dict):
                raise ValueError(f"Expected an object, got {type(raw).__name__}")
            outcome = await upserter.upsert_user(map_record(raw, field_mapping))
        except Exception as e:
            logger.warning("Sync record %s failed: %s", label, e)
            result.record_error(label, str(e))
            continue
        if outcome == "created":
            result.created_count += 1
        elif outcome == "updated":
            result.updated_count += 1
        else:
            result.skipped_count += 1
    result.success = result.failed_count == 0
    return result
