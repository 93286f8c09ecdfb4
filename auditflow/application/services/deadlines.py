"""Deadline helpers: parse "3d"/"1w"/"2h" durations, classify and format deadlines."""

from __future__ import annotations

import re
from datetime import datetime, timedelta

from auditflow.domain.entities.workflow_graph import NodeData
from auditflow.domain.enums import DeadlineStatus
from auditflow.shared.utils.datetime import ensure_utc

DEFAULT_DEADLINE_HOURS = 72.0
APPROACHING_WINDOW_HOURS = 24.0

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([hdw])\s*$", re.IGNORECASE)
_UNIT_HOURS = {"h": 1.0, "d": 24.0, "w": 168.0}


def try_parse_deadline(value: str | float | int | None) -> float | None:
    """Return hours for a duration like "3d", "1w", "2h" or a bare number of hours.

    Returns None when value is missing, malformed, or not positive.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else None
    match = _DURATION_RE.match(value)
    if not match:
        try:
            hours = float(value)
        except ValueError:
            return None
        return hours if hours > 0 else None
    amount = float(match.group(1))
    hours = amount * _UNIT_HOURS[match.group(2).lower()]
    return hours if hours > 0 else None


def parse_deadline(
    value: str | float | int | None, default_hours: float = DEFAULT_DEADLINE_HOURS
) -> float:
    """Like try_parse_deadline but falls back to default_hours (3 days)."""
    hours = try_parse_deadline(value)
    return default_hours if hours is None else hours


def node_deadline_hours(
    data: NodeData, default_hours: float = DEFAULT_DEADLINE_HOURS
) -> float:
    """Effective deadline for a node: deadline_hours, then the deadline string, then the default."""
    hours = try_parse_deadline(data.deadline_hours)
    if hours is None:
        hours = try_parse_deadline(data.deadline)
    return default_hours if hours is None else hours


def compute_deadline(start: datetime, hours: float) -> datetime:
    return ensure_utc(start) + timedelta(hours=hours)  # type: ignore[operator]


def deadline_status(
    deadline: datetime,
    now: datetime,
    approaching_hours: float = APPROACHING_WINDOW_HOURS,
) -> DeadlineStatus:
    """Classify a deadline as overdue, approaching (within approaching_hours) or on time."""
    remaining = ensure_utc(deadline) - ensure_utc(now)  # type: ignore[operator]
    if remaining.total_seconds() < 0:
        return DeadlineStatus.OVERDUE
    if remaining <= timedelta(hours=approaching_hours):
        return DeadlineStatus.APPROACHING
    return DeadlineStatus.ON_TIME


def _format_span(delta: timedelta) -> str:
    total_minutes = int(delta.total_seconds() // 60)
    days, rem = divmod(total_minutes, 60 * 24)
    hours, minutes = divmod(rem, 60)
    if days:
        return f"{days}d {hours}h" if hours else f"{days}d"
    if hours:
        return f"{hours}h {minutes}m" if minutes else f"{hours}h"
    return f"{minutes}m"


def format_deadline(deadline: datetime, now: datetime) -> str:
    """Human-readable remaining time, e.g. "Due in 2d 3h" or "Overdue by 5h"."""
    delta = ensure_utc(deadline) - ensure_utc(now)  # type: ignore[operator]
    if delta.total_seconds() < 0:
        return f"Overdue by {_format_span(-delta)}"
    return f"Due in {_format_span(delta)}"
