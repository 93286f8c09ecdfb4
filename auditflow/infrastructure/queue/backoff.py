"""Retry delay computation for failed jobs."""

from __future__ import annotations

import random

from auditflow.shared.enums import BackoffType


def compute_backoff(
    attempt: int,
    base_delay_ms: int,
    backoff_type: BackoffType | str = BackoffType.EXPONENTIAL,
    jitter_ms: int = 0,
) -> float:
    """Return the delay in seconds before retry number ``attempt`` (1-based).

    exponential: base * 2 ** (attempt - 1), i.e. 1s, 2s, 4s for a 1000 ms base.
    fixed: base every time.
    """
    kind = BackoffType(backoff_type)
    if kind is BackoffType.FIXED:
        delay_ms = float(base_delay_ms)
    else:
        delay_ms = float(base_delay_ms) * (2 ** max(attempt - 1, 0))
    if jitter_ms > 0:
        delay_ms += random.uniform(0, jitter_ms)
    return delay_ms / 1000.0
