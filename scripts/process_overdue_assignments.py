"""Escalate overdue workflow assignments (run on a schedule, e.g. every 15 minutes).

Usage:
    uv run python -m scripts.process_overdue_assignments [limit]
Escalation notices and deadline reminders are queued after the sweep commits.
"""

import asyncio
import sys

from auditflow.application.use_cases.process_overdue import (
    ProcessOverdueAssignmentsUseCase,
)
from auditflow.core.config import get_settings
from auditflow.infrastructure.jobs import NOTIFICATION_QUEUE
from auditflow.infrastructure.persistence.database import (
    dispose_engine,
    get_session_factory,
)
from auditflow.infrastructure.queue import JobQueue
from auditflow.infrastructure.services import (
    DeferredAssignmentNotifier,
    NotificationService,
    build_workflow_runtime,
)
from auditflow.shared.telemetry.logging import setup_logging


async def main() -> None:
    """Run one overdue sweep and print the summary."""
    settings = get_settings()
    setup_logging()
    limit = int(sys.argv[1]) if len(sys.argv) > 1 else 100
    session_factory = get_session_factory()
    notifier = DeferredAssignmentNotifier()

    try:
        async with session_factory() as session:
            async with session.begin():
                runtime = build_workflow_runtime(session, settings, notifier=notifier)
                result = await ProcessOverdueAssignmentsUseCase(runtime).execute(limit=limit)

        queue = JobQueue.from_settings(session_factory, NOTIFICATION_QUEUE, settings)
        sent = await notifier.flush(NotificationService(queue))
        await queue.close()
    finally:
        await dispose_engine()

    print(
        f"Overdue: {result.total}, escalated: {result.escalated}, "
        f"failed: {result.failed}, reminders: {result.reminders_sent}, "
        f"notifications queued: {sent}"
    )
    for outcome in result.results:
        if outcome.status == "failed":
            print(f"  {outcome.assignment_id}: {outcome.error}", file=sys.stderr)


if __name__ == "__main__":
    asyncio.run(main())
