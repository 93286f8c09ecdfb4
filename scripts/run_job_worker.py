"""Run the background job workers (notifications and external sync) in a dedicated process.

Usage:
    uv run python -m scripts.run_job_worker
SIGINT/SIGTERM trigger an ordered shutdown: stop accepting jobs, drain
in-flight jobs (bounded by WORKER_SHUTDOWN_TIMEOUT_SECONDS), close the
queues, then dispose the database engine.
"""

import asyncio
import signal
import sys

import httpx

from auditflow.core.config import get_settings
from auditflow.domain.exceptions import SqlNotConfiguredException
from auditflow.infrastructure.jobs.wiring import (
    build_handlers,
    build_queue_host,
    build_queues,
)
from auditflow.infrastructure.messaging import RealtimePublisher
from auditflow.infrastructure.persistence.database import (
    dispose_engine,
    get_session_factory,
)
from auditflow.shared.telemetry.logging import get_logger, setup_logging

logger = get_logger(__name__)


async def main() -> None:
    """Start one worker per queue and run until signalled."""
    settings = get_settings()
    setup_logging()
    try:
        session_factory = get_session_factory()
    except SqlNotConfiguredException as e:
        print(e.message, file=sys.stderr)
        sys.exit(1)

    publisher = None
    if settings.redis_enabled:
        publisher = RealtimePublisher()
        await publisher.connect()
    http_client = httpx.AsyncClient(timeout=settings.sync_http_timeout_seconds)

    queues = build_queues(session_factory, settings)
    handlers = build_handlers(
        session_factory, settings, channel=publisher, http_client=http_client
    )
    host = build_queue_host(queues, settings, handlers=handlers, dispose=dispose_engine)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    host.start()
    logger.info("Job worker running: %s", ", ".join(queues))
    try:
        await stop.wait()
    finally:
        await host.shutdown()
        await http_client.aclose()
        if publisher is not None:
            await publisher.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
