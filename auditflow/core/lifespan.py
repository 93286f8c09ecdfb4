"""Application lifespan: startup and shutdown.

Wiring of infrastructure only: WebSocket manager, job queues (and optional
in-process workers), Redis real-time channel, telemetry, DB engine dispose.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI

from auditflow.core.config import get_settings
from auditflow.shared.telemetry.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run startup then yield; on exit run shutdown.

    Startup order: WebSocket manager, real-time publisher and broadcast task
    (if Redis is enabled), job queues and workers, telemetry. Shutdown order:
    broadcast task, queue host (stop accepting, drain workers, close queues),
    Redis, shared HTTP client, telemetry, SQL engine dispose.
    """
    settings = get_settings()
    setup_logging()

    # ---- Startup ----
    from auditflow.api.websocket import ConnectionManager
    from auditflow.infrastructure.jobs.wiring import (
        build_handlers,
        build_queue_host,
        build_queues,
    )
    from auditflow.infrastructure.messaging import RealtimePublisher, run_realtime_broadcast
    from auditflow.infrastructure.persistence.database import get_session_factory

    app.state.ws_manager = ConnectionManager()
    app.state.sync_http_client = httpx.AsyncClient(timeout=settings.sync_http_timeout_seconds)

    app.state.realtime = None
    app.state.realtime_broadcast_task = None
    if settings.redis_enabled:
        publisher = RealtimePublisher()
        await publisher.connect()
        app.state.realtime = publisher
        app.state.realtime_broadcast_task = asyncio.create_task(run_realtime_broadcast(app))

    session_factory = get_session_factory()
    queues = build_queues(session_factory, settings)
    handlers = None
    if settings.worker_enabled:
        handlers = build_handlers(
            session_factory,
            settings,
            channel=app.state.realtime,
            http_client=app.state.sync_http_client,
        )
    host = build_queue_host(queues, settings, handlers=handlers)
    host.start()
    app.state.queues = queues
    app.state.queue_host = host
    logger.info(
        "Job queues ready: %s (in-process workers: %s)",
        ", ".join(queues),
        "on" if settings.worker_enabled else "off",
    )

    if settings.telemetry_enabled:
        from auditflow.infrastructure.persistence import database
        from auditflow.shared.telemetry.telemetry import TelemetryConfig, set_telemetry

        telemetry = TelemetryConfig(
            service_name=settings.app_name,
            service_version=settings.app_version,
            enabled=True,
            environment=settings.telemetry_environment,
        )
        telemetry.setup_telemetry(
            exporter_type=settings.telemetry_exporter,
            otlp_endpoint=settings.telemetry_otlp_endpoint,
            sample_rate=settings.telemetry_sample_rate,
        )
        set_telemetry(telemetry)
        telemetry.instrument_fastapi(app)
        if database.engine is not None:
            telemetry.instrument_sqlalchemy(database.engine)
        logger.info("Telemetry initialized")

    yield

    # ---- Shutdown ----
    broadcast_task = getattr(app.state, "realtime_broadcast_task", None)
    if broadcast_task is not None:
        broadcast_task.cancel()
        try:
            await broadcast_task
        except asyncio.CancelledError:
            pass
        logger.info("Realtime broadcast task stopped")

    await app.state.queue_host.shutdown()

    if getattr(app.state, "realtime", None) is not None:
        await app.state.realtime.disconnect()

    if getattr(app.state, "sync_http_client", None) is not None:
        await app.state.sync_http_client.aclose()
        app.state.sync_http_client = None

    from auditflow.shared.telemetry.telemetry import get_telemetry

    telemetry_instance = get_telemetry()
    if telemetry_instance is not None:
        telemetry_instance.shutdown()
        logger.info("Telemetry shutdown complete")

    from auditflow.infrastructure.persistence.database import dispose_engine

    await dispose_engine()
