"""Application entry point for the verification engine.

Serves the campaign HTTP API with uvicorn and, while the app is running,
drives the deadline scheduler loop in the background.

Configures:
- **structlog** with JSON rendering (production) or colored console (development)
- **Sentry** error reporting when a DSN is configured
- **Audit logging** for every campaign lifecycle event
- **Prometheus** metrics on ``/metrics`` and the request-id middleware
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from resonance.api import register_error_handlers, router
from resonance.audit.logger import AuditLogger
from resonance.audit.store import close_audit_db, init_audit_db, init_audit_table
from resonance.config import Settings, get_settings, validate_settings
from resonance.health import register_health_routes
from resonance.observability.metrics import setup_metrics
from resonance.observability.middleware import SERVICE_NAME, RequestIdMiddleware
from resonance.observability.sentry import get_sentry_processor, init_sentry
from resonance.scheduler.scheduler import CampaignScheduler
from resonance.scoring.fraud import FraudGate
from resonance.settlement.client import HttpSettlementClient
from resonance.store import (
    CampaignRepository,
    CampaignStore,
    InMemoryRepository,
    SqliteRepository,
    init_campaign_tables,
    open_database,
)
from resonance.validation.validator import SubmissionValidator

logger = structlog.get_logger()


def configure_logging(production: bool = False, sentry_enabled: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode (*production=True*): JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.

    Args:
        production: Enable production mode if ``True``.
        sentry_enabled: Forward ERROR events to Sentry.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if sentry_enabled:
        shared_processors.append(get_sentry_processor())

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=SERVICE_NAME)


def initialize_services(settings: Settings | None = None) -> dict[str, Any]:
    """Set up all shared services for the application.

    Opens the campaign database (or an in-memory repository), the audit
    trail, the settlement client (if configured), and wires the store,
    validator, and scheduler together.

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.

    Returns:
        A dict of initialized service instances keyed by name.
    """
    if settings is None:
        settings = get_settings()

    services: dict[str, Any] = {"settings": settings}

    # a. Campaign store backend
    repository: CampaignRepository
    if settings.storage_backend == "memory":
        services["db_conn"] = None
        repository = InMemoryRepository()
        audit_conn = open_database(":memory:")
        init_audit_table(audit_conn)
        logger.info("storage_backend_selected", backend="memory")
    else:
        db_path = settings.database_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        db_conn = open_database(db_path)
        init_campaign_tables(db_conn)
        services["db_conn"] = db_conn
        repository = SqliteRepository(db_conn)
        # Separate connection to the same file so audit commits never
        # interleave with a store transaction
        audit_conn = init_audit_db(db_path)
        logger.info("storage_backend_selected", backend="sqlite", path=str(db_path))

    # b. Audit trail
    services["audit_conn"] = audit_conn
    audit_logger = AuditLogger(audit_conn)
    services["audit_logger"] = audit_logger

    store = CampaignStore(repository)
    services["store"] = store

    # c. Scoring and fraud policy
    fraud_gate = FraudGate(max_likes_per_comment=settings.max_likes_per_comment)
    services["fraud_gate"] = fraud_gate
    services["validator"] = SubmissionValidator(
        store,
        fraud_gate=fraud_gate,
        multiplier=settings.resonance_multiplier,
        default_views=settings.default_views,
        audit_logger=audit_logger,
    )

    # d. Settlement client (if configured)
    settlement = None
    if settings.settlement_configured:
        settlement = HttpSettlementClient(
            base_url=settings.settlement_url,
            api_key=settings.settlement_api_key.get_secret_value(),
            timeout_seconds=settings.settlement_timeout_seconds,
        )
        logger.info("settlement_client_initialized", url=settings.settlement_url)
    else:
        logger.info("settlement_not_configured", detail="verification will fail until set")
    services["settlement"] = settlement

    # e. Scheduler
    services["scheduler"] = CampaignScheduler(
        store,
        settlement,
        fraud_gate=fraud_gate,
        timeout_seconds=settings.settlement_timeout_seconds,
        audit_logger=audit_logger,
    )

    return services


async def shutdown_services(services: dict[str, Any]) -> None:
    """Close the settlement client and database connections."""
    settlement = services.get("settlement")
    if isinstance(settlement, HttpSettlementClient):
        await settlement.aclose()

    audit_conn = services.get("audit_conn")
    if audit_conn is not None:
        close_audit_db(audit_conn)
        logger.info("Audit database connection closed")

    db_conn = services.get("db_conn")
    if db_conn is not None:
        db_conn.close()
        logger.info("Campaign database connection closed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Lifespan context manager for FastAPI startup and shutdown.

    On startup: starts the deadline scheduler loop if enabled.
    On shutdown: cancels the loop and closes connections.  A verification
    interrupted mid-flight persists nothing, so cancelling is safe.
    """
    services = app.state.services
    settings: Settings = services["settings"]

    scheduler_task: asyncio.Task[None] | None = None
    if settings.scheduler_enabled:
        scheduler: CampaignScheduler = services["scheduler"]
        scheduler_task = asyncio.create_task(
            scheduler.run_periodically(settings.scheduler_interval_seconds)
        )
    logger.info("FastAPI application starting", scheduler_enabled=settings.scheduler_enabled)
    yield
    if scheduler_task is not None:
        scheduler_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await scheduler_task
        logger.info("Scheduler loop stopped")
    await shutdown_services(services)


def create_app(services: dict[str, Any]) -> FastAPI:
    """Create the FastAPI app with lifespan, routes, middleware, and probes.

    Args:
        services: The initialized services dict from ``initialize_services``.

    Returns:
        The configured FastAPI application.
    """
    fastapi_app = FastAPI(title="Resonance Verifier", lifespan=lifespan)
    fastapi_app.state.services = services
    fastapi_app.state.settings = services.get("settings") or get_settings()
    fastapi_app.add_middleware(RequestIdMiddleware)
    fastapi_app.include_router(router)
    register_error_handlers(fastapi_app)
    register_health_routes(fastapi_app)
    setup_metrics(fastapi_app)
    return fastapi_app


async def main() -> None:
    """Main entry point.

    1. Load settings and configure logging and Sentry
    2. Validate settlement settings (exits in production if missing)
    3. Initialize services and create the FastAPI app
    4. Serve with uvicorn until interrupted
    """
    settings = get_settings()
    configure_logging(production=settings.production, sentry_enabled=bool(settings.sentry_dsn))
    init_sentry(
        settings.sentry_dsn,
        environment="production" if settings.production else "development",
    )
    logger.info("Application starting")

    validate_settings(settings)

    services = initialize_services(settings)
    fastapi_app = create_app(services)

    config = uvicorn.Config(
        fastapi_app,
        host="0.0.0.0",
        port=settings.http_port,
        log_level="info",
    )
    server = uvicorn.Server(config)
    await server.serve()


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
