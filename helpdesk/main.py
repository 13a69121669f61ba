from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from helpdesk.api.errors import install_error_handlers
from helpdesk.api.routes import attachments, metrics, notifications, ping, tickets
from helpdesk.audit.sink import AuditLogSink
from helpdesk.core.config import Settings, get_settings
from helpdesk.core.logging import configure_logging, init_tracer, shutdown_tracer
from helpdesk.db.database import Database, PostgresDatabase
from helpdesk.mail.transport import HttpMailTransport, LoggingMailTransport, MailTransport
from helpdesk.metrics import HelpdeskMetrics
from helpdesk.notifications.delivery import EmailDeliveryWorker
from helpdesk.notifications.fanout import NotificationFanout
from helpdesk.notifications.service import NotificationService
from helpdesk.storage.files import FileStore, LocalFileStore
from helpdesk.tasks import BackgroundTaskRunner
from helpdesk.tickets.service import TicketService

logger = logging.getLogger(__name__)


def build_mail_transport(settings: Settings) -> MailTransport:
    if not settings.mail_enabled:
        return LoggingMailTransport()
    return HttpMailTransport(
        api_url=settings.mail_api_url,
        api_key=settings.mail_api_key,
        from_email=settings.mail_from_email,
        from_name=settings.mail_from_name,
        timeout=settings.mail_timeout_seconds,
    )


def wire_services(
    app: FastAPI,
    *,
    database: Database,
    settings: Settings,
    transport: MailTransport | None = None,
    file_store: FileStore | None = None,
    tasks: BackgroundTaskRunner | None = None,
    helpdesk_metrics: HelpdeskMetrics | None = None,
) -> None:
    """Build the services over ``database`` and publish them on ``app.state``."""

    helpdesk_metrics = helpdesk_metrics or HelpdeskMetrics.create()
    tasks = tasks or BackgroundTaskRunner()
    audit = AuditLogSink(database)
    fanout = NotificationFanout(
        display_timezone=settings.display_timezone,
        metrics=helpdesk_metrics,
        notify_recipients_without_email=settings.notify_recipients_without_email,
    )
    delivery = EmailDeliveryWorker(
        database,
        transport or build_mail_transport(settings),
        frontend_base_url=settings.frontend_base_url,
        display_timezone=settings.display_timezone,
        metrics=helpdesk_metrics,
    )
    app.state.metrics = helpdesk_metrics
    app.state.tasks = tasks
    app.state.ticket_service = TicketService(
        database=database,
        files=file_store or LocalFileStore(settings.upload_root),
        fanout=fanout,
        delivery=delivery,
        tasks=tasks,
        audit=audit,
        metrics=helpdesk_metrics,
        max_upload_bytes=settings.max_upload_bytes,
        max_files_per_upload=settings.max_files_per_upload,
    )
    app.state.notification_service = NotificationService(
        database=database,
        audit=audit,
        summary_limit=settings.notification_summary_limit,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    configure_logging(settings)
    tracer_provider = init_tracer(settings)
    database = await PostgresDatabase.connect(
        settings.postgres_dsn,
        min_size=settings.postgres_pool_min_size,
        max_size=settings.postgres_pool_max_size,
    )
    await database.ensure_schema()
    wire_services(app, database=database, settings=settings)
    logger.info("%s started (environment=%s)", settings.app_name, settings.environment)
    try:
        yield
    finally:
        await app.state.tasks.drain(timeout=settings.mail_timeout_seconds)
        await database.close()
        shutdown_tracer(tracer_provider)


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan if use_lifespan else None)
    install_error_handlers(app)
    app.include_router(ping.router)
    app.include_router(tickets.router)
    app.include_router(attachments.router)
    app.include_router(notifications.router)
    app.include_router(metrics.router)
    return app


app = create_app()
