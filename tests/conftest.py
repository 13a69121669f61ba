from __future__ import annotations

from datetime import date

import pytest

from helpdesk.audit.sink import AuditLogSink
from helpdesk.identity import Actor, Role
from helpdesk.metrics import HelpdeskMetrics
from helpdesk.notifications.delivery import EmailDeliveryWorker
from helpdesk.notifications.fanout import NotificationFanout
from helpdesk.notifications.service import NotificationService
from helpdesk.tasks import BackgroundTaskRunner
from helpdesk.tickets.service import TicketService

from tests.fakes import InMemoryDatabase, InMemoryFileStore, RecordingMailTransport

BRANCH_ID = 1
GATED_BRANCH_ID = 2
OPERATOR_ID = 10
OTHER_OPERATOR_ID = 11
SUPERVISOR_ID = 20
ADMIN_ID = 30

TIMEZONE = "America/Argentina/Buenos_Aires"


@pytest.fixture
def database() -> InMemoryDatabase:
    db = InMemoryDatabase()
    db.add_branch(BRANCH_ID, "SAN MIGUEL", city="San Miguel")
    db.add_branch(GATED_BRANCH_ID, "CENTRO", city="Tucumán", requires_attachments=True)
    db.add_user(OPERATOR_ID, "Ana Operadora", Role.OPERATOR, email="ana@example.com", branch_id=BRANCH_ID)
    db.add_user(OTHER_OPERATOR_ID, "Otro Operador", Role.OPERATOR, email="otro@example.com", branch_id=BRANCH_ID)
    db.add_user(SUPERVISOR_ID, "Sergio Supervisor", Role.SUPERVISOR, email="sergio@example.com", branch_id=BRANCH_ID)
    db.add_user(ADMIN_ID, "Alicia Admin", Role.ADMIN, email="alicia@example.com")
    return db


@pytest.fixture
def mail_transport() -> RecordingMailTransport:
    return RecordingMailTransport()


@pytest.fixture
def file_store() -> InMemoryFileStore:
    return InMemoryFileStore()


@pytest.fixture
def tasks() -> BackgroundTaskRunner:
    return BackgroundTaskRunner()


@pytest.fixture
def metrics() -> HelpdeskMetrics:
    return HelpdeskMetrics.create()


@pytest.fixture
def audit(database) -> AuditLogSink:
    return AuditLogSink(database)


@pytest.fixture
def fanout(metrics) -> NotificationFanout:
    return NotificationFanout(display_timezone=TIMEZONE, metrics=metrics)


@pytest.fixture
def delivery(database, mail_transport, metrics) -> EmailDeliveryWorker:
    return EmailDeliveryWorker(
        database,
        mail_transport,
        frontend_base_url="https://helpdesk.example.com",
        display_timezone=TIMEZONE,
        metrics=metrics,
    )


@pytest.fixture
def ticket_service(database, file_store, fanout, delivery, tasks, audit, metrics) -> TicketService:
    return TicketService(
        database=database,
        files=file_store,
        fanout=fanout,
        delivery=delivery,
        tasks=tasks,
        audit=audit,
        metrics=metrics,
        max_upload_bytes=1024,
        max_files_per_upload=3,
    )


@pytest.fixture
def notification_service(database, audit) -> NotificationService:
    return NotificationService(database=database, audit=audit, summary_limit=5)


@pytest.fixture
def operator() -> Actor:
    return Actor(user_id=OPERATOR_ID, role=Role.OPERATOR, branch_id=BRANCH_ID, ip="10.0.0.1", user_agent="pytest")


@pytest.fixture
def other_operator() -> Actor:
    return Actor(user_id=OTHER_OPERATOR_ID, role=Role.OPERATOR, branch_id=BRANCH_ID)


@pytest.fixture
def supervisor() -> Actor:
    return Actor(user_id=SUPERVISOR_ID, role=Role.SUPERVISOR, branch_id=BRANCH_ID)


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id=ADMIN_ID, role=Role.ADMIN)


@pytest.fixture
def ticket_date() -> date:
    return date(2025, 11, 21)
