"""In-memory doubles for the store, the file store and the mail transport."""

from __future__ import annotations

import asyncio
import copy
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path
from typing import Any

from helpdesk.audit.repository import ActivityLogEntry
from helpdesk.directory.models import Branch, UserAccount
from helpdesk.errors import TransientInfraError
from helpdesk.identity import Role
from helpdesk.mail.transport import MailMessage, MailTransportError
from helpdesk.notifications.models import (
    DeliveryState,
    Notification,
    NotificationChannel,
    NotificationDraft,
    NotificationFilters,
)
from helpdesk.tickets.models import AttachmentKind, Ticket, TicketAttachment, TicketStateTransition
from helpdesk.tickets.state import TicketStatus


class UniqueViolation(RuntimeError):
    """Raised where PostgreSQL would reject a duplicate primary attachment."""


@dataclass
class StoreData:
    branches: dict[int, Branch] = field(default_factory=dict)
    users: dict[int, UserAccount] = field(default_factory=dict)
    tickets: dict[int, Ticket] = field(default_factory=dict)
    transitions: list[TicketStateTransition] = field(default_factory=list)
    attachments: dict[int, TicketAttachment] = field(default_factory=dict)
    notifications: dict[int, Notification] = field(default_factory=dict)
    activity_logs: list[ActivityLogEntry] = field(default_factory=list)
    sequences: dict[str, int] = field(default_factory=dict)

    def next_id(self, name: str) -> int:
        self.sequences[name] = self.sequences.get(name, 0) + 1
        return self.sequences[name]


class InMemoryDatabase:
    """``Database`` double with serialised transactions, rollback and savepoints."""

    def __init__(self) -> None:
        self.data = StoreData()
        self._lock = asyncio.Lock()
        self._clock = datetime(2025, 11, 21, 14, 49, 45, tzinfo=timezone.utc)
        self.commits = 0
        self.rollbacks = 0
        self.locked_reads = 0
        self.fail_notification_inserts = False
        self.fail_activity_log_inserts = False
        self.fail_transactions = False

    def now(self) -> datetime:
        self._clock += timedelta(milliseconds=1)
        return self._clock

    def add_branch(self, branch_id: int, name: str, *, city: str | None = None, requires_attachments: bool = False) -> Branch:
        branch = Branch(
            id=branch_id,
            name=name,
            code=f"B{branch_id}",
            city=city,
            requires_attachments=requires_attachments,
            is_active=True,
        )
        self.data.branches[branch_id] = branch
        return branch

    def add_user(
        self,
        user_id: int,
        name: str,
        role: Role,
        *,
        email: str | None = None,
        branch_id: int | None = None,
        is_active: bool = True,
    ) -> UserAccount:
        user = UserAccount(id=user_id, name=name, email=email, role=role, branch_id=branch_id, is_active=is_active)
        self.data.users[user_id] = user
        return user

    @asynccontextmanager
    async def transaction(self):
        async with self._lock:
            if self.fail_transactions:
                raise TransientInfraError("The data store is temporarily unavailable")
            snapshot = copy.deepcopy(self.data)
            try:
                yield InMemoryUnitOfWork(self)
            except BaseException:
                self.data = snapshot
                self.rollbacks += 1
                raise
            self.commits += 1

    # helpers for assertions
    def history(self, ticket_id: int) -> list[TicketStateTransition]:
        entries = [entry for entry in self.data.transitions if entry.ticket_id == ticket_id]
        return sorted(entries, key=lambda entry: (entry.created_at, entry.id))

    def notifications_for(self, ticket_id: int) -> list[Notification]:
        return [n for n in self.data.notifications.values() if n.ticket_id == ticket_id]


class InMemoryUnitOfWork:
    def __init__(self, database: InMemoryDatabase) -> None:
        self._database = database
        self.tickets = FakeTicketRepository(database)
        self.history = FakeHistoryRepository(database)
        self.attachments = FakeAttachmentRepository(database)
        self.notifications = FakeNotificationRepository(database)
        self.directory = FakeDirectoryRepository(database)
        self.activity_logs = FakeActivityLogRepository(database)

    @asynccontextmanager
    async def savepoint(self):
        snapshot = copy.deepcopy(self._database.data)
        try:
            yield self
        except BaseException:
            self._database.data = snapshot
            raise


class _FakeRepository:
    def __init__(self, database: InMemoryDatabase) -> None:
        self._database = database

    @property
    def data(self) -> StoreData:
        return self._database.data


class FakeTicketRepository(_FakeRepository):
    async def insert(
        self,
        *,
        ticket_date: date,
        ticket_time: time | None,
        branch_id: int,
        creator_id: int,
        status: TicketStatus,
        subject: str,
        description: str | None,
    ) -> Ticket:
        now = self._database.now()
        ticket = Ticket(
            id=self.data.next_id("tickets"),
            ticket_date=ticket_date,
            ticket_time=ticket_time,
            branch_id=branch_id,
            creator_id=creator_id,
            status=status,
            subject=subject,
            description=description,
            supervisor_remarks=None,
            closed_at=None,
            created_at=now,
            updated_at=now,
        )
        self.data.tickets[ticket.id] = ticket
        return replace(ticket)

    async def get(self, ticket_id: int) -> Ticket | None:
        ticket = self.data.tickets.get(ticket_id)
        return replace(ticket) if ticket else None

    async def get_for_update(self, ticket_id: int) -> Ticket | None:
        self._database.locked_reads += 1
        return await self.get(ticket_id)

    async def update_fields(
        self,
        ticket_id: int,
        *,
        ticket_date: date,
        ticket_time: time | None,
        subject: str,
        description: str | None,
    ) -> Ticket | None:
        ticket = self.data.tickets.get(ticket_id)
        if ticket is None:
            return None
        ticket.ticket_date = ticket_date
        ticket.ticket_time = ticket_time
        ticket.subject = subject
        ticket.description = description
        ticket.updated_at = self._database.now()
        return replace(ticket)

    async def update_status(
        self,
        ticket_id: int,
        *,
        status: TicketStatus,
        supervisor_remarks: str | None,
        closed_at: datetime | None,
    ) -> Ticket | None:
        ticket = self.data.tickets.get(ticket_id)
        if ticket is None:
            return None
        if (status is TicketStatus.CLOSED) != (closed_at is not None):
            raise RuntimeError("closed_at must be set exactly when the ticket is closed")
        ticket.status = status
        ticket.supervisor_remarks = supervisor_remarks
        ticket.closed_at = closed_at
        ticket.updated_at = self._database.now()
        return replace(ticket)

    async def delete(self, ticket_id: int) -> bool:
        if self.data.tickets.pop(ticket_id, None) is None:
            return False
        self.data.transitions = [entry for entry in self.data.transitions if entry.ticket_id != ticket_id]
        self.data.attachments = {k: v for k, v in self.data.attachments.items() if v.ticket_id != ticket_id}
        self.data.notifications = {k: v for k, v in self.data.notifications.items() if v.ticket_id != ticket_id}
        return True


class FakeHistoryRepository(_FakeRepository):
    async def append(
        self,
        *,
        ticket_id: int,
        from_status: TicketStatus | None,
        to_status: TicketStatus,
        actor_id: int,
        comment: str | None = None,
    ) -> TicketStateTransition:
        entry = TicketStateTransition(
            id=self.data.next_id("transitions"),
            ticket_id=ticket_id,
            from_status=from_status,
            to_status=to_status,
            actor_id=actor_id,
            comment=comment,
            created_at=self._database.now(),
        )
        self.data.transitions.append(entry)
        return replace(entry)

    async def list_for_ticket(self, ticket_id: int) -> list[TicketStateTransition]:
        return [replace(entry) for entry in self._database.history(ticket_id)]


class FakeAttachmentRepository(_FakeRepository):
    async def insert(
        self,
        *,
        ticket_id: int,
        kind: AttachmentKind,
        original_name: str,
        storage_path: str,
        mime_type: str | None,
        size_bytes: int,
        is_primary: bool,
    ) -> TicketAttachment:
        if is_primary and await self.has_primary(ticket_id):
            raise UniqueViolation(f"ticket {ticket_id} already has a primary attachment")
        attachment = TicketAttachment(
            id=self.data.next_id("attachments"),
            ticket_id=ticket_id,
            kind=kind,
            original_name=original_name,
            storage_path=storage_path,
            mime_type=mime_type,
            size_bytes=size_bytes,
            is_primary=is_primary,
            created_at=self._database.now(),
        )
        self.data.attachments[attachment.id] = attachment
        return replace(attachment)

    async def demote_primaries(self, ticket_id: int) -> None:
        for attachment in self.data.attachments.values():
            if attachment.ticket_id == ticket_id:
                attachment.is_primary = False

    async def has_primary(self, ticket_id: int) -> bool:
        return any(a.is_primary for a in self.data.attachments.values() if a.ticket_id == ticket_id)

    async def count_for_ticket(self, ticket_id: int) -> int:
        return sum(1 for a in self.data.attachments.values() if a.ticket_id == ticket_id)

    async def list_for_ticket(self, ticket_id: int) -> list[TicketAttachment]:
        rows = [a for a in self.data.attachments.values() if a.ticket_id == ticket_id]
        rows.sort(key=lambda a: (not a.is_primary, a.created_at, a.id))
        return [replace(a) for a in rows]

    async def get(self, attachment_id: int) -> TicketAttachment | None:
        attachment = self.data.attachments.get(attachment_id)
        return replace(attachment) if attachment else None

    async def delete(self, attachment_id: int) -> bool:
        return self.data.attachments.pop(attachment_id, None) is not None


class FakeNotificationRepository(_FakeRepository):
    async def insert(self, draft: NotificationDraft) -> Notification:
        if self._database.fail_notification_inserts:
            raise RuntimeError("notifications table is unavailable")
        notification = Notification(
            id=self.data.next_id("notifications"),
            ticket_id=draft.ticket_id,
            origin_user_id=draft.origin_user_id,
            destination_user_id=draft.destination_user_id,
            channel=draft.channel,
            subject=draft.subject,
            body=draft.body,
            delivery_state=draft.delivery_state,
            created_at=self._database.now(),
            sent_at=draft.sent_at,
        )
        self.data.notifications[notification.id] = notification
        return replace(notification)

    async def list_pending_email(self, ticket_id: int) -> list[Notification]:
        rows = [
            n
            for n in self.data.notifications.values()
            if n.ticket_id == ticket_id
            and n.channel is NotificationChannel.EMAIL
            and n.delivery_state is DeliveryState.PENDING
        ]
        return [replace(n) for n in sorted(rows, key=lambda n: n.id)]

    async def mark_delivery(self, notification_id: int, state: DeliveryState, sent_at: datetime) -> bool:
        notification = self.data.notifications.get(notification_id)
        if notification is None or notification.delivery_state is not DeliveryState.PENDING:
            return False
        notification.delivery_state = state
        notification.sent_at = sent_at
        return True

    async def get(self, notification_id: int) -> Notification | None:
        notification = self.data.notifications.get(notification_id)
        return replace(notification) if notification else None

    async def mark_read(self, notification_id: int, read_at: datetime) -> Notification | None:
        notification = self.data.notifications.get(notification_id)
        if notification is None or notification.read_at is not None:
            return None
        notification.read_at = read_at
        return replace(notification)

    async def list_for_destination(self, user_id: int, filters: NotificationFilters) -> list[Notification]:
        rows = [n for n in self.data.notifications.values() if n.destination_user_id == user_id]
        if filters.ticket_id is not None:
            rows = [n for n in rows if n.ticket_id == filters.ticket_id]
        if filters.channel is not None:
            rows = [n for n in rows if n.channel is filters.channel]
        if filters.delivery_state is not None:
            rows = [n for n in rows if n.delivery_state is filters.delivery_state]
        if filters.unread_only:
            rows = [n for n in rows if n.read_at is None]
        rows.sort(key=lambda n: (n.created_at, n.id), reverse=True)
        return [replace(n) for n in rows[: filters.limit]]

    async def count_unread(self, user_id: int, channel: NotificationChannel = NotificationChannel.INTERNAL) -> int:
        return sum(
            1
            for n in self.data.notifications.values()
            if n.destination_user_id == user_id and n.channel is channel and n.read_at is None
        )


class FakeDirectoryRepository(_FakeRepository):
    async def get_branch(self, branch_id: int) -> Branch | None:
        return self.data.branches.get(branch_id)

    async def get_user(self, user_id: int) -> UserAccount | None:
        return self.data.users.get(user_id)

    async def list_active_staff(self) -> list[UserAccount]:
        return [
            user
            for _, user in sorted(self.data.users.items())
            if user.is_active and user.role in (Role.SUPERVISOR, Role.ADMIN)
        ]


class FakeActivityLogRepository(_FakeRepository):
    async def insert(self, entry: ActivityLogEntry) -> None:
        if self._database.fail_activity_log_inserts:
            raise RuntimeError("activity_logs table is unavailable")
        self.data.activity_logs.append(entry)


class RecordingMailTransport:
    """Mail transport double that records messages and fails for chosen addresses."""

    def __init__(self, *, fail_for: set[str] | None = None) -> None:
        self.sent: list[MailMessage] = []
        self.fail_for = set(fail_for or ())

    async def send(self, message: MailMessage) -> None:
        if message.to in self.fail_for:
            raise MailTransportError(f"SMTP refused {message.to}")
        self.sent.append(message)


class InMemoryFileStore:
    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self._counter = 0

    async def save(self, ticket_id: int, filename: str, data: bytes) -> str:
        self._counter += 1
        locator = f"tickets/{ticket_id}/{self._counter}-{filename}"
        self.files[locator] = data
        return locator

    async def delete(self, locator: str) -> None:
        self.deleted.append(locator)
        self.files.pop(locator, None)

    def resolve(self, locator: str) -> Path:
        return Path("/nonexistent") / locator


def make_settings(**overrides: Any):
    from helpdesk.core.config import Settings

    values: dict[str, Any] = {
        "frontend_base_url": "https://helpdesk.example.com/",
        "mail_enabled": False,
        "upload_root": "uploads-test",
    }
    values.update(overrides)
    return Settings(**values)
