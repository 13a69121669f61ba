from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum

from .state import TicketStatus


@dataclass(slots=True)
class Ticket:
    """Aggregate representing a ticket raised by a branch operator."""

    id: int
    ticket_date: date
    ticket_time: time | None
    branch_id: int
    creator_id: int
    status: TicketStatus
    subject: str
    description: str | None
    supervisor_remarks: str | None
    closed_at: datetime | None
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class TicketStateTransition:
    """Immutable history entry describing one committed state change."""

    id: int
    ticket_id: int
    from_status: TicketStatus | None
    to_status: TicketStatus
    actor_id: int
    comment: str | None
    created_at: datetime


class AttachmentKind(str, Enum):
    IMAGE = "image"
    SPREADSHEET = "spreadsheet"
    PDF = "pdf"
    OTHER = "other"


@dataclass(slots=True)
class TicketAttachment:
    """A stored file bound to a ticket."""

    id: int
    ticket_id: int
    kind: AttachmentKind
    original_name: str
    storage_path: str
    mime_type: str | None
    size_bytes: int
    is_primary: bool
    created_at: datetime


@dataclass(slots=True)
class UploadedFile:
    """Raw upload handed to the attachment flow by the transport layer."""

    filename: str
    content_type: str | None
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(slots=True)
class AttachmentBatch:
    """Result of one AttachFiles call."""

    ticket: Ticket
    attachments: list[TicketAttachment] = field(default_factory=list)
    activated: bool = False


@dataclass(slots=True)
class TicketFields:
    """Editable ticket fields accepted by create and update operations."""

    ticket_date: date | None = None
    subject: str | None = None
    branch_id: int | None = None
    ticket_time: time | None = None
    description: str | None = None
