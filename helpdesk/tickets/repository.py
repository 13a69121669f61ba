from __future__ import annotations

from datetime import date, datetime, time
from typing import Any

from .models import AttachmentKind, Ticket, TicketAttachment, TicketStateTransition
from .state import TicketStatus

_TICKET_COLUMNS = (
    "id, ticket_date, ticket_time, branch_id, creator_id, status, subject, description, "
    "supervisor_remarks, closed_at, created_at, updated_at"
)

_ATTACHMENT_COLUMNS = "id, ticket_id, kind, original_name, storage_path, mime_type, size_bytes, is_primary, created_at"


class TicketRepository:
    """Data access for ticket rows on a transaction connection."""

    _INSERT_TICKET_SQL = f"""
    INSERT INTO tickets (ticket_date, ticket_time, branch_id, creator_id, status, subject, description)
    VALUES ($1, $2, $3, $4, $5, $6, $7)
    RETURNING {_TICKET_COLUMNS}
    """

    _SELECT_TICKET_SQL = f"""
    SELECT {_TICKET_COLUMNS}
    FROM tickets
    WHERE id = $1
    """

    _SELECT_TICKET_FOR_UPDATE_SQL = f"""
    SELECT {_TICKET_COLUMNS}
    FROM tickets
    WHERE id = $1
    FOR UPDATE
    """

    _UPDATE_FIELDS_SQL = f"""
    UPDATE tickets
    SET ticket_date = $2,
        ticket_time = $3,
        subject = $4,
        description = $5,
        updated_at = CURRENT_TIMESTAMP
    WHERE id = $1
    RETURNING {_TICKET_COLUMNS}
    """

    _UPDATE_STATUS_SQL = f"""
    UPDATE tickets
    SET status = $2,
        supervisor_remarks = $3,
        closed_at = $4,
        updated_at = CURRENT_TIMESTAMP
    WHERE id = $1
    RETURNING {_TICKET_COLUMNS}
    """

    _DELETE_TICKET_SQL = """
    DELETE FROM tickets WHERE id = $1
    """

    def __init__(self, connection: Any) -> None:
        self._connection = connection

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
        row = await self._connection.fetchrow(
            self._INSERT_TICKET_SQL,
            ticket_date,
            ticket_time,
            branch_id,
            creator_id,
            status.value,
            subject,
            description,
        )
        if row is None:
            raise RuntimeError("Failed to insert ticket")
        return self._row_to_ticket(row)

    async def get(self, ticket_id: int) -> Ticket | None:
        row = await self._connection.fetchrow(self._SELECT_TICKET_SQL, ticket_id)
        if row is None:
            return None
        return self._row_to_ticket(row)

    async def get_for_update(self, ticket_id: int) -> Ticket | None:
        """Load the ticket holding an exclusive row lock until the transaction ends."""

        row = await self._connection.fetchrow(self._SELECT_TICKET_FOR_UPDATE_SQL, ticket_id)
        if row is None:
            return None
        return self._row_to_ticket(row)

    async def update_fields(
        self,
        ticket_id: int,
        *,
        ticket_date: date,
        ticket_time: time | None,
        subject: str,
        description: str | None,
    ) -> Ticket | None:
        row = await self._connection.fetchrow(
            self._UPDATE_FIELDS_SQL,
            ticket_id,
            ticket_date,
            ticket_time,
            subject,
            description,
        )
        if row is None:
            return None
        return self._row_to_ticket(row)

    async def update_status(
        self,
        ticket_id: int,
        *,
        status: TicketStatus,
        supervisor_remarks: str | None,
        closed_at: datetime | None,
    ) -> Ticket | None:
        row = await self._connection.fetchrow(
            self._UPDATE_STATUS_SQL,
            ticket_id,
            status.value,
            supervisor_remarks,
            closed_at,
        )
        if row is None:
            return None
        return self._row_to_ticket(row)

    async def delete(self, ticket_id: int) -> bool:
        result = await self._connection.execute(self._DELETE_TICKET_SQL, ticket_id)
        return _affected_rows(result) > 0

    @staticmethod
    def _row_to_ticket(row: Any) -> Ticket:
        return Ticket(
            id=int(row["id"]),
            ticket_date=row["ticket_date"],
            ticket_time=row["ticket_time"],
            branch_id=int(row["branch_id"]),
            creator_id=int(row["creator_id"]),
            status=TicketStatus(str(row["status"])),
            subject=str(row["subject"]),
            description=row["description"],
            supervisor_remarks=row["supervisor_remarks"],
            closed_at=row["closed_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


class TicketHistoryRepository:
    """Append-only access to ticket state transitions."""

    _INSERT_TRANSITION_SQL = """
    INSERT INTO ticket_state_transitions (ticket_id, from_status, to_status, actor_id, comment)
    VALUES ($1, $2, $3, $4, $5)
    RETURNING id, ticket_id, from_status, to_status, actor_id, comment, created_at
    """

    _SELECT_TRANSITIONS_SQL = """
    SELECT id, ticket_id, from_status, to_status, actor_id, comment, created_at
    FROM ticket_state_transitions
    WHERE ticket_id = $1
    ORDER BY created_at ASC, id ASC
    """

    def __init__(self, connection: Any) -> None:
        self._connection = connection

    async def append(
        self,
        *,
        ticket_id: int,
        from_status: TicketStatus | None,
        to_status: TicketStatus,
        actor_id: int,
        comment: str | None = None,
    ) -> TicketStateTransition:
        row = await self._connection.fetchrow(
            self._INSERT_TRANSITION_SQL,
            ticket_id,
            None if from_status is None else from_status.value,
            to_status.value,
            actor_id,
            comment,
        )
        if row is None:
            raise RuntimeError("Failed to insert ticket state transition")
        return self._row_to_transition(row)

    async def list_for_ticket(self, ticket_id: int) -> list[TicketStateTransition]:
        rows = await self._connection.fetch(self._SELECT_TRANSITIONS_SQL, ticket_id)
        return [self._row_to_transition(row) for row in rows]

    @staticmethod
    def _row_to_transition(row: Any) -> TicketStateTransition:
        from_status = row["from_status"]
        return TicketStateTransition(
            id=int(row["id"]),
            ticket_id=int(row["ticket_id"]),
            from_status=TicketStatus(str(from_status)) if from_status else None,
            to_status=TicketStatus(str(row["to_status"])),
            actor_id=int(row["actor_id"]),
            comment=row["comment"],
            created_at=row["created_at"],
        )


class AttachmentRepository:
    """Data access for ticket attachments."""

    _INSERT_ATTACHMENT_SQL = f"""
    INSERT INTO ticket_attachments (ticket_id, kind, original_name, storage_path, mime_type, size_bytes, is_primary)
    VALUES ($1, $2, $3, $4, $5, $6, $7)
    RETURNING {_ATTACHMENT_COLUMNS}
    """

    _DEMOTE_PRIMARIES_SQL = """
    UPDATE ticket_attachments
    SET is_primary = FALSE
    WHERE ticket_id = $1 AND is_primary = TRUE
    """

    _HAS_PRIMARY_SQL = """
    SELECT EXISTS (
        SELECT 1 FROM ticket_attachments WHERE ticket_id = $1 AND is_primary = TRUE
    )
    """

    _COUNT_FOR_TICKET_SQL = """
    SELECT COUNT(*) FROM ticket_attachments WHERE ticket_id = $1
    """

    _LIST_FOR_TICKET_SQL = f"""
    SELECT {_ATTACHMENT_COLUMNS}
    FROM ticket_attachments
    WHERE ticket_id = $1
    ORDER BY is_primary DESC, created_at ASC, id ASC
    """

    _SELECT_ATTACHMENT_SQL = f"""
    SELECT {_ATTACHMENT_COLUMNS}
    FROM ticket_attachments
    WHERE id = $1
    """

    _DELETE_ATTACHMENT_SQL = """
    DELETE FROM ticket_attachments WHERE id = $1
    """

    def __init__(self, connection: Any) -> None:
        self._connection = connection

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
        row = await self._connection.fetchrow(
            self._INSERT_ATTACHMENT_SQL,
            ticket_id,
            kind.value,
            original_name,
            storage_path,
            mime_type,
            size_bytes,
            is_primary,
        )
        if row is None:
            raise RuntimeError("Failed to insert attachment")
        return self._row_to_attachment(row)

    async def demote_primaries(self, ticket_id: int) -> None:
        await self._connection.execute(self._DEMOTE_PRIMARIES_SQL, ticket_id)

    async def has_primary(self, ticket_id: int) -> bool:
        return bool(await self._connection.fetchval(self._HAS_PRIMARY_SQL, ticket_id))

    async def count_for_ticket(self, ticket_id: int) -> int:
        return int(await self._connection.fetchval(self._COUNT_FOR_TICKET_SQL, ticket_id) or 0)

    async def list_for_ticket(self, ticket_id: int) -> list[TicketAttachment]:
        rows = await self._connection.fetch(self._LIST_FOR_TICKET_SQL, ticket_id)
        return [self._row_to_attachment(row) for row in rows]

    async def get(self, attachment_id: int) -> TicketAttachment | None:
        row = await self._connection.fetchrow(self._SELECT_ATTACHMENT_SQL, attachment_id)
        if row is None:
            return None
        return self._row_to_attachment(row)

    async def delete(self, attachment_id: int) -> bool:
        result = await self._connection.execute(self._DELETE_ATTACHMENT_SQL, attachment_id)
        return _affected_rows(result) > 0

    @staticmethod
    def _row_to_attachment(row: Any) -> TicketAttachment:
        return TicketAttachment(
            id=int(row["id"]),
            ticket_id=int(row["ticket_id"]),
            kind=AttachmentKind(str(row["kind"])),
            original_name=str(row["original_name"]),
            storage_path=str(row["storage_path"]),
            mime_type=row["mime_type"],
            size_bytes=int(row["size_bytes"]),
            is_primary=bool(row["is_primary"]),
            created_at=row["created_at"],
        )


def _affected_rows(result: Any) -> int:
    # asyncpg returns command tags such as "DELETE 1"
    if isinstance(result, str):
        tail = result.strip().rsplit(" ", 1)[-1]
        return int(tail) if tail.isdigit() else 0
    return int(bool(result))
