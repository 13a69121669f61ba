from __future__ import annotations

from datetime import datetime
from typing import Any

from .models import DeliveryState, Notification, NotificationChannel, NotificationDraft, NotificationFilters

_NOTIFICATION_COLUMNS = (
    "id, ticket_id, origin_user_id, destination_user_id, channel, subject, body, "
    "delivery_state, created_at, sent_at, read_at"
)


class NotificationRepository:
    """Data access for notification rows; the table doubles as the email outbox."""

    _INSERT_NOTIFICATION_SQL = f"""
    INSERT INTO notifications (
        ticket_id, origin_user_id, destination_user_id, channel, subject, body, delivery_state, sent_at
    )
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
    RETURNING {_NOTIFICATION_COLUMNS}
    """

    _LIST_PENDING_EMAIL_SQL = f"""
    SELECT {_NOTIFICATION_COLUMNS}
    FROM notifications
    WHERE ticket_id = $1 AND channel = 'email' AND delivery_state = 'pending'
    ORDER BY id ASC
    """

    _MARK_DELIVERY_SQL = """
    UPDATE notifications
    SET delivery_state = $2,
        sent_at = $3
    WHERE id = $1 AND delivery_state = 'pending'
    """

    _SELECT_NOTIFICATION_SQL = f"""
    SELECT {_NOTIFICATION_COLUMNS}
    FROM notifications
    WHERE id = $1
    """

    _MARK_READ_SQL = f"""
    UPDATE notifications
    SET read_at = $2
    WHERE id = $1 AND read_at IS NULL
    RETURNING {_NOTIFICATION_COLUMNS}
    """

    _COUNT_UNREAD_SQL = """
    SELECT COUNT(*)
    FROM notifications
    WHERE destination_user_id = $1 AND channel = $2 AND read_at IS NULL
    """

    def __init__(self, connection: Any) -> None:
        self._connection = connection

    async def insert(self, draft: NotificationDraft) -> Notification:
        row = await self._connection.fetchrow(
            self._INSERT_NOTIFICATION_SQL,
            draft.ticket_id,
            draft.origin_user_id,
            draft.destination_user_id,
            draft.channel.value,
            draft.subject,
            draft.body,
            draft.delivery_state.value,
            draft.sent_at,
        )
        if row is None:
            raise RuntimeError("Failed to insert notification")
        return self._row_to_notification(row)

    async def list_pending_email(self, ticket_id: int) -> list[Notification]:
        rows = await self._connection.fetch(self._LIST_PENDING_EMAIL_SQL, ticket_id)
        return [self._row_to_notification(row) for row in rows]

    async def mark_delivery(self, notification_id: int, state: DeliveryState, sent_at: datetime) -> bool:
        """Move a pending notification to ``state``; returns False when it was no longer pending."""

        result = await self._connection.execute(self._MARK_DELIVERY_SQL, notification_id, state.value, sent_at)
        if isinstance(result, str):
            return not result.strip().endswith(" 0")
        return bool(result)

    async def get(self, notification_id: int) -> Notification | None:
        row = await self._connection.fetchrow(self._SELECT_NOTIFICATION_SQL, notification_id)
        if row is None:
            return None
        return self._row_to_notification(row)

    async def mark_read(self, notification_id: int, read_at: datetime) -> Notification | None:
        row = await self._connection.fetchrow(self._MARK_READ_SQL, notification_id, read_at)
        if row is None:
            return None
        return self._row_to_notification(row)

    async def list_for_destination(self, user_id: int, filters: NotificationFilters) -> list[Notification]:
        clauses = ["destination_user_id = $1"]
        params: list[Any] = [user_id]
        if filters.ticket_id is not None:
            params.append(filters.ticket_id)
            clauses.append(f"ticket_id = ${len(params)}")
        if filters.channel is not None:
            params.append(filters.channel.value)
            clauses.append(f"channel = ${len(params)}")
        if filters.delivery_state is not None:
            params.append(filters.delivery_state.value)
            clauses.append(f"delivery_state = ${len(params)}")
        if filters.unread_only:
            clauses.append("read_at IS NULL")
        params.append(filters.limit)
        query = (
            f"SELECT {_NOTIFICATION_COLUMNS} FROM notifications "
            f"WHERE {' AND '.join(clauses)} "
            f"ORDER BY created_at DESC, id DESC LIMIT ${len(params)}"
        )
        rows = await self._connection.fetch(query, *params)
        return [self._row_to_notification(row) for row in rows]

    async def count_unread(self, user_id: int, channel: NotificationChannel = NotificationChannel.INTERNAL) -> int:
        return int(await self._connection.fetchval(self._COUNT_UNREAD_SQL, user_id, channel.value) or 0)

    @staticmethod
    def _row_to_notification(row: Any) -> Notification:
        ticket_id = row["ticket_id"]
        origin = row["origin_user_id"]
        return Notification(
            id=int(row["id"]),
            ticket_id=None if ticket_id is None else int(ticket_id),
            origin_user_id=None if origin is None else int(origin),
            destination_user_id=int(row["destination_user_id"]),
            channel=NotificationChannel(str(row["channel"])),
            subject=str(row["subject"]),
            body=str(row["body"]),
            delivery_state=DeliveryState(str(row["delivery_state"])),
            created_at=row["created_at"],
            sent_at=row["sent_at"],
            read_at=row["read_at"],
        )
