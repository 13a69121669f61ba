from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from helpdesk.audit.sink import AuditLogSink
from helpdesk.errors import NotFoundError, PermissionDeniedError, StateConflictError
from helpdesk.identity import Actor

from .models import Notification, NotificationChannel, NotificationFilters, NotificationSummary

if TYPE_CHECKING:
    from helpdesk.db.database import Database


@dataclass(slots=True)
class NotificationService:
    """Inbox queries scoped to the calling user."""

    database: "Database"
    audit: AuditLogSink
    summary_limit: int = 5

    async def list_notifications(self, actor: Actor, filters: NotificationFilters | None = None) -> list[Notification]:
        filters = filters or NotificationFilters()
        async with self.database.transaction() as uow:
            return await uow.notifications.list_for_destination(actor.user_id, filters)

    async def get_notification(self, notification_id: int, actor: Actor) -> Notification:
        async with self.database.transaction() as uow:
            notification = await uow.notifications.get(notification_id)
        if notification is None:
            raise NotFoundError(f"Notification {notification_id} not found")
        if notification.destination_user_id != actor.user_id:
            raise PermissionDeniedError("Only the destination user can read a notification")
        return notification

    async def mark_read(self, notification_id: int, actor: Actor) -> Notification:
        async with self.database.transaction() as uow:
            notification = await uow.notifications.get(notification_id)
            if notification is None:
                raise NotFoundError(f"Notification {notification_id} not found")
            if notification.destination_user_id != actor.user_id:
                raise PermissionDeniedError("Only the destination user can mark a notification as read")
            if notification.channel is not NotificationChannel.INTERNAL:
                raise StateConflictError("Only internal notifications can be marked as read")
            if notification.is_read:
                return notification
            updated = await uow.notifications.mark_read(notification_id, datetime.now(timezone.utc))

        if updated is None:
            # Read concurrently by another request of the same user.
            async with self.database.transaction() as uow:
                current = await uow.notifications.get(notification_id)
            if current is None:
                raise NotFoundError(f"Notification {notification_id} not found")
            return current

        await self.audit.record_for(
            actor,
            module="notifications",
            action="MARK_READ",
            entity="notification",
            entity_id=notification_id,
            description=f"Notification #{notification_id} marked as read",
        )
        return updated

    async def summary(self, actor: Actor) -> NotificationSummary:
        filters = NotificationFilters(channel=NotificationChannel.INTERNAL, limit=self.summary_limit)
        async with self.database.transaction() as uow:
            unread = await uow.notifications.count_unread(actor.user_id, NotificationChannel.INTERNAL)
            latest = await uow.notifications.list_for_destination(actor.user_id, filters)
        return NotificationSummary(unread_count=unread, latest=latest)
