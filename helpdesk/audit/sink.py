from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from helpdesk.identity import Actor

from .repository import ActivityLogEntry

if TYPE_CHECKING:
    from helpdesk.db.database import Database

logger = logging.getLogger(__name__)


class AuditLogSink:
    """Append-only activity recorder that never raises to its caller."""

    def __init__(self, database: "Database") -> None:
        self._database = database

    async def record(self, entry: ActivityLogEntry) -> None:
        if not entry.module or not entry.action:
            logger.warning("Dropping activity log entry without module or action: %r", entry)
            return
        try:
            async with self._database.transaction() as uow:
                await uow.activity_logs.insert(entry)
        except Exception:
            logger.exception(
                "Failed to record activity log entry module=%s action=%s entity_id=%s",
                entry.module,
                entry.action,
                entry.entity_id,
            )

    async def record_for(
        self,
        actor: Actor | None,
        *,
        module: str,
        action: str,
        entity: str | None = None,
        entity_id: int | None = None,
        description: str | None = None,
    ) -> None:
        """Shortcut filling user and request metadata from ``actor``."""

        await self.record(
            ActivityLogEntry(
                module=module,
                action=action,
                user_id=actor.user_id if actor else None,
                entity=entity,
                entity_id=entity_id,
                description=description,
                ip=actor.ip if actor else None,
                user_agent=actor.user_agent if actor else None,
            )
        )
