from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class ActivityLogEntry:
    """Who did what to which entity."""

    module: str
    action: str
    user_id: int | None = None
    entity: str | None = None
    entity_id: int | None = None
    description: str | None = None
    ip: str | None = None
    user_agent: str | None = None


class ActivityLogRepository:
    _INSERT_ENTRY_SQL = """
    INSERT INTO activity_logs (user_id, module, action, entity, entity_id, description, ip, user_agent)
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
    """

    def __init__(self, connection: Any) -> None:
        self._connection = connection

    async def insert(self, entry: ActivityLogEntry) -> None:
        await self._connection.execute(
            self._INSERT_ENTRY_SQL,
            entry.user_id,
            entry.module,
            entry.action,
            entry.entity,
            entry.entity_id,
            entry.description,
            entry.ip,
            entry.user_agent,
        )
