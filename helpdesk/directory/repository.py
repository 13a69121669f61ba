from __future__ import annotations

from typing import Any

from helpdesk.identity import Role

from .models import Branch, UserAccount


class DirectoryRepository:
    """Read access to branches and user accounts on a transaction connection."""

    _SELECT_BRANCH_SQL = """
    SELECT id, name, code, city, requires_attachments, is_active
    FROM branches
    WHERE id = $1
    """

    _SELECT_USER_SQL = """
    SELECT id, name, email, role, branch_id, is_active
    FROM users
    WHERE id = $1
    """

    _LIST_ACTIVE_STAFF_SQL = """
    SELECT id, name, email, role, branch_id, is_active
    FROM users
    WHERE is_active = TRUE AND role IN ('supervisor', 'admin')
    ORDER BY id ASC
    """

    def __init__(self, connection: Any) -> None:
        self._connection = connection

    async def get_branch(self, branch_id: int) -> Branch | None:
        row = await self._connection.fetchrow(self._SELECT_BRANCH_SQL, branch_id)
        if row is None:
            return None
        return self._row_to_branch(row)

    async def get_user(self, user_id: int) -> UserAccount | None:
        row = await self._connection.fetchrow(self._SELECT_USER_SQL, user_id)
        if row is None:
            return None
        return self._row_to_user(row)

    async def list_active_staff(self) -> list[UserAccount]:
        rows = await self._connection.fetch(self._LIST_ACTIVE_STAFF_SQL)
        return [self._row_to_user(row) for row in rows]

    @staticmethod
    def _row_to_branch(row: Any) -> Branch:
        return Branch(
            id=int(row["id"]),
            name=str(row["name"]),
            code=row["code"],
            city=row["city"],
            requires_attachments=bool(row["requires_attachments"]),
            is_active=bool(row["is_active"]),
        )

    @staticmethod
    def _row_to_user(row: Any) -> UserAccount:
        branch_id = row["branch_id"]
        return UserAccount(
            id=int(row["id"]),
            name=str(row["name"]),
            email=row["email"],
            role=Role(str(row["role"])),
            branch_id=None if branch_id is None else int(branch_id),
            is_active=bool(row["is_active"]),
        )
