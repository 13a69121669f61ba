from __future__ import annotations

from dataclasses import dataclass

from helpdesk.identity import Role


@dataclass(slots=True)
class Branch:
    id: int
    name: str
    code: str | None
    city: str | None
    requires_attachments: bool
    is_active: bool


@dataclass(slots=True)
class UserAccount:
    """User reference data consumed by notification routing."""

    id: int
    name: str
    email: str | None
    role: Role
    branch_id: int | None
    is_active: bool
