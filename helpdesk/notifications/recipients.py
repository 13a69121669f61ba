"""Who gets told about a ticket."""

from __future__ import annotations

import re
from typing import Iterable

from helpdesk.directory.models import UserAccount
from helpdesk.identity import Role

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]{2,}$")


def has_usable_email(user: UserAccount | None) -> bool:
    if user is None or not user.email:
        return False
    return bool(_EMAIL_PATTERN.match(user.email.strip()))


def resolve_supervision_recipients(branch_id: int | None, users: Iterable[UserAccount]) -> list[UserAccount]:
    """Return the first non-empty tier of supervisors for ``branch_id``.

    Tiers, in order: active supervisors bound to the branch, active supervisors
    without a branch, active admins. An empty list means nobody to notify.
    """

    active = [user for user in users if user.is_active]
    branch_supervisors = [
        user
        for user in active
        if user.role is Role.SUPERVISOR and branch_id is not None and user.branch_id == branch_id
    ]
    global_supervisors = [user for user in active if user.role is Role.SUPERVISOR and user.branch_id is None]
    admins = [user for user in active if user.role is Role.ADMIN]

    for tier in (branch_supervisors, global_supervisors, admins):
        if tier:
            return tier
    return []


def unique_recipients(*groups: Iterable[UserAccount | None]) -> list[UserAccount]:
    """Flatten ``groups`` keeping the first occurrence of each user id."""

    seen: set[int] = set()
    result: list[UserAccount] = []
    for group in groups:
        for user in group:
            if user is None or user.id in seen:
                continue
            seen.add(user.id)
            result.append(user)
    return result
