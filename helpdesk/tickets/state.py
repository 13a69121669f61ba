from __future__ import annotations

from enum import Enum
from typing import Iterable

from helpdesk.errors import StateConflictError, ValidationError


class TicketStatus(str, Enum):
    """Supported states for a ticket's lifecycle."""

    OPEN = "open"
    PENDING = "pending"
    PENDING_ATTACHMENTS = "pending_attachments"
    AUTHORIZED = "authorized"
    REJECTED = "rejected"
    CLOSED = "closed"


EDITABLE_STATUSES: frozenset[TicketStatus] = frozenset(
    {TicketStatus.OPEN, TicketStatus.PENDING, TicketStatus.PENDING_ATTACHMENTS}
)

# Transitions into these states append the supervisor comment to the remarks log.
REMARK_STATUSES: frozenset[TicketStatus] = frozenset(
    {TicketStatus.AUTHORIZED, TicketStatus.REJECTED, TicketStatus.CLOSED}
)


class TicketStateMachine:
    """Validate ticket lifecycle transitions.

    ``closed`` is terminal. Every other state may move to any state except
    itself and ``pending_attachments``, which is only ever assigned at creation.
    """

    _TERMINAL: frozenset[TicketStatus] = frozenset({TicketStatus.CLOSED})
    _CREATION_ONLY: frozenset[TicketStatus] = frozenset({TicketStatus.PENDING_ATTACHMENTS})

    @classmethod
    def initial_state(cls, *, requires_attachments: bool = False) -> TicketStatus:
        if requires_attachments:
            return TicketStatus.PENDING_ATTACHMENTS
        return TicketStatus.PENDING

    @classmethod
    def parse(cls, value: str | TicketStatus) -> TicketStatus:
        if isinstance(value, TicketStatus):
            return value
        normalized = str(value or "").strip().lower()
        try:
            return TicketStatus(normalized)
        except ValueError:
            allowed = ", ".join(status.value for status in TicketStatus)
            raise ValidationError(f"Invalid ticket state {value!r}. Must be one of: {allowed}") from None

    @classmethod
    def is_terminal(cls, status: TicketStatus) -> bool:
        return status in cls._TERMINAL

    @classmethod
    def can_transition(cls, current: TicketStatus, new: TicketStatus) -> bool:
        if current == new or cls.is_terminal(current):
            return False
        return new not in cls._CREATION_ONLY

    @classmethod
    def assert_transition(cls, current: TicketStatus, new: TicketStatus) -> None:
        if current == new:
            raise StateConflictError(f"Ticket is already in state {current.value!r}")
        if cls.is_terminal(current):
            raise StateConflictError(f"Ticket in state {current.value!r} cannot change state")
        if new in cls._CREATION_ONLY:
            raise StateConflictError(f"State {new.value!r} can only be assigned when a ticket is created")

    @classmethod
    def replay(cls, transitions: Iterable[tuple[TicketStatus | None, TicketStatus]]) -> TicketStatus:
        """Walk ``(from, to)`` pairs from the creation entry and return the final state.

        Raises ``StateConflictError`` when the sequence is not a legal path.
        """

        current: TicketStatus | None = None
        for index, (from_status, to_status) in enumerate(transitions):
            if index == 0:
                if from_status is not None:
                    raise StateConflictError("The first history entry must have no previous state")
                if to_status not in (TicketStatus.PENDING, TicketStatus.PENDING_ATTACHMENTS):
                    raise StateConflictError(f"Tickets cannot be created in state {to_status.value!r}")
            else:
                if from_status != current:
                    raise StateConflictError(
                        f"History entry {index} starts at {from_status!r} but the ticket was {current!r}"
                    )
                if not cls._is_recorded_transition_legal(current, to_status):
                    raise StateConflictError(f"Illegal transition {current!s} -> {to_status!s}")
            current = to_status
        if current is None:
            raise StateConflictError("Ticket history is empty")
        return current

    @classmethod
    def _is_recorded_transition_legal(cls, current: TicketStatus | None, new: TicketStatus) -> bool:
        if current is None:
            return False
        return cls.can_transition(current, new)
