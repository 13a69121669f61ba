"""Ticket lifecycle domain models and state machine."""

from .models import AttachmentKind, Ticket, TicketAttachment, TicketStateTransition, UploadedFile
from .state import TicketStateMachine, TicketStatus

__all__ = [
    "AttachmentKind",
    "Ticket",
    "TicketAttachment",
    "TicketStateMachine",
    "TicketStateTransition",
    "TicketStatus",
    "UploadedFile",
]
