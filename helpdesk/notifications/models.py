from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class NotificationChannel(str, Enum):
    INTERNAL = "internal"
    EMAIL = "email"
    OTHER = "other"


class DeliveryState(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    ERROR = "error"


@dataclass(slots=True)
class Notification:
    """One delivery obligation towards one destination user."""

    id: int
    ticket_id: int | None
    origin_user_id: int | None
    destination_user_id: int
    channel: NotificationChannel
    subject: str
    body: str
    delivery_state: DeliveryState
    created_at: datetime
    sent_at: datetime | None = None
    read_at: datetime | None = None

    @property
    def is_read(self) -> bool:
        return self.read_at is not None


@dataclass(slots=True)
class NotificationDraft:
    """Values for a notification row that has not been inserted yet."""

    ticket_id: int | None
    origin_user_id: int | None
    destination_user_id: int
    channel: NotificationChannel
    subject: str
    body: str
    delivery_state: DeliveryState
    sent_at: datetime | None = None


@dataclass(slots=True)
class NotificationFilters:
    ticket_id: int | None = None
    channel: NotificationChannel | None = None
    delivery_state: DeliveryState | None = None
    unread_only: bool = False
    limit: int = 50


@dataclass(slots=True)
class NotificationSummary:
    unread_count: int
    latest: list[Notification] = field(default_factory=list)
