from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict

from helpdesk.dependencies.auth import CurrentActor
from helpdesk.dependencies.services import get_notification_service
from helpdesk.notifications.models import DeliveryState, Notification, NotificationChannel, NotificationFilters
from helpdesk.notifications.service import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_id: int | None
    origin_user_id: int | None
    destination_user_id: int
    channel: NotificationChannel
    subject: str
    body: str
    delivery_state: DeliveryState
    created_at: datetime
    sent_at: datetime | None
    read_at: datetime | None


class NotificationSummaryResponse(BaseModel):
    unread_count: int
    latest: list[NotificationResponse]


NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]


def _to_response(notification: Notification) -> NotificationResponse:
    return NotificationResponse.model_validate(notification)


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    service: NotificationServiceDep,
    actor: CurrentActor,
    ticket_id: int | None = Query(default=None),
    channel: NotificationChannel | None = Query(default=None),
    delivery_state: DeliveryState | None = Query(default=None),
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
) -> list[NotificationResponse]:
    filters = NotificationFilters(
        ticket_id=ticket_id,
        channel=channel,
        delivery_state=delivery_state,
        unread_only=unread_only,
        limit=limit,
    )
    notifications = await service.list_notifications(actor, filters)
    return [_to_response(notification) for notification in notifications]


@router.get("/summary", response_model=NotificationSummaryResponse)
async def notifications_summary(service: NotificationServiceDep, actor: CurrentActor) -> NotificationSummaryResponse:
    summary = await service.summary(actor)
    return NotificationSummaryResponse(
        unread_count=summary.unread_count,
        latest=[_to_response(notification) for notification in summary.latest],
    )


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: int, service: NotificationServiceDep, actor: CurrentActor
) -> NotificationResponse:
    return _to_response(await service.mark_read(notification_id, actor))


@router.get("/{notification_id}", response_model=NotificationResponse)
async def get_notification(
    notification_id: int, service: NotificationServiceDep, actor: CurrentActor
) -> NotificationResponse:
    return _to_response(await service.get_notification(notification_id, actor))
