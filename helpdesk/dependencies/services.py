from __future__ import annotations

from fastapi import HTTPException, Request

from helpdesk.metrics import HelpdeskMetrics
from helpdesk.notifications.service import NotificationService
from helpdesk.tickets.service import TicketService


async def get_ticket_service(request: Request) -> TicketService:
    service = getattr(request.app.state, "ticket_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Ticket service is not configured")
    return service


async def get_notification_service(request: Request) -> NotificationService:
    service = getattr(request.app.state, "notification_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Notification service is not configured")
    return service


async def get_metrics(request: Request) -> HelpdeskMetrics:
    metrics = getattr(request.app.state, "metrics", None)
    if metrics is None:
        raise HTTPException(status_code=503, detail="Metrics are not configured")
    return metrics
