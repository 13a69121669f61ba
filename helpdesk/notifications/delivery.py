from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

from helpdesk.mail.transport import MailTransport
from helpdesk.metrics import HelpdeskMetrics

from .models import DeliveryState, Notification
from .recipients import has_usable_email
from .templates import TicketContext, ticket_created_email

if TYPE_CHECKING:
    from helpdesk.db.database import Database

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class DeliveryReport:
    """Outcome of one delivery run, by notification id."""

    ticket_id: int
    sent: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    # Rows another worker already moved out of ``pending``.
    skipped: list[int] = field(default_factory=list)


class EmailDeliveryWorker:
    """Send the pending email notifications of a ticket and record each outcome."""

    def __init__(
        self,
        database: "Database",
        transport: MailTransport,
        *,
        frontend_base_url: str,
        display_timezone: str,
        metrics: HelpdeskMetrics | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._database = database
        self._transport = transport
        self._frontend_base_url = frontend_base_url
        self._display_timezone = display_timezone
        self._metrics = metrics
        self._clock = clock

    async def deliver_pending_for_ticket(self, ticket_id: int) -> DeliveryReport:
        """Deliver every ``pending`` email notification of ``ticket_id``.

        Reads happen in one short transaction; sending happens outside any
        transaction and each state change is committed on its own, so one
        recipient's failure never affects the others.
        """

        report = DeliveryReport(ticket_id=ticket_id)
        async with self._database.transaction() as uow:
            ticket = await uow.tickets.get(ticket_id)
            if ticket is None:
                logger.warning("Email delivery skipped: ticket %s not found", ticket_id)
                return report
            operator = await uow.directory.get_user(ticket.creator_id)
            branch = await uow.directory.get_branch(ticket.branch_id)
            pending = await uow.notifications.list_pending_email(ticket_id)
            destinations = {}
            for notification in pending:
                user_id = notification.destination_user_id
                if user_id not in destinations:
                    destinations[user_id] = await uow.directory.get_user(user_id)

        if not pending:
            logger.info("No pending email notifications for ticket %s", ticket_id)
            return report

        context = TicketContext(ticket=ticket, operator=operator, branch=branch)
        for notification in pending:
            recipient = destinations.get(notification.destination_user_id)
            if recipient is None or not has_usable_email(recipient):
                logger.warning(
                    "Notification %s: destination %s has no usable email, marking as error",
                    notification.id,
                    notification.destination_user_id,
                )
                await self._record(notification, DeliveryState.ERROR, report)
                continue

            message = ticket_created_email(
                context,
                recipient,
                frontend_base_url=self._frontend_base_url,
                tz_name=self._display_timezone,
                idempotency_key=f"notification/{notification.id}",
            )
            started = time.perf_counter()
            try:
                await self._transport.send(message)
            except Exception:
                logger.exception("Failed to send notification %s for ticket %s", notification.id, ticket_id)
                outcome = DeliveryState.ERROR
            else:
                outcome = DeliveryState.SENT
            finally:
                if self._metrics is not None:
                    self._metrics.email_delivery_seconds.observe(time.perf_counter() - started)
            await self._record(notification, outcome, report)

        logger.info(
            "Email delivery for ticket %s finished: sent=%d failed=%d skipped=%d",
            ticket_id,
            len(report.sent),
            len(report.failed),
            len(report.skipped),
        )
        return report

    async def _record(self, notification: Notification, state: DeliveryState, report: DeliveryReport) -> None:
        try:
            async with self._database.transaction() as uow:
                updated = await uow.notifications.mark_delivery(notification.id, state, self._clock())
        except Exception:
            logger.exception("Could not record delivery state %s for notification %s", state.value, notification.id)
            return

        if not updated:
            report.skipped.append(notification.id)
            return
        if state is DeliveryState.SENT:
            report.sent.append(notification.id)
        else:
            report.failed.append(notification.id)
        if self._metrics is not None:
            self._metrics.email_deliveries.inc(labels={"outcome": state.value})
