from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

from helpdesk.directory.models import UserAccount
from helpdesk.metrics import HelpdeskMetrics
from helpdesk.tickets.models import Ticket

from .models import DeliveryState, Notification, NotificationChannel, NotificationDraft
from .recipients import has_usable_email, resolve_supervision_recipients, unique_recipients
from .templates import TicketContext, ticket_created_body, ticket_created_subject

if TYPE_CHECKING:
    from helpdesk.db.database import UnitOfWork

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class FanoutResult:
    recipients: list[UserAccount] = field(default_factory=list)
    notifications: list[Notification] = field(default_factory=list)

    @property
    def pending_emails(self) -> int:
        return sum(
            1
            for notification in self.notifications
            if notification.channel is NotificationChannel.EMAIL
            and notification.delivery_state is DeliveryState.PENDING
        )


class NotificationFanout:
    """Create the internal and email notifications announcing a ticket."""

    def __init__(
        self,
        *,
        display_timezone: str,
        metrics: HelpdeskMetrics | None = None,
        notify_recipients_without_email: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._display_timezone = display_timezone
        self._metrics = metrics
        self._notify_without_email = notify_recipients_without_email
        self._clock = clock

    async def fan_out_ticket_created(self, ticket: Ticket, uow: "UnitOfWork") -> FanoutResult:
        """Insert notifications for the creating operator and the branch supervisors.

        Runs on the caller's transaction. Recipients are de-duplicated by id with the
        operator first; each one gets an ``internal`` row already ``sent`` and an
        ``email`` row left ``pending`` for the delivery worker. Recipients without a
        usable address are skipped unless ``notify_recipients_without_email`` is set,
        in which case they still get the internal row.
        """

        branch = await uow.directory.get_branch(ticket.branch_id)
        operator = await uow.directory.get_user(ticket.creator_id)
        staff = await uow.directory.list_active_staff()
        supervisors = resolve_supervision_recipients(ticket.branch_id, staff)

        candidates = unique_recipients([operator], supervisors)
        if self._notify_without_email:
            recipients = candidates
        else:
            recipients = [user for user in candidates if has_usable_email(user)]

        context = TicketContext(ticket=ticket, operator=operator, branch=branch)
        subject = ticket_created_subject(ticket)
        origin_id = operator.id if operator else None
        result = FanoutResult(recipients=recipients)

        for recipient in recipients:
            internal = await uow.notifications.insert(
                NotificationDraft(
                    ticket_id=ticket.id,
                    origin_user_id=origin_id,
                    destination_user_id=recipient.id,
                    channel=NotificationChannel.INTERNAL,
                    subject=subject,
                    body=ticket_created_body(context, NotificationChannel.INTERNAL, self._display_timezone),
                    delivery_state=DeliveryState.SENT,
                    sent_at=self._clock(),
                )
            )
            result.notifications.append(internal)
            if not has_usable_email(recipient):
                continue
            email = await uow.notifications.insert(
                NotificationDraft(
                    ticket_id=ticket.id,
                    origin_user_id=origin_id,
                    destination_user_id=recipient.id,
                    channel=NotificationChannel.EMAIL,
                    subject=subject,
                    body=ticket_created_body(context, NotificationChannel.EMAIL, self._display_timezone),
                    delivery_state=DeliveryState.PENDING,
                )
            )
            result.notifications.append(email)

        if not recipients:
            logger.warning("No recipients resolved for ticket %s (branch %s)", ticket.id, ticket.branch_id)
        else:
            logger.info(
                "Created %d notifications for ticket %s (%d recipients)",
                len(result.notifications),
                ticket.id,
                len(recipients),
            )
        return result

    def record_metrics(self, result: FanoutResult) -> None:
        """Count created notifications; call once the owning transaction has committed."""

        if self._metrics is None:
            return
        for notification in result.notifications:
            self._metrics.notifications_created.inc(labels={"channel": notification.channel.value})
