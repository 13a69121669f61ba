from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Sequence

from opentelemetry import trace

from helpdesk.audit.sink import AuditLogSink
from helpdesk.errors import NotFoundError, PermissionDeniedError, StateConflictError, ValidationError
from helpdesk.identity import Actor, Role
from helpdesk.metrics import HelpdeskMetrics
from helpdesk.notifications.delivery import EmailDeliveryWorker
from helpdesk.notifications.fanout import FanoutResult, NotificationFanout
from helpdesk.storage.files import FileStore
from helpdesk.tasks import BackgroundTaskRunner

from .attachments import classify
from .models import AttachmentBatch, AttachmentKind, Ticket, TicketAttachment, TicketFields, TicketStateTransition, UploadedFile
from .state import EDITABLE_STATUSES, REMARK_STATUSES, TicketStateMachine, TicketStatus

if TYPE_CHECKING:
    from helpdesk.db.database import Database, UnitOfWork

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

SUBJECT_MAX_LENGTH = 150
REMARKS_SEPARATOR = "\n---\n"
ACTIVATION_COMMENT = "Attachments uploaded. Ticket enabled."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class TicketService:
    """Ticket lifecycle orchestration: creation, attachment gate, state changes and deletion."""

    database: "Database"
    files: FileStore
    fanout: NotificationFanout
    delivery: EmailDeliveryWorker
    tasks: BackgroundTaskRunner
    audit: AuditLogSink
    metrics: HelpdeskMetrics | None = None
    max_upload_bytes: int = 100 * 1024 * 1024
    max_files_per_upload: int = 10

    async def create_ticket(
        self,
        actor: Actor,
        *,
        ticket_date: date | None,
        subject: str | None,
        branch_id: int | None = None,
        ticket_time: time | None = None,
        description: str | None = None,
    ) -> Ticket:
        """Create a ticket and announce it.

        The ticket starts ``pending`` and is fanned out to the supervisors in the
        same transaction, unless its branch requires attachments: then it starts
        ``pending_attachments`` and stays silent until the first upload.
        """

        if ticket_date is None:
            raise ValidationError("ticket_date is required")
        clean_subject = self._clean_subject(subject)
        target_branch_id = branch_id if branch_id is not None else actor.branch_id
        if target_branch_id is None:
            raise ValidationError("Could not determine the branch: send branch_id or assign a branch to the user")

        with tracer.start_as_current_span("tickets.create"):
            fanout: FanoutResult | None = None
            async with self.database.transaction() as uow:
                branch = await uow.directory.get_branch(target_branch_id)
                if branch is None:
                    raise ValidationError(f"Branch {target_branch_id} does not exist")
                status = TicketStateMachine.initial_state(requires_attachments=branch.requires_attachments)
                ticket = await uow.tickets.insert(
                    ticket_date=ticket_date,
                    ticket_time=ticket_time,
                    branch_id=branch.id,
                    creator_id=actor.user_id,
                    status=status,
                    subject=clean_subject,
                    description=_clean_optional(description),
                )
                await uow.history.append(
                    ticket_id=ticket.id,
                    from_status=None,
                    to_status=status,
                    actor_id=actor.user_id,
                    comment="Ticket created",
                )
                if status is TicketStatus.PENDING:
                    fanout = await self._fan_out_safely(ticket, uow)

        logger.info("Ticket %s created in branch %s with state %s", ticket.id, ticket.branch_id, status.value)
        if self.metrics is not None:
            self.metrics.tickets_created.inc(labels={"initial_state": status.value})
        await self.audit.record_for(
            actor,
            module="tickets",
            action="CREATE",
            entity="ticket",
            entity_id=ticket.id,
            description=(
                f"User {actor.user_id} created ticket #{ticket.id} "
                f'(branch_id={ticket.branch_id}, subject="{ticket.subject}")'
            ),
        )
        self._after_fanout(ticket, fanout)
        return ticket

    async def attach_files(
        self,
        ticket_id: int,
        files: Sequence[UploadedFile],
        actor: Actor,
        *,
        kind: str | AttachmentKind | None = None,
        is_primary: bool | None = None,
    ) -> AttachmentBatch:
        """Store ``files`` on the ticket and apply the attachment gate.

        The ticket row is locked for the whole transaction so that concurrent
        uploads serialize and only one of them releases a ``pending_attachments``
        ticket. An explicit ``is_primary`` applies to the first file; without it
        the first file becomes primary only when the ticket has none.
        """

        self._validate_upload(files)
        stored: list[str] = []
        fanout: FanoutResult | None = None

        with tracer.start_as_current_span("tickets.attach_files"):
            try:
                async with self.database.transaction() as uow:
                    ticket = await uow.tickets.get_for_update(ticket_id)
                    if ticket is None:
                        raise NotFoundError(f"Ticket {ticket_id} not found")
                    self._ensure_can_modify(ticket, actor)
                    entry_status = ticket.status

                    make_first_primary = is_primary
                    if make_first_primary is None:
                        make_first_primary = not await uow.attachments.has_primary(ticket.id)

                    batch = AttachmentBatch(ticket=ticket)
                    for index, upload in enumerate(files):
                        primary = bool(make_first_primary) and index == 0
                        locator = await self.files.save(ticket.id, upload.filename, upload.data)
                        stored.append(locator)
                        if primary:
                            await uow.attachments.demote_primaries(ticket.id)
                        attachment = await uow.attachments.insert(
                            ticket_id=ticket.id,
                            kind=classify(upload.content_type, kind),
                            original_name=upload.filename or "file",
                            storage_path=locator,
                            mime_type=upload.content_type,
                            size_bytes=upload.size,
                            is_primary=primary,
                        )
                        batch.attachments.append(attachment)

                    if (
                        entry_status is TicketStatus.PENDING_ATTACHMENTS
                        and await uow.attachments.count_for_ticket(ticket.id) > 0
                    ):
                        activated = await uow.tickets.update_status(
                            ticket.id,
                            status=TicketStatus.PENDING,
                            supervisor_remarks=ticket.supervisor_remarks,
                            closed_at=None,
                        )
                        if activated is None:
                            raise NotFoundError(f"Ticket {ticket_id} not found")
                        await uow.history.append(
                            ticket_id=ticket.id,
                            from_status=TicketStatus.PENDING_ATTACHMENTS,
                            to_status=TicketStatus.PENDING,
                            actor_id=actor.user_id,
                            comment=ACTIVATION_COMMENT,
                        )
                        batch.ticket = activated
                        batch.activated = True
                        fanout = await self._fan_out_safely(activated, uow)
            except Exception:
                for locator in stored:
                    await self.files.delete(locator)
                raise

        logger.info(
            "Attached %d files to ticket %s (activated=%s)", len(batch.attachments), ticket_id, batch.activated
        )
        for attachment in batch.attachments:
            await self.audit.record_for(
                actor,
                module="ticket_attachments",
                action="ATTACH",
                entity="ticket_attachment",
                entity_id=attachment.id,
                description=(
                    f'User {actor.user_id} attached "{attachment.original_name}" '
                    f"({attachment.kind.value}) to ticket #{ticket_id}"
                ),
            )
        if batch.activated:
            if self.metrics is not None:
                self.metrics.ticket_activations.inc()
            await self.audit.record_for(
                actor,
                module="tickets",
                action="CONFIRM",
                entity="ticket",
                entity_id=ticket_id,
                description=f"Ticket #{ticket_id} enabled after its first attachment was uploaded",
            )
            self._after_fanout(batch.ticket, fanout)
        return batch

    async def change_state(
        self,
        ticket_id: int,
        new_state: str | TicketStatus,
        actor: Actor,
        *,
        comment: str | None = None,
    ) -> Ticket:
        if not actor.is_staff:
            raise PermissionDeniedError("Changing a ticket's state requires the supervisor or admin role")
        target = TicketStateMachine.parse(new_state)
        comment = _clean_optional(comment)

        with tracer.start_as_current_span("tickets.change_state"):
            async with self.database.transaction() as uow:
                ticket = await uow.tickets.get_for_update(ticket_id)
                if ticket is None:
                    raise NotFoundError(f"Ticket {ticket_id} not found")
                previous = ticket.status
                TicketStateMachine.assert_transition(previous, target)

                remarks = ticket.supervisor_remarks
                if comment and target in REMARK_STATUSES:
                    remarks = f"{remarks}{REMARKS_SEPARATOR}{comment}" if remarks else comment
                closed_at = _utcnow() if target is TicketStatus.CLOSED else None

                await uow.history.append(
                    ticket_id=ticket.id,
                    from_status=previous,
                    to_status=target,
                    actor_id=actor.user_id,
                    comment=comment,
                )
                updated = await uow.tickets.update_status(
                    ticket.id,
                    status=target,
                    supervisor_remarks=remarks,
                    closed_at=closed_at,
                )
                if updated is None:
                    raise NotFoundError(f"Ticket {ticket_id} not found")

        logger.info("Ticket %s moved from %s to %s by user %s", ticket_id, previous.value, target.value, actor.user_id)
        if self.metrics is not None:
            self.metrics.state_changes.inc(labels={"to_state": target.value})
        await self.audit.record_for(
            actor,
            module="tickets",
            action="CHANGE_STATE",
            entity="ticket",
            entity_id=ticket_id,
            description=(
                f'User {actor.user_id} changed ticket #{ticket_id} from "{previous.value}" '
                f'to "{target.value}". Comment: {comment or "no comment"}'
            ),
        )
        return updated

    async def delete_ticket(self, ticket_id: int, actor: Actor) -> None:
        if not actor.is_admin:
            raise PermissionDeniedError("Only admins can delete tickets")

        async with self.database.transaction() as uow:
            ticket = await uow.tickets.get_for_update(ticket_id)
            if ticket is None:
                raise NotFoundError(f"Ticket {ticket_id} not found")
            attachments = await uow.attachments.list_for_ticket(ticket_id)
            await uow.tickets.delete(ticket_id)

        for attachment in attachments:
            await self.files.delete(attachment.storage_path)
        logger.info("Ticket %s deleted by user %s", ticket_id, actor.user_id)
        await self.audit.record_for(
            actor,
            module="tickets",
            action="DELETE",
            entity="ticket",
            entity_id=ticket_id,
            description=f'User {actor.user_id} deleted ticket #{ticket_id} (subject="{ticket.subject}")',
        )

    async def get_ticket(self, ticket_id: int, actor: Actor) -> Ticket:
        async with self.database.transaction() as uow:
            ticket = await uow.tickets.get(ticket_id)
        if ticket is None:
            raise NotFoundError(f"Ticket {ticket_id} not found")
        self._ensure_can_view(ticket, actor)
        return ticket

    async def get_history(self, ticket_id: int, actor: Actor) -> list[TicketStateTransition]:
        async with self.database.transaction() as uow:
            ticket = await uow.tickets.get(ticket_id)
            if ticket is None:
                raise NotFoundError(f"Ticket {ticket_id} not found")
            self._ensure_can_view(ticket, actor)
            return await uow.history.list_for_ticket(ticket_id)

    async def update_ticket(self, ticket_id: int, actor: Actor, fields: TicketFields) -> Ticket:
        """Edit business data of a ticket that is still editable. Never changes state."""

        async with self.database.transaction() as uow:
            ticket = await uow.tickets.get_for_update(ticket_id)
            if ticket is None:
                raise NotFoundError(f"Ticket {ticket_id} not found")
            self._ensure_can_modify(ticket, actor)
            if fields.branch_id is not None and fields.branch_id != ticket.branch_id:
                raise ValidationError("The branch of a ticket cannot be changed")

            updated = await uow.tickets.update_fields(
                ticket_id,
                ticket_date=fields.ticket_date or ticket.ticket_date,
                ticket_time=fields.ticket_time if fields.ticket_time is not None else ticket.ticket_time,
                subject=self._clean_subject(fields.subject) if fields.subject is not None else ticket.subject,
                description=(
                    _clean_optional(fields.description) if fields.description is not None else ticket.description
                ),
            )
            if updated is None:
                raise NotFoundError(f"Ticket {ticket_id} not found")

        await self.audit.record_for(
            actor,
            module="tickets",
            action="UPDATE",
            entity="ticket",
            entity_id=ticket_id,
            description=f"User {actor.user_id} updated ticket #{ticket_id} (no state change)",
        )
        return updated

    async def list_attachments(self, ticket_id: int, actor: Actor) -> list[TicketAttachment]:
        async with self.database.transaction() as uow:
            ticket = await uow.tickets.get(ticket_id)
            if ticket is None:
                raise NotFoundError(f"Ticket {ticket_id} not found")
            self._ensure_can_view(ticket, actor)
            return await uow.attachments.list_for_ticket(ticket_id)

    async def get_attachment(self, attachment_id: int, actor: Actor) -> TicketAttachment:
        async with self.database.transaction() as uow:
            attachment = await uow.attachments.get(attachment_id)
            if attachment is None:
                raise NotFoundError(f"Attachment {attachment_id} not found")
            ticket = await uow.tickets.get(attachment.ticket_id)
        if ticket is None:
            raise NotFoundError(f"Attachment {attachment_id} not found")
        self._ensure_can_view(ticket, actor)
        return attachment

    async def open_attachment(self, attachment_id: int, actor: Actor) -> tuple[TicketAttachment, Path]:
        attachment = await self.get_attachment(attachment_id, actor)
        path = self.files.resolve(attachment.storage_path)
        if not path.is_file():
            raise NotFoundError(f"File for attachment {attachment_id} is missing")
        return attachment, path

    async def delete_attachment(self, attachment_id: int, actor: Actor) -> None:
        async with self.database.transaction() as uow:
            attachment = await uow.attachments.get(attachment_id)
            if attachment is None:
                raise NotFoundError(f"Attachment {attachment_id} not found")
            ticket = await uow.tickets.get_for_update(attachment.ticket_id)
            if ticket is None:
                raise NotFoundError(f"Attachment {attachment_id} not found")
            self._ensure_can_modify(ticket, actor)
            await uow.attachments.delete(attachment_id)

        await self.files.delete(attachment.storage_path)
        await self.audit.record_for(
            actor,
            module="ticket_attachments",
            action="DELETE",
            entity="ticket_attachment",
            entity_id=attachment_id,
            description=(
                f'User {actor.user_id} deleted attachment "{attachment.original_name}" '
                f"from ticket #{attachment.ticket_id}"
            ),
        )

    async def _fan_out_safely(self, ticket: Ticket, uow: "UnitOfWork") -> FanoutResult | None:
        # A fan-out failure must never cost the ticket mutation.
        try:
            async with uow.savepoint():
                return await self.fanout.fan_out_ticket_created(ticket, uow)
        except Exception:
            logger.exception("Notification fan-out failed for ticket %s", ticket.id)
            return None

    def _after_fanout(self, ticket: Ticket, fanout: FanoutResult | None) -> None:
        if fanout is None:
            return
        self.fanout.record_metrics(fanout)
        if fanout.pending_emails == 0:
            return
        ticket_id = ticket.id
        self.tasks.schedule(
            f"deliver-ticket-emails-{ticket_id}",
            lambda: self.delivery.deliver_pending_for_ticket(ticket_id),
        )

    def check_upload_limits(self, files: Sequence[tuple[str | None, int | None]]) -> None:
        """Check a batch of ``(filename, size)`` pairs against the upload limits.

        Callers receiving a request body run this before reading any file into
        memory; an unknown size is checked again once the data is read.
        """

        if not files:
            raise ValidationError("At least one file is required")
        if len(files) > self.max_files_per_upload:
            raise ValidationError(f"At most {self.max_files_per_upload} files can be uploaded at once")
        for filename, size in files:
            if size is not None and size > self.max_upload_bytes:
                raise ValidationError(f'File "{filename}" exceeds the maximum size of {self.max_upload_bytes} bytes')

    def _validate_upload(self, files: Sequence[UploadedFile]) -> None:
        self.check_upload_limits([(upload.filename, upload.size) for upload in files])

    @staticmethod
    def _clean_subject(subject: str | None) -> str:
        clean = (subject or "").strip()
        if not clean:
            raise ValidationError("subject is required")
        if len(clean) > SUBJECT_MAX_LENGTH:
            raise ValidationError(f"subject must be at most {SUBJECT_MAX_LENGTH} characters")
        return clean

    @staticmethod
    def _ensure_can_view(ticket: Ticket, actor: Actor) -> None:
        if actor.role is Role.OPERATOR and ticket.creator_id != actor.user_id:
            raise PermissionDeniedError("Operators can only access tickets they created")

    @staticmethod
    def _ensure_can_modify(ticket: Ticket, actor: Actor) -> None:
        if actor.role is Role.OPERATOR and ticket.creator_id != actor.user_id:
            raise PermissionDeniedError("Operators can only modify tickets they created")
        if ticket.status not in EDITABLE_STATUSES:
            raise StateConflictError(f"Ticket in state {ticket.status.value!r} can no longer be modified")


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None
