"""Message templates for the ticket-created notifications."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from html import escape
from zoneinfo import ZoneInfo

from helpdesk.directory.models import Branch, UserAccount
from helpdesk.mail.transport import MailMessage
from helpdesk.tickets.models import Ticket

from .models import NotificationChannel

CHANNEL_LABELS: dict[NotificationChannel, str] = {
    NotificationChannel.INTERNAL: "interno",
    NotificationChannel.EMAIL: "email",
    NotificationChannel.OTHER: "otro",
}

_DATETIME_FORMAT = "%d/%m/%Y, %H:%M:%S"


@dataclass(slots=True)
class TicketContext:
    """Everything the templates need to describe a ticket."""

    ticket: Ticket
    operator: UserAccount | None
    branch: Branch | None

    @property
    def operator_name(self) -> str:
        return self.operator.name if self.operator and self.operator.name else "Operador"

    @property
    def branch_label(self) -> str:
        name = self.branch.name if self.branch and self.branch.name else "Sucursal"
        if self.branch and self.branch.city:
            return f"{name} ({self.branch.city})"
        return name

    @property
    def subject_text(self) -> str:
        return self.ticket.subject or "(sin asunto)"


def format_local(moment: datetime | None, tz_name: str) -> str:
    if moment is None:
        return ""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(ZoneInfo(tz_name)).strftime(_DATETIME_FORMAT)


def ticket_created_subject(ticket: Ticket) -> str:
    return f"Nuevo ticket #{ticket.id} creado"


def ticket_created_body(context: TicketContext, channel: NotificationChannel, tz_name: str) -> str:
    ticket = context.ticket
    return (
        f"El operador {context.operator_name} creó el ticket #{ticket.id} en la sucursal {context.branch_label}, "
        f'con estado "{ticket.status.value}" y asunto "{context.subject_text}".\n\n'
        f"Creada: {format_local(ticket.created_at, tz_name)}\n"
        f"Canal: {CHANNEL_LABELS[channel]}\n"
        f"Ticket #{ticket.id}"
    )


def ticket_url(frontend_base_url: str, ticket_id: int) -> str:
    return f"{frontend_base_url.rstrip('/')}/tickets/{ticket_id}"


def ticket_created_email(
    context: TicketContext,
    recipient: UserAccount,
    *,
    frontend_base_url: str,
    tz_name: str,
    idempotency_key: str | None = None,
) -> MailMessage:
    """Render the email announcing a new ticket to ``recipient``."""

    ticket = context.ticket
    url = ticket_url(frontend_base_url, ticket.id)
    created = format_local(ticket.created_at, tz_name)
    state = ticket.status.value

    text = "\n".join(
        [
            f"Nuevo ticket #{ticket.id} creado",
            "",
            f"El operador {context.operator_name} creó el ticket #{ticket.id} en la sucursal {context.branch_label},",
            f'con estado "{state}" y asunto "{context.subject_text}".',
            "",
            f"Creado: {created}",
            f"Enlace: {url}",
            "",
            "Este es un mensaje automático del sistema de tickets.",
        ]
    )

    greeting = f"Hola {escape(recipient.name)}," if recipient.name else "Hola,"
    operator_email = ""
    if context.operator and context.operator.email:
        operator_email = f' <span style="color:#6b7280;">({escape(context.operator.email)})</span>'
    html = f"""
<body style="margin:0;padding:24px;background-color:#f3f4f6;font-family:Helvetica,Arial,sans-serif;">
  <table width="100%" cellpadding="0" cellspacing="0" role="presentation"
         style="max-width:640px;margin:0 auto;background-color:#ffffff;border:1px solid #e5e7eb;border-radius:12px;">
    <tr>
      <td style="padding:16px 24px;background-color:#ef4444;color:#ffffff;font-size:18px;font-weight:600;">
        Ticket nuevo #{ticket.id}
      </td>
    </tr>
    <tr>
      <td style="padding:22px 24px;color:#111827;">
        <p style="margin:0 0 10px 0;font-size:16px;">{greeting}</p>
        <p style="margin:0 0 16px 0;font-size:14px;color:#4b5563;">Se registró un nuevo ticket en la mesa de ayuda.</p>
        <table width="100%" cellpadding="4" cellspacing="0" role="presentation" style="font-size:13px;">
          <tr><td style="color:#6b7280;width:32%;">Estado</td><td>{escape(state)}</td></tr>
          <tr><td style="color:#6b7280;">Sucursal</td><td>{escape(context.branch_label)}</td></tr>
          <tr><td style="color:#6b7280;">Operador</td><td>{escape(context.operator_name)}{operator_email}</td></tr>
          <tr><td style="color:#6b7280;">Fecha/Hora</td><td>{escape(created)}</td></tr>
          <tr><td style="color:#6b7280;">Asunto</td><td>{escape(context.subject_text)}</td></tr>
        </table>
        <p style="margin:18px 0;text-align:center;">
          <a href="{escape(url)}" style="padding:11px 24px;border-radius:999px;background-color:#dc2626;color:#ffffff;text-decoration:none;">
            Ver ticket #{ticket.id}
          </a>
        </p>
        <p style="font-size:12px;color:#6b7280;text-align:center;">
          Si el botón no funciona, copiá y pegá este enlace en tu navegador:<br/>{escape(url)}
        </p>
      </td>
    </tr>
  </table>
</body>
"""

    return MailMessage(
        to=(recipient.email or "").strip(),
        subject=f"Nuevo ticket #{ticket.id} - {context.subject_text}",
        html=html,
        text=text,
        idempotency_key=idempotency_key,
    )
