"""Outbound mail transports."""

from .transport import HttpMailTransport, LoggingMailTransport, MailMessage, MailTransport, MailTransportError

__all__ = ["HttpMailTransport", "LoggingMailTransport", "MailMessage", "MailTransport", "MailTransportError"]
