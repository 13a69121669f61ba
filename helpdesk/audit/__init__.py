"""Best-effort activity log."""

from .repository import ActivityLogEntry
from .sink import AuditLogSink

__all__ = ["ActivityLogEntry", "AuditLogSink"]
