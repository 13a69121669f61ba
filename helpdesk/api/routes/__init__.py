"""Route modules exposed by the API package."""

from . import attachments, metrics, notifications, ping, tickets

__all__ = ["attachments", "metrics", "notifications", "ping", "tickets"]
