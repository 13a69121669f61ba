"""Notification fan-out, delivery tracking and inbox queries."""

from .models import DeliveryState, Notification, NotificationChannel, NotificationSummary

__all__ = ["DeliveryState", "Notification", "NotificationChannel", "NotificationSummary"]
