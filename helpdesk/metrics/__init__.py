"""Service metrics."""
from __future__ import annotations

from dataclasses import dataclass

from .base import CounterMetric, DistributionMetric
from .exporters import PrometheusExporter
from .registry import MetricsRegistry


@dataclass(slots=True)
class HelpdeskMetrics:
    """Named metrics recorded by the ticket and notification services."""

    registry: MetricsRegistry
    tickets_created: CounterMetric
    ticket_activations: CounterMetric
    state_changes: CounterMetric
    notifications_created: CounterMetric
    email_deliveries: CounterMetric
    email_delivery_seconds: DistributionMetric

    @classmethod
    def create(cls, registry: MetricsRegistry | None = None) -> "HelpdeskMetrics":
        registry = registry or MetricsRegistry()
        return cls(
            registry=registry,
            tickets_created=registry.counter(
                "helpdesk_tickets_created_total",
                description="Tickets created, by initial state",
                label_names=("initial_state",),
            ),
            ticket_activations=registry.counter(
                "helpdesk_ticket_activations_total",
                description="Tickets released by the attachment gate",
            ),
            state_changes=registry.counter(
                "helpdesk_ticket_state_changes_total",
                description="Manual ticket state changes, by target state",
                label_names=("to_state",),
            ),
            notifications_created=registry.counter(
                "helpdesk_notifications_created_total",
                description="Notification rows created by fan-out, by channel",
                label_names=("channel",),
            ),
            email_deliveries=registry.counter(
                "helpdesk_email_deliveries_total",
                description="Email delivery attempts, by outcome",
                label_names=("outcome",),
            ),
            email_delivery_seconds=registry.distribution(
                "helpdesk_email_delivery_seconds",
                description="Time spent sending one notification email",
            ),
        )


__all__ = ["HelpdeskMetrics", "MetricsRegistry", "PrometheusExporter"]
