"""Logging and tracing setup for the helpdesk service.

Every module logs through ``logging.getLogger(__name__)``, so levels can be
tuned per subsystem: the ``LOG_LEVELS`` setting, for example
``helpdesk.notifications.delivery=DEBUG,helpdesk.audit=WARNING``, is applied
on top of :data:`DEFAULT_LOGGER_LEVELS`.
"""

from __future__ import annotations

import logging
from logging.config import dictConfig

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from helpdesk.core.config import Settings

APP_LOGGER = "helpdesk"

DEFAULT_LOGGER_LEVELS: dict[str, str] = {
    "asyncpg": "WARNING",
    "httpx": "WARNING",
    "httpcore": "WARNING",
    # Delivery outcomes and audit write failures.
    "helpdesk.notifications.delivery": "INFO",
    "helpdesk.audit": "INFO",
}

_provider: TracerProvider | None = None


def parse_key_value_list(raw: str | None) -> dict[str, str]:
    """Parse ``a=1, b = 2`` into ``{"a": "1", "b": "2"}``; malformed items are skipped."""

    if not raw:
        return {}
    pairs: dict[str, str] = {}
    for item in raw.split(","):
        key, sep, value = item.partition("=")
        if sep and key.strip():
            pairs[key.strip()] = value.strip()
    return pairs


def level_number(name: str | None, default: int = logging.INFO) -> int:
    if not name:
        return default
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else default


def logger_levels(settings: Settings) -> dict[str, int]:
    """Resolve the per-logger levels; unknown level names fall back to the application level."""

    app_level = level_number(settings.log_level)
    merged = {**DEFAULT_LOGGER_LEVELS, **parse_key_value_list(settings.log_levels)}
    return {name: level_number(value, app_level) for name, value in merged.items()}


def configure_logging(settings: Settings) -> logging.Logger:
    app_level = level_number(settings.log_level)
    loggers = {name: {"level": level} for name, level in logger_levels(settings).items()}
    loggers.setdefault(APP_LOGGER, {"level": app_level})
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"helpdesk": {"format": settings.log_format}},
            "handlers": {
                "console": {"class": "logging.StreamHandler", "formatter": "helpdesk"},
            },
            "root": {"handlers": ["console"], "level": app_level},
            "loggers": loggers,
        }
    )
    return logging.getLogger(APP_LOGGER)


def build_span_exporter(settings: Settings) -> OTLPSpanExporter:
    options: dict[str, object] = {}
    if settings.otel_exporter_otlp_endpoint:
        options["endpoint"] = settings.otel_exporter_otlp_endpoint
    headers = parse_key_value_list(settings.otel_exporter_otlp_headers)
    if headers:
        options["headers"] = headers
    return OTLPSpanExporter(**options)


def init_tracer(settings: Settings) -> TracerProvider | None:
    """Install a global tracer provider exporting spans over OTLP.

    Returns ``None`` when tracing is disabled or a provider is already installed.
    """

    global _provider

    if _provider is not None or not settings.otel_enabled:
        return None
    provider = TracerProvider(resource=Resource.create({"service.name": settings.otel_service_name}))
    provider.add_span_processor(BatchSpanProcessor(build_span_exporter(settings)))
    trace.set_tracer_provider(provider)
    _provider = provider
    return provider


def shutdown_tracer(provider: TracerProvider | None) -> None:
    global _provider

    if provider is None:
        return
    provider.shutdown()
    if provider is _provider:
        _provider = None
