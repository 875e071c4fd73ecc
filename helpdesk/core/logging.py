"""Logging and tracing setup for the helpdesk API."""

from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from helpdesk.core.config import Settings

APP_LOGGER = "helpdesk"

_tracer_provider: TracerProvider | None = None


def resolve_log_level(settings: Settings) -> int:
    """Pick the effective level; tests only surface errors."""

    if settings.environment == "test":
        return logging.ERROR
    return getattr(logging, settings.log_level.upper(), logging.INFO)


def build_logging_config(settings: Settings) -> dict[str, Any]:
    level = resolve_log_level(settings)
    quiet = max(level, logging.WARNING)
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"plain": {"format": settings.log_format}},
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "plain", "level": level},
        },
        "loggers": {
            APP_LOGGER: {"level": level},
            "uvicorn.access": {"level": quiet if settings.is_production else level},
            # SQL echo is noisy; only warnings from the engine reach the console.
            "sqlalchemy.engine": {"level": quiet},
        },
        "root": {"handlers": ["console"], "level": level},
    }


def configure_logging(settings: Settings) -> logging.Logger:
    dictConfig(build_logging_config(settings))
    logger = logging.getLogger(APP_LOGGER)
    logger.debug("Logging ready for %s (%s)", settings.app_name, settings.environment)
    return logger


def parse_otlp_headers(raw: str | None) -> dict[str, str]:
    pairs = (item.partition("=") for item in (raw or "").split(","))
    return {key.strip(): value.strip() for key, sep, value in pairs if sep and key.strip()}


def init_tracer(settings: Settings) -> TracerProvider | None:
    """Register an OTLP tracer provider when tracing is enabled."""

    global _tracer_provider

    if not settings.otel_enabled or _tracer_provider is not None:
        return None

    options: dict[str, Any] = {"headers": parse_otlp_headers(settings.otel_exporter_otlp_headers) or None}
    if settings.otel_exporter_otlp_endpoint:
        options["endpoint"] = settings.otel_exporter_otlp_endpoint

    provider = TracerProvider(resource=Resource.create({"service.name": settings.otel_service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(**options)))
    trace.set_tracer_provider(provider)
    _tracer_provider = provider
    logging.getLogger(APP_LOGGER).info("Tracing enabled for %s", settings.otel_service_name)
    return provider


def shutdown_tracer(provider: TracerProvider | None) -> None:
    global _tracer_provider

    if provider is not None:
        provider.shutdown()
        _tracer_provider = None
