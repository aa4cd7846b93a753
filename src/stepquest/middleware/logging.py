"""Structured logging configuration with structlog."""

import logging

import structlog

from stepquest.config import Settings

SERVICE_NAME = "stepquest"


def service_context(settings: Settings, component: str) -> structlog.types.Processor:
    """Stamp every event with the service, the process role and the environment.

    Values bound per request or per job win over these.
    """

    def add_service_context(
        logger: structlog.types.WrappedLogger, method_name: str, event_dict: structlog.types.EventDict
    ) -> structlog.types.EventDict:
        event_dict.setdefault("service", SERVICE_NAME)
        event_dict.setdefault("component", component)
        event_dict.setdefault("environment", settings.environment)
        event_dict.setdefault("tz", settings.timezone)
        return event_dict

    return add_service_context


def setup_logging(settings: Settings, component: str = "api") -> None:
    """Configure structlog for the API (``component="api"``) or the scheduler (``"worker"``)."""
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            service_context(settings, component),
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
