"""
Logging Configuration for the Traffic Flow Dashboard API

Provides structured logging with JSON or console output. Service-account
secrets are masked before rendering, and the GA4 property / BigQuery dataset
of a request are bound to every log line it produces.
"""

import logging
import sys
from typing import Any, Dict, Optional

import structlog
from structlog.processors import JSONRenderer, TimeStamper
from structlog.stdlib import add_log_level, ProcessorFormatter

from trafficflow.config.settings import get_settings

# Fields of an uploaded key (and the token standing in for it) never reach a log sink
REDACTED_FIELDS = frozenset({"private_key", "private_key_id", "token", "key"})
REDACTED = "***"


def redact_credentials(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """structlog processor masking service-account secrets"""
    for name in REDACTED_FIELDS.intersection(event_dict):
        if event_dict[name] is not None:
            event_dict[name] = REDACTED
    return event_dict


def bind_property_context(property_id: str, dataset_id: Optional[str] = None) -> None:
    """Attach the analytics property (and export dataset) to the current request's logs"""
    context = {"property_id": property_id}
    if dataset_id:
        context["dataset_id"] = dataset_id
    structlog.contextvars.bind_contextvars(**context)


def configure_logging(log_level: Optional[str] = None) -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR)
    """
    settings = get_settings()
    level = log_level or settings.monitoring.log_level

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    # Common processors for structlog and foreign (stdlib) records
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_log_level,
        TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        redact_credentials,
    ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if settings.monitoring.log_format == "json":
        renderer = JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    formatter = ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    for logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        logger = logging.getLogger(logger_name)
        logger.handlers = []
        logger.addHandler(console_handler)
        logger.setLevel(numeric_level)

    # The Google client libraries are chatty at DEBUG
    for logger_name in ["google", "urllib3", "grpc"]:
        logging.getLogger(logger_name).setLevel(max(numeric_level, logging.INFO))

    log = structlog.get_logger(__name__)
    log.info(
        "Logging configured",
        level=level,
        format=settings.monitoring.log_format,
        environment=settings.app_env,
    )
