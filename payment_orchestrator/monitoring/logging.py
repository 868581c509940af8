"""
Structured logging configuration.

structlog renders events as JSON; stdlib records (httpx, stripe, uvicorn) go
through python-json-logger. Both paths scrub credentials and raw webhook
bodies before anything is written.
"""
import logging
import sys
from typing import Any, Dict, List, Optional

import structlog
from pythonjsonlogger import jsonlogger

from ..config import Settings, get_settings

REDACTED = "***REDACTED***"

SENSITIVE_KEYS = frozenset(
    {
        "access_token",
        "api_key",
        "authorization",
        "client_secret",
        "password",
        "payload",
        "paypal_client_secret",
        "secret",
        "stripe_secret_key",
        "stripe_webhook_secret",
        "webhook_secret",
    }
)


def scrub_sensitive_data(event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Replace values of credential and raw-body keys with a marker."""
    for key in event_dict:
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
    return event_dict


def redact_sensitive(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    return scrub_sensitive_data(event_dict)


def _app_context(settings: Settings) -> Any:
    def add_app_context(
        logger: Any, method_name: str, event_dict: Dict[str, Any]
    ) -> Dict[str, Any]:
        event_dict["app_name"] = settings.app_name
        event_dict["app_env"] = settings.app_env
        return event_dict

    return add_app_context


class ScrubbingJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter for stdlib records that applies the same scrubbing."""

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        scrub_sensitive_data(log_record)


def build_processors(settings: Settings) -> List[Any]:
    """structlog processor chain, ending in the JSON renderer."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        _app_context(settings),
        redact_sensitive,
        structlog.processors.JSONRenderer(),
    ]


def setup_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Request ids bound with ``structlog.contextvars.bind_contextvars`` are
    merged into every event.
    """
    settings = settings or get_settings()

    structlog.configure(
        processors=build_processors(settings),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level))
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        ScrubbingJsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"asctime": "@timestamp", "levelname": "level", "name": "logger"},
        )
    )
    root_logger.addHandler(handler)

    # Provider SDKs log request lines at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("stripe").setLevel(logging.WARNING)

    structlog.get_logger(__name__).info(
        "logging_configured",
        log_level=settings.log_level,
        app_env=settings.app_env,
    )
