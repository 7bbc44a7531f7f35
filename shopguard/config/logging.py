"""
Structured Logging Configuration

structlog front end routed through the standard library. With
``LOG_FORMAT=json`` the final record is rendered by python-json-logger, one
JSON object per line, suitable for log aggregation; ``console`` uses
structlog's coloured development renderer.

Processor chain:
    add_request_context   method/path/remote address of the current request
    filter_sensitive_data masks token, cookie, secret, password, authorization
    level, logger name, ISO timestamp, stack and exception formatting
"""

import logging
import sys
from typing import Any, Dict, List, Mapping

import structlog
from pythonjsonlogger.json import JsonFormatter
from structlog.types import EventDict, WrappedLogger

from shopguard.utils.exceptions import ConfigurationError

SENSITIVE_FIELDS = ("password", "secret", "token", "cookie", "authorization")

MASK = "***"


class ServiceJSONFormatter(JsonFormatter):
    """JSON formatter that stamps every record with the service name."""

    def __init__(self, *args, **kwargs):
        super().__init__("%(asctime)s %(name)s %(levelname)s %(message)s", *args, **kwargs)

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord,
                   message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["service"] = "shopguard"


def add_request_context(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add Flask request context to log entries when available.

    Args:
        logger: Wrapped logger instance
        method_name: Logging method name
        event_dict: Event dictionary to enhance

    Returns:
        Enhanced event dictionary with request context
    """
    from flask import has_request_context, request

    if has_request_context():
        event_dict.setdefault("method", request.method)
        event_dict.setdefault("path", request.path)
        event_dict.setdefault("remote_addr", request.remote_addr)
    return event_dict


def _mask_value(value: Any) -> Any:
    if isinstance(value, str) and len(value) > 8:
        return f"{value[:2]}{MASK}"
    return MASK


def _filter_mapping(data: Mapping) -> Dict[Any, Any]:
    filtered = {}
    for key, value in data.items():
        if isinstance(key, str) and any(field in key.lower() for field in SENSITIVE_FIELDS):
            filtered[key] = _mask_value(value)
        elif isinstance(value, Mapping):
            filtered[key] = _filter_mapping(value)
        else:
            filtered[key] = value
    return filtered


def filter_sensitive_data(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask values whose key names a credential, recursing into nested dicts."""
    return _filter_mapping(event_dict)


class LoggingConfiguration:
    """
    Installs the structlog and stdlib logging configuration for the app.

    ``config`` is any mapping holding ``LOG_LEVEL`` and ``LOG_FORMAT``
    (a Flask ``app.config`` works); ``LOG_CACHE_LOGGERS`` is optional.
    """

    def __init__(self, config: Mapping):
        self.config = config
        self.log_level = str(config.get("LOG_LEVEL", "INFO")).upper()
        self.log_format = str(config.get("LOG_FORMAT", "json")).lower()
        self.cache_loggers = bool(config.get("LOG_CACHE_LOGGERS", True))
        self._validate_configuration()

    def _validate_configuration(self) -> None:
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ConfigurationError(f"Unknown LOG_LEVEL '{self.log_level}'")
        if self.log_format not in ("json", "console"):
            raise ConfigurationError(f"Unknown LOG_FORMAT '{self.log_format}'")

    @property
    def is_json(self) -> bool:
        return self.log_format == "json"

    def configure_structured_logging(self) -> None:
        """Configure stdlib handlers, then the structlog processor chain."""
        self._configure_stdlib_logging()

        processors: List[Any] = [
            structlog.stdlib.filter_by_level,
            add_request_context,
            filter_sensitive_data,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
        ]

        if self.is_json:
            processors.append(structlog.stdlib.render_to_log_kwargs)
        else:
            processors.append(structlog.dev.ConsoleRenderer())

        structlog.configure(
            processors=processors,
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=self.cache_loggers,
        )

    def _configure_stdlib_logging(self) -> None:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(self._create_formatter())

        logging.basicConfig(
            level=getattr(logging, self.log_level),
            handlers=[handler],
            force=True,
        )

        # werkzeug logs every request line at INFO
        logging.getLogger("werkzeug").setLevel(logging.WARNING)

    def _create_formatter(self) -> logging.Formatter:
        if self.is_json:
            return ServiceJSONFormatter()
        return logging.Formatter("%(message)s")


def configure_logging(config: Mapping) -> LoggingConfiguration:
    """
    Configure application logging from a settings mapping.

    Raises:
        ConfigurationError: When LOG_LEVEL or LOG_FORMAT is not recognised
    """
    logging_config = LoggingConfiguration(config)
    logging_config.configure_structured_logging()
    structlog.get_logger(__name__).debug(
        "Logging configured", log_level=logging_config.log_level, log_format=logging_config.log_format
    )
    return logging_config


__all__ = [
    "LoggingConfiguration",
    "ServiceJSONFormatter",
    "add_request_context",
    "filter_sensitive_data",
    "configure_logging",
]
