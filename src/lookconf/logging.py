"""Structured logging configuration using structlog.

LookConf only emits events; nothing is configured at import time. Applications call
``setup_logging`` (or configure structlog themselves) to decide where events go.
"""

import sys
from collections.abc import MutableMapping
from typing import Any, cast

import structlog
from structlog.types import EventDict, WrappedLogger

# Key fragments whose values must never reach a log sink
SENSITIVE_KEYS: frozenset[str] = frozenset({
    "password",
    "passwd",
    "secret",
    "token",
    "api_key",
    "apikey",
    "credential",
    "private_key",
})


class SecretRedactor:
    """Processor that redacts configuration secrets from log events.

    Any event key containing one of ``SENSITIVE_KEYS`` is replaced, as are the values of
    ``value`` / ``expression`` / ``result`` entries whose ``key`` or ``variable`` names a sensitive property.
    """

    def __call__(
        self,
        _logger: WrappedLogger,
        _method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        """Redact secrets from event dictionary."""
        return cast(EventDict, self._redact_dict(event_dict))

    def _is_sensitive(self, name: Any) -> bool:
        lowered = str(name).lower()
        return any(fragment in lowered for fragment in SENSITIVE_KEYS)

    def _redact_dict(self, data: MutableMapping[str, Any]) -> dict[str, Any]:
        """Recursively redact secrets from a dictionary."""
        # A property name that looks sensitive taints the values logged alongside it
        tainted = self._is_sensitive(data.get("key", "")) or self._is_sensitive(data.get("variable", ""))

        result: dict[str, Any] = {}
        for key, value in data.items():
            if self._is_sensitive(key) or (tainted and key in ("value", "expression", "result")):
                result[key] = "[REDACTED]"
            elif isinstance(value, dict):
                result[key] = self._redact_dict(value)
            else:
                result[key] = value
        return result


def setup_logging(
    level: str = "INFO",
    format: str = "console",
    redact_secrets: bool = True,
) -> None:
    """Configure structured logging.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR)
        format: Output format - "json" for production, "console" for development
        redact_secrets: Whether to redact secret-looking values from logs
    """
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if redact_secrets:
        processors.append(SecretRedactor())

    if format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    level_map = {
        "DEBUG": 10,
        "INFO": 20,
        "WARNING": 30,
        "ERROR": 40,
        "CRITICAL": 50,
    }
    level_num = level_map.get(level.upper(), 20)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance bound to the given name.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        A bound structlog logger
    """
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
