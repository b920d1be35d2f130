"""structlog configuration for the relay."""

import logging

import structlog
from structlog.typing import Processor

REDACTED = "[redacted]"
_SENSITIVE_FIELDS = frozenset({"client_secret", "code", "code_verifier"})


def configure_logging(*, debug: bool = False, log_format: str = "json") -> None:
    """Configure structlog once at application startup.

    ``log_format`` selects JSON lines (``"json"``) or the coloured development
    renderer (``"console"``). ``debug`` lowers the level to DEBUG, which
    enables the request/response detail events.
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "console":
        final_processor: Processor = structlog.dev.ConsoleRenderer(colors=True)
    else:
        final_processor = structlog.processors.JSONRenderer()

    level = logging.DEBUG if debug else logging.INFO
    structlog.configure(
        processors=[*shared_processors, final_processor],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def redact_fields(fields: dict[str, object]) -> dict[str, object]:
    """Copy request fields for debug logging with credentials masked."""
    return {
        k: (REDACTED if k in _SENSITIVE_FIELDS and v else v)
        for k, v in fields.items()
    }
