"""
structlog setup for the link flow client.

linkflow events and stdlib records from httpx go through one handler, and
both carry the link_attempt_id of the attempt in progress, if any.
"""

import logging
from typing import Any, List, Optional

import structlog

from linkflow.core.config import settings

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_ENVIRONMENT_LEVELS = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}

_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")


class AttemptIdFilter(logging.Filter):
    """Copy the bound link_attempt_id onto stdlib records."""

    def filter(self, record: logging.LogRecord) -> bool:
        bound = structlog.contextvars.get_contextvars()
        record.link_attempt_id = bound.get("link_attempt_id", "")
        return True


def resolve_log_level(log_level: Optional[str] = None, environment: Optional[str] = None) -> str:
    """An explicit level wins; otherwise the environment picks one."""
    if log_level is None:
        log_level = settings.log_level
    requested = (log_level or "").upper()
    if requested in _LEVELS:
        return requested
    return _ENVIRONMENT_LEVELS.get(environment or settings.environment, "INFO")


def _pre_chain() -> List[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _renderer(environment: str):
    if environment == "production":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def configure_logging(environment: Optional[str] = None, log_level: Optional[str] = None) -> None:
    """
    Route structlog through stdlib logging and install the root handler.

    Args:
        environment: Overrides settings.environment (renderer and default level)
        log_level: Overrides settings.log_level
    """
    environment = environment or settings.environment
    pre_chain = _pre_chain()

    structlog.configure(
        processors=pre_chain + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(environment),
            foreign_pre_chain=pre_chain,
        )
    )
    handler.addFilter(AttemptIdFilter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(resolve_log_level(log_level, environment))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
