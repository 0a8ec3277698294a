"""Base module for the Lustre quota backend.

Holds the structlog setup shared by all components. Request-scoped values
(cluster, application id) are bound with `request_context` and merged into
every log entry emitted while the request is handled.
"""

import contextlib
import logging
import sys
from collections.abc import Iterator
from typing import Any

import structlog

_SHARED_PROCESSORS: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
]


def _configure_structlog() -> None:
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_SHARED_PROCESSORS,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


_configure_structlog()

logger = structlog.get_logger(__name__)


@contextlib.contextmanager
def request_context(**values: Any) -> Iterator[None]:
    """Bind non-empty values to log entries emitted inside the block.

    Previous bindings are restored on exit, so contexts nest.
    """
    bound = {key: value for key, value in values.items() if value not in (None, "")}
    with structlog.contextvars.bound_contextvars(**bound):
        yield


def configure_logger(log_level: str = "INFO") -> None:
    """Route stdlib and structlog records to stderr as JSON lines.

    stdout is left to command results.

    Args:
        log_level: Logging level as a string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    _configure_structlog()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=_SHARED_PROCESSORS,
        )
    )
    handler.setLevel(level)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
