"""
structlog setup for docspine processes.

``configure_logging()`` is called once by the CLI. Library callers of
``build_docs`` keep whatever logging their host application configured.

Environment:
    DOCSPINE_LOG_LEVEL   DEBUG | INFO | WARNING | ERROR (default INFO)
    DOCSPINE_LOG_FORMAT  console | json (default console)
"""

import logging
import os
import sys
from typing import Literal

import structlog
from structlog.types import Processor

from docspine.framework.logging.context import add_context_processor

_configured = False

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=sys.stderr.isatty(),
        exception_formatter=structlog.dev.plain_traceback,
    )


def configure_logging(
    level: LogLevel | None = None,
    format: LogFormat | None = None,
    force: bool = False,
) -> None:
    """
    Route structlog through stdlib logging on stderr.

    Explicit arguments win over the environment. Repeated calls do nothing
    unless ``force`` is set.
    """
    global _configured
    if _configured and not force:
        return

    log_level = getattr(logging, (level or os.environ.get("DOCSPINE_LOG_LEVEL", "INFO")).upper())
    log_format = (format or os.environ.get("DOCSPINE_LOG_FORMAT", "console")).lower()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            add_context_processor,
            structlog.processors.format_exc_info,
            _renderer(log_format),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level, force=True)
    logging.getLogger("docspine").setLevel(log_level)
    _configured = True


def is_configured() -> bool:
    return _configured
