"""
Docspine Logging - Structured, build-aware logging.

This module provides:
- Structured logging with structlog
- Build context propagation via contextvars
- Step timing with nested spans

Usage:
    from docspine.framework.logging import configure_logging, get_logger, log_step, push_context

    configure_logging()
    log = get_logger(__name__)

    token = push_context(build_id=new_build_id())
    with log_step("builder.stage", stage="expand"):
        expand(document)
    token.restore()
"""

from docspine.framework.logging.config import configure_logging, is_configured
from docspine.framework.logging.context import (
    LogContext,
    clear_context,
    get_context,
    get_logger,
    new_build_id,
    push_context,
)
from docspine.framework.logging.timing import StepTimer, log_step

__all__ = [
    # Configuration
    "configure_logging",
    "is_configured",
    # Context
    "get_logger",
    "get_context",
    "clear_context",
    "push_context",
    "new_build_id",
    "LogContext",
    # Timing
    "log_step",
    "StepTimer",
]
