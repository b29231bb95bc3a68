"""
Build context carried by every log entry.

The builder pushes ``build_id``, the pipeline pushes ``stage``, the expander
and checker push ``file``; ``log_step`` pushes its span. A structlog processor
copies whatever is active into each event, so helpers deep in a stage log
with plain ``get_logger(__name__)`` and still say where they are.
"""

import uuid
from contextvars import ContextVar, Token
from dataclasses import asdict, dataclass, fields, replace
from typing import Any

import structlog


def new_build_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass(frozen=True)
class LogContext:
    build_id: str | None = None
    stage: str | None = None
    file: str | None = None
    span_id: str | None = None
    parent_span_id: str | None = None
    step: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    def merge(self, **values: Any) -> "LogContext":
        """Copy with ``values`` applied; ``None`` and unknown keys are dropped."""
        known = {f.name for f in fields(self)}
        return replace(self, **{k: v for k, v in values.items() if v is not None and k in known})


_EMPTY = LogContext()
_current: ContextVar[LogContext] = ContextVar("docspine_log_context", default=_EMPTY)


def get_context() -> LogContext:
    return _current.get()


def clear_context() -> None:
    _current.set(_EMPTY)


class ContextToken:
    """Handle returned by ``push_context``; ``restore()`` undoes the push."""

    def __init__(self, token: Token):
        self._token = token

    def restore(self) -> None:
        _current.reset(self._token)


def push_context(**values: Any) -> ContextToken:
    """
    Layer ``values`` over the active context until ``restore()`` is called.

    Usage:
        token = push_context(file="manual/intro.md")
        try:
            expand(file)
        finally:
            token.restore()
    """
    return ContextToken(_current.set(get_context().merge(**values)))


def add_context_processor(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Structlog processor: fill in context keys the event did not set itself."""
    for key, value in get_context().to_dict().items():
        event_dict.setdefault(key, value)
    return event_dict


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)
