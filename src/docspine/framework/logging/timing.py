"""
Step timing for build logs.

Every timed step emits ``<event>.start`` at DEBUG and ``<event>.end`` with its
``duration_ms``; a step that raises emits ``<event>.error`` instead and the
exception propagates. Steps nest: the active step's ``span_id`` becomes the
``parent_span_id`` of any step opened inside it.
"""

import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from docspine.framework.logging.context import get_context, get_logger, push_context


@dataclass
class StepTimer:
    """Clock and log fields for one ``log_step`` block."""

    step: str
    parent_span_id: str | None = None
    fields: dict[str, Any] = field(default_factory=dict)
    span_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    started_at: float = field(default_factory=time.perf_counter)
    ended_at: float | None = None
    error: dict[str, str] | None = None

    @property
    def status(self) -> str:
        return "ok" if self.error is None else "error"

    @property
    def duration_ms(self) -> float:
        end = time.perf_counter() if self.ended_at is None else self.ended_at
        return (end - self.started_at) * 1000

    def note(self, **fields: Any) -> None:
        """Attach extra fields to the ``.end`` event."""
        self.fields.update(fields)

    def finish(self, exc: BaseException | None = None) -> None:
        if self.ended_at is None:
            self.ended_at = time.perf_counter()
        if exc is not None:
            self.error = {"error_type": type(exc).__name__, "error_message": str(exc)}

    def event_fields(self) -> dict[str, Any]:
        out: dict[str, Any] = {"span_id": self.span_id, "duration_ms": round(self.duration_ms, 2)}
        if self.parent_span_id:
            out["parent_span_id"] = self.parent_span_id
        out.update(self.fields)
        if self.error:
            out.update(self.error)
        return out


@contextmanager
def log_step(event: str, *, level: str = "info", **fields: Any) -> Iterator[StepTimer]:
    """
    Time the enclosed block and log it as ``event``.

    Example:
        with log_step("builder.stage", stage="crossrefs") as timer:
            timer.note(new_errors=resolve(document))
    """
    log = get_logger("docspine.timing")
    timer = StepTimer(event, parent_span_id=get_context().span_id, fields=dict(fields))
    token = push_context(span_id=timer.span_id, parent_span_id=timer.parent_span_id, step=event)
    log.debug(f"{event}.start", span_id=timer.span_id, **fields)
    try:
        yield timer
    except Exception as exc:
        timer.finish(exc)
        log.error(f"{event}.error", exc_info=True, **timer.event_fields())
        raise
    finally:
        timer.finish()
        token.restore()
    getattr(log, level)(f"{event}.end", **timer.event_fields())
