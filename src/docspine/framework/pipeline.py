"""Stage interface and the pipeline driver.

Manifesto:
    The driver applies an explicit, ordered list of stages to one
    document. Each stage finishes over every file before the next one
    starts, so a stage can rely on everything its predecessors produced
    (all anchors exist before any reference is resolved).

Architecture:
    ::

        process([ExpandTemplates(), CrossReferences(), CheckDocument(), ...], document)
              │
              ├── source dir still present? ── no ──► FatalStageError
              ├── push_context(stage=name)
              ├── log_step("builder.stage") ── stage.run(document)
              │       ├── recoverable defects ──► document.errors (keep going)
              │       └── DocspineError ────────► propagate, pipeline aborts
              └── StageResult(name, status, new_errors, duration)

Tags:
    pipeline, stages, driver, fail-soft

Doc-Types:
    - API Reference
    - ARCHITECTURE (section: "Pipeline")
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from docspine.core.errors import DocspineError, FatalStageError
from docspine.framework.logging import get_logger, log_step, push_context

if TYPE_CHECKING:
    from docspine.document.model import Document

log = get_logger(__name__)


class StageStatus(str, Enum):
    """Stage execution status."""

    COMPLETED = "completed"
    SKIPPED = "skipped"


@dataclass
class StageResult:
    """Outcome of one stage over the whole document."""

    name: str
    status: StageStatus
    new_errors: int = 0
    duration_ms: float = 0.0


class Stage(ABC):
    """Base class for all pipeline stages."""

    name: str = ""
    description: str = ""

    def enabled(self, document: Document) -> bool:
        """Whether the stage applies to ``document``. Override in subclasses."""
        return True

    @abstractmethod
    def run(self, document: Document) -> None:
        """Apply the stage to every file of ``document``.

        Recoverable defects are recorded on the document; only
        ``DocspineError`` subclasses may escape.
        """
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


def process(stages: Sequence[Stage], document: Document) -> list[StageResult]:
    """Run ``stages`` over ``document`` in order.

    Returns:
        One StageResult per stage

    Raises:
        FatalStageError: the source directory vanished, or a stage failed
            with an unexpected exception
        DocspineError: any fatal error raised by a stage
    """
    results: list[StageResult] = []
    for stage in stages:
        name = stage.name or type(stage).__name__
        if document.source_dir is None or not document.source_dir.is_dir():
            raise FatalStageError(f"source directory vanished: {document.source_dir}").with_context(
                stage=name
            )

        if not stage.enabled(document):
            log.info("builder.stage.skipped", stage=name)
            results.append(StageResult(name, StageStatus.SKIPPED))
            continue

        errors_before = len(document.errors)
        token = push_context(stage=name)
        try:
            with log_step("builder.stage", stage=name) as timer:
                try:
                    stage.run(document)
                except DocspineError as e:
                    if e.context.stage is None:
                        e.with_context(stage=name)
                    raise
                except Exception as e:
                    raise FatalStageError(f"stage {name} failed: {e}", cause=e).with_context(
                        stage=name
                    ) from e
                new_errors = len(document.errors) - errors_before
                timer.note(new_errors=new_errors)
        finally:
            token.restore()

        results.append(StageResult(name, StageStatus.COMPLETED, new_errors, timer.duration_ms))
    return results
