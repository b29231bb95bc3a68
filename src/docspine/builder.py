"""
Build entry point.

``build_docs`` is the single way to run a documentation build: it prepares
the build directory, parses the sources, runs the stage pipeline and hands
the resolved document to the writers.

Manifesto:
    A build reports as many defects as it can find in one run. Recoverable
    problems are collected and turn into ``success=False``; only fatal
    errors (unreadable sources, vanished directories, unwritable output)
    raise.

Architecture:
    ::

        build_docs(config)
              │
              ├── clean build_dir (config.clean)
              ├── parse_document() ─────────── SourceIOError / ParseError
              ├── copy_assets()
              ├── process(DEFAULT_PIPELINE)
              │      ExpandTemplates ─► CrossReferences ─► CheckDocument ─► CheckCoverage
              ├── writers (config.formats) ─── WriteError
              ▼
        BuildResult(success, errors, check_results, outputs, document?)

Tags:
    builder, pipeline, entry-point

Doc-Types:
    - API Reference
    - ARCHITECTURE (section: "Build")
"""

from __future__ import annotations

import shutil
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from docspine.core.config import BuildConfig
from docspine.core.errors import ConfigError, SourceIOError
from docspine.document.model import CheckResult, Document, ErrorRecord, parse_document
from docspine.framework.logging import get_logger, log_step, new_build_id, push_context
from docspine.framework.pipeline import Stage, StageResult, process
from docspine.stages import CheckCoverage, CheckDocument, CrossReferences, ExpandTemplates
from docspine.symbols.provider import SymbolProvider
from docspine.writers import Writer, writers_for

log = get_logger(__name__)

DEFAULT_PIPELINE: tuple[type[Stage], ...] = (
    ExpandTemplates,
    CrossReferences,
    CheckDocument,
    CheckCoverage,
)


@dataclass
class BuildResult:
    """Outcome of one build.

    Attributes:
        success: False when any error was recorded or any check failed
        errors: Collected recoverable errors, in discovery order
        check_results: One entry per doctest block
        outputs: Files written by the writers
        undocumented: Documented symbols no page includes
        stages: Per-stage results of the pipeline
        build_id: Identifier attached to every log event of the build
        document: The resolved document, only when ``config.debug``
    """

    success: bool
    errors: list[ErrorRecord] = field(default_factory=list)
    check_results: list[CheckResult] = field(default_factory=list)
    outputs: list[Path] = field(default_factory=list)
    undocumented: list[str] = field(default_factory=list)
    stages: list[StageResult] = field(default_factory=list)
    build_id: str = ""
    document: Document | None = None

    @property
    def failed_checks(self) -> list[CheckResult]:
        return [result for result in self.check_results if not result.passed]


def build_docs(
    config: BuildConfig | None = None,
    *,
    provider: SymbolProvider | None = None,
    writers: Sequence[Writer] | None = None,
    stages: Sequence[Stage] | None = None,
    **options: Any,
) -> BuildResult:
    """Build the documentation described by ``config``.

    Args:
        config: Build configuration; ``options`` override its fields (or
            build a new one when ``config`` is None)
        provider: Symbol provider for ``@docs`` blocks (default: read
            module sources under ``<root>/src`` and ``<root>``)
        writers: Output writers (default: one per ``config.formats``)
        stages: Pipeline stage instances (default: ``DEFAULT_PIPELINE``)

    Raises:
        ConfigError: invalid options, or a build directory that would
            swallow the sources when cleaned
        SourceIOError, ParseError: sources cannot be read
        FatalStageError: the pipeline aborted
        WriteError: output could not be written
    """
    if config is None:
        config = BuildConfig.load(**options)
    elif options:
        config = BuildConfig.load(**{**config.model_dump(), **options})

    build_id = new_build_id()
    token = push_context(build_id=build_id)
    try:
        with log_step("builder.build", source=str(config.source_dir)) as timer:
            _prepare_build_dir(config)
            document = parse_document(config)
            document.build_id = build_id
            document.provider = provider
            document.copy_assets()

            if stages is None:
                stages = [stage() for stage in DEFAULT_PIPELINE]
            stage_results = process(stages, document)

            outputs: list[Path] = []
            for writer in writers if writers is not None else writers_for(config.formats):
                with log_step("builder.write", format=writer.format):
                    outputs.extend(writer.render(document))

            success = not document.has_errors
            timer.note(
                errors=len(document.errors),
                failed_checks=len(document.failed_checks),
                success=success,
            )
    finally:
        token.restore()

    if not success:
        log.warning("builder.failed", build_id=build_id, errors=len(document.errors))

    return BuildResult(
        success=success,
        errors=list(document.errors),
        check_results=list(document.check_results),
        outputs=outputs,
        undocumented=list(document.undocumented),
        stages=stage_results,
        build_id=build_id,
        document=document if config.debug else None,
    )


def _prepare_build_dir(config: BuildConfig) -> None:
    build_dir = config.build_dir
    source_dir = config.source_dir
    if config.clean and build_dir.exists():
        if build_dir == source_dir or build_dir in source_dir.parents:
            raise ConfigError(f"refusing to clean {build_dir}: it contains the sources")
        log.debug("builder.clean", build_dir=str(build_dir))
        try:
            shutil.rmtree(build_dir)
        except OSError as e:
            raise SourceIOError(f"cannot clean {build_dir}: {e}", cause=e) from e
    try:
        build_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise SourceIOError(f"cannot create {build_dir}: {e}", cause=e) from e
