"""
Document model: the shared, mutable state of one build.

A ``Document`` is created once per build by :func:`parse_document`, then
handed to every pipeline stage in turn. Stages rewrite the file trees in
place, grow the anchor registry and append to the error collection; none
of them ever removes an error or an anchor.

Manifesto:
    One build, one document, one thread. Everything a later stage needs
    to know about an earlier one is on the document, nowhere else.

Architecture:
    ::

        source_dir/
          ├── index.md ──────► SourceFile(path, tree, errors, meta)
          ├── guide/usage.md ► SourceFile(...)
          └── logo.png ──────► assets (copied verbatim)
                │
                ▼
        Document(config, files, anchors, errors, check_results)
                │
                ├── record_error()   append-only, per file and global
                └── has_errors       build-failure signal

Features:
    - Deterministic file order (sorted relative POSIX paths)
    - Heading anchors registered at parse time, per-file scope from ``@meta``
    - Fail-soft: duplicate headings become error records, not exceptions
    - Fatal: unreadable directory/files and undecodable text

Tags:
    document-model, parsing, anchors, errors, core

Doc-Types:
    - API Reference
    - ARCHITECTURE (section: "Document Model")
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from docspine.core.config import BuildConfig
from docspine.core.errors import DuplicateAnchorError, ErrorKind, ParseError, SourceIOError
from docspine.document.anchors import GLOBAL_SCOPE, AnchorRegistry
from docspine.document.markdown import parse_markdown, slugify
from docspine.document.nodes import Directive, Heading, Node
from docspine.document.walker import iter_nodes
from docspine.framework.logging import get_logger, new_build_id
from docspine.symbols.provider import SymbolProvider

log = get_logger(__name__)

DOCUMENT_SUFFIXES = (".md",)


@dataclass(frozen=True)
class ErrorRecord:
    """One recoverable defect found during the build."""

    kind: ErrorKind
    file: str | None
    line: int | None
    message: str

    def __str__(self) -> str:
        where = self.file or "<document>"
        if self.line is not None:
            where = f"{where}:{self.line}"
        return f"{where}: [{self.kind.value}] {self.message}"


@dataclass(frozen=True)
class CheckResult:
    """Outcome of verifying one doctest block."""

    file: str
    line: int | None
    passed: bool
    source: str = ""
    expected: str = ""
    actual: str = ""
    session: str | None = None


@dataclass
class SourceFile:
    """One markdown source file and its content tree."""

    path: str  # relative to the source directory, POSIX separators
    source_path: Path
    tree: list[Node] = field(default_factory=list)
    errors: list[ErrorRecord] = field(default_factory=list)
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def anchor_scope(self) -> str:
        """Scope new anchors of this file are registered in."""
        return self.path if self.meta.get("anchor_scope") == "local" else GLOBAL_SCOPE

    @property
    def current_module(self) -> str | None:
        return self.meta.get("current_module")


@dataclass
class Document:
    """Root aggregate for one build."""

    config: BuildConfig
    source_dir: Path | None = None
    files: list[SourceFile] = field(default_factory=list)
    anchors: AnchorRegistry = field(default_factory=AnchorRegistry)
    errors: list[ErrorRecord] = field(default_factory=list)
    check_results: list[CheckResult] = field(default_factory=list)
    assets: list[Path] = field(default_factory=list)
    unresolved_references: int = 0
    undocumented: list[str] = field(default_factory=list)
    provider: SymbolProvider | None = None
    build_id: str = field(default_factory=new_build_id)

    def __post_init__(self) -> None:
        if self.source_dir is None:
            self.source_dir = self.config.source_dir

    def file(self, path: str) -> SourceFile | None:
        return next((f for f in self.files if f.path == path), None)

    def record_error(self, error: ErrorRecord) -> ErrorRecord:
        """Append ``error`` to the collection (and to its file's list)."""
        self.errors.append(error)
        if error.file is not None:
            owner = self.file(error.file)
            if owner is not None:
                owner.errors.append(error)
        log.warning(
            "document.error",
            kind=error.kind.value,
            file=error.file,
            line=error.line,
            message=error.message,
        )
        return error

    def report(
        self,
        kind: ErrorKind,
        message: str,
        file: SourceFile | None = None,
        line: int | None = None,
    ) -> ErrorRecord:
        """Build and record an error for ``file``."""
        return self.record_error(
            ErrorRecord(kind=kind, file=file.path if file else None, line=line, message=message)
        )

    @property
    def failed_checks(self) -> list[CheckResult]:
        return [result for result in self.check_results if not result.passed]

    @property
    def has_errors(self) -> bool:
        """True when the build must be reported as failed."""
        return bool(self.errors) or bool(self.failed_checks)

    def copy_assets(self) -> list[Path]:
        """Copy non-document files to the build directory, keeping layout."""
        copied = []
        source_dir = self.source_dir
        build_dir = self.config.build_dir
        for asset in self.assets:
            target = build_dir / asset.relative_to(source_dir)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(asset, target)
            except OSError as e:
                raise SourceIOError(f"cannot copy asset {asset}: {e}", cause=e) from e
            copied.append(target)
        log.debug("document.assets.copied", count=len(copied))
        return copied


def read_meta(directive: Directive) -> dict[str, Any]:
    """Settings of an ``@meta`` block.

    Raises:
        ValueError: content is not a YAML mapping or holds invalid values
    """
    try:
        values = yaml.safe_load(directive.content) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"invalid @meta block: {e}") from e
    if not isinstance(values, dict):
        raise ValueError("@meta block must be a YAML mapping")
    scope = values.get("anchor_scope", "global")
    if scope not in ("global", "local"):
        raise ValueError(f"anchor_scope must be 'global' or 'local', not {scope!r}")
    return values


def parse_document(config: BuildConfig, source_dir: Path | None = None) -> Document:
    """Read every file under ``source_dir`` into a new ``Document``.

    ``source_dir`` defaults to ``config.source_dir``.

    Raises:
        SourceIOError: the source directory or a file cannot be read
        ParseError: a markdown file is not valid UTF-8
    """
    source_dir = Path(source_dir).resolve() if source_dir is not None else config.source_dir
    if not source_dir.is_dir():
        raise SourceIOError(f"source directory not found: {source_dir}")

    document = Document(config=config, source_dir=source_dir)
    build_dir = config.build_dir

    try:
        paths = sorted(p for p in source_dir.rglob("*") if p.is_file())
    except OSError as e:
        raise SourceIOError(f"cannot list {source_dir}: {e}", cause=e) from e

    for path in paths:
        if build_dir == path or build_dir in path.parents:
            continue
        if path.suffix.lower() not in DOCUMENT_SUFFIXES:
            document.assets.append(path)
            continue
        document.files.append(_read_source(path, source_dir))

    for source in document.files:
        _load_meta(document, source)
        _register_headings(document, source)

    log.info(
        "document.parsed",
        files=len(document.files),
        assets=len(document.assets),
        anchors=len(document.anchors),
    )
    return document


def _read_source(path: Path, source_dir: Path) -> SourceFile:
    relative = path.relative_to(source_dir).as_posix()
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(f"{relative} is not valid UTF-8", cause=e).with_context(file=relative)
    except OSError as e:
        raise SourceIOError(f"cannot read {relative}: {e}", cause=e).with_context(file=relative)
    return SourceFile(path=relative, source_path=path, tree=parse_markdown(text))


def _load_meta(document: Document, source: SourceFile) -> None:
    for node in source.tree:
        if isinstance(node, Directive) and node.name == "meta":
            try:
                source.meta.update(read_meta(node))
            except ValueError as e:
                document.report(ErrorKind.INVALID_DIRECTIVE, str(e), source, node.line)


def _register_headings(document: Document, source: SourceFile) -> None:
    for node in iter_nodes(source.tree):
        if not isinstance(node, Heading):
            continue
        label = node.text().strip()
        key = slugify(label)
        if not key:
            continue
        try:
            document.anchors.register(key, source.path, label, scope=source.anchor_scope)
        except DuplicateAnchorError as e:
            document.report(e.kind, e.message, source, node.line)
        else:
            node.anchor = key
