"""
Shared pytest fixtures for docspine tests.

This module provides:
- ``write_sources``: lay out a markdown source tree under ``tmp_path``
- ``make_config`` / ``make_document``: build a config or a parsed document
- ``InProcessRunner``: a code runner executing snippets in this process,
  so stage tests do not spawn interpreters
- Log context cleanup between tests
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path

import pytest

from docspine.core.config import BuildConfig
from docspine.document.model import Document, parse_document
from docspine.execution.runner import SnippetOutcome
from docspine.execution.sandbox import run_snippet
from docspine.framework.logging import clear_context
from docspine.symbols.provider import MappingSymbolProvider


class InProcessRunner:
    """Stand-in for ``CodeRunner`` that runs snippets with the sandbox's own executor.

    Every ``run`` call gets a fresh namespace, like a fresh child process.
    """

    def __init__(self) -> None:
        self.calls: list[dict] = []

    def run(
        self,
        snippets: Sequence[str],
        *,
        setup: Sequence[str] = (),
        mode: str = "doctest",
    ) -> list[SnippetOutcome]:
        self.calls.append({"snippets": list(snippets), "setup": list(setup), "mode": mode})
        namespace: dict = {"__name__": "__main__"}
        for source in setup:
            run_snippet(source, mode, namespace)
        return [SnippetOutcome(**run_snippet(source, mode, namespace)) for source in snippets]


@pytest.fixture(autouse=True)
def _clean_log_context():
    """Reset the logging context before and after each test."""
    clear_context()
    yield
    clear_context()


@pytest.fixture
def write_sources(tmp_path: Path) -> Callable[[dict[str, str]], Path]:
    """Write ``{relative path: text}`` under ``tmp_path/src`` and return that directory."""

    def _write(files: dict[str, str]) -> Path:
        source_dir = tmp_path / "src"
        source_dir.mkdir(exist_ok=True)
        for relative, text in files.items():
            path = source_dir / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        return source_dir

    return _write


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., BuildConfig]:
    """Config rooted at ``tmp_path`` (sources in ``src/``, output in ``build/``)."""

    def _make(**overrides) -> BuildConfig:
        return BuildConfig(root=tmp_path, **overrides)

    return _make


@pytest.fixture
def make_document(write_sources, make_config) -> Callable[..., Document]:
    """Parse ``files`` into a document, optionally with a docstring mapping."""

    def _make(files: dict[str, str], docs: dict[str, str | None] | None = None, **config) -> Document:
        write_sources(files)
        document = parse_document(make_config(**config))
        if docs is not None:
            document.provider = MappingSymbolProvider(docs)
        return document

    return _make


@pytest.fixture
def runner() -> InProcessRunner:
    return InProcessRunner()
