"""
Template expansion: replace directive blocks with generated content.

Runs first in the pipeline and is the only stage that grows the anchor
registry after parsing. Files are expanded one at a time, in document
order; every directive of a file is visited exactly once.

Manifesto:
    A broken directive is a defect in one spot of one page, not a reason
    to stop. Each failure becomes an error record plus a visible
    ``ErrorMarker`` in place of the directive, and the walk moves on.

Architecture:
    ::

        pass 1 (per file)                       pass 2 (whole document)
        ─────────────────                       ───────────────────────
        @docs     ──► DocstringSplice + anchor  @contents ──► list of Reference
        @example  ──► ExampleBlock (sandboxed)  @index    ──► list of Reference
        @include  ──► CodeBlock
        @meta     ──► MetaBlock
        @other    ──► ErrorMarker (invalid-directive)

    ``@contents``/``@index`` wait for pass 2 because they list anchors that
    only exist once every file has been expanded.

Tags:
    expansion, directives, docstrings, examples, anchors

Doc-Types:
    - API Reference
    - ARCHITECTURE (section: "Stages")
"""

from __future__ import annotations

from pathlib import Path

from docspine.core.errors import DuplicateAnchorError, ErrorKind, ExecutionError, FatalStageError
from docspine.document.markdown import fence_doctests, parse_markdown
from docspine.document.model import Document, SourceFile, read_meta
from docspine.document.nodes import (
    CodeBlock,
    Directive,
    DocstringSplice,
    Element,
    ErrorMarker,
    ExampleBlock,
    Heading,
    InlineCode,
    MetaBlock,
    Node,
    Reference,
    Text,
)
from docspine.document.walker import Action, Replace, Visit, iter_nodes, walk
from docspine.execution.runner import CodeRunner
from docspine.framework.logging import get_logger, push_context
from docspine.framework.pipeline import Stage
from docspine.symbols.provider import AstSymbolProvider, SymbolProvider

log = get_logger(__name__)

DEFERRED_DIRECTIVES = ("contents", "index")
CONTENTS_DEPTH = 2

_INCLUDE_LANGUAGES = {
    ".py": "python",
    ".pyi": "python",
    ".sh": "bash",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".md": "markdown",
    ".txt": "",
}


class ExpandTemplates(Stage):
    """Expand ``@docs``, ``@example``, ``@include``, ``@meta``, ``@contents`` and ``@index``."""

    name = "expand"
    description = "Replace directive blocks with generated content"

    def __init__(self, runner: CodeRunner | None = None):
        self.runner = runner

    def run(self, document: Document) -> None:
        provider = document.provider or AstSymbolProvider.for_config(document.config)
        runner = self.runner or CodeRunner.for_config(document.config)

        for source in document.files:
            _ensure_sources(document, source)
            token = push_context(file=source.path)
            try:
                expansion = FileExpansion(document, source, provider, runner)
                replaced = walk(source.tree, expansion.visit)
            finally:
                token.restore()
            log.debug("expand.file", file=source.path, replaced=replaced)

        for source in document.files:
            walk(source.tree, lambda node, source=source: _expand_deferred(document, source, node))


class FileExpansion:
    """Visitor state for expanding one file: example sessions live here."""

    def __init__(
        self,
        document: Document,
        source: SourceFile,
        provider: SymbolProvider,
        runner: CodeRunner,
    ):
        self.document = document
        self.source = source
        self.provider = provider
        self.runner = runner
        self.sessions: dict[str, list[str]] = {}
        self._handlers = {
            "docs": self.expand_docs,
            "example": self.expand_example,
            "include": self.expand_include,
            "meta": self.expand_meta,
        }

    def visit(self, node: Node) -> Visit:
        if not isinstance(node, Directive):
            return None
        if node.name in DEFERRED_DIRECTIVES:
            return Action.SKIP_CHILDREN
        handler = self._handlers.get(node.name)
        if handler is None:
            return Replace(
                self.fail(ErrorKind.INVALID_DIRECTIVE, f"unknown directive '@{node.name}'", node)
            )
        return Replace(handler(node))

    def fail(self, kind: ErrorKind, message: str, directive: Directive) -> ErrorMarker:
        """Record ``kind`` and return the marker that stands in for ``directive``."""
        self.document.report(kind, message, self.source, directive.line)
        return ErrorMarker(kind.value, message, original=directive, line=directive.line)

    # -- @docs --------------------------------------------------------------

    def expand_docs(self, directive: Directive) -> Node:
        names = [line.strip() for line in directive.content.splitlines() if line.strip()]
        if not names:
            return self.fail(ErrorKind.INVALID_DIRECTIVE, "empty @docs block", directive)
        items = [self.splice(name, directive) for name in names]
        if len(items) == 1:
            return items[0]
        return Element("docs", children=items, line=directive.line)

    def splice(self, name: str, directive: Directive) -> Node:
        """Docstring of ``name`` as a registered, parsed splice (or a marker)."""
        qualified, docstring = self.lookup(name)
        single = Directive("docs", "", name, line=directive.line)
        if docstring is None:
            return self.fail(ErrorKind.MISSING_DOCSTRING, f"no docstring found for '{name}'", single)

        try:
            self.document.anchors.register(
                qualified,
                self.source.path,
                qualified,
                scope=self.source.anchor_scope,
                kind="symbol",
            )
        except DuplicateAnchorError as e:
            return self.fail(e.kind, e.message, single)

        children = parse_markdown(fence_doctests(docstring))
        for node in iter_nodes(children):
            node.line = directive.line
        log.debug("expand.docs.spliced", symbol=qualified)
        return DocstringSplice(qualified, qualified, children=children, line=directive.line)

    def lookup(self, name: str) -> tuple[str, str | None]:
        docstring = self.provider.lookup_doc(name)
        if docstring is not None:
            return name, docstring
        module = self.source.current_module
        if module and not name.startswith(module + "."):
            qualified = f"{module}.{name}"
            docstring = self.provider.lookup_doc(qualified)
            if docstring is not None:
                return qualified, docstring
        return name, None

    # -- @example -----------------------------------------------------------

    def expand_example(self, directive: Directive) -> Node:
        session = directive.argument or None
        history = self.sessions.setdefault(session, []) if session else []
        try:
            outcome = self.runner.run([directive.content], setup=history, mode="example")[0]
        except ExecutionError as e:
            return self.fail(ErrorKind.EXAMPLE_FAILURE, f"example failed: {e.message}", directive)
        if outcome.failed:
            return self.fail(
                ErrorKind.EXAMPLE_FAILURE,
                f"example raised {outcome.exception.strip()}",
                directive,
            )
        if session:
            history.append(directive.content)
        return ExampleBlock(directive.content, outcome.output, line=directive.line)

    # -- @include -----------------------------------------------------------

    def expand_include(self, directive: Directive) -> Node:
        if not directive.argument:
            return self.fail(ErrorKind.INVALID_DIRECTIVE, "@include needs a path", directive)
        target = (self.source.source_path.parent / directive.argument).resolve()
        try:
            content = target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            _ensure_sources(self.document, self.source)
            return self.fail(
                ErrorKind.INCLUDE_FAILURE, f"cannot include {directive.argument}: {e}", directive
            )
        return CodeBlock(_include_language(target), content, line=directive.line)

    # -- @meta --------------------------------------------------------------

    def expand_meta(self, directive: Directive) -> Node:
        # Invalid blocks were reported while parsing.
        try:
            values = read_meta(directive)
        except ValueError:
            values = {}
        return MetaBlock(values=values, line=directive.line)


def _include_language(path: Path) -> str:
    suffix = path.suffix.lower()
    return _INCLUDE_LANGUAGES.get(suffix, suffix.lstrip("."))


def _ensure_sources(document: Document, source: SourceFile) -> None:
    if not source.source_path.exists() and not document.source_dir.is_dir():
        raise FatalStageError(f"source directory vanished: {document.source_dir}").with_context(
            stage=ExpandTemplates.name, file=source.path
        )


# -- pass 2 ---------------------------------------------------------------


def _expand_deferred(document: Document, source: SourceFile, node: Node) -> Visit:
    if not isinstance(node, Directive):
        return None
    if node.name == "contents":
        return Replace(_contents(document, source, node))
    if node.name == "index":
        return Replace(_index(document, node))
    return Action.SKIP_CHILDREN


def _contents(document: Document, source: SourceFile, directive: Directive) -> Node:
    pages = directive.argument.split() or [f.path for f in document.files]
    items: list[Node] = []
    for page in pages:
        target = document.file(page)
        if target is None:
            message = f"@contents lists unknown page '{page}'"
            document.report(ErrorKind.INVALID_DIRECTIVE, message, source, directive.line)
            marker = ErrorMarker(ErrorKind.INVALID_DIRECTIVE.value, message, line=directive.line)
            items.append(_item(marker))
            continue
        for heading in iter_nodes(target.tree):
            if isinstance(heading, Heading) and heading.anchor and heading.level <= CONTENTS_DEPTH:
                reference = Reference(
                    heading.anchor,
                    lookup_file=target.path,
                    children=[Text(heading.text().strip())],
                    line=directive.line,
                )
                items.append(_item(reference, level=heading.level))
    return _bullet_list(items, directive.line)


def _index(document: Document, directive: Directive) -> Node:
    items = [
        _item(
            Reference(
                anchor.key,
                lookup_file=anchor.file,
                children=[InlineCode(anchor.label)],
                line=directive.line,
            )
        )
        for anchor in sorted(document.anchors.anchors(kind="symbol"), key=lambda a: a.key)
    ]
    return _bullet_list(items, directive.line)


def _item(node: Node, level: int = 1) -> Element:
    paragraph = Element("paragraph", children=[node], line=node.line)
    return Element("list_item", {"level": level}, children=[paragraph], line=node.line)


def _bullet_list(items: list[Node], line: int | None) -> Element:
    return Element("bullet_list", {"tight": True}, children=items, line=line)
