"""
Base writer and the tree-to-markdown renderer every writer shares.

Writers run after the pipeline and consume the fully resolved document:
no ``Reference`` is left, every directive is expanded or marked, every
check has run. They never touch the document, only the build directory.

Manifesto:
    Writers turn the resolved tree into files. Each writer knows one
    output format; the markdown serialisation of the tree is shared so
    both formats show the same anchors, links and error markers.

Architecture:
    ::

        Document (resolved)
              │
              ▼
        MarkdownRenderer(file, link_suffix)
              │   Heading ──► <a id="key"></a> + "# text"
              │   Link ─────► [label](relative/page.<suffix>#key)
              │   BrokenReference / ErrorMarker ──► visible markers
              ▼
        Writer.render_file() ──► build_dir/<page>.<suffix>

Features:
    - Relative links between pages, ``#key`` within one page
    - Tight and loose lists, tables, nested block quotes
    - Fences longer than any backtick run inside the code

Tags:
    - writer
    - renderer
    - markdown
    - core_infrastructure

Doc-Types:
    - API_REFERENCE (section: "Writers")
"""

from __future__ import annotations

import html
import posixpath
import re
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath

from docspine.core.errors import WriteError
from docspine.document.model import Document, SourceFile
from docspine.document.nodes import (
    BrokenReference,
    CodeBlock,
    Directive,
    DocstringSplice,
    Element,
    ErrorMarker,
    ExampleBlock,
    Heading,
    InlineCode,
    Link,
    MetaBlock,
    Node,
    Raw,
    Reference,
    Text,
)
from docspine.framework.logging import get_logger

log = get_logger(__name__)

_ESCAPE = re.compile(r"([\\`*_\[\]])")
_BACKTICKS = re.compile(r"`+")


class Writer(ABC):
    """Base class for output writers."""

    # Config ``formats`` value selecting this writer
    format: str = ""

    # Suffix of generated pages (also used in cross-page links)
    suffix: str = ""

    @abstractmethod
    def render_file(self, document: Document, source: SourceFile) -> str:
        """Content of the output page for ``source``."""
        ...

    def render(self, document: Document) -> list[Path]:
        """Write one page per source file.

        Returns:
            Paths of the written files

        Raises:
            WriteError: a page could not be rendered or written
        """
        outputs = []
        for source in document.files:
            target = self.output_path(document, source)
            content = self.render_file(document, source)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content, encoding="utf-8")
            except OSError as e:
                raise WriteError(f"cannot write {target}: {e}", cause=e).with_context(
                    file=source.path
                ) from e
            outputs.append(target)
        log.info("writer.done", format=self.format, files=len(outputs))
        return outputs

    def output_path(self, document: Document, source: SourceFile) -> Path:
        return document.config.build_dir / output_name(source.path, self.suffix)

    def to_markdown(self, source: SourceFile, list_indent: int = 2) -> str:
        return MarkdownRenderer(source.path, self.suffix, list_indent).render(source.tree)


def output_name(path: str, suffix: str) -> str:
    """Output page name for the source ``path`` (POSIX, relative)."""
    return str(PurePosixPath(path).with_suffix(suffix))


def relative_href(from_file: str, to_file: str, suffix: str, key: str | None = None) -> str:
    """Link target from page ``from_file`` to ``to_file`` (``#key`` when same page).

    >>> relative_href("guide/a.md", "api.md", ".html", "intro")
    '../api.html#intro'
    >>> relative_href("a.md", "a.md", ".md", "top")
    '#top'
    """
    fragment = f"#{key}" if key else ""
    if from_file == to_file:
        return fragment or posixpath.basename(output_name(to_file, suffix))
    start = posixpath.dirname(from_file) or "."
    return posixpath.relpath(output_name(to_file, suffix), start) + fragment


def _fence(content: str) -> str:
    longest = max((len(run) for run in _BACKTICKS.findall(content)), default=0)
    return "`" * max(3, longest + 1)


def _code_span(content: str) -> str:
    longest = max((len(run) for run in _BACKTICKS.findall(content)), default=0)
    ticks = "`" * (longest + 1)
    pad = " " if content.startswith("`") or content.endswith("`") else ""
    return f"{ticks}{pad}{content}{pad}{ticks}"


def _escape(text: str) -> str:
    return _ESCAPE.sub(r"\\\1", text)


def _anchor(key: str) -> str:
    return f'<a id="{html.escape(key, quote=True)}"></a>'


class MarkdownRenderer:
    """Serialise a resolved tree of one page back to markdown."""

    def __init__(self, current_file: str, link_suffix: str = ".md", list_indent: int = 2):
        self.current_file = current_file
        self.link_suffix = link_suffix
        # Python-Markdown needs 4 columns to nest list content
        self.list_indent = list_indent

    def render(self, nodes: list[Node]) -> str:
        blocks = [self.block(node) for node in nodes]
        text = "\n\n".join(block for block in blocks if block)
        return text + "\n" if text else ""

    # -- blocks -------------------------------------------------------------

    def block(self, node: Node) -> str:
        if isinstance(node, Heading):
            heading = "#" * node.level + " " + self.inline(node.children)
            return f"{_anchor(node.anchor)}\n\n{heading}" if node.anchor else heading
        if isinstance(node, CodeBlock):
            return self.code(node.info, node.content)
        if isinstance(node, Directive):
            info = f"@{node.name} {node.argument}".strip()
            return self.code(info, node.content)
        if isinstance(node, DocstringSplice):
            header = f"{_anchor(node.anchor)}\n\n**{_code_span(node.symbol)}**"
            body = self.render(node.children).rstrip("\n")
            return f"{header}\n\n{body}" if body else header
        if isinstance(node, ExampleBlock):
            rendered = self.code("python", node.source)
            if node.output:
                rendered += "\n\n" + self.code("", node.output)
            return rendered
        if isinstance(node, ErrorMarker):
            return self.error_block(node)
        if isinstance(node, MetaBlock):
            return ""
        if isinstance(node, Raw):
            return node.content.rstrip("\n")
        if isinstance(node, Element):
            return self.element(node)
        return self.inline([node])

    def code(self, info: str, content: str) -> str:
        fence = _fence(content)
        body = content if content.endswith("\n") or not content else content + "\n"
        return f"{fence}{info}\n{body}{fence}"

    def error_block(self, node: ErrorMarker) -> str:
        lines = [f"> **Error ({node.kind}):** {_escape(node.message)}"]
        if isinstance(node.original, Directive):
            original = self.block(node.original)
            lines.append(">")
            lines.extend(f"> {line}".rstrip() for line in original.splitlines())
        return "\n".join(lines)

    def element(self, node: Element) -> str:
        tag = node.tag
        if tag == "paragraph":
            return self.inline(node.children)
        if tag in ("bullet_list", "ordered_list"):
            return self.list_block(node)
        if tag == "blockquote":
            inner = self.render(node.children).rstrip("\n")
            return "\n".join(f"> {line}".rstrip() for line in inner.splitlines())
        if tag == "hr":
            return "---"
        if tag == "table":
            return self.table(node)
        # Containers such as a multi-symbol @docs block
        return self.render(node.children).rstrip("\n")

    def list_block(self, node: Element) -> str:
        tight = node.attrs.get("tight", False)
        ordered = node.tag == "ordered_list"
        start = int(node.attrs.get("start", 1) or 1)
        items = []
        for number, item in enumerate(node.children, start=start):
            marker = f"{number}. " if ordered else "- "
            level = int(item.attrs.get("level", 1)) if isinstance(item, Element) else 1
            indent = " " * self.list_indent * (level - 1)
            blocks = [self.block(child) for child in item.children]
            body = ("\n" if tight else "\n\n").join(b for b in blocks if b)
            pad = " " * max(len(marker), self.list_indent)
            lines = body.splitlines() or [""]
            rendered = [indent + marker + lines[0]]
            rendered.extend(indent + pad + line if line else "" for line in lines[1:])
            items.append("\n".join(rendered))
        return ("\n" if tight else "\n\n").join(items)

    def table(self, node: Element) -> str:
        rows = [n for n in _descendants(node) if isinstance(n, Element) and n.tag == "tr"]
        if not rows:
            return ""
        cells = [
            [self.inline(cell.children).replace("|", "\\|") for cell in row.children]
            for row in rows
        ]
        width = max(len(row) for row in cells)
        lines = [
            "| " + " | ".join(row + [""] * (width - len(row))) + " |"
            for row in cells
        ]
        lines.insert(1, "| " + " | ".join(["---"] * width) + " |")
        return "\n".join(lines)

    # -- inline -------------------------------------------------------------

    def inline(self, nodes: list[Node]) -> str:
        return "".join(self.span(node) for node in nodes)

    def span(self, node: Node) -> str:
        if isinstance(node, Text):
            return _escape(node.content)
        if isinstance(node, InlineCode):
            return _code_span(node.content)
        if isinstance(node, Raw):
            return node.content
        if isinstance(node, Link):
            href = relative_href(self.current_file, node.file, self.link_suffix, node.key)
            return f"[{self.inline(node.children)}]({href})"
        if isinstance(node, BrokenReference):
            label = self.inline(node.children) or _code_span(node.target)
            return f"{label} **[{node.reason}: {_code_span(node.target)}]**"
        if isinstance(node, Reference):
            return f"[{self.inline(node.children)}](@ref:{node.target})"
        if isinstance(node, ErrorMarker):
            return f"**[{node.kind}: {_escape(node.message)}]**"
        if isinstance(node, Element):
            return self.inline_element(node)
        return _escape(node.text())

    def inline_element(self, node: Element) -> str:
        inner = self.inline(node.children)
        tag = node.tag
        if tag == "em":
            return f"*{inner}*"
        if tag == "strong":
            return f"**{inner}**"
        if tag == "softbreak":
            return "\n"
        if tag == "hardbreak":
            return "  \n"
        if tag == "link":
            title = node.attrs.get("title")
            suffix = f' "{title}"' if title else ""
            return f"[{inner}]({node.attrs.get('href', '')}{suffix})"
        if tag == "image":
            return f"![{node.text()}]({node.attrs.get('src', '')})"
        return inner


def _descendants(node: Node):
    for child in node.children:
        yield child
        yield from _descendants(child)
