"""
Node types of a parsed document tree.

Every source file becomes an ordered forest of these nodes. Block and inline
content share one ``Node`` base with a ``children`` list, so a single walker
can traverse (and rewrite) any tree regardless of where it came from:
parsed markdown, a spliced docstring, or content generated by a directive.

Architecture:
    ::

        Node (children, line)
          ├── Element        generic container (paragraph, list, em, ...)
          ├── Heading        level + anchor key once registered
          ├── Text / InlineCode / Raw
          ├── CodeBlock      fenced code (doctests are CodeBlocks too)
          ├── Directive      ```@name argument ... ``` awaiting expansion
          ├── Reference      [label](@ref) placeholder awaiting resolution
          ├── Link           resolved cross-reference
          ├── BrokenReference  reference that could not be resolved
          ├── ErrorMarker    visible evidence of a failed directive
          ├── DocstringSplice  documentation of one symbol, with its anchor
          ├── ExampleBlock   executed code and its captured output
          └── MetaBlock      consumed ``@meta`` settings (not rendered)

Tags:
    document-model, ast, nodes, markdown
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(eq=False)
class Node:
    """Base node. ``line`` is 1-based within the owning file, when known."""

    children: list[Node] = field(default_factory=list, kw_only=True)
    line: int | None = field(default=None, kw_only=True)

    def text(self) -> str:
        """Concatenated plain text of this subtree."""
        return "".join(child.text() for child in self.children)


@dataclass(eq=False)
class Element(Node):
    """Generic container named after its markdown-it node type."""

    tag: str
    attrs: dict[str, Any] = field(default_factory=dict)


@dataclass(eq=False)
class Heading(Node):
    level: int
    anchor: str | None = None


@dataclass(eq=False)
class Text(Node):
    content: str

    def text(self) -> str:
        return self.content


@dataclass(eq=False)
class InlineCode(Node):
    content: str

    def text(self) -> str:
        return self.content


@dataclass(eq=False)
class Raw(Node):
    """Raw HTML passed through untouched."""

    content: str
    block: bool = False


@dataclass(eq=False)
class CodeBlock(Node):
    info: str
    content: str

    @property
    def language(self) -> str:
        return self.info.split(maxsplit=1)[0] if self.info.strip() else ""

    @property
    def argument(self) -> str:
        parts = self.info.split(maxsplit=1)
        return parts[1].strip() if len(parts) > 1 else ""


@dataclass(eq=False)
class Directive(Node):
    """A fenced block whose info string starts with ``@``."""

    name: str
    argument: str
    content: str


@dataclass(eq=False)
class Reference(Node):
    """Unresolved cross-reference; ``children`` hold the link label.

    ``lookup_file`` names the file whose scope the lookup starts from when it
    is not the file holding the reference (generated tables of contents).
    """

    target: str
    lookup_file: str | None = None


@dataclass(eq=False)
class Link(Node):
    """Resolved cross-reference to ``key`` inside ``file``."""

    file: str
    key: str


@dataclass(eq=False)
class BrokenReference(Node):
    target: str
    reason: str


@dataclass(eq=False)
class ErrorMarker(Node):
    """Stands in for content that could not be generated.

    ``original`` keeps the node that failed so the output shows exactly what
    was not expanded.
    """

    kind: str
    message: str
    original: Node | None = None


@dataclass(eq=False)
class DocstringSplice(Node):
    """Documentation of one symbol; ``children`` are the parsed docstring."""

    symbol: str
    anchor: str


@dataclass(eq=False)
class ExampleBlock(Node):
    source: str
    output: str


@dataclass(eq=False)
class MetaBlock(Node):
    values: dict[str, Any] = field(default_factory=dict)
