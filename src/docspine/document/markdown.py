"""
Markdown to document-tree conversion.

Parsing itself is delegated to markdown-it-py (CommonMark + tables); this
module only maps its syntax tree onto :mod:`docspine.document.nodes` and
recognises the two docspine extensions on top of plain markdown:

- fenced blocks whose info string starts with ``@`` become ``Directive``
- links whose destination is ``@ref`` / ``@ref:<key>`` become ``Reference``

Examples:
    >>> nodes = parse_markdown("# Intro\\n\\nSee [Intro](@ref).")
    >>> type(nodes[0]).__name__, nodes[0].text()
    ('Heading', 'Intro')
    >>> slugify("Hello, World!")
    'hello-world'
"""

from __future__ import annotations

import re
import textwrap

from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode

from docspine.document.nodes import (
    CodeBlock,
    Directive,
    Element,
    Heading,
    InlineCode,
    Node,
    Raw,
    Reference,
    Text,
)

REF_PREFIX = "@ref"

_md = MarkdownIt("commonmark").enable("table")

_SLUG_DROP = re.compile(r"[^\w\s-]", re.UNICODE)
_SLUG_SPACE = re.compile(r"[\s_-]+")


def slugify(text: str) -> str:
    """Anchor key for a heading: lowercase, punctuation dropped, dashes for spaces."""
    slug = _SLUG_DROP.sub("", text.strip().lower())
    return _SLUG_SPACE.sub("-", slug).strip("-")


def parse_markdown(text: str, line_offset: int = 0) -> list[Node]:
    """Parse markdown ``text`` into a forest of document nodes.

    Args:
        text: Markdown source
        line_offset: Added to every line number (for content spliced into
            another file)
    """
    root = SyntaxTreeNode(_md.parse(text))
    return [_convert_block(child, line_offset) for child in root.children]


def _line_of(node: SyntaxTreeNode, offset: int) -> int | None:
    if node.map:
        return node.map[0] + 1 + offset
    return None


def _convert_block(node: SyntaxTreeNode, offset: int) -> Node:
    line = _line_of(node, offset)

    if node.type == "heading":
        return Heading(int(node.tag[1:]), children=_convert_children(node, offset, line), line=line)

    if node.type == "fence":
        info = node.info.strip()
        if info.startswith("@") and len(info) > 1:
            name, _, argument = info[1:].partition(" ")
            return Directive(name, argument.strip(), node.content, line=line)
        return CodeBlock(info, node.content, line=line)

    if node.type == "code_block":
        return CodeBlock("", node.content, line=line)

    if node.type == "html_block":
        return Raw(node.content, block=True, line=line)

    attrs = dict(node.attrs)
    if node.type in ("bullet_list", "ordered_list"):
        attrs["tight"] = _is_tight(node)
    return Element(node.type, attrs, children=_convert_children(node, offset, line), line=line)


def _is_tight(node: SyntaxTreeNode) -> bool:
    for item in node.children:
        for child in item.children:
            if child.type == "paragraph" and not child.hidden:
                return False
    return True


def _convert_children(node: SyntaxTreeNode, offset: int, line: int | None) -> list[Node]:
    result: list[Node] = []
    for child in node.children:
        if child.type == "inline":
            result.extend(_convert_inline(c, line) for c in child.children)
        elif child.block:
            result.append(_convert_block(child, offset))
        else:
            result.append(_convert_inline(child, line))
    return result


def _convert_inline(node: SyntaxTreeNode, line: int | None) -> Node:
    if node.type == "text":
        return Text(node.content, line=line)
    if node.type == "code_inline":
        return InlineCode(node.content, line=line)
    if node.type == "html_inline":
        return Raw(node.content, line=line)

    children = [_convert_inline(child, line) for child in node.children]

    if node.type == "link":
        href = str(node.attrs.get("href", ""))
        if href == REF_PREFIX or href.startswith(REF_PREFIX + ":"):
            target = href[len(REF_PREFIX) + 1 :].strip() or reference_key(children)
            return Reference(target, children=children, line=line)

    return Element(node.type, dict(node.attrs), children=children, line=line)


def reference_key(label: list[Node]) -> str:
    """Target key implied by a reference label.

    A label made of a single code span names a symbol verbatim; anything
    else names a heading and is slugified.
    """
    if len(label) == 1 and isinstance(label[0], InlineCode):
        return label[0].content.strip()
    return slugify("".join(node.text() for node in label))


_FENCE = re.compile(r"^\s*(```|~~~)")


def fence_doctests(docstring: str) -> str:
    """Wrap bare ``>>>`` sessions of a docstring in ``pycon`` fences.

    A session starts at a line beginning with ``>>>`` and runs to the next
    blank line, like the stdlib doctest parser sees it.
    """
    out: list[str] = []
    session: list[str] = []
    in_fence = False

    def flush() -> None:
        if session:
            out.append("```pycon")
            out.extend(textwrap.dedent("\n".join(session)).splitlines())
            out.append("```")
            session.clear()

    for line in docstring.splitlines():
        if _FENCE.match(line):
            flush()
            in_fence = not in_fence
            out.append(line)
        elif in_fence:
            out.append(line)
        elif session and line.strip():
            session.append(line)
        elif line.lstrip().startswith(">>>"):
            session.append(line)
        else:
            flush()
            out.append(line)
    flush()
    return "\n".join(out)
