"""
Cross-reference resolution.

Runs after expansion has finished for *every* file: a reference in one
page may point at a symbol that only got its anchor while another page
was expanded.

Each ``Reference`` becomes either a ``Link`` (anchor found) or a
``BrokenReference`` plus one error record (unresolved or ambiguous). Both
results are final: running the stage again finds no placeholders, so it
changes nothing and reports nothing new.

Tags:
    cross-references, anchors, links, resolution
"""

from __future__ import annotations

from docspine.core.errors import AnchorError
from docspine.document.model import Document, SourceFile
from docspine.document.nodes import BrokenReference, Link, Node, Reference, Text
from docspine.document.walker import Replace, Visit, walk
from docspine.framework.logging import get_logger
from docspine.framework.pipeline import Stage

log = get_logger(__name__)


class CrossReferences(Stage):
    """Bind every reference placeholder to an anchor."""

    name = "crossrefs"
    description = "Resolve reference placeholders to links"

    def run(self, document: Document) -> None:
        resolved = 0
        for source in document.files:
            resolved += walk(source.tree, lambda node, source=source: resolve(document, source, node))
        log.info(
            "crossrefs.done",
            replaced=resolved,
            unresolved=document.unresolved_references,
        )


def resolve(document: Document, source: SourceFile, node: Node) -> Visit:
    """Visitor turning one ``Reference`` into a ``Link`` or ``BrokenReference``."""
    if not isinstance(node, Reference):
        return None

    try:
        anchor = document.anchors.resolve(node.target, node.lookup_file or source.path)
    except AnchorError as e:
        document.report(e.kind, e.message, source, node.line)
        document.unresolved_references += 1
        log.debug("crossrefs.unresolved", target=node.target, file=source.path, kind=e.kind.value)
        return Replace(
            BrokenReference(node.target, e.kind.value, children=node.children, line=node.line)
        )

    label = node.children or [Text(anchor.label)]
    return Replace(Link(anchor.file, anchor.key, children=label, line=node.line))
