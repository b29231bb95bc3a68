"""
Document layer: node types, markdown conversion, anchors, tree walking and
the per-build document model.
"""

from docspine.document.anchors import GLOBAL_SCOPE, Anchor, AnchorRegistry
from docspine.document.markdown import fence_doctests, parse_markdown, reference_key, slugify
from docspine.document.model import (
    CheckResult,
    Document,
    ErrorRecord,
    SourceFile,
    parse_document,
    read_meta,
)
from docspine.document.walker import Action, Replace, iter_nodes, walk

__all__ = [
    "Anchor",
    "AnchorRegistry",
    "GLOBAL_SCOPE",
    "parse_markdown",
    "fence_doctests",
    "reference_key",
    "slugify",
    "Document",
    "SourceFile",
    "ErrorRecord",
    "CheckResult",
    "parse_document",
    "read_meta",
    "Action",
    "Replace",
    "walk",
    "iter_nodes",
]
