"""Markdown output: the resolved tree written back as ``.md`` pages."""

from __future__ import annotations

from docspine.document.model import Document, SourceFile
from docspine.writers.base import Writer


class MarkdownWriter(Writer):
    """Write each page as markdown with explicit ``<a id>`` anchors."""

    format = "markdown"
    suffix = ".md"

    def render_file(self, document: Document, source: SourceFile) -> str:
        return self.to_markdown(source)
