"""
HTML output.

Each page is serialised to markdown (links pointing at ``.html`` pages),
converted to an HTML fragment by Python-Markdown and wrapped in the
``page.html.j2`` Jinja2 template together with a navigation list of all
pages.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import markdown
from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from docspine.core.errors import WriteError
from docspine.document.model import Document, SourceFile
from docspine.document.nodes import Heading
from docspine.writers.base import Writer, relative_href

MARKDOWN_EXTENSIONS = ["tables", "fenced_code"]


class HtmlWriter(Writer):
    """Write each page as a standalone HTML document."""

    format = "html"
    suffix = ".html"
    template_name = "page.html.j2"

    def __init__(self, template_dir: Path | None = None):
        if template_dir is None:
            template_dir = Path(__file__).parent / "templates"
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape(["html", "xml", "j2"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render_file(self, document: Document, source: SourceFile) -> str:
        text = self.to_markdown(source, list_indent=4)
        body = markdown.markdown(text, extensions=MARKDOWN_EXTENSIONS)
        try:
            template = self.env.get_template(self.template_name)
            return template.render(
                title=page_title(source),
                body=body,
                pages=self._navigation(document, source),
                errors=[str(error) for error in source.errors],
                build_id=document.build_id,
            )
        except TemplateError as e:
            raise WriteError(f"cannot render {source.path}: {e}", cause=e).with_context(
                file=source.path
            ) from e

    def _navigation(self, document: Document, current: SourceFile) -> list[dict[str, Any]]:
        return [
            {
                "title": page_title(page),
                "href": relative_href(current.path, page.path, self.suffix),
                "current": page is current,
            }
            for page in document.files
        ]


def page_title(source: SourceFile) -> str:
    """Text of the first top-level heading, else the file stem."""
    for node in source.tree:
        if isinstance(node, Heading) and node.level == 1:
            return node.text().strip()
    return Path(source.path).stem
