"""Writers turning the resolved document into output files."""

from docspine.core.errors import ConfigError
from docspine.writers.base import MarkdownRenderer, Writer, relative_href
from docspine.writers.html_writer import HtmlWriter
from docspine.writers.markdown_writer import MarkdownWriter

WRITERS: dict[str, type[Writer]] = {
    MarkdownWriter.format: MarkdownWriter,
    HtmlWriter.format: HtmlWriter,
}


def writers_for(formats: list[str]) -> list[Writer]:
    """One writer instance per configured output format."""
    try:
        return [WRITERS[name]() for name in formats]
    except KeyError as e:
        raise ConfigError(f"unsupported output format: {e.args[0]}") from e


__all__ = [
    "Writer",
    "MarkdownRenderer",
    "MarkdownWriter",
    "HtmlWriter",
    "WRITERS",
    "writers_for",
    "relative_href",
]
