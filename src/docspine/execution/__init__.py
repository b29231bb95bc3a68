"""Isolated execution of ``@example`` blocks and doctests."""

from docspine.execution.runner import CodeRunner, SnippetOutcome

__all__ = ["CodeRunner", "SnippetOutcome"]
