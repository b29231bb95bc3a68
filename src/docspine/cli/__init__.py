"""
CLI layer for docspine.

Terminal transport only: argument parsing, coloured output and tables.
All build logic lives in :mod:`docspine.builder`.

Entry point::

    docspine --help
"""

from docspine.cli.app import app

__all__ = ["app"]
