"""
Structured error types for docspine.

Two families of failure exist in a documentation build and they propagate
differently:

- **Fatal errors** (``DocspineError`` subclasses) stop the build at once and
  surface to the caller: unreadable sources, broken configuration, a source
  tree that vanished mid-build, a failing ``git`` command while publishing.
- **Recoverable errors** (``ErrorKind`` values) describe one defective node
  of one file. They are appended to the document's error collection by the
  stage that found them and processing continues.

Manifesto:
    - **Typed Error Hierarchy:** Different error types for different concerns
    - **Rich Context:** Errors carry the file, line and stage they came from
    - **Error Chaining:** Preserve original exceptions while adding context
    - **Fail-soft collection:** Only fatal kinds are raised past a stage

Architecture:
    ::

        ┌────────────────────────────────────────────────────────────┐
        │                      DocspineError                         │
        │               (category, context, cause)                   │
        ├────────────────────────────────────────────────────────────┤
        │  ConfigError      SourceIOError     ParseError             │
        │  (CONFIG)         (SOURCE)          (PARSE)                │
        │                                                            │
        │  FatalStageError  ExecutionError    WriteError             │
        │  (PIPELINE)       (EXECUTION)       (OUTPUT)               │
        │                        │                                   │
        │                   ExecutionTimeout  DeployError (DEPLOY)   │
        ├────────────────────────────────────────────────────────────┤
        │  AnchorError (recoverable, raised by the registry only)    │
        │    DuplicateAnchorError                                    │
        │    UnresolvedReferenceError  AmbiguousReferenceError       │
        └────────────────────────────────────────────────────────────┘

Examples:
    >>> error = ParseError("bad utf-8").with_context(file="intro.md")
    >>> error.context.file
    'intro.md'
    >>> error.to_dict()["category"]
    'PARSE'

Tags:
    error-handling, exception-hierarchy, error-context, docspine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Categories used to classify fatal errors in logs."""

    CONFIG = "CONFIG"
    SOURCE = "SOURCE"
    PARSE = "PARSE"
    PIPELINE = "PIPELINE"
    EXECUTION = "EXECUTION"
    OUTPUT = "OUTPUT"
    DEPLOY = "DEPLOY"
    INTERNAL = "INTERNAL"


class ErrorKind(str, Enum):
    """Kinds of recoverable error collected on a document."""

    DUPLICATE_ANCHOR = "duplicate-anchor"
    AMBIGUOUS_REFERENCE = "ambiguous-reference"
    UNRESOLVED_REFERENCE = "unresolved-reference"
    DOCTEST_FAILURE = "doctest-failure"
    MISSING_DOCSTRING = "missing-docstring"
    EXAMPLE_FAILURE = "example-failure"
    INCLUDE_FAILURE = "include-failure"
    INVALID_DIRECTIVE = "invalid-directive"


@dataclass
class ErrorContext:
    """
    Where a fatal error happened.

    Attributes:
        stage: Pipeline stage that was running
        file: Source file path (relative to the source directory)
        line: 1-based line in ``file``
        command: External command that failed (deploy, sandbox)
        metadata: Additional key-value pairs
    """

    stage: str | None = None
    file: str | None = None
    line: int | None = None
    command: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["stage", "file", "line", "command"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class DocspineError(Exception):
    """
    Base class for every fatal docspine error.

    Subclasses pick a ``default_category``; callers attach location details
    fluently with :meth:`with_context` and chain the original exception via
    ``cause``.

    Examples:
        >>> try:
        ...     raise OSError("disk gone")
        ... except OSError as e:
        ...     error = SourceIOError("cannot read sources", cause=e)
        >>> error.cause
        OSError('disk gone')
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> DocspineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise FatalStageError("source tree vanished").with_context(stage="expand")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# FATAL ERRORS
# =============================================================================


class ConfigError(DocspineError):
    """Invalid or inconsistent build configuration."""

    default_category = ErrorCategory.CONFIG


class SourceIOError(DocspineError):
    """Source directory or a source file could not be read."""

    default_category = ErrorCategory.SOURCE


class ParseError(DocspineError):
    """A source file could not be decoded or parsed."""

    default_category = ErrorCategory.PARSE


class FatalStageError(DocspineError):
    """A pipeline stage hit a condition that makes continuing pointless."""

    default_category = ErrorCategory.PIPELINE


class ExecutionError(DocspineError):
    """The code sandbox failed (crashed, produced garbage, could not start)."""

    default_category = ErrorCategory.EXECUTION


class ExecutionTimeout(ExecutionError):
    """A snippet ran past its time budget."""

    def __init__(self, timeout: float, **kwargs: Any):
        super().__init__(f"execution timed out after {timeout:g}s", **kwargs)
        self.timeout = timeout


class WriteError(DocspineError):
    """A writer could not produce its output files."""

    default_category = ErrorCategory.OUTPUT


class DeployError(DocspineError):
    """An external command of the publish workflow failed."""

    default_category = ErrorCategory.DEPLOY


# =============================================================================
# RECOVERABLE ANCHOR ERRORS
# =============================================================================


class AnchorError(Exception):
    """Base for registry lookups that a stage turns into an error record."""

    kind: ErrorKind

    def __init__(self, key: str, message: str):
        super().__init__(message)
        self.key = key
        self.message = message


class DuplicateAnchorError(AnchorError):
    """An anchor key was registered twice in the same scope."""

    kind = ErrorKind.DUPLICATE_ANCHOR

    def __init__(self, key: str, scope: str, existing_file: str):
        super().__init__(
            key,
            f"duplicate anchor '{key}' in {scope} scope (first defined in {existing_file})",
        )
        self.scope = scope
        self.existing_file = existing_file


class UnresolvedReferenceError(AnchorError):
    """No anchor matches the reference key."""

    kind = ErrorKind.UNRESOLVED_REFERENCE

    def __init__(self, key: str):
        super().__init__(key, f"no anchor found for reference '{key}'")


class AmbiguousReferenceError(AnchorError):
    """Several anchors at the same scope match the reference key."""

    kind = ErrorKind.AMBIGUOUS_REFERENCE

    def __init__(self, key: str, scope: str, candidates: list[str]):
        super().__init__(
            key,
            f"reference '{key}' is ambiguous in {scope} scope: {', '.join(sorted(candidates))}",
        )
        self.scope = scope
        self.candidates = candidates
