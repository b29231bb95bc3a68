"""Core primitives shared by every docspine layer: errors and configuration."""

from docspine.core.config import BuildConfig, CompareMode
from docspine.core.errors import (
    AmbiguousReferenceError,
    AnchorError,
    ConfigError,
    DeployError,
    DocspineError,
    DuplicateAnchorError,
    ErrorCategory,
    ErrorContext,
    ErrorKind,
    ExecutionError,
    ExecutionTimeout,
    FatalStageError,
    ParseError,
    SourceIOError,
    UnresolvedReferenceError,
    WriteError,
)

__all__ = [
    "BuildConfig",
    "CompareMode",
    "DocspineError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorKind",
    "ConfigError",
    "SourceIOError",
    "ParseError",
    "FatalStageError",
    "ExecutionError",
    "ExecutionTimeout",
    "WriteError",
    "DeployError",
    "AnchorError",
    "DuplicateAnchorError",
    "UnresolvedReferenceError",
    "AmbiguousReferenceError",
]
