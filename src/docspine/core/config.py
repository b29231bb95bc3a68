"""Build configuration.

Provides the pydantic v2 model that snapshots every option of one build.
The model is created once per build invocation and never read from global
state afterwards; stages receive it through the document.

Key Concepts:
    BuildConfig: Paths, doctest behaviour, symbol modules, output formats.
        Uses ``DOCSPINE_*`` env vars via ``from_env()``.
    CompareMode: How doctest output is compared with the expected text.

Architecture Decisions:
    - Pydantic v2 (not dataclass): validation of enums/paths at startup and
      ``model_dump()`` for the debug dump.
    - from_env() classmethod: explicit env-var parsing, same pattern as the
      deploy configuration.
    - Override precedence: kwargs > env vars > field defaults.

Tags:
    config, settings, pydantic, build, environment
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from docspine.core.errors import ConfigError


class CompareMode(str, Enum):
    """Doctest output comparison mode."""

    EXACT = "exact"  # Byte-for-byte, trailing newlines normalised
    WHITESPACE = "whitespace"  # Runs of whitespace collapsed before comparing


SUPPORTED_FORMATS = ("markdown", "html")


class BuildConfig(BaseModel):
    """Configuration for a documentation build.

    Example::

        config = BuildConfig(
            root="docs",
            modules=["mypackage"],
            doctest_timeout=5,
        )
        config.source_dir  # docs/src
    """

    root: Path = Field(default_factory=Path.cwd, description="Directory the build runs from")
    source: Path = Field(default=Path("src"), description="Markdown sources, relative to root")
    build: Path = Field(default=Path("build"), description="Output directory, relative to root")
    clean: bool = Field(default=True, description="Empty the build directory before writing")

    doctest: bool = Field(default=True, description="Run doctest blocks")
    doctest_timeout: float = Field(default=10.0, gt=0, description="Per-block execution timeout (seconds)")
    doctest_compare: CompareMode = Field(default=CompareMode.EXACT, description="Doctest comparison mode")

    modules: list[str] = Field(
        default_factory=list,
        description="Modules whose docstrings should all appear in the output",
    )
    formats: list[str] = Field(default_factory=lambda: ["markdown"], description="Output formats")
    debug: bool = Field(default=False, description="Return the document for inspection")

    @field_validator("formats")
    @classmethod
    def _check_formats(cls, value: list[str]) -> list[str]:
        unknown = [f for f in value if f not in SUPPORTED_FORMATS]
        if unknown:
            raise ValueError(f"unsupported format(s): {', '.join(unknown)}")
        return value

    @property
    def source_dir(self) -> Path:
        """Absolute source directory."""
        return (self.root / self.source).resolve()

    @property
    def build_dir(self) -> Path:
        """Absolute build directory."""
        return (self.root / self.build).resolve()

    @classmethod
    def load(cls, **values: Any) -> BuildConfig:
        """Validate ``values``, raising ``ConfigError`` instead of pydantic's error."""
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(f"invalid build configuration: {e}", cause=e) from e

    @classmethod
    def from_env(cls, **overrides: Any) -> BuildConfig:
        """Create config from DOCSPINE_* environment variables."""
        env_map = {
            "root": "DOCSPINE_ROOT",
            "source": "DOCSPINE_SOURCE",
            "build": "DOCSPINE_BUILD",
            "clean": "DOCSPINE_CLEAN",
            "doctest": "DOCSPINE_DOCTEST",
            "doctest_timeout": "DOCSPINE_DOCTEST_TIMEOUT",
            "doctest_compare": "DOCSPINE_DOCTEST_COMPARE",
            "modules": "DOCSPINE_MODULES",
            "formats": "DOCSPINE_FORMATS",
            "debug": "DOCSPINE_DEBUG",
        }
        values: dict[str, Any] = {}
        for field_name, env_var in env_map.items():
            env_val = os.environ.get(env_var)
            if env_val is None:
                continue
            if field_name in ("modules", "formats"):
                values[field_name] = [m.strip() for m in env_val.split(",") if m.strip()]
            elif field_name in ("clean", "doctest", "debug"):
                values[field_name] = env_val.lower() in ("true", "1", "yes")
            else:
                values[field_name] = env_val
        values.update(overrides)
        return cls.load(**values)

    @classmethod
    def from_yaml(cls, yaml_path: Path, **overrides: Any) -> BuildConfig:
        """Load configuration from a YAML file.

        Relative ``root`` values are taken relative to the YAML file.

        Args:
            yaml_path: Path to YAML configuration file
            **overrides: Values that win over the file

        Returns:
            BuildConfig instance
        """
        yaml_path = Path(yaml_path)
        try:
            with open(yaml_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"cannot read configuration {yaml_path}: {e}", cause=e) from e

        if not isinstance(data, dict):
            raise ConfigError(f"configuration {yaml_path} must be a mapping")

        root = Path(data.get("root", "."))
        if not root.is_absolute():
            data["root"] = yaml_path.parent / root
        data.update(overrides)
        return cls.load(**data)
