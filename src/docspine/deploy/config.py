"""Configuration for publishing built documentation.

Two models split the publish decision cleanly: ``DeployOptions`` is what
the project asks for (which repository, which branch, which CI job is the
one that publishes), ``DeployEnvironment`` is what the CI job actually is.
The environment is read once, in ``DeployEnvironment.from_env()``, so the
publish gate is a pure function of the two.

Key Concepts:
    DeployOptions: Target repository and branch, the job (OS + Python
        version) allowed to publish, and the directory to publish.
    DeployEnvironment: Snapshot of the CI variables and credentials.

Architecture Decisions:
    - Pydantic v2 models with ``from_env()`` classmethods, like the build
      configuration. Override precedence: kwargs > env vars > defaults.
    - Credentials are never logged; ``has_key`` is all the gate needs.

Tags:
    config, deploy, ci, environment, pydantic
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class DeployOptions(BaseModel):
    """What to publish and where.

    Example::

        options = DeployOptions(repo="github.com/acme/widgets.git")
    """

    repo: str = Field(description="Target repository, e.g. 'github.com/acme/widgets.git'")
    branch: str = Field(default="gh-pages", description="Branch receiving the built site")
    latest: str = Field(default="main", description="Branch whose builds publish to 'latest/'")
    os_name: str = Field(default="linux", description="CI OS allowed to publish")
    python: str = Field(default="3.12", description="CI Python version allowed to publish")
    target: Path = Field(default=Path("site"), description="Directory to publish")
    stable_dir: str = Field(default="stable", description="Directory updated by tagged builds")
    latest_dir: str = Field(default="latest", description="Directory updated by branch builds")


class DeployEnvironment(BaseModel):
    """CI metadata and credentials of the current job."""

    repo_slug: str = ""
    branch: str = ""
    pull_request: bool = False
    tag: str = ""
    os_name: str = ""
    python: str = ""
    documenter_key: str = Field(default="", repr=False)
    github_api_key: str = Field(default="", repr=False)
    commit: str = ""
    debug: bool = False

    @property
    def has_key(self) -> bool:
        return bool(self.documenter_key or self.github_api_key)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides: Any) -> DeployEnvironment:
        """Create the snapshot from CI environment variables."""
        env = os.environ if environ is None else environ
        env_map = {
            "repo_slug": "CI_REPO_SLUG",
            "branch": "CI_BRANCH",
            "pull_request": "CI_PULL_REQUEST",
            "tag": "CI_TAG",
            "os_name": "CI_OS_NAME",
            "python": "CI_PYTHON_VERSION",
            "documenter_key": "DOCUMENTER_KEY",
            "github_api_key": "GITHUB_API_KEY",
            "commit": "CI_COMMIT",
            "debug": "DOCSPINE_DEBUG",
        }
        values: dict[str, Any] = {}
        for field_name, env_var in env_map.items():
            env_val = env.get(env_var)
            if env_val is not None:
                if field_name == "pull_request":
                    # CI services report "false" or the PR number
                    values[field_name] = env_val.strip().lower() not in ("", "false", "0", "no")
                elif field_name == "debug":
                    values[field_name] = env_val.lower() in ("true", "1", "yes")
                else:
                    values[field_name] = env_val.strip()
        values.update(overrides)
        return cls(**values)
