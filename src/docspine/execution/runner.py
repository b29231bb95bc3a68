"""Timeout-bounded execution of documentation snippets.

Every call starts a fresh child interpreter (see
:mod:`docspine.execution.sandbox`), so no state leaks between blocks. A
continued session is rebuilt by passing the earlier snippets as ``setup``.

Architecture Decisions:
    - subprocess, not threads: a runaway snippet is killed at the timeout
      instead of lingering in the build process.
    - JSON over stdin/stdout: no pickling of user objects across processes.

Tags:
    execution, subprocess, timeout, doctest, sandbox
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from docspine.core.config import BuildConfig
from docspine.core.errors import ExecutionError, ExecutionTimeout
from docspine.execution.sandbox import RESULT_MARKER
from docspine.framework.logging import get_logger

log = get_logger(__name__)

Mode = Literal["doctest", "example"]


@dataclass(frozen=True)
class SnippetOutcome:
    """What one snippet printed, and the exception line if it raised."""

    output: str
    exception: str | None = None

    @property
    def failed(self) -> bool:
        return self.exception is not None


class CodeRunner:
    """Run snippets in a child interpreter with a wall-clock timeout."""

    def __init__(
        self,
        timeout: float = 10.0,
        cwd: Path | None = None,
        extra_paths: Iterable[Path] = (),
        python: str | None = None,
    ):
        self.timeout = timeout
        self.cwd = cwd
        self.extra_paths = [str(p) for p in extra_paths]
        self.python = python or sys.executable

    @classmethod
    def for_config(cls, config: BuildConfig) -> CodeRunner:
        """Runner rooted at ``config.root`` with its sources importable."""
        root = config.root.resolve()
        return cls(timeout=config.doctest_timeout, cwd=root, extra_paths=[root / "src", root])

    def run(
        self,
        snippets: Sequence[str],
        *,
        setup: Sequence[str] = (),
        mode: Mode = "doctest",
    ) -> list[SnippetOutcome]:
        """Execute ``snippets`` after replaying ``setup``.

        Raises:
            ExecutionTimeout: the child ran longer than ``timeout``
            ExecutionError: the child could not start or gave no reply
        """
        payload = json.dumps({"mode": mode, "setup": list(setup), "snippets": list(snippets)})
        cmd = [self.python, "-m", "docspine.execution.sandbox"]
        log.debug("execution.start", mode=mode, snippets=len(snippets), setup=len(setup))

        try:
            proc = subprocess.run(
                cmd,
                input=payload,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=str(self.cwd) if self.cwd else None,
                env=self._env(),
            )
        except subprocess.TimeoutExpired as exc:
            raise ExecutionTimeout(self.timeout, cause=exc).with_context(command=" ".join(cmd)) from exc
        except OSError as exc:
            raise ExecutionError(f"cannot start sandbox: {exc}", cause=exc).with_context(
                command=" ".join(cmd)
            ) from exc

        _, marker, reply = proc.stdout.rpartition(RESULT_MARKER)
        if not marker:
            stderr_tail = proc.stderr.strip().splitlines()[-1:] or ["no output"]
            raise ExecutionError(
                f"sandbox exited with code {proc.returncode}: {stderr_tail[0]}"
            ).with_context(command=" ".join(cmd))

        try:
            outcomes = json.loads(reply)["outcomes"]
        except (ValueError, KeyError) as exc:
            raise ExecutionError(f"malformed sandbox reply: {exc}", cause=exc) from exc
        return [SnippetOutcome(o["output"], o.get("exception")) for o in outcomes]

    def _env(self) -> dict[str, str]:
        paths = [*self.extra_paths, *(p for p in sys.path if p)]
        existing = os.environ.get("PYTHONPATH")
        if existing:
            paths.append(existing)
        return {**os.environ, "PYTHONPATH": os.pathsep.join(paths)}
