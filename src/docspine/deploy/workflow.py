"""Publish workflow: push built documentation to a hosting branch.

Key Concepts:
    should_deploy(): Pure gate over ``DeployOptions`` and
        ``DeployEnvironment``. Publishing happens from exactly one CI job:
        the right repository, not a pull request, credentials present,
        the chosen OS and Python version, and either the ``latest``
        branch or a tag.
    deploy_docs(): Gate, then optionally rebuild ``target`` through a
        ``make`` hook, clone the hosting branch into a temporary
        directory, copy the build into ``latest/`` (branch build) or
        ``stable/`` and ``<tag>/`` (tagged build), commit once and push.
    build_site(): The usual ``make`` hook: an HTML ``build_docs`` run
        writing into ``target``.
    GitRunner: Runs ``git`` via ``subprocess.run`` with a timeout; any
        non-zero exit raises ``DeployError``.

Architecture Decisions:
    - All-or-nothing: the push is the last command, so a failure earlier
      leaves the remote untouched.
    - Unmet gate is not an error: it is logged and ``False`` is returned.

Tags:
    deploy, git, ci, workflow, publish
"""

from __future__ import annotations

import os
import re
import shutil
import subprocess
import tempfile
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from docspine.builder import build_docs
from docspine.core.config import BuildConfig
from docspine.core.errors import DeployError
from docspine.deploy.config import DeployEnvironment, DeployOptions
from docspine.framework.logging import get_logger, log_step

log = get_logger(__name__)

_REDACTED = re.compile(r"^https://[^/@]+@")


def should_deploy(options: DeployOptions, env: DeployEnvironment) -> bool:
    """Whether this CI job is the one that publishes."""
    return not gate_failures(options, env)


def gate_failures(options: DeployOptions, env: DeployEnvironment) -> list[str]:
    """Reasons the publish gate is closed (empty when it is open)."""
    failures = []
    if not env.repo_slug or env.repo_slug not in options.repo:
        failures.append(f"repository slug {env.repo_slug!r} does not match {options.repo!r}")
    if env.pull_request:
        failures.append("pull request build")
    if not env.has_key:
        failures.append("no deploy key (DOCUMENTER_KEY or GITHUB_API_KEY)")
    if env.os_name != options.os_name:
        failures.append(f"OS {env.os_name!r} is not {options.os_name!r}")
    if env.python != options.python:
        failures.append(f"Python {env.python!r} is not {options.python!r}")
    if not env.tag and env.branch != options.latest:
        failures.append(f"branch {env.branch!r} is not {options.latest!r} and no tag is set")
    return failures


class GitRunner:
    """Run git commands, raising ``DeployError`` on failure."""

    def __init__(self, timeout: int = 300, env: dict[str, str] | None = None):
        self.timeout = timeout
        self.env = env

    def run(self, args: list[str], cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
        cmd = ["git", *args]
        log.debug("deploy.git", args=_redact(args))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=str(cwd) if cwd else None,
                env={**os.environ, **self.env} if self.env else None,
            )
        except subprocess.TimeoutExpired as exc:
            raise DeployError(
                f"git command timed out after {self.timeout}s: {' '.join(_redact(args))}",
                cause=exc,
            ).with_context(command=" ".join(_redact(cmd))) from exc
        except OSError as exc:
            raise DeployError(f"cannot run git: {exc}", cause=exc) from exc

        if result.returncode != 0:
            raise DeployError(
                f"git command failed (exit {result.returncode}): "
                f"{' '.join(_redact(args))}\n{result.stderr}"
            ).with_context(command=" ".join(_redact(cmd)))
        return result


def deploy_docs(
    options: DeployOptions,
    env: DeployEnvironment | None = None,
    git: GitRunner | None = None,
    root: Path | None = None,
    make: Callable[[], None] | None = None,
) -> bool:
    """Publish ``options.target`` to ``options.branch`` when the gate allows.

    Args:
        make: Produces the site. When given, ``target`` is removed first and
            ``make()`` runs before anything is checked out.

    Returns:
        True when a commit was pushed, False when the gate is closed or
        the hosting branch already holds this build

    Raises:
        DeployError: a git command failed or the target directory is missing
    """
    env = env or DeployEnvironment.from_env()
    if env.debug:
        log.info(
            "deploy.env",
            has_key=env.has_key,
            repo_slug=env.repo_slug,
            pull_request=env.pull_request,
            os_name=env.os_name,
            python=env.python,
            branch=env.branch,
            tag=env.tag,
        )
    failures = gate_failures(options, env)
    if failures:
        log.info("deploy.skipped", reasons=failures)
        return False

    root = root or Path.cwd()
    target = (root / options.target).resolve()
    if make is not None:
        if target.exists():
            shutil.rmtree(target)
        with log_step("deploy.make", target=str(target)):
            make()
    if not target.is_dir():
        raise DeployError(f"nothing to deploy: {target} does not exist")

    git = git or GitRunner()
    with log_step("deploy.publish", branch=options.branch, tag=env.tag or None):
        with tempfile.TemporaryDirectory(prefix="docspine-deploy-") as tmp:
            workdir = Path(tmp)
            with _ssh_key(env, git):
                upstream = _upstream_url(options.repo, env)
                _checkout(git, workdir, upstream, options.branch)

                if env.tag:
                    _replace_dir(target, workdir / options.stable_dir)
                    _replace_dir(target, workdir / env.tag)
                else:
                    _replace_dir(target, workdir / options.latest_dir)

                revision = env.commit or _head_revision(git, root)
                git.run(["add", "-A", "."], cwd=workdir)
                status = git.run(["status", "--porcelain"], cwd=workdir)
                if not status.stdout.strip():
                    log.info("deploy.unchanged", branch=options.branch)
                    return False
                git.run(["commit", "-m", f"build based on {revision}"], cwd=workdir)
                git.run(["push", "-q", "upstream", f"HEAD:{options.branch}"], cwd=workdir)

    log.info("deploy.pushed", branch=options.branch, revision=revision)
    return True


def build_site(config: BuildConfig, target: Path) -> Callable[[], None]:
    """A ``make`` hook building the HTML site of ``config`` into ``target``."""

    def make() -> None:
        result = build_docs(config, formats=["html"], build=target.resolve())
        if not result.success:
            raise DeployError(
                f"documentation build failed with {len(result.errors)} error(s); not deploying"
            )

    return make


def _checkout(git: GitRunner, workdir: Path, upstream: str, branch: str) -> None:
    git.run(["init", "-q"], cwd=workdir)
    git.run(["config", "user.name", "docspine"], cwd=workdir)
    git.run(["config", "user.email", "docspine@localhost"], cwd=workdir)
    git.run(["remote", "add", "upstream", upstream], cwd=workdir)
    git.run(["fetch", "-q", "upstream"], cwd=workdir)
    remote_branch = git.run(["ls-remote", "--heads", "upstream", branch], cwd=workdir)
    if remote_branch.stdout.strip():
        git.run(["checkout", "-q", "-b", branch, f"upstream/{branch}"], cwd=workdir)
    else:
        git.run(["checkout", "-q", "--orphan", branch], cwd=workdir)


def _head_revision(git: GitRunner, root: Path) -> str:
    return git.run(["rev-parse", "--short", "HEAD"], cwd=root).stdout.strip()


def _replace_dir(source: Path, destination: Path) -> None:
    if destination.exists():
        shutil.rmtree(destination)
    shutil.copytree(source, destination)


def _upstream_url(repo: str, env: DeployEnvironment) -> str:
    if env.documenter_key:
        host, _, path = repo.partition("/")
        return f"git@{host}:{path}"
    return f"https://{env.github_api_key}@{repo}"


@contextmanager
def _ssh_key(env: DeployEnvironment, git: GitRunner) -> Iterator[None]:
    """Point ``git`` at the SSH deploy key, written to a private file meanwhile."""
    if not env.documenter_key:
        yield
        return
    previous = git.env
    fd, name = tempfile.mkstemp(prefix="docspine-key-")
    try:
        with os.fdopen(fd, "w") as handle:
            handle.write(env.documenter_key.strip() + "\n")
        os.chmod(name, 0o600)
        ssh = f"ssh -i {name} -o StrictHostKeyChecking=no -o IdentitiesOnly=yes"
        git.env = {**(previous or {}), "GIT_SSH_COMMAND": ssh}
        yield
    finally:
        git.env = previous
        Path(name).unlink(missing_ok=True)


def _redact(args: list[str]) -> list[str]:
    return [_REDACTED.sub("https://***@", arg) for arg in args]
