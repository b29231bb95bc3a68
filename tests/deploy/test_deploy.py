"""Tests for the publish workflow.

Covers:
- DeployEnvironment.from_env() parsing of CI variables
- the publish gate: every condition can close it
- deploy_docs(): skipped without git calls, latest vs tagged layouts,
  orphan branch creation, unchanged builds, git failures before the push
- the make hook: runs after cleaning the target and before any git command
- the DOCSPINE_DEBUG environment snapshot and build_site()
- GitRunner error handling, credential redaction, SSH key environment
"""

import subprocess
from pathlib import Path

import pytest
from structlog.testing import capture_logs

from docspine.core.config import BuildConfig
from docspine.core.errors import DeployError
from docspine.deploy import DeployEnvironment, DeployOptions, build_site, deploy_docs, should_deploy
from docspine.deploy.workflow import GitRunner, _upstream_url, gate_failures

REPO = "github.com/acme/widgets.git"


def _env(**overrides):
    values = {
        "repo_slug": "acme/widgets",
        "branch": "main",
        "pull_request": False,
        "os_name": "linux",
        "python": "3.12",
        "github_api_key": "token123",
        "commit": "abc1234",
    }
    values.update(overrides)
    return DeployEnvironment(**values)


class FakeGit:
    """Records git invocations; snapshots the work tree at ``add`` time."""

    def __init__(self, remote_branch="", status=" M latest/index.md", fail_on=None, journal=None):
        self.remote_branch = remote_branch
        self.status = status
        self.fail_on = fail_on
        self.journal = journal if journal is not None else []
        self.calls = []
        self.envs = []
        self.tree = []
        self.env = None

    def run(self, args, cwd=None):
        self.calls.append(args)
        self.envs.append(self.env)
        self.journal.append(f"git {args[0]}")
        if self.fail_on and args[0] == self.fail_on:
            raise DeployError(f"git command failed: {args[0]}")
        stdout = ""
        if args[0] == "ls-remote":
            stdout = self.remote_branch
        elif args[0] == "status":
            stdout = self.status
        elif args[0] == "add":
            self.tree = sorted(p.relative_to(cwd).as_posix() for p in cwd.rglob("*") if p.is_file())
        return subprocess.CompletedProcess(["git", *args], 0, stdout=stdout, stderr="")

    def commands(self):
        return [args[0] for args in self.calls]


@pytest.fixture
def site(tmp_path):
    target = tmp_path / "site"
    target.mkdir()
    (target / "index.md").write_text("# Docs\n")
    return tmp_path


class TestDeployEnvironment:
    def test_from_env(self):
        env = DeployEnvironment.from_env(
            {
                "CI_REPO_SLUG": "acme/widgets",
                "CI_BRANCH": "main",
                "CI_PULL_REQUEST": "false",
                "CI_TAG": "",
                "CI_OS_NAME": "linux",
                "CI_PYTHON_VERSION": "3.12",
                "GITHUB_API_KEY": "secret",
                "DOCSPINE_DEBUG": "1",
            }
        )
        assert env.repo_slug == "acme/widgets"
        assert env.pull_request is False
        assert env.has_key
        assert env.debug is True
        assert "secret" not in repr(env)

    def test_pull_request_number(self):
        assert DeployEnvironment.from_env({"CI_PULL_REQUEST": "42"}).pull_request is True

    def test_overrides(self):
        env = DeployEnvironment.from_env({"CI_BRANCH": "dev"}, branch="main")
        assert env.branch == "main"

    def test_empty_environment(self):
        env = DeployEnvironment.from_env({})
        assert not env.has_key
        assert env.tag == ""


class TestGate:
    def test_open(self):
        options = DeployOptions(repo=REPO)
        assert should_deploy(options, _env())
        assert should_deploy(options, _env(branch="v1.0", tag="v1.0"))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"repo_slug": "someone/fork"},
            {"repo_slug": ""},
            {"pull_request": True},
            {"github_api_key": ""},
            {"os_name": "osx"},
            {"python": "3.11"},
            {"branch": "feature"},
        ],
    )
    def test_each_condition_closes_the_gate(self, overrides):
        options = DeployOptions(repo=REPO)
        env = _env(**overrides)
        assert not should_deploy(options, env)
        assert len(gate_failures(options, env)) == 1

    def test_ssh_key_counts_as_credentials(self):
        assert should_deploy(DeployOptions(repo=REPO), _env(github_api_key="", documenter_key="KEY"))


class TestDeployDocs:
    def test_closed_gate_makes_no_git_calls(self, site):
        git = FakeGit()
        assert deploy_docs(DeployOptions(repo=REPO), _env(pull_request=True), git, site) is False
        assert git.calls == []

    def test_branch_build_publishes_latest(self, site):
        git = FakeGit()
        assert deploy_docs(DeployOptions(repo=REPO), _env(), git, site) is True

        assert git.commands() == [
            "init",
            "config",
            "config",
            "remote",
            "fetch",
            "ls-remote",
            "checkout",
            "add",
            "status",
            "commit",
            "push",
        ]
        assert git.calls[3] == ["remote", "add", "upstream", f"https://token123@{REPO}"]
        assert git.calls[6] == ["checkout", "-q", "--orphan", "gh-pages"]
        assert git.calls[-2] == ["commit", "-m", "build based on abc1234"]
        assert git.calls[-1] == ["push", "-q", "upstream", "HEAD:gh-pages"]
        assert git.tree == ["latest/index.md"]

    def test_tag_build_publishes_stable_and_version(self, site):
        git = FakeGit(remote_branch="0123abcd\trefs/heads/gh-pages\n")
        env = _env(branch="v1.2.0", tag="v1.2.0")
        assert deploy_docs(DeployOptions(repo=REPO), env, git, site) is True

        assert git.calls[6] == ["checkout", "-q", "-b", "gh-pages", "upstream/gh-pages"]
        assert git.tree == ["stable/index.md", "v1.2.0/index.md"]

    def test_unchanged_build_does_not_push(self, site):
        git = FakeGit(status="")
        assert deploy_docs(DeployOptions(repo=REPO), _env(), git, site) is False
        assert "commit" not in git.commands()
        assert "push" not in git.commands()

    def test_git_failure_stops_before_push(self, site):
        git = FakeGit(fail_on="commit")
        with pytest.raises(DeployError):
            deploy_docs(DeployOptions(repo=REPO), _env(), git, site)
        assert "push" not in git.commands()

    def test_missing_target(self, tmp_path):
        with pytest.raises(DeployError):
            deploy_docs(DeployOptions(repo=REPO), _env(), FakeGit(), tmp_path)

    def test_revision_from_head_when_no_commit(self, site):
        git = FakeGit()
        deploy_docs(DeployOptions(repo=REPO), _env(commit=""), git, site)
        assert ["rev-parse", "--short", "HEAD"] in git.calls

    def test_ssh_key_sets_git_ssh_command(self, site):
        git = FakeGit()
        env = _env(github_api_key="", documenter_key="-----KEY-----")
        deploy_docs(DeployOptions(repo=REPO), env, git, site)

        assert git.calls[3] == ["remote", "add", "upstream", "git@github.com:acme/widgets.git"]
        ssh_command = git.envs[-1]["GIT_SSH_COMMAND"]
        assert ssh_command.startswith("ssh -i ")
        assert not Path(ssh_command.split()[2]).exists()

    def test_ssh_key_environment_is_restored(self, site):
        git = FakeGit()
        git.env = {"GIT_TRACE": "1"}
        env = _env(github_api_key="", documenter_key="-----KEY-----")
        deploy_docs(DeployOptions(repo=REPO), env, git, site)

        assert git.envs[0]["GIT_TRACE"] == "1"
        assert "GIT_SSH_COMMAND" in git.envs[0]
        assert git.env == {"GIT_TRACE": "1"}

    def test_ssh_key_environment_is_restored_on_failure(self, site):
        git = FakeGit(fail_on="fetch")
        env = _env(github_api_key="", documenter_key="-----KEY-----")
        with pytest.raises(DeployError):
            deploy_docs(DeployOptions(repo=REPO), env, git, site)
        assert git.env is None

    def test_make_hook_runs_before_checkout(self, site):
        journal = []
        git = FakeGit(journal=journal)
        target = site / "site"

        def make():
            assert not target.exists()
            target.mkdir()
            (target / "fresh.html").write_text("<h1>Docs</h1>\n")
            journal.append("make")

        assert deploy_docs(DeployOptions(repo=REPO), _env(), git, site, make=make) is True
        assert journal[0] == "make"
        assert journal[1:] == [f"git {command}" for command in git.commands()]
        assert git.tree == ["latest/fresh.html"]

    def test_make_hook_not_run_when_gate_is_closed(self, site):
        calls = []
        env = _env(pull_request=True)
        deploy_docs(DeployOptions(repo=REPO), env, FakeGit(), site, make=lambda: calls.append(1))
        assert calls == []
        assert (site / "site" / "index.md").exists()

    def test_make_hook_must_produce_target(self, site):
        git = FakeGit()
        with pytest.raises(DeployError, match="nothing to deploy"):
            deploy_docs(DeployOptions(repo=REPO), _env(), git, site, make=lambda: None)
        assert git.calls == []


class TestDebugSnapshot:
    def test_debug_logs_environment_without_secrets(self, site):
        env = _env(debug=True, pull_request=True, tag="v1.0")
        with capture_logs() as logs:
            deploy_docs(DeployOptions(repo=REPO), env, FakeGit(), site)

        snapshot = [entry for entry in logs if entry["event"] == "deploy.env"]
        assert len(snapshot) == 1
        entry = snapshot[0]
        assert entry["has_key"] is True
        assert entry["repo_slug"] == "acme/widgets"
        assert entry["pull_request"] is True
        assert (entry["os_name"], entry["python"]) == ("linux", "3.12")
        assert (entry["branch"], entry["tag"]) == ("main", "v1.0")
        assert "token123" not in repr(entry)

    def test_no_snapshot_without_debug(self, site):
        with capture_logs() as logs:
            deploy_docs(DeployOptions(repo=REPO), _env(pull_request=True), FakeGit(), site)
        assert "deploy.env" not in [entry["event"] for entry in logs]


class TestBuildSite:
    def test_builds_html_into_target(self, write_sources, tmp_path):
        write_sources({"index.md": "# Home\n"})
        target = tmp_path / "site"
        build_site(BuildConfig(root=tmp_path, doctest=False), target)()
        assert (target / "index.html").exists()
        assert not (target / "index.md").exists()

    def test_failed_build_is_not_deployed(self, write_sources, tmp_path):
        write_sources({"index.md": "[Nowhere](@ref)\n"})
        make = build_site(BuildConfig(root=tmp_path, doctest=False), tmp_path / "site")
        with pytest.raises(DeployError, match="1 error"):
            make()


class TestGitRunner:
    def test_upstream_url(self):
        assert _upstream_url(REPO, _env()) == f"https://token123@{REPO}"

    def test_failure_is_redacted(self, tmp_path, monkeypatch):
        def failing_run(cmd, **kwargs):
            return subprocess.CompletedProcess(cmd, 128, stdout="", stderr="fatal: denied")

        monkeypatch.setattr(subprocess, "run", failing_run)
        with pytest.raises(DeployError) as exc_info:
            GitRunner().run(["remote", "add", "upstream", f"https://token123@{REPO}"], cwd=tmp_path)
        assert "token123" not in exc_info.value.message
        assert "token123" not in exc_info.value.context.command
        assert "fatal: denied" in exc_info.value.message

    def test_timeout(self, monkeypatch):
        def slow_run(cmd, **kwargs):
            raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])

        monkeypatch.setattr(subprocess, "run", slow_run)
        with pytest.raises(DeployError, match="timed out"):
            GitRunner(timeout=1).run(["fetch"])

    def test_missing_git(self, monkeypatch):
        def missing(cmd, **kwargs):
            raise FileNotFoundError(cmd[0])

        monkeypatch.setattr(subprocess, "run", missing)
        with pytest.raises(DeployError):
            GitRunner().run(["status"])

