"""
Root Typer application for the docspine CLI.

Usage::

    docspine build                              # docs/src -> docs/build in cwd
    docspine build --root docs -m mypackage     # with a coverage check
    docspine build -c docspine.yml --format html
    docspine deploy --repo github.com/acme/widgets.git
    docspine deploy --repo github.com/acme/widgets.git --make -c docspine.yml
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from docspine.builder import BuildResult, build_docs
from docspine.core.config import BuildConfig
from docspine.core.errors import DocspineError
from docspine.deploy import DeployEnvironment, DeployOptions, build_site, deploy_docs, gate_failures
from docspine.framework.logging import configure_logging

app = typer.Typer(
    name="docspine",
    help="docspine: build cross-linked documentation from markdown and docstrings.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()
err_console = Console(stderr=True)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("docspine")
        except PackageNotFoundError:
            from docspine import __version__ as v
        typer.echo(f"docspine {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """docspine CLI: build and publish documentation."""


# ── Build ────────────────────────────────────────────────────────────────


@app.command()
def build(
    root: Path | None = typer.Option(None, "--root", "-r", help="Directory the build runs from."),
    source: Path | None = typer.Option(None, "--source", "-s", help="Sources, relative to root."),
    build_dir: Path | None = typer.Option(None, "--build", "-b", help="Output, relative to root."),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="YAML configuration file."),
    no_clean: bool = typer.Option(False, "--no-clean", help="Keep existing build output."),
    no_doctest: bool = typer.Option(False, "--no-doctest", help="Skip doctest verification."),
    module: list[str] = typer.Option(
        [], "--module", "-m",
        help="Module to check documentation coverage for. Repeatable.",
    ),
    output_format: list[str] = typer.Option(
        [], "--format", "-f",
        help="Output format: markdown, html. Repeatable.",
    ),
    timeout: float | None = typer.Option(None, "--timeout", "-t", help="Per-block timeout in seconds."),
    compare: str | None = typer.Option(None, "--compare", help="Doctest comparison: exact, whitespace."),
    debug: bool = typer.Option(False, "--debug", help="Debug logging."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON lines."),
) -> None:
    """Build the documentation.

    Exits with status 1 when any error was recorded or any doctest failed.
    """
    configure_logging(level="DEBUG" if debug else None, format="json" if json_logs else None)

    overrides = {
        "root": root,
        "source": source,
        "build": build_dir,
        "doctest_timeout": timeout,
        "doctest_compare": compare,
        "modules": module or None,
        "formats": output_format or None,
    }
    if no_clean:
        overrides["clean"] = False
    if no_doctest:
        overrides["doctest"] = False
    if debug:
        overrides["debug"] = True
    overrides = {key: value for key, value in overrides.items() if value is not None}

    try:
        if config_file is not None:
            config = BuildConfig.from_yaml(config_file, **overrides)
        else:
            config = BuildConfig.from_env(**overrides)
        console.print(f"[bold]docspine build[/] {config.source_dir} → {config.build_dir}")
        result = build_docs(config)
    except DocspineError as e:
        err_console.print(f"[bold red]Error[/bold red] ({e.category.value}): {escape(e.message)}")
        raise typer.Exit(code=1) from e

    _print_build_result(result)
    if not result.success:
        raise typer.Exit(code=1)


def _print_build_result(result: BuildResult) -> None:
    if result.errors:
        table = Table(title=f"Build errors ({len(result.errors)})")
        table.add_column("File", style="cyan")
        table.add_column("Line", justify="right")
        table.add_column("Kind", style="red")
        table.add_column("Message")
        for error in result.errors:
            table.add_row(
                escape(error.file or "-"),
                str(error.line) if error.line is not None else "-",
                error.kind.value,
                escape(error.message),
            )
        console.print(table)

    for name in result.undocumented:
        console.print(f"[yellow]undocumented[/]: {name}")

    checks = len(result.check_results)
    failed = len(result.failed_checks)
    console.print(f"  doctests: {checks - failed}/{checks} passed")
    console.print(f"  outputs:  {len(result.outputs)} file(s)")
    if result.success:
        console.print("[bold green]✓ build succeeded[/]")
    else:
        console.print(f"[bold red]✗ build failed[/]: {len(result.errors)} error(s)")


# ── Deploy ───────────────────────────────────────────────────────────────


@app.command()
def deploy(
    repo: str = typer.Option(..., "--repo", help="Target repository, e.g. github.com/acme/widgets.git."),
    branch: str = typer.Option("gh-pages", "--branch", help="Branch receiving the site."),
    latest: str = typer.Option("main", "--latest", help="Branch whose builds publish to latest/."),
    os_name: str = typer.Option("linux", "--os", help="CI OS allowed to publish."),
    python: str = typer.Option("3.12", "--python", help="CI Python version allowed to publish."),
    target: Path = typer.Option(Path("site"), "--target", help="Directory to publish."),
    root: Path | None = typer.Option(None, "--root", "-r", help="Repository checkout."),
    make_site: bool = typer.Option(False, "--make", help="Build the HTML site into --target first."),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="YAML configuration for --make."),
) -> None:
    """Publish built documentation when this CI job is the deploying one."""
    configure_logging()
    options = DeployOptions(
        repo=repo,
        branch=branch,
        latest=latest,
        os_name=os_name,
        python=python,
        target=target,
    )
    env = DeployEnvironment.from_env()
    reasons = gate_failures(options, env)

    try:
        make = None
        if make_site and not reasons:
            config = BuildConfig.from_yaml(config_file) if config_file else BuildConfig.from_env()
            make = build_site(config, (root or Path.cwd()) / target)
        pushed = deploy_docs(options, env, root=root, make=make)
    except DocspineError as e:
        err_console.print(f"[bold red]Error[/bold red] ({e.category.value}): {escape(e.message)}")
        raise typer.Exit(code=1) from e

    if reasons:
        console.print("[yellow]deploy skipped[/]")
        for reason in reasons:
            console.print(f"  - {escape(reason)}")
    elif pushed:
        console.print(f"[bold green]▲ deployed[/] to {options.branch}")
    else:
        console.print(f"[dim]{options.branch} already up to date[/]")
