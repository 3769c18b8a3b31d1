"""
CLI entry point for confcheck.

This module provides the Typer-based command-line interface.

Commands:
    test        Check configuration files against policy rules

Architecture Note:
    The CLI is intentionally thin - it resolves settings, decodes input
    files and delegates to TestRun for the actual evaluation. The same
    logic can be used programmatically without the CLI.
"""

import traceback
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.markup import escape

from confcheck import __version__
from confcheck.discovery import collect_input_files
from confcheck.engine import TestRun, combine_documents
from confcheck.errors import ConfcheckError
from confcheck.log import setup_logging
from confcheck.schema import (
    CheckConfig,
    CheckResult,
    ResultSet,
    load_config,
    load_data,
    load_documents,
)

app = typer.Typer(
    name="confcheck",
    help="Check structured configuration files against policy rules.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]confcheck[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    confcheck - policy checks for configuration files.

    Evaluates rule modules against YAML and JSON documents and reports
    failures, warnings and exceptions.
    """
    pass


@app.command("test")
def run_test(
    paths: Annotated[
        list[Path],
        typer.Argument(help="Files or directories to check."),
    ],
    policy: Annotated[
        Optional[list[str]],
        typer.Option(
            "--policy",
            "-p",
            help="Rule file or directory. Repeatable. Defaults to ./policy.",
        ),
    ] = None,
    namespace: Annotated[
        Optional[list[str]],
        typer.Option(
            "--namespace",
            "-n",
            help="Namespace to query. Repeatable. Defaults to main.",
        ),
    ] = None,
    all_namespaces: Annotated[
        bool,
        typer.Option("--all-namespaces", help="Query every namespace in the policy."),
    ] = False,
    combine: Annotated[
        bool,
        typer.Option("--combine", help="Evaluate all inputs as one combined document."),
    ] = False,
    fail_on_warn: Annotated[
        bool,
        typer.Option("--fail-on-warn", help="Return a non-zero exit code on warnings."),
    ] = False,
    ignore: Annotated[
        Optional[str],
        typer.Option(
            "--ignore",
            help="Regular expression of files to skip in directories. "
            "End it with / to match directory names.",
        ),
    ] = None,
    data: Annotated[
        Optional[list[str]],
        typer.Option("--data", "-d", help="YAML/JSON file exposed to rules as data."),
    ] = None,
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to a confcheck YAML config file.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable verbose logging."),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Enable debug mode with full error tracebacks."),
    ] = False,
) -> None:
    """
    Check configuration files against policy rules.

    Example:
        $ confcheck test deployment.yaml --policy policy/ --fail-on-warn
    """
    setup_logging("DEBUG" if verbose else "WARNING")

    try:
        config = _resolve_config(
            config_path,
            policy=policy,
            namespaces=namespace,
            all_namespaces=all_namespaces,
            combine=combine,
            fail_on_warn=fail_on_warn,
            ignore=ignore,
            data=data,
        )

        files = collect_input_files(paths, config.ignore)
        documents: list[Any] = []
        filenames: list[str] = []
        for filename in files:
            decoded = load_documents(filename)
            documents.extend(decoded)
            filenames.extend([filename] * len(decoded))

        if config.combine:
            documents = combine_documents(documents, filenames)
            filenames = ["combined"]

        run = TestRun.from_paths(
            config.policy,
            data=load_data(config.data),
            timeout_seconds=config.timeout_seconds,
        )
        results = run.get_result(
            documents,
            config.namespaces,
            all_namespaces=config.all_namespaces,
            filenames=filenames,
        )
    except ConfcheckError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]", soft_wrap=True)
        if debug:
            console.print(f"[dim]{traceback.format_exc()}[/dim]")
        raise typer.Exit(code=1)

    _display_results(results)
    raise typer.Exit(code=results.exit_code(config.fail_on_warn))


def _resolve_config(
    config_path: Path | None,
    policy: list[str] | None,
    namespaces: list[str] | None,
    all_namespaces: bool,
    combine: bool,
    fail_on_warn: bool,
    ignore: str | None,
    data: list[str] | None,
) -> CheckConfig:
    """Load the config file (if any) and apply command-line overrides."""
    config = load_config(config_path) if config_path else CheckConfig()

    overrides: dict[str, Any] = {}
    if policy:
        overrides["policy"] = policy
    if namespaces:
        overrides["namespaces"] = namespaces
    if all_namespaces:
        overrides["all_namespaces"] = True
    if combine:
        overrides["combine"] = True
    if fail_on_warn:
        overrides["fail_on_warn"] = True
    if ignore is not None:
        overrides["ignore"] = ignore
    if data:
        overrides["data"] = data

    return config.model_copy(update=overrides)


def _display_results(results: ResultSet) -> None:
    """Print each finding and a one-line summary."""
    rows: list[tuple[str, str, CheckResult]] = [
        *(("red", "FAIL", r) for r in results.failures),
        *(("yellow", "WARN", r) for r in results.warnings),
        *(("cyan", "EXCP", r) for r in results.exceptions),
    ]
    for style, label, result in rows:
        source = escape(result.filename or f"document {result.document_index}")
        detail = escape(result.message or result.rule)
        console.print(
            f"[{style}]{label}[/{style}] - {source} - {result.namespace} - {detail}",
            highlight=False,
            soft_wrap=True,
        )

    counts = results.counts()
    total = sum(counts.values())
    console.print()
    console.print(
        f"{total} tests, {counts['successes']} passed, {counts['warnings']} warnings, "
        f"{counts['failures']} failures, {counts['exceptions']} exceptions"
    )
