# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""CLI application entry point wiring commands and shared services."""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich import box
from rich.table import Table

from ..console import detect_tty, get_console_manager
from ..exceptions import LintwardenError
from ..logging import configure_logging, section
from ..pipeline import analyze_project, build_file_system, build_resolver
from ..reporting import OutputOptions, outcome_to_payload, render_outcome
from ..sink import CollectingSink
from .shared import (
    EXIT_CLEAN,
    EXIT_FAILURE,
    EXIT_ISSUES,
    CLIError,
    build_cli_logger,
    collect_properties,
    load_config,
    split_command,
)

TABLE_FORMAT = "table"
JSON_FORMAT = "json"

app = typer.Typer(
    help="Fault-tolerant orchestration for fragile single-file lint engines.",
    add_completion=False,
    no_args_is_help=True,
)


@app.command("analyze")
def analyze_command(
    root: Path = typer.Argument(Path("."), help="Project root to analyze."),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="Explicit TOML configuration file."),
    mode: str | None = typer.Option(None, "--mode", "-m", help="Parsing mode: strict, lenient or fragment."),
    timeout: float | None = typer.Option(None, "--timeout", help="Per-file analysis timeout in seconds."),
    max_timeouts: int | None = typer.Option(
        None,
        "--max-timeouts",
        help="Consecutive timeouts that trip the circuit breaker.",
    ),
    error_reporting: str | None = typer.Option(
        None,
        "--error-reporting",
        help="Error report verbosity: none, summary or detailed.",
    ),
    engine: str | None = typer.Option(None, "--engine", help="Engine command line, e.g. 'cflint -q'."),
    properties: list[str] = typer.Option([], "--set", "-s", help="Configuration override as key=value."),
    output_format: str = typer.Option(
        TABLE_FORMAT,
        "--format",
        "-f",
        case_sensitive=False,
        help="Output format: table or json.",
    ),
    color: bool = typer.Option(True, "--color/--no-color", help="Enable coloured output."),
    emoji: bool = typer.Option(True, "--emoji/--no-emoji", help="Enable emoji in output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Emit debug logging."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log errors."),
) -> None:
    """Analyze every source below ROOT and report located issues."""

    configure_logging(verbose=verbose, quiet=quiet)
    use_color = color and detect_tty()
    logger = build_cli_logger(emoji=emoji, color=use_color)
    fmt = output_format.lower()
    if fmt not in {TABLE_FORMAT, JSON_FORMAT}:
        raise typer.BadParameter("format must be 'table' or 'json'", param_hint="--format")

    overrides = {
        "parsing.mode": mode,
        "parsing.file_timeout": timeout,
        "parsing.max_consecutive_timeouts": max_timeouts,
        "parsing.error_reporting": error_reporting,
        "engine.command": split_command(engine),
    }
    sink = CollectingSink()
    try:
        config = load_config(root, config_file, collect_properties(properties, overrides))
        outcome = analyze_project(root, config, sink)
    except CLIError as exc:
        logger.fail(str(exc))
        raise typer.Exit(code=exc.exit_code) from exc
    except (LintwardenError, OSError) as exc:
        logger.fail(f"Analysis failed: {exc}")
        raise typer.Exit(code=EXIT_FAILURE) from exc

    fs = outcome.fs
    issues = sink.issues
    if fmt == JSON_FORMAT:
        logger.echo(json.dumps(outcome_to_payload(outcome, issues, fs), indent=2))
    else:
        console = get_console_manager().get(color=use_color, emoji=emoji)
        section("lintwarden", use_color=use_color)
        render_outcome(console, outcome, issues, fs, OutputOptions(color=use_color, emoji=emoji))
        if outcome.report.circuit_breaker_tripped:
            logger.warn("Circuit breaker tripped; remaining files were not analyzed")
        if outcome.report.stopped_on_failure:
            logger.warn("Stopped after the first failing file; remaining files were not analyzed")
        if issues:
            logger.warn(f"{len(issues)} issue(s) reported")
        else:
            logger.ok("No issues reported")
    raise typer.Exit(code=EXIT_ISSUES if issues else EXIT_CLEAN)


@app.command("resolve")
def resolve_command(
    file: Path = typer.Argument(..., help="File the engine reported against."),
    line: int = typer.Argument(..., min=1, help="Virtual line number to resolve."),
    root: Path = typer.Option(Path("."), "--root", "-r", help="Project root."),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="Explicit TOML configuration file."),
    show_map: bool = typer.Option(False, "--show-map", help="Print the include map of FILE."),
    emoji: bool = typer.Option(True, "--emoji/--no-emoji", help="Enable emoji in output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Emit debug logging."),
) -> None:
    """Print the real file and line behind virtual LINE of FILE."""

    configure_logging(verbose=verbose)
    logger = build_cli_logger(emoji=emoji)
    try:
        config = load_config(root, config_file, {})
    except CLIError as exc:
        logger.fail(str(exc))
        raise typer.Exit(code=exc.exit_code) from exc

    fs = build_file_system(root.resolve(), config)
    source = fs.input_file(file if file.is_absolute() else Path.cwd() / file)
    if source is None:
        logger.fail(f"{file} is not a readable file")
        raise typer.Exit(code=EXIT_FAILURE)
    resolver = build_resolver(fs, config)

    if show_map:
        use_color = detect_tty()
        table = Table(box=box.SIMPLE_HEAVY if use_color else box.SIMPLE)
        table.add_column("Virtual lines", no_wrap=True)
        table.add_column("File", overflow="fold")
        table.add_column("From line", justify="right")
        table.add_column("Template", overflow="fold")
        for mapping in resolver.include_map(source):
            table.add_row(
                f"{mapping.virtual_start}-{mapping.virtual_end}",
                fs.relative_display(mapping.target),
                str(mapping.target_start_line),
                mapping.directive,
            )
        get_console_manager().get(color=use_color, emoji=emoji).print(table)

    location = resolver.resolve(source, line)
    if location is None:
        logger.warn(f"Virtual line {line} of {fs.relative_display(source)} could not be resolved")
        raise typer.Exit(code=EXIT_ISSUES)
    suffix = f" (from included file: {location.directive})" if location.was_included else ""
    logger.echo(f"{fs.relative_display(location.file)}:{location.line}{suffix}")


@app.command("config")
def config_command(
    root: Path = typer.Option(Path("."), "--root", "-r", help="Project root."),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="Explicit TOML configuration file."),
    properties: list[str] = typer.Option([], "--set", "-s", help="Configuration override as key=value."),
) -> None:
    """Print the effective configuration as JSON."""

    logger = build_cli_logger(emoji=False)
    try:
        config = load_config(root, config_file, collect_properties(properties, {}))
    except CLIError as exc:
        logger.fail(str(exc))
        raise typer.Exit(code=exc.exit_code) from exc
    logger.echo(json.dumps(config.to_dict(), indent=2, sort_keys=True))


__all__ = ["app"]
