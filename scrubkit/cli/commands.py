"""CLI commands for scrubkit."""

import json
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from scrubkit import __version__
from scrubkit.errors import ScrubkitError
from scrubkit.logging_config import setup_logging
from scrubkit.security.limits import MAX_STACK_TRACE_SIZE
from scrubkit.security.objects import create_object_sanitizer
from scrubkit.security.stacktrace import analyze_stack_trace_security, sanitize_stack_trace
from scrubkit.security.types import Violation
from scrubkit.security.validators import resolve_kind, validate_input

app = typer.Typer(
    name="scrubkit",
    help="scrubkit - sanitize and validate untrusted runtime data",
    no_args_is_help=True,
)

console = Console()

_SEVERITY_STYLE = {"low": "dim", "medium": "yellow", "high": "red", "critical": "bold red"}


def version_callback(value: bool):
    if value:
        console.print(f"scrubkit v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
    log_level: str = typer.Option(None, "--log-level", help="Log level (default from SCRUBKIT_LOG_LEVEL)"),
):
    """scrubkit - sanitize and validate untrusted runtime data."""
    setup_logging(log_level)


# ============================================================================
# Shared helpers
# ============================================================================


def _read_source(source: str) -> str:
    """Read a trace from a file path, or stdin for '-'. Exits on error."""
    if source == "-":
        return sys.stdin.read(MAX_STACK_TRACE_SIZE * 2)
    path = Path(source)
    if not path.is_file():
        console.print(f"[red]Error: {escape(source)} is not a file[/red]")
        raise typer.Exit(2)
    with path.open(encoding="utf-8", errors="replace") as f:
        return f.read(MAX_STACK_TRACE_SIZE * 2)


def _violation_table(violations: list[Violation], title: str = "Violations") -> Table:
    table = Table(title=title)
    table.add_column("Severity")
    table.add_column("Kind", style="cyan")
    table.add_column("Path")
    table.add_column("Description")
    for v in violations:
        style = _SEVERITY_STYLE.get(v.severity.value, "")
        table.add_row(
            f"[{style}]{v.severity.value}[/{style}]" if style else v.severity.value,
            v.kind.value,
            escape(v.path),
            escape(v.description),
        )
    return table


# ============================================================================
# Commands
# ============================================================================


@app.command()
def validate(
    kind: str = typer.Argument(..., help="name | package-manager | file-path | shell-argument"),
    value: str = typer.Argument(..., help="Value to validate"),
    lenient: bool = typer.Option(False, "--lenient", help="Non-strict mode (best-effort sanitization)"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
):
    """Validate one input value."""
    if resolve_kind(kind) is None:
        console.print(f"[red]Error: unknown input kind {escape(kind)!r}[/red]")
        raise typer.Exit(2)

    try:
        result = validate_input(value, kind, {"strict_mode": not lenient})
    except ScrubkitError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(2)

    if as_json:
        console.print_json(json.dumps(result.to_dict()))
    else:
        if result.is_valid:
            console.print(f"[green]✓[/green] Valid (risk {result.risk_score})")
        else:
            console.print(f"[red]✗[/red] Invalid (risk {result.risk_score})")
        if result.violations:
            console.print(_violation_table(result.violations))
        console.print(f"Sanitized: [cyan]{escape(repr(result.sanitized_value))}[/cyan]")
        for suggestion in result.suggestions:
            console.print(f"  [dim]• {escape(suggestion)}[/dim]")
        for warning in result.warnings:
            console.print(f"[yellow]Warning: {escape(warning)}[/yellow]")

    if not result.is_valid:
        raise typer.Exit(1)


@app.command()
def stack(
    source: str = typer.Argument(..., help="Trace file, or '-' for stdin"),
    detail: str = typer.Option("sanitized", "--detail", "-d", help="raw | minimal | sanitized | none"),
    depth: int = typer.Option(10, "--depth", help="Frames to keep"),
    strip_line_numbers: bool = typer.Option(False, "--strip-line-numbers", help="Remove line numbers"),
):
    """Print a sanitized stack trace."""
    trace = _read_source(source)
    sanitized = sanitize_stack_trace(trace, {
        "detail_level": detail,
        "max_stack_depth": depth,
        "remove_line_numbers": strip_line_numbers,
    })
    # Plain write: the trace must not be parsed as rich markup
    sys.stdout.write(sanitized + ("\n" if sanitized else ""))


@app.command("analyze-stack")
def analyze_stack(
    source: str = typer.Argument(..., help="Trace file, or '-' for stdin"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
):
    """Report what a stack trace would disclose."""
    report = analyze_stack_trace_security(_read_source(source))
    if as_json:
        console.print_json(json.dumps(report.to_dict()))
        return

    style = _SEVERITY_STYLE.get(report.risk_level, "")
    console.print(f"Risk level: [{style}]{report.risk_level}[/{style}]")
    if report.sensitive_patterns:
        table = Table(title="Sensitive Patterns")
        table.add_column("Pattern", style="cyan")
        table.add_column("Line")
        for finding in report.sensitive_patterns:
            table.add_row(finding.pattern, escape(finding.line))
        console.print(table)
    for recommendation in report.recommendations:
        console.print(f"  [dim]• {escape(recommendation)}[/dim]")


@app.command("object")
def object_(
    payload: str = typer.Argument(..., help="JSON document to sanitize"),
    level: str = typer.Option("standard", "--level", "-l", help="minimal | standard | strict | paranoid"),
):
    """Sanitize a JSON document and print the result."""
    try:
        value = json.loads(payload)
    except json.JSONDecodeError as e:
        console.print(f"[red]Error: invalid JSON ({escape(e.msg)} at {e.pos})[/red]")
        raise typer.Exit(2)

    result = create_object_sanitizer(level).sanitize(value)
    console.print_json(json.dumps(result.to_dict()["sanitized_value"]))
    if result.violations:
        console.print(_violation_table(result.violations))
    for warning in result.warnings:
        console.print(f"[yellow]Warning: {escape(warning)}[/yellow]")
    if not result.is_valid:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
