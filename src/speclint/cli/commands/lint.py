"""Spec linting CLI commands.

Commands:
    speclint check  -- Lint spec files and directories
    speclint rules  -- List the available rules
    speclint tree   -- Print the parsed block tree of one file
"""

import json as json_lib
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from speclint.lint.config import apply_overrides, load_config
from speclint.lint.exceptions import ConfigError, SpecSyntaxError, TemplateError
from speclint.lint.models import Severity
from speclint.lint.parser import parse_source
from speclint.lint.rendering import findings_to_json, render_rich, render_text, render_tree, summarize
from speclint.lint.rules import RULES
from speclint.lint.runner import run_paths
from speclint.lint.templates import instantiate_includes

logger = logging.getLogger(__name__)

console = Console(width=120)

_VALID_FORMATS = {"text", "rich", "json"}


def configure_logging(verbose: bool) -> None:
    """Route log records to stderr through Rich; DEBUG when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def check(
    paths: List[Path] = typer.Argument(..., help="Spec files or directories to lint"),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file (default: .speclint.yaml in the working directory)",
    ),
    disable: Optional[List[str]] = typer.Option(
        None,
        "--disable",
        help="Disable a rule by id (repeatable)",
    ),
    severity: Optional[List[str]] = typer.Option(
        None,
        "--severity",
        help="Override a rule's severity as RULE=LEVEL (repeatable)",
    ),
    output_format: str = typer.Option(
        "text",
        "--format",
        "-f",
        help="Output format (text, rich, json)",
    ),
    jobs: Optional[int] = typer.Option(None, "--jobs", "-j", help="Files analysed in parallel"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Per-file time budget in seconds"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Lint spec files for structural style problems."""
    configure_logging(verbose)

    if output_format not in _VALID_FORMATS:
        console.print(
            f"[red]Error: Invalid format '{output_format}'. Valid formats: {', '.join(sorted(_VALID_FORMATS))}[/red]"
        )
        raise typer.Exit(2)

    try:
        config = load_config(config_path)
        config = apply_overrides(
            config,
            disable=disable or (),
            severities=severity or (),
            jobs=jobs,
            timeout_seconds=timeout,
        )
    except ConfigError as exc:
        console.print(f"[red]Error: {escape(str(exc))}[/red]")
        raise typer.Exit(2)

    report = run_paths(paths, config)

    # JSON output for scripting (use print() to avoid Rich markup)
    if output_format == "json":
        print(findings_to_json(report.findings))
    elif output_format == "rich":
        render_rich(console, report.findings)
        console.print(f"[dim]{summarize(report)}[/dim]")
    else:
        print(render_text(report))

    raise typer.Exit(report.exit_code)


def list_rules(
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file (default: .speclint.yaml in the working directory)",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON (machine-parseable)",
    ),
) -> None:
    """List the available rules with their configured severity."""
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        console.print(f"[red]Error: {escape(str(exc))}[/red]")
        raise typer.Exit(2)

    if json_output:
        output = [
            {
                "id": rule.id,
                "default_severity": Severity.WARNING.value,
                "severity": config.severity_for(rule.id).value,
                "enabled": config.is_enabled(rule.id),
                "description": rule.description,
            }
            for rule in RULES.values()
        ]
        print(json_lib.dumps(output, indent=2))
        return

    table = Table(title="Rules")
    table.add_column("Rule", style="cyan")
    table.add_column("Default", style="dim")
    table.add_column("Severity", style="yellow")
    table.add_column("Enabled")
    table.add_column("Description")
    for rule in RULES.values():
        table.add_row(
            rule.id,
            Severity.WARNING.value,
            config.severity_for(rule.id).value,
            "yes" if config.is_enabled(rule.id) else "[dim]no[/dim]",
            rule.description,
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(RULES)} rule(s)[/dim]")


def tree(
    file: Path = typer.Argument(..., help="Spec file to parse"),
    expand_shared: bool = typer.Option(
        False,
        "--expand-shared",
        help="Instantiate shared example groups where they are included",
    ),
) -> None:
    """Print the parsed block tree of a spec file."""
    try:
        text = file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        console.print(f"[red]Error: Cannot read {escape(str(file))}: {escape(str(exc))}[/red]")
        raise typer.Exit(1)

    try:
        root = parse_source(text, str(file))
        if expand_shared:
            root = instantiate_includes(root)
    except (SpecSyntaxError, TemplateError) as exc:
        console.print(f"[red]Error: {escape(str(exc))}[/red]")
        raise typer.Exit(1)

    console.print(render_tree(root))
    console.print(f"\n[dim]Examples: {root.leaf_count()}[/dim]")
