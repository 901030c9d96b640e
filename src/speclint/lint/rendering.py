"""Finding and tree rendering: plain text, Rich and JSON.

Renderers never modify the findings they are given; callers pass the
already sorted list from RunReport.findings.
"""

import json
import logging
from collections import Counter
from itertools import groupby
from typing import List, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from .models import BlockKind, BlockNode, Finding, RunReport, Severity, finding_to_dict

logger = logging.getLogger(__name__)

SEVERITY_COLORS: dict[Severity, str] = {
    Severity.ERROR: "red",
    Severity.WARNING: "yellow",
    Severity.INFO: "blue",
}

KIND_STYLES: dict[BlockKind, str] = {
    BlockKind.SUITE: "bold cyan",
    BlockKind.CONTEXT: "magenta",
    BlockKind.EXAMPLE: "green",
    BlockKind.SHARED: "bold yellow",
}


def _get_severity_color(severity: Severity) -> str:
    """Get color for severity, defaulting to white for unknown values."""
    color = SEVERITY_COLORS.get(severity)
    if color is None:
        logger.warning("Unknown severity level: %s, defaulting to white", severity)
        return "white"
    return color


def format_finding(finding: Finding) -> str:
    """Format one finding as ``path:line: [rule-id] message``."""
    return f"{finding.path}:{finding.line}: [{finding.rule_id}] {finding.message}"


def summarize(report: RunReport) -> str:
    """One-line summary of a run, e.g. ``3 findings (1 error, 2 warning) in 2 files``."""
    findings = report.findings
    counts = Counter(f.severity for f in findings)
    noun = "finding" if len(findings) == 1 else "findings"
    summary = f"{len(findings)} {noun}"
    if findings:
        parts = [f"{counts[s]} {s.value}" for s in sorted(counts, key=lambda s: -s.rank)]
        summary += f" ({', '.join(parts)})"
    files = len(report.files)
    summary += f" in {files} file{'' if files == 1 else 's'}"
    if report.failed_files:
        summary += f", {len(report.failed_files)} failed"
    return summary


def render_text(report: RunReport) -> str:
    """Render a run as text lines grouped by file, then a summary line."""
    lines = [format_finding(f) for f in report.findings]
    lines.append(summarize(report))
    return "\n".join(lines)


def render_rich(console: Console, findings: Sequence[Finding]) -> None:
    """Render findings as one Rich table per file.

    Args:
        console: Rich console instance
        findings: Findings sorted by file then line
    """
    for path, group in groupby(findings, key=lambda f: f.path):
        table = Table(title=escape(path), title_justify="left", show_header=True, header_style="bold magenta")
        table.add_column("Line", justify="right", style="cyan", width=6)
        table.add_column("Severity")
        table.add_column("Rule", style="bold")
        table.add_column("Message")

        for finding in group:
            color = _get_severity_color(finding.severity)
            message = escape(finding.message)
            if finding.suggestion:
                message += f"\n[dim]{escape(finding.suggestion)}[/dim]"
            table.add_row(
                str(finding.line),
                f"[{color}]{finding.severity.value}[/{color}]",
                finding.rule_id,
                message,
            )

        console.print(table)
        console.print()


def findings_to_json(findings: Sequence[Finding]) -> str:
    """Serialize findings to a JSON array for scripting."""
    return json.dumps([finding_to_dict(f) for f in findings], indent=2)


def _node_label(node: BlockNode) -> str:
    style = KIND_STYLES.get(node.kind, "white")
    title = escape(node.title) if node.title is not None else "(dynamic title)"
    if node.path == () and node.kind == BlockKind.SUITE and node.title is None:
        title = escape(node.span.path)
    label = f"[{style}]{node.keyword or node.kind.value}[/{style}] {title} [dim]L{node.span.start}-{node.span.end}[/dim]"
    names = [b.name for b in node.bindings]
    if names:
        label += f" [dim]let: {', '.join(names)}[/dim]"
    if node.hooks:
        label += f" [dim]hooks: {', '.join(h.phase for h in node.hooks)}[/dim]"
    return label


def render_tree(root: BlockNode) -> Tree:
    """Build a Rich tree of a parsed spec file."""
    tree = Tree(_node_label(root), guide_style="grey50")
    stack: List[tuple[Tree, BlockNode]] = [(tree, root)]
    while stack:
        branch, node = stack.pop()
        for child in node.children:
            stack.append((branch.add(_node_label(child)), child))
        for include in node.includes:
            branch.add(f"[dim]{include.keyword} {escape(include.name or '(dynamic name)')}[/dim]")
    return tree
