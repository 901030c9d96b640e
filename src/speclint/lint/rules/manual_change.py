"""Manual-change-capture rule: prefer change matchers.

Flags examples that save a reading into a local, run an action and then
compare a fresh reading of the same expression against the local::

    count = Book.count
    book.save
    expect(Book.count).to eq(count + 1)

which reads better as ``expect { book.save }.to change { Book.count }.by(1)``.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional

from ..models import BlockKind, BlockNode, Finding, Statement
from ..scope import walk
from .base import RuleContext

CAPTURE_PATTERN = re.compile(r"^([a-z_]\w*)\s*=(?![=~>])\s*(.+)$")
COMPARISON_PATTERN = re.compile(
    r"^expect\s*\((?P<actual>.+)\)\s*\.\s*(?P<verb>to|not_to|to_not)\s+"
    r"(?:eq|eql|equal)\s*\(?\s*(?P<var>[a-z_]\w*)\s*(?:(?P<op>[-+])\s*(?P<amount>\d+))?\s*\)?\s*$"
)
WHITESPACE_PATTERN = re.compile(r"\s+")


def _normalize(expression: str) -> str:
    return WHITESPACE_PATTERN.sub("", expression)


def suggest_change_matcher(
    actions: List[Statement],
    expression: str,
    verb: str,
    op: Optional[str],
    amount: Optional[str],
) -> str:
    """Render the change-matcher form of a manual before/after comparison."""
    action = "; ".join(s.text for s in actions) or "..."
    if verb == "to" and op is None:
        return f"expect {{ {action} }}.not_to change {{ {expression} }}"
    matcher = f"expect {{ {action} }}.to change {{ {expression} }}"
    if verb == "to" and op is not None:
        delta = amount if op == "+" else f"-{amount}"
        matcher += f".by({delta})"
    return matcher


class ManualChangeCaptureRule:
    """Flags manual before/after state capture inside an example."""

    id = "manual-change-capture"
    description = "Example compares state captured before an action instead of using a change matcher"

    def check(self, root: BlockNode, ctx: RuleContext) -> List[Finding]:
        findings: List[Finding] = []
        for chain in walk(root):
            example = chain.block
            if example.kind != BlockKind.EXAMPLE:
                continue
            finding = self._check_example(example, ctx)
            if finding is not None:
                findings.append(finding)
        return findings

    def _check_example(self, example: BlockNode, ctx: RuleContext) -> Optional[Finding]:
        captured: Dict[str, tuple[int, str]] = {}  # local -> (statement index, expression)
        statements = list(example.statements)

        for index, statement in enumerate(statements):
            capture = CAPTURE_PATTERN.match(statement.text)
            if capture:
                captured[capture.group(1)] = (index, capture.group(2).strip())
                continue

            comparison = COMPARISON_PATTERN.match(statement.text)
            if not comparison or comparison.group("var") not in captured:
                continue
            start, expression = captured[comparison.group("var")]
            if _normalize(comparison.group("actual")) != _normalize(expression):
                continue
            actions = statements[start + 1:index]
            if not actions:
                continue

            verb = comparison.group("verb")
            return ctx.finding(
                self.id,
                statements[start].line,
                f"example captures '{expression}' in '{comparison.group('var')}' before "
                f"the action and compares it afterwards; use a change matcher",
                suggestion=suggest_change_matcher(
                    actions,
                    expression,
                    verb,
                    comparison.group("op"),
                    comparison.group("amount"),
                ),
            )
        return None
