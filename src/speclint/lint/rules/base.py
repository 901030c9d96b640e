"""Rule protocol and evaluation context for spec style rules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Protocol, runtime_checkable

from ..models import BlockNode, Finding, Severity

if TYPE_CHECKING:
    from ..config import LintConfig, LintSettings


@dataclass(frozen=True)
class RuleContext:
    """Everything a rule needs besides the tree itself."""

    path: str
    config: "LintConfig"

    @property
    def settings(self) -> "LintSettings":
        return self.config.settings

    def finding(
        self,
        rule_id: str,
        line: int,
        message: str,
        suggestion: Optional[str] = None,
        escalate: bool = False,
    ) -> Finding:
        """Build a Finding with the configured severity for the rule."""
        severity = self.config.severity_for(rule_id, Severity.WARNING)
        if escalate:
            severity = severity.escalate()
        return Finding(
            rule_id=rule_id,
            severity=severity,
            message=message,
            path=self.path,
            line=line,
            suggestion=suggestion,
        )


@runtime_checkable
class Rule(Protocol):
    """Structural interface for style rules.

    A rule is a pure function of the tree: it receives the whole tree and
    returns its own findings, independent of every other rule. Ambiguous
    nodes produce no finding.
    """

    id: str
    description: str

    def check(self, root: BlockNode, ctx: RuleContext) -> List[Finding]: ...
