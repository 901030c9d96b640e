"""Rule engine: evaluates enabled rules against one parsed tree."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .config import LintConfig
from .models import BlockNode, Finding
from .rules import RULES, Rule, RuleContext

logger = logging.getLogger(__name__)


def enabled_rules(config: LintConfig) -> List[Rule]:
    """Rules switched on by the configuration, in rule id order."""
    return [RULES[rule_id] for rule_id in sorted(RULES) if config.is_enabled(rule_id)]


def evaluate(
    root: BlockNode,
    config: Optional[LintConfig] = None,
    rules: Optional[Iterable[Rule]] = None,
) -> List[Finding]:
    """Run every enabled rule over a tree and return sorted findings.

    The result depends only on the tree and the configuration: the same
    input yields the same findings in the same order.

    Args:
        root: Root node returned by the parser
        config: Lint configuration (defaults when None)
        rules: Explicit rules to run instead of the enabled registry

    Returns:
        Findings sorted by (path, line, rule id)
    """
    config = config or LintConfig()
    ctx = RuleContext(path=root.span.path, config=config)
    selected = list(rules) if rules is not None else enabled_rules(config)

    findings: List[Finding] = []
    for rule in selected:
        produced = rule.check(root, ctx)
        if produced:
            logger.debug("%s: %s reported %d finding(s)", ctx.path, rule.id, len(produced))
        findings.extend(produced)

    return sorted(findings, key=lambda f: f.sort_key)
