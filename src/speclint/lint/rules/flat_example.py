"""Flat-example rule: conditions belong in a context, not an example title."""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Sequence

from ..models import BlockKind, BlockNode, Finding
from ..scope import walk
from .base import RuleContext

logger = logging.getLogger(__name__)

WORD_PATTERN = re.compile(r"\S+")

# "checks if the shelf is full": if/when introduce a question here, not a condition
QUESTION_CONNECTIVES = {"if", "when"}
QUESTION_VERBS = {
    "ask", "asks", "check", "checks", "decide", "decides", "detect", "detects",
    "determine", "determines", "know", "knows", "report", "reports",
    "return", "returns", "see", "sees", "show", "shows", "test", "tests",
    "tell", "tells", "verify", "verifies",
}


def find_condition(title: str, connectives: Sequence[str]) -> Optional[tuple[str, str]]:
    """Split an example title at its first conditional connective.

    The connective must follow at least one word and be followed by at
    least one word; a title that starts or ends with it is ambiguous.
    ``if``/``when`` right after a verb like "checks" or "returns" is an
    indirect question and never splits the title.

    Args:
        title: Literal example title
        connectives: Lowercase connective words or phrases

    Returns:
        (behaviour, condition) such as ("raises an error",
        "when already reserved"), or None if no condition is found
    """
    words = WORD_PATTERN.findall(title)
    lowered = [w.lower().strip(",;:") for w in words]
    phrases = sorted((c.lower().split() for c in connectives if c.strip()), key=len, reverse=True)

    for index in range(1, len(words)):
        for phrase in phrases:
            end = index + len(phrase)
            if lowered[index:end] != phrase:
                continue
            if phrase[0] in QUESTION_CONNECTIVES and len(phrase) == 1 and lowered[index - 1] in QUESTION_VERBS:
                return None
            if end >= len(words):
                return None
            behaviour = " ".join(words[:index]).rstrip(",;:")
            condition = " ".join(words[index:])
            return behaviour, condition
    return None


def _reads_as_context(block: BlockNode, connectives: Sequence[str]) -> bool:
    """A describe titled like a condition ('describe "when ..."') acts as a context."""
    if block.kind != BlockKind.SUITE or not block.title:
        return False
    first = block.title.lower().split()
    return any(first[:len(c.split())] == c.lower().split() for c in connectives)


class FlatExampleRule:
    """Flags examples whose title carries a condition outside any context."""

    id = "flat-example"
    description = "Example title embeds a condition that should be a context"

    def check(self, root: BlockNode, ctx: RuleContext) -> List[Finding]:
        connectives = ctx.settings.conditional_words
        findings: List[Finding] = []

        for chain in walk(root):
            example = chain.block
            if example.kind != BlockKind.EXAMPLE:
                continue
            if chain.within(BlockKind.CONTEXT) or chain.within(BlockKind.SHARED):
                continue
            if any(_reads_as_context(b, connectives) for b in chain.ancestors):
                continue
            if example.title is None:
                logger.debug("Skipping example without literal title at line %d", example.line)
                continue

            split = find_condition(example.title, connectives)
            if split is None:
                continue
            behaviour, condition = split
            findings.append(
                ctx.finding(
                    self.id,
                    example.line,
                    f"example '{example.title}' embeds the condition '{condition}'; "
                    f"move it into a context",
                    suggestion=(
                        f"context '{condition}' do\n"
                        f"  {example.keyword or 'it'} '{behaviour}' do"
                    ),
                )
            )
        return findings
