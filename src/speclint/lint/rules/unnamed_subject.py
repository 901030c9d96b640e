"""Unnamed-subject rule: shared subjects should be named."""

from __future__ import annotations

import re
from typing import Dict, List, Optional

from ..models import Binding, BlockKind, BlockNode, Finding
from ..scope import SUBJECT, ScopeChain, walk
from .base import RuleContext

# Explicit or implicit use of the subject inside an example body
REFERENCE_PATTERN = re.compile(r"(?<![\w.:@])(?:subject|is_expected|should(?:_not)?)(?![\w?!:])")
# Subject run only for what it does
SIDE_EFFECT_PATTERN = re.compile(r"^subject!?$|expect\s*\{\s*subject\s*\}")
# Subject run for the value it returns
QUERY_PATTERN = re.compile(
    r"expect\s*\(\s*subject\b|(?<![\w.:@])subject\s*(?:\.|\[)|(?<![\w.:@])is_expected\b|"
    r"(?<![\w.:@])should(?:_not)?\b"
)

TITLE_WORD_PATTERN = re.compile(r"[a-z][a-z0-9_]*")


def _suggest_name(chain: ScopeChain) -> str:
    for block in reversed(chain.blocks):
        if block.title:
            words = TITLE_WORD_PATTERN.findall(block.title.lower().lstrip("#."))
            if words:
                return "_".join(words[:3])
    return "result"


class UnnamedSubjectRule:
    """Flags anonymous subjects referenced by several examples."""

    id = "unnamed-subject"
    description = "Anonymous subject shared by several examples should be named"

    def check(self, root: BlockNode, ctx: RuleContext) -> List[Finding]:
        references: Dict[tuple, List[BlockNode]] = {}
        declarations: Dict[tuple, tuple[Binding, ScopeChain]] = {}

        for chain in walk(root):
            block = chain.block
            subject = block.subject_binding()
            if subject is not None and subject.anonymous:
                key = (subject.block_path, subject.name)
                declarations[key] = (subject, chain)
            if block.kind != BlockKind.EXAMPLE:
                continue
            if not any(REFERENCE_PATTERN.search(s.text) for s in block.statements):
                continue
            resolved = chain.resolve(SUBJECT)
            if resolved is None or not resolved.anonymous:
                continue
            references.setdefault((resolved.block_path, resolved.name), []).append(block)

        findings: List[Finding] = []
        limit = ctx.settings.max_anonymous_references
        for key, (subject, chain) in declarations.items():
            examples = references.get(key, [])
            if len(examples) <= limit:
                continue
            escalate = self._mixed_invocation(examples)
            message = (
                f"anonymous subject is referenced by {len(examples)} examples; "
                f"give it a name with subject(:name)"
            )
            if escalate:
                message += (
                    "; it is invoked for its side effect in one example and queried "
                    "for its result in another"
                )
            findings.append(
                ctx.finding(
                    self.id,
                    subject.line,
                    message,
                    suggestion=f"subject(:{_suggest_name(chain)}) {{ {subject.expression} }}",
                    escalate=escalate,
                )
            )
        return findings

    @staticmethod
    def _mixed_invocation(examples: List[BlockNode]) -> bool:
        """True if one example runs the subject for effect and another reads it."""
        effect: Optional[BlockNode] = None
        query: Optional[BlockNode] = None
        for example in examples:
            texts = [s.text for s in example.statements]
            if effect is None and any(SIDE_EFFECT_PATTERN.search(t) for t in texts):
                effect = example
            elif query is None and any(QUERY_PATTERN.search(t) for t in texts):
                query = example
        return effect is not None and query is not None and effect is not query
