"""Context-mutation rule: override bindings instead of mutating them in hooks.

A before hook that updates a value obtained from an enclosing block's
``let`` hides the state each context runs with. Redefining the binding
in the context (``let(:book) { build(:book, reserved: true) }``) keeps
every context's setup declarative.
"""

from __future__ import annotations

import logging
import re
from typing import Iterator, List, Optional, Sequence, Set

from ..models import Binding, BlockNode, Finding, Hook, Statement
from ..scope import ScopeChain, walk
from .base import RuleContext

logger = logging.getLogger(__name__)

# receiver followed by a method chain: book.owner.update(...)
CALL_CHAIN_PATTERN = re.compile(
    r"(?<![\w.:@$])([a-z_]\w*)((?:\s*&?\.\s*[a-z_]\w*[?!]?)+)"
)
SEGMENT_PATTERN = re.compile(r"[a-z_]\w*[?!]?")
ATTRIBUTE_ASSIGN_PATTERN = re.compile(r"\s*(?:[-+*/%|&]|\|\||&&|<<|>>)?=(?![=~>])")
SHOVEL_PATTERN = re.compile(r"(?<![\w.:@$])([a-z_]\w*)\s*<<(?![~-]|[A-Z_]{2,}\b)")
INDEX_ASSIGN_PATTERN = re.compile(r"(?<![\w.:@$])([a-z_]\w*)\[[^\]]*\]\s*(?:[-+*/]|\|\|)?=(?![=~>])")
LOCAL_ASSIGN_PATTERN = re.compile(r"^([a-z_]\w*)\s*(?:\|\||&&)?=(?![=~>])")
BLOCK_PARAM_PATTERN = re.compile(r"\|([^|]*)\|")


def find_mutations(statement: Statement, mutating_methods: Sequence[str]) -> Iterator[tuple[str, str]]:
    """Yield (receiver, operation) pairs for mutations in one statement.

    Operations are a mutating method (``update``, any ``!`` method), an
    attribute assignment (``title=``), ``<<`` or an index assignment.
    """
    text = statement.text
    methods = set(mutating_methods)

    for match in CALL_CHAIN_PATTERN.finditer(text):
        receiver = match.group(1)
        segments = SEGMENT_PATTERN.findall(match.group(2))
        for segment in segments:
            if segment in methods or segment.endswith("!"):
                yield receiver, segment
                break
        else:
            if segments and ATTRIBUTE_ASSIGN_PATTERN.match(text, match.end()):
                yield receiver, f"{segments[-1]}="

    for pattern, operation in ((SHOVEL_PATTERN, "<<"), (INDEX_ASSIGN_PATTERN, "[]=")):
        for match in pattern.finditer(text):
            yield match.group(1), operation


def _shadowed_names(hook: Hook) -> Set[str]:
    """Names rebound locally inside the hook (assignments, block params)."""
    names: Set[str] = set()
    for statement in hook.statements:
        local = LOCAL_ASSIGN_PATTERN.match(statement.text)
        if local:
            names.add(local.group(1))
        for params in BLOCK_PARAM_PATTERN.findall(statement.text):
            names.update(p.strip().lstrip("*&") for p in params.split(",") if p.strip())
    return names


def _ancestor_binding(chain: ScopeChain, name: str) -> Optional[Binding]:
    binding = chain.resolve(name)
    if binding is None or not chain.declared_in_ancestor(binding):
        return None
    return binding


class ContextMutationRule:
    """Flags hooks that mutate bindings declared by an enclosing block."""

    id = "context-mutation"
    description = "Hook mutates a binding from an enclosing block instead of overriding it"

    def check(self, root: BlockNode, ctx: RuleContext) -> List[Finding]:
        findings: List[Finding] = []
        methods = ctx.settings.mutating_methods

        for chain in walk(root):
            for hook in chain.block.hooks:
                shadowed = _shadowed_names(hook)
                reported: Set[tuple[int, str]] = set()
                for statement in hook.statements:
                    for receiver, operation in find_mutations(statement, methods):
                        if receiver in shadowed or (statement.line, receiver) in reported:
                            continue
                        binding = _ancestor_binding(chain, receiver)
                        if binding is None:
                            continue
                        reported.add((statement.line, receiver))
                        findings.append(
                            ctx.finding(
                                self.id,
                                statement.line,
                                f"{hook.phase} hook mutates '{receiver}' ({operation}) declared "
                                f"at line {binding.line} in an enclosing block; override it with "
                                f"let(:{receiver}) in this context instead",
                                suggestion=f"let(:{receiver}) {{ ... }}",
                            )
                        )
                if reported:
                    logger.debug("Hook at line %d mutates %d binding(s)", hook.line, len(reported))
        return findings
