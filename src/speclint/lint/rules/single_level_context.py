"""Single-level-context rule: flatten Cartesian context nesting.

Nested contexts that only vary binding values, level after level, are a
Cartesian product of conditions. Each combination reads better as one
named sibling context than as a path through several nested levels.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Tuple

from ..models import BlockKind, BlockNode, Finding
from .base import RuleContext


@dataclass(frozen=True)
class ProductShape:
    """Shape of a binding-only context product."""
    depth: int
    # binding names varied at each level, outermost first
    levels: Tuple[FrozenSet[str], ...]
    # titles along every path to a leaf context
    combinations: Tuple[Tuple[str, ...], ...]


def measure_product(contexts: List[BlockNode], min_siblings: int) -> Optional[ProductShape]:
    """Measure the context product rooted at a list of sibling contexts.

    Every sibling must declare bindings only (no hooks, no includes), all
    siblings must override the same binding names with different values,
    and either all of them hold only examples (a leaf level) or all of
    them nest another product of the same shape.

    Returns:
        ProductShape, or None when the siblings are not a clean product
    """
    if len(contexts) < min_siblings:
        return None

    names: Optional[FrozenSet[str]] = None
    shapes: List[ProductShape] = []
    leaf_level: Optional[bool] = None

    for context in contexts:
        if context.kind != BlockKind.CONTEXT or context.title is None:
            return None
        if context.hooks or context.includes or not context.bindings:
            return None
        declared = frozenset(b.name for b in context.bindings)
        if names is None:
            names = declared
        elif declared != names:
            return None

        nested = context.child_blocks(BlockKind.CONTEXT)
        examples = context.child_blocks(BlockKind.EXAMPLE)
        if len(nested) + len(examples) != len(context.children):
            return None
        if nested and examples:
            return None

        is_leaf = not nested
        if leaf_level is None:
            leaf_level = is_leaf
        elif leaf_level != is_leaf:
            return None

        if is_leaf:
            if not examples:
                return None
            continue
        shape = measure_product(nested, min_siblings)
        if shape is None:
            return None
        shapes.append(shape)

    for name in names or ():
        values = {context.binding(name).expression for context in contexts}
        if len(values) != len(contexts):
            return None  # siblings repeat a value: not mutually exclusive

    if leaf_level:
        return ProductShape(
            depth=1,
            levels=(names,),
            combinations=tuple((c.title,) for c in contexts),
        )

    first = shapes[0]
    if any(s.depth != first.depth or s.levels != first.levels for s in shapes):
        return None
    combinations = tuple(
        (context.title,) + rest
        for context, shape in zip(contexts, shapes)
        for rest in shape.combinations
    )
    return ProductShape(depth=first.depth + 1, levels=(names,) + first.levels, combinations=combinations)


class SingleLevelContextRule:
    """Flags blocks whose contexts nest a binding-only Cartesian product."""

    id = "single-level-context"
    description = "Nested binding-only contexts should be flattened into sibling contexts"

    def check(self, root: BlockNode, ctx: RuleContext) -> List[Finding]:
        findings: List[Finding] = []
        self._visit(root, ctx, findings)
        return findings

    def _visit(self, block: BlockNode, ctx: RuleContext, findings: List[Finding]) -> None:
        settings = ctx.settings
        contexts = block.child_blocks(BlockKind.CONTEXT)
        shape = measure_product(contexts, settings.min_siblings) if contexts else None

        if shape is not None and shape.depth >= settings.min_depth:
            titles = [" and ".join(combination) for combination in shape.combinations]
            owner = f"'{block.title}'" if block.title else "this block"
            findings.append(
                ctx.finding(
                    self.id,
                    block.line if block.path else contexts[0].line,
                    f"contexts under {owner} nest {shape.depth} levels of binding-only "
                    f"variations ({len(titles)} combinations); flatten them into sibling contexts",
                    suggestion="\n".join(f"context '{title}' do ... end" for title in titles),
                )
            )
            return

        for child in block.children:
            if child.is_group:
                self._visit(child, ctx, findings)
