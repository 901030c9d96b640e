"""Binding scope chain for parsed spec trees.

A ``let`` declared in a block is visible in that block and every
descendant, unless a descendant re-declares the same name. Lookups walk
from the innermost block outwards; results are memoized per chain.
"""

from __future__ import annotations

from typing import Dict, Iterator, Optional, Tuple

from .models import Binding, BlockKind, BlockNode

SUBJECT = "subject"


class ScopeChain:
    """Blocks from the root down to one block, with memoized lookups."""

    def __init__(self, blocks: Tuple[BlockNode, ...]):
        if not blocks:
            raise ValueError("A scope chain needs at least the root block")
        self.blocks = blocks
        self._resolved: Dict[str, Optional[Binding]] = {}

    @property
    def block(self) -> BlockNode:
        return self.blocks[-1]

    @property
    def ancestors(self) -> Tuple[BlockNode, ...]:
        return self.blocks[:-1]

    def child(self, node: BlockNode) -> "ScopeChain":
        return ScopeChain(self.blocks + (node,))

    def resolve(self, name: str) -> Optional[Binding]:
        """
        Resolve a binding name from the innermost block outwards.

        ``subject`` resolves to the innermost subject declaration, named
        or anonymous, since a named subject also answers to ``subject``.

        Args:
            name: Binding name as referenced in a body

        Returns:
            The visible Binding, or None when nothing declares the name
        """
        if name not in self._resolved:
            self._resolved[name] = self._lookup(name)
        return self._resolved[name]

    def _lookup(self, name: str) -> Optional[Binding]:
        for block in reversed(self.blocks):
            if name == SUBJECT:
                found = block.subject_binding()
            else:
                found = block.binding(name)
            if found is not None:
                return found
        return None

    def declaring_block(self, binding: Binding) -> Optional[BlockNode]:
        for block in self.blocks:
            if block.path == binding.block_path:
                return block
        return None

    def declared_in_ancestor(self, binding: Binding) -> bool:
        """True if the binding belongs to a strict ancestor of this block."""
        return any(block.path == binding.block_path for block in self.ancestors)

    def within(self, kind: BlockKind) -> bool:
        """True if any strict ancestor has the given kind."""
        return any(block.kind == kind for block in self.ancestors)


def walk(root: BlockNode) -> Iterator[ScopeChain]:
    """Yield a ScopeChain for every block in depth-first source order."""
    stack = [ScopeChain((root,))]
    while stack:
        chain = stack.pop()
        yield chain
        for child in reversed(chain.block.children):
            stack.append(chain.child(child))


def resolve_binding(chain: ScopeChain, name: str) -> Optional[Binding]:
    """Module-level convenience wrapper around ScopeChain.resolve."""
    return chain.resolve(name)
