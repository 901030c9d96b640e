"""Shared example group templates.

``shared_examples 'a reservable item' do |item, owner:|`` declares a
template group. ``it_behaves_like 'a reservable item', book, owner: user``
instantiates it in a nested context; ``include_examples`` and
``include_context`` inline it into the including group.

Expansion is pure: templates are never modified, every instantiation is
a fresh subtree with its own block paths.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Dict, Iterator, List, Mapping, Sequence, Tuple

from .exceptions import TemplateError
from .models import Binding, BlockKind, BlockNode, Hook, IncludeDirective, Statement

logger = logging.getLogger(__name__)

KEYWORD_ARGUMENT_PATTERN = re.compile(r"^(\w+):\s+(.+)$")
NESTING_KEYWORDS = {"it_behaves_like", "it_should_behave_like"}


def collect_shared_groups(root: BlockNode) -> Dict[str, BlockNode]:
    """Map shared group names to their template blocks.

    Groups without a literal name are skipped. When a name is declared
    twice the later declaration wins, as it does at runtime.
    """
    groups: Dict[str, BlockNode] = {}
    stack = [root]
    while stack:
        node = stack.pop()
        if node.kind == BlockKind.SHARED and node.title is not None:
            if node.title in groups:
                logger.debug("Shared group '%s' redeclared at line %d", node.title, node.line)
            groups[node.title] = node
        stack.extend(reversed(node.children))
    ordered = sorted(groups.values(), key=lambda n: n.line)
    return {node.title: node for node in ordered}


def bind_parameters(parameters: Sequence[str], arguments: Sequence[str]) -> Dict[str, str]:
    """Bind include arguments to template parameter names.

    Keyword arguments (``owner: user``) bind by name, the rest bind by
    position. Parameters without an argument stay unbound.

    Raises:
        TemplateError: If there are more positional arguments than
            parameters left to bind
    """
    bound: Dict[str, str] = {}
    positional: List[str] = []
    for argument in arguments:
        keyword = KEYWORD_ARGUMENT_PATTERN.match(argument)
        if keyword and keyword.group(1) in parameters:
            bound[keyword.group(1)] = keyword.group(2).strip()
        else:
            positional.append(argument)

    free = [p for p in parameters if p not in bound]
    if len(positional) > len(free):
        raise TemplateError(
            f"Too many arguments: {len(positional)} positional for {len(free)} parameter(s)"
        )
    bound.update(zip(free, positional))
    return bound


def _substitute(text: str, arguments: Mapping[str, str]) -> str:
    for name, value in arguments.items():
        pattern = re.compile(rf"(?<![\w.:@$]){re.escape(name)}(?![\w?!:])")
        text = pattern.sub(lambda _match, value=value: value, text)
    return text


def _rebase(node: BlockNode, path: Tuple[int, ...], arguments: Mapping[str, str]) -> BlockNode:
    """Copy a template subtree under a new path, substituting parameters."""

    def statements(items: Sequence[Statement]) -> Tuple[Statement, ...]:
        return tuple(Statement(_substitute(s.text, arguments), s.line) for s in items)

    return replace(
        node,
        path=path,
        children=tuple(_rebase(child, path + (i,), arguments) for i, child in enumerate(node.children)),
        bindings=tuple(
            replace(b, expression=_substitute(b.expression, arguments), block_path=path)
            for b in node.bindings
        ),
        hooks=tuple(replace(h, statements=statements(h.statements)) for h in node.hooks),
        statements=statements(node.statements),
        parameters=(),
    )


def expand_shared_group(
    group: BlockNode,
    *,
    arguments: Mapping[str, str],
    path: Tuple[int, ...] = (),
) -> Iterator[BlockNode]:
    """Yield the examples of a shared group instantiated with arguments.

    Args:
        group: Shared group template
        arguments: Parameter name to argument expression
        path: Block path the instance is rooted at

    Yields:
        Example nodes in source order, with parameters substituted
    """
    unknown = sorted(set(arguments) - set(group.parameters))
    if unknown:
        raise TemplateError(f"'{group.title}' has no parameter(s): {', '.join(unknown)}")
    instance = _rebase(group, path, arguments)
    yield from instance.iter_examples()


def _merge_bindings(
    own: Sequence[Binding],
    extra: Sequence[Binding],
    path: Tuple[int, ...],
) -> Tuple[Binding, ...]:
    """Add extra bindings under path; names already declared in own win."""
    names = {b.name for b in own}
    merged = list(own)
    for binding in extra:
        if binding.name in names:
            continue
        if binding.is_subject and any(b.is_subject for b in merged):
            continue
        names.add(binding.name)
        merged.append(replace(binding, block_path=path))
    return tuple(merged)


class _Expander:
    def __init__(self, groups: Mapping[str, BlockNode]):
        self.groups = groups
        self._active: List[str] = []

    def expand(self, node: BlockNode) -> BlockNode:
        if node.kind == BlockKind.EXAMPLE:
            return node

        children = [self.expand(child) for child in node.children]
        bindings: Tuple[Binding, ...] = node.bindings
        hooks: List[Hook] = list(node.hooks)

        for include in node.includes:
            group = self.groups.get(include.name) if include.name is not None else None
            if group is None:
                logger.debug("No shared group named %r for line %d", include.name, include.line)
                continue
            if group.title in self._active:
                raise TemplateError(f"Shared group '{group.title}' includes itself")

            self._active.append(group.title)
            try:
                instance = self._instantiate(include, group, node.path + (len(children),))
            finally:
                self._active.pop()

            if include.keyword in NESTING_KEYWORDS:
                children.append(instance)
                continue
            # include_examples / include_context inline into this group
            for child in instance.children:
                children.append(_rebase(child, node.path + (len(children),), {}))
            bindings = _merge_bindings(bindings, instance.bindings, node.path)
            hooks.extend(instance.hooks)

        return replace(node, children=tuple(children), bindings=bindings, hooks=tuple(hooks))

    def _instantiate(self, include: IncludeDirective, group: BlockNode, path: Tuple[int, ...]) -> BlockNode:
        arguments = bind_parameters(group.parameters, include.arguments)
        instance = self.expand(_rebase(group, path, arguments))
        customizations = tuple(replace(b, block_path=path) for b in include.bindings)
        return replace(
            instance,
            kind=BlockKind.CONTEXT,
            title=f"behaves like {group.title}",
            keyword=include.keyword,
            bindings=_merge_bindings(customizations, instance.bindings, path),
            includes=(),
        )


def instantiate_includes(root: BlockNode) -> BlockNode:
    """Return a new tree with every resolvable include directive expanded.

    ``it_behaves_like`` adds a nested context titled "behaves like NAME";
    ``include_examples``/``include_context`` inline the group. Bindings
    passed in the directive's block override the template's. Includes
    naming no known shared group are left out.

    Raises:
        TemplateError: On argument mismatch or a self-including group
    """
    return _Expander(collect_shared_groups(root)).expand(root)
