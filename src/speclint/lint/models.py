"""Core data models for spec linting."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, StrEnum
from typing import Any, Iterator, Optional, Tuple


class BlockKind(Enum):
    """Kind of a nested spec block."""
    SUITE = "suite"        # describe / feature, and the synthetic file root
    CONTEXT = "context"    # context
    EXAMPLE = "example"    # it / specify / example / scenario
    SHARED = "shared"      # shared_examples / shared_context template group


class Severity(StrEnum):
    """Severity of a finding, ordered info < warning < error."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def escalate(self) -> "Severity":
        """Return the next severity level up, capped at ERROR."""
        if self is Severity.INFO:
            return Severity.WARNING
        return Severity.ERROR


_SEVERITY_RANK = {
    Severity.INFO: 0,
    Severity.WARNING: 1,
    Severity.ERROR: 2,
}


@dataclass(frozen=True)
class SourceSpan:
    """Inclusive line range of a block within one file."""
    path: str
    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 1:
            raise ValueError(f"Line numbers are 1-based: {self.start}")
        if self.end < self.start:
            raise ValueError(f"Span ends before it starts: {self.start}-{self.end}")


@dataclass(frozen=True)
class Statement:
    """One logical statement of Ruby body text."""
    text: str
    line: int


@dataclass(frozen=True)
class Binding:
    """A named lazily evaluated value (``let``/``subject``) declared in a block."""
    name: str
    expression: str
    line: int
    block_path: Tuple[int, ...]  # path of the declaring block from the root
    eager: bool = False          # let! / subject!
    is_subject: bool = False
    anonymous: bool = False      # subject { } without a name

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Binding name cannot be empty")
        if self.anonymous and not self.is_subject:
            raise ValueError("Only a subject can be anonymous")


@dataclass(frozen=True)
class Hook:
    """A before/after/around hook declared in a block."""
    phase: str
    line: int
    scope: Optional[str] = None  # :each, :all, ... when given
    statements: Tuple[Statement, ...] = ()


@dataclass(frozen=True)
class IncludeDirective:
    """Inclusion of a shared example group (it_behaves_like and friends)."""
    keyword: str
    name: Optional[str]
    line: int
    arguments: Tuple[str, ...] = ()
    bindings: Tuple[Binding, ...] = ()


@dataclass(frozen=True)
class BlockNode:
    """One describe/context/example unit of a parsed spec file."""
    kind: BlockKind
    title: Optional[str]  # None when the title is not a plain literal
    span: SourceSpan
    path: Tuple[int, ...] = ()
    keyword: str = ""
    children: Tuple["BlockNode", ...] = ()
    bindings: Tuple[Binding, ...] = ()
    hooks: Tuple[Hook, ...] = ()
    statements: Tuple[Statement, ...] = ()
    includes: Tuple[IncludeDirective, ...] = ()
    parameters: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.kind == BlockKind.EXAMPLE and self.children:
            raise ValueError("An example cannot contain nested blocks")
        names = [b.name for b in self.bindings]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate binding names in block: {sorted(names)}")

    @property
    def line(self) -> int:
        return self.span.start

    @property
    def is_group(self) -> bool:
        return self.kind != BlockKind.EXAMPLE

    def binding(self, name: str) -> Optional[Binding]:
        """Return the binding declared directly in this block, if any."""
        for binding in self.bindings:
            if binding.name == name:
                return binding
        return None

    def subject_binding(self) -> Optional[Binding]:
        """Return the subject declared directly in this block, if any."""
        for binding in self.bindings:
            if binding.is_subject:
                return binding
        return None

    def child_blocks(self, kind: BlockKind) -> list["BlockNode"]:
        return [c for c in self.children if c.kind == kind]

    def iter_examples(self) -> Iterator["BlockNode"]:
        """Yield every example below this block in source order."""
        if self.kind == BlockKind.EXAMPLE:
            yield self
            return
        for child in self.children:
            yield from child.iter_examples()

    def leaf_count(self) -> int:
        """Number of examples below this block.

        Examples are the leaves of the tree; an empty group is not counted.
        """
        return sum(1 for _ in self.iter_examples())


@dataclass(frozen=True)
class Finding:
    """One rule violation."""
    rule_id: str
    severity: Severity
    message: str
    path: str
    line: int
    suggestion: Optional[str] = None

    @property
    def sort_key(self) -> tuple[str, int, str, str]:
        return (self.path, self.line, self.rule_id, self.message)


@dataclass
class FileReport:
    """Findings for a single analysed file."""
    path: str
    findings: list[Finding] = field(default_factory=list)
    failed: bool = False  # syntax error, timeout or unreadable file
    example_count: int = 0


@dataclass
class RunReport:
    """Merged outcome of one lint run over many files."""
    files: list[FileReport] = field(default_factory=list)

    @property
    def findings(self) -> list[Finding]:
        merged = [f for report in self.files for f in report.findings]
        return sorted(merged, key=lambda f: f.sort_key)

    @property
    def failed_files(self) -> list[FileReport]:
        return [r for r in self.files if r.failed]

    @property
    def has_errors(self) -> bool:
        return any(f.severity == Severity.ERROR for f in self.findings)

    @property
    def exit_code(self) -> int:
        """0 when clean, 1 when any file failed or an error finding exists.

        info and warning findings never change the exit status.
        """
        if self.failed_files or self.has_errors:
            return 1
        return 0


# Serialization helpers for JSON output

def finding_to_dict(finding: Finding) -> dict[str, Any]:
    """Serialize Finding to dict."""
    return {
        "path": finding.path,
        "line": finding.line,
        "rule_id": finding.rule_id,
        "severity": finding.severity.value,
        "message": finding.message,
        "suggestion": finding.suggestion,
    }


def block_to_dict(node: BlockNode) -> dict[str, Any]:
    """Serialize a BlockNode tree to nested dicts."""
    return {
        "kind": node.kind.value,
        "title": node.title,
        "keyword": node.keyword,
        "lines": [node.span.start, node.span.end],
        "bindings": [b.name for b in node.bindings],
        "hooks": [h.phase for h in node.hooks],
        "includes": [i.name for i in node.includes],
        "children": [block_to_dict(c) for c in node.children],
    }
