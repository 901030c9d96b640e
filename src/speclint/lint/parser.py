"""Spec source parser.

Turns RSpec-style spec source into a tree of BlockNode objects:
- describe/context/shared groups and their examples
- let/subject bindings declared directly in each block
- before/after/around hooks and include directives
- example body statements, with line numbers

The parser is line oriented. String literals, comments, heredocs and
``=begin`` blocks are masked out before block balance is computed, so
``end`` or braces inside strings never open or close anything.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from .exceptions import SpecSyntaxError
from .models import (
    Binding,
    BlockKind,
    BlockNode,
    Hook,
    IncludeDirective,
    SourceSpan,
    Statement,
)

logger = logging.getLogger(__name__)

GROUP_KEYWORDS: dict[str, BlockKind] = {
    "describe": BlockKind.SUITE,
    "fdescribe": BlockKind.SUITE,
    "xdescribe": BlockKind.SUITE,
    "feature": BlockKind.SUITE,
    "context": BlockKind.CONTEXT,
    "fcontext": BlockKind.CONTEXT,
    "xcontext": BlockKind.CONTEXT,
    "shared_examples": BlockKind.SHARED,
    "shared_examples_for": BlockKind.SHARED,
    "shared_context": BlockKind.SHARED,
}

EXAMPLE_KEYWORDS = {
    "it", "fit", "xit",
    "specify", "fspecify", "xspecify",
    "example", "fexample", "xexample",
    "scenario", "fscenario", "xscenario",
    "its", "pending",
}

BINDING_KEYWORDS = {"let", "let!", "subject", "subject!"}

HOOK_KEYWORDS = {
    "before", "after", "around",
    "prepend_before", "append_before", "prepend_after", "append_after",
}

INCLUDE_KEYWORDS = {
    "it_behaves_like", "it_should_behave_like", "include_examples", "include_context",
}

# DSL call at the start of a line, optionally receiver-qualified (RSpec.describe)
DSL_CALL_PATTERN = re.compile(r"^\s*(?:RSpec\s*\.\s*)?([a-z_]+!?)(?=[\s({]|$)")

# Structural tokens, matched against masked text only
TOKEN_PATTERN = re.compile(
    r"[{}]|(?<![\w.:$@])(do|end|if|unless|while|until|case|begin|def|class|module|for)(?![\w?!:])"
)
ENDLESS_DEF_PATTERN = re.compile(r"def\s+[\w.]+[?!]?\s*(?:\([^)]*\))?\s*=(?!=)")
HEREDOC_PATTERN = re.compile(r"<<[~-]?(['\"`]?)([A-Z_][A-Z0-9_]*)\1")
BLOCK_PARAMS_PATTERN = re.compile(r"^\s*\|([^|]*)\|")

LITERAL_TITLE_PATTERN = re.compile(
    r"""^\(?\s*(?:'((?:[^'\\]|\\.)*)'|"((?:[^"\\]|\\.)*)")"""
)
CONSTANT_TITLE_PATTERN = re.compile(r"^\(?\s*([A-Z]\w*(?:::[A-Z]\w*)*)(?![\w(.])")
BINDING_NAME_PATTERN = re.compile(r"""^\(?\s*(?::(\w+[?!]?)|['"](\w+[?!]?)['"])""")
HOOK_SCOPE_PATTERN = re.compile(r"^\(?\s*:(\w+)")

# Keywords that only open a block at the start of a statement
STATEMENT_KEYWORDS = {"if", "unless", "while", "until", "for"}
LOOP_KEYWORDS = {"while", "until", "for"}
PERCENT_DELIMITERS = {"(": ")", "[": "]", "{": "}", "<": ">"}
REGEX_OPERAND_PRECEDERS = set("(,=!~|&?:;[{<>+-*%^")
REGEX_FLAGS = set("imxo")


@dataclass
class SourceLine:
    """One physical line with comments removed and string contents masked."""
    number: int
    code: str    # source text without the trailing comment
    masked: str  # same length as code; literal contents replaced by spaces


def mask_line(text: str, stack: list[list[Any]] | None = None) -> tuple[str, str]:
    """Strip the comment from a line and blank out string literal contents.

    Args:
        text: One physical source line
        stack: Literal state left open by the previous line. Updated in
            place, so a string or regex still open at the end of this
            line stays open for the next one.

    Returns:
        (code, masked) of equal length. Quote characters are kept in the
        masked text, everything between them (interpolations included)
        becomes spaces. Percent and regex literals are masked together
        with their delimiters.
    """
    masked = list(text)
    if stack is None:
        stack = []
    i, n = 0, len(text)
    cut = n

    while i < n:
        ch = text[i]
        top = stack[-1] if stack else None

        if top is None or top[0] == "interp":
            if top is not None:
                masked[i] = " "
                if ch == "{":
                    top[1] += 1
                elif ch == "}":
                    if top[1] == 0:
                        stack.pop()
                    else:
                        top[1] -= 1
                    i += 1
                    continue
            elif ch == "#":
                cut = i
                break
            if ch in "\"'`":
                stack.append([ch])
                i += 1
                continue
            if ch == "%" and _percent_literal_start(text, i):
                j = i + 1
                if text[j] in "qQwWiIrs":
                    j += 1
                opening = text[j]
                closing = PERCENT_DELIMITERS.get(opening, opening)
                interpolates = text[i + 1] not in "qwis"
                for k in range(i, j + 1):
                    masked[k] = " "
                stack.append(["%", opening, closing, 0, interpolates])
                i = j + 1
                continue
            if ch == "/" and _regex_literal_start(text, i):
                masked[i] = " "
                stack.append(["%", "/", "/", 0, True])
                i += 1
                continue
            i += 1
            continue

        if ch == "\\":
            masked[i] = " "
            if i + 1 < n:
                masked[i + 1] = " "
            i += 2
            continue

        if top[0] == "%":
            _, opening, closing, depth, interpolates = top
            if ch == closing and depth == 0:
                masked[i] = " "
                stack.pop()
                if opening == "/":
                    while i + 1 < n and text[i + 1] in REGEX_FLAGS:
                        i += 1
                        masked[i] = " "
            else:
                if opening != closing and ch == opening:
                    top[3] += 1
                elif opening != closing and ch == closing:
                    top[3] -= 1
                elif interpolates and ch == "#" and i + 1 < n and text[i + 1] == "{":
                    masked[i] = masked[i + 1] = " "
                    stack.append(["interp", 0])
                    i += 2
                    continue
                masked[i] = " "
            i += 1
            continue

        # quoted string
        if ch == top[0]:
            stack.pop()
            i += 1
            continue
        if top[0] != "'" and ch == "#" and i + 1 < n and text[i + 1] == "{":
            masked[i] = masked[i + 1] = " "
            stack.append(["interp", 0])
            i += 2
            continue
        masked[i] = " "
        i += 1

    return text[:cut], "".join(masked[:cut])


def _percent_literal_start(text: str, index: int) -> bool:
    """Check if ``%`` at index starts a literal rather than a modulo operator."""
    rest = text[index + 1:index + 3]
    if not rest:
        return False
    if rest[0] in "qQwWiIrs" and len(rest) > 1 and not rest[1].isalnum() and not rest[1].isspace():
        delimiter_ok = True
    else:
        delimiter_ok = rest[0] in PERCENT_DELIMITERS or rest[0] in "|!/"
    if not delimiter_ok:
        return False
    before = text[:index].rstrip()
    return not before or not (before[-1].isalnum() or before[-1] in "_)]}")


def _regex_literal_start(text: str, index: int) -> bool:
    """Check if ``/`` at index starts a regex rather than a division.

    A slash in operand position (line start, after an operator or an
    opening bracket) starts a regex. After a bare word it does so only in
    command-call form, ``match /x/``: space before the slash, none after.
    """
    before = text[:index]
    stripped = before.rstrip()
    if not stripped:
        return True
    last = stripped[-1]
    if last in REGEX_OPERAND_PRECEDERS:
        return True
    if last.isalnum() or last == "_":
        following = text[index + 1:index + 2]
        return before != stripped and following not in ("", " ", "=")
    return False


def split_source_lines(text: str) -> list[SourceLine]:
    """Split source into masked lines, handling heredocs and =begin blocks.

    Strings and regexes that span lines are carried over, so their
    continuation lines are masked too.
    """
    lines: list[SourceLine] = []
    pending_heredocs: list[str] = []
    open_literals: list[list[Any]] = []
    in_block_comment = False

    for number, raw in enumerate(text.splitlines(), start=1):
        if open_literals:
            code, masked = mask_line(raw, open_literals)
            lines.append(SourceLine(number, code, masked))
            continue
        if in_block_comment:
            lines.append(SourceLine(number, "", ""))
            if raw.startswith("=end"):
                in_block_comment = False
            continue
        if raw.startswith("=begin"):
            in_block_comment = True
            lines.append(SourceLine(number, "", ""))
            continue
        if pending_heredocs:
            if raw.strip() == pending_heredocs[0]:
                pending_heredocs.pop(0)
            lines.append(SourceLine(number, "", ""))
            continue
        if raw.strip() == "__END__":
            break

        code, masked = mask_line(raw, open_literals)
        for match in HEREDOC_PATTERN.finditer(code):
            if masked[match.start()] == "<":
                pending_heredocs.append(match.group(2))
        lines.append(SourceLine(number, code, masked))

    return lines


@dataclass(frozen=True)
class _Token:
    col: int    # column of the token
    end: int    # column just past the token
    text: str
    opens: bool
    block_brace: bool = False  # "{" in call position (a block, not a hash)

    @property
    def closer(self) -> str:
        return "}" if self.text == "{" else "end"


def tokenize(masked: str) -> list[_Token]:
    """Return the block-structure tokens of one masked line, in order."""
    tokens: list[_Token] = []
    loop_open = False
    for match in TOKEN_PATTERN.finditer(masked):
        word = match.group(0)
        col = match.start()
        if word == "{":
            before = masked[:col].rstrip()
            is_block = bool(before) and (before[-1].isalnum() or before[-1] in "_)!?")
            tokens.append(_Token(col, match.end(), word, True, block_brace=is_block))
        elif word in ("}", "end"):
            tokens.append(_Token(col, match.end(), word, False))
        elif word == "do":
            if loop_open:
                loop_open = False
                continue
            tokens.append(_Token(col, match.end(), word, True))
        elif word in STATEMENT_KEYWORDS:
            before = masked[:col].rstrip()
            if before and before[-1] not in "=(;[,{|&":
                continue  # modifier form: `x if y`
            if word in LOOP_KEYWORDS:
                loop_open = True
            tokens.append(_Token(col, match.end(), word, True))
        elif word == "def":
            if ENDLESS_DEF_PATTERN.match(masked, col):
                continue
            tokens.append(_Token(col, match.end(), word, True))
        else:
            tokens.append(_Token(col, match.end(), word, True))
    return tokens


@dataclass(frozen=True)
class _DslCall:
    word: str
    role: str  # group | example | binding | hook | include
    args_start: int


def match_dsl_call(line: SourceLine) -> _DslCall | None:
    """Recognize a spec DSL call at the start of a line."""
    match = DSL_CALL_PATTERN.match(line.masked)
    if not match:
        return None
    word = match.group(1)
    if word in GROUP_KEYWORDS:
        role = "group"
    elif word in EXAMPLE_KEYWORDS:
        role = "example"
    elif word in BINDING_KEYWORDS:
        role = "binding"
    elif word in HOOK_KEYWORDS:
        role = "hook"
    elif word in INCLUDE_KEYWORDS:
        role = "include"
    else:
        return None
    return _DslCall(word=word, role=role, args_start=match.end())


def parse_title(args: str) -> str | None:
    """Extract a literal title from DSL call arguments.

    Returns None for anything that is not a plain string literal or a
    constant name (interpolated strings, method calls, variables).
    """
    match = LITERAL_TITLE_PATTERN.match(args)
    if match:
        if match.group(1) is not None:
            return match.group(1).replace("\\'", "'")
        text = match.group(2)
        if "#{" in text:
            return None
        return text.replace('\\"', '"')
    match = CONSTANT_TITLE_PATTERN.match(args)
    if match:
        return match.group(1)
    return None


def split_arguments(code: str, masked: str) -> list[str]:
    """Split a call argument list on top-level commas."""
    parts: list[str] = []
    depth = 0
    start = 0
    for i, ch in enumerate(masked):
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        elif ch == "," and depth == 0:
            parts.append(code[start:i].strip())
            start = i + 1
    tail = code[start:].strip()
    if tail:
        parts.append(tail)
    return [p for p in parts if p]


def parse_block_parameters(masked_after_opener: str, code_after_opener: str) -> tuple[str, ...]:
    """Parse ``|a, b = 1, *rest, key:|`` block parameters into names."""
    match = BLOCK_PARAMS_PATTERN.match(masked_after_opener)
    if not match:
        return ()
    inner = code_after_opener[match.start(1):match.end(1)]
    names = []
    for part in inner.split(","):
        name = part.split("=")[0].strip().lstrip("*&").rstrip(":").strip()
        if name:
            names.append(name)
    return tuple(names)


class _BlockBuilder:
    """Mutable accumulator for a block until its closing token is seen."""

    def __init__(
        self,
        kind: BlockKind,
        title: str | None,
        keyword: str,
        start: int,
        path: tuple[int, ...],
        parameters: tuple[str, ...] = (),
    ):
        self.kind = kind
        self.title = title
        self.keyword = keyword
        self.start = start
        self.path = path
        self.parameters = parameters
        self.children: list[BlockNode] = []
        self.bindings: list[Binding] = []
        self.hooks: list[Hook] = []
        self.includes: list[IncludeDirective] = []
        self._next_index = 0

    def next_path(self) -> tuple[int, ...]:
        path = self.path + (self._next_index,)
        self._next_index += 1
        return path

    def add_binding(self, binding: Binding) -> None:
        if any(b.name == binding.name for b in self.bindings):
            raise SpecSyntaxError(
                f"binding '{binding.name}' is declared twice in the same block",
                line=binding.line,
            )
        self.bindings.append(binding)

    def build(self, path: str, end: int, statements: tuple[Statement, ...] = ()) -> BlockNode:
        return BlockNode(
            kind=self.kind,
            title=self.title,
            span=SourceSpan(path, self.start, max(end, self.start)),
            path=self.path,
            keyword=self.keyword,
            children=tuple(self.children),
            bindings=tuple(self.bindings),
            hooks=tuple(self.hooks),
            statements=statements,
            includes=tuple(self.includes),
            parameters=self.parameters,
        )


@dataclass
class _IncludeDraft:
    keyword: str
    name: str | None
    line: int
    arguments: tuple[str, ...]
    path: tuple[int, ...]
    bindings: list[Binding] = field(default_factory=list)

    def add_binding(self, binding: Binding) -> None:
        if any(b.name == binding.name for b in self.bindings):
            raise SpecSyntaxError(
                f"binding '{binding.name}' is declared twice in the same block",
                line=binding.line,
            )
        self.bindings.append(binding)

    def build(self) -> IncludeDirective:
        return IncludeDirective(
            keyword=self.keyword,
            name=self.name,
            line=self.line,
            arguments=self.arguments,
            bindings=tuple(self.bindings),
        )


@dataclass
class _Frame:
    """An open block on the parser stack."""
    role: str      # root | group | example | binding | hook | include | other
    closer: str    # "end" or "}"
    line: int      # line of the opening token
    col: int       # column just past the opening token
    owner: Any = None       # builder/draft receiving the finished block
    builder: Any = None     # _BlockBuilder, or _IncludeDraft for include frames
    call: dict[str, Any] = field(default_factory=dict)


class SpecParser:
    """Parser for RSpec-style spec files."""

    def __init__(self, path: str = "<string>"):
        self.path = path
        self._lines: dict[int, SourceLine] = {}
        self._stack: list[_Frame] = []

    def parse(self, text: str) -> BlockNode:
        """Parse spec source into a root BlockNode.

        Args:
            text: Full spec file contents

        Returns:
            Synthetic root suite (title None) spanning the whole file

        Raises:
            SpecSyntaxError: If blocks are unbalanced or a block repeats
                a binding name
        """
        source_lines = split_source_lines(text)
        last_line = source_lines[-1].number if source_lines else 1
        self._lines = {line.number: line for line in source_lines}
        root = _BlockBuilder(BlockKind.SUITE, None, "", 1, ())
        self._stack = [_Frame(role="root", closer="", line=1, col=0, builder=root)]

        try:
            for line in source_lines:
                self._process_line(line)
        except SpecSyntaxError as exc:
            raise exc.with_path(self.path) from None

        if len(self._stack) > 1:
            frame = self._stack[-1]
            raise SpecSyntaxError(
                f"block opened here is never closed (missing '{frame.closer}')",
                line=frame.line,
                path=self.path,
            )

        tree = root.build(self.path, last_line)
        logger.debug("Parsed %s: %d example(s)", self.path, tree.leaf_count())
        return tree

    # ------------------------------------------------------------------
    # Line processing
    # ------------------------------------------------------------------

    def _process_line(self, line: SourceLine) -> None:
        tokens = tokenize(line.masked)
        call = match_dsl_call(line) if self._accepts_dsl() else None
        opener = self._find_opener(tokens, call) if call else None

        if call is not None and opener is None:
            self._emit_blockless(call, line)

        for token in tokens:
            if not token.opens:
                self._close(token, line)
            elif token is opener:
                self._open_dsl(call, token, line)
            else:
                self._stack.append(
                    _Frame(role="other", closer=token.closer, line=line.number, col=token.end)
                )

    def _innermost(self) -> _Frame:
        for frame in reversed(self._stack):
            if frame.role != "other":
                return frame
        return self._stack[0]

    def _accepts_dsl(self) -> bool:
        return self._innermost().role in ("root", "group", "include")

    def _owner(self) -> Any:
        frame = self._innermost()
        return frame.builder

    @staticmethod
    def _find_opener(tokens: list[_Token], call: _DslCall) -> _Token | None:
        depth = 0
        for token in tokens:
            if token.col < call.args_start:
                continue
            if not token.opens:
                depth -= 1
                if depth < 0:
                    return None
                continue
            if depth == 0 and (token.text == "do" or token.block_brace):
                return token
            depth += 1
        return None

    def _args_text(self, line: SourceLine, call: _DslCall, end: int | None) -> tuple[str, str]:
        stop = len(line.code) if end is None else end
        return (
            line.code[call.args_start:stop].strip(),
            line.masked[call.args_start:stop].strip(),
        )

    # ------------------------------------------------------------------
    # Opening blocks
    # ------------------------------------------------------------------

    def _emit_blockless(self, call: _DslCall, line: SourceLine) -> None:
        owner = self._owner()
        if call.role == "example" and isinstance(owner, _BlockBuilder):
            args, _ = self._args_text(line, call, None)
            builder = _BlockBuilder(
                BlockKind.EXAMPLE, parse_title(args), call.word, line.number, owner.next_path()
            )
            owner.children.append(builder.build(self.path, line.number))
        elif call.role == "include" and isinstance(owner, _BlockBuilder):
            args, masked = self._args_text(line, call, None)
            owner.includes.append(self._include_draft(call, line, args, masked, owner).build())
        else:
            logger.debug("Ignoring '%s' without a block at %s:%d", call.word, self.path, line.number)

    def _open_dsl(self, call: _DslCall, token: _Token, line: SourceLine) -> None:
        owner = self._owner()
        args, masked_args = self._args_text(line, call, token.col)
        frame = _Frame(role=call.role, closer=token.closer, line=line.number, col=token.end, owner=owner)

        if isinstance(owner, _IncludeDraft) and call.role != "binding":
            logger.debug("Ignoring '%s' inside include block at %s:%d", call.word, self.path, line.number)
            frame.role = "other"
        elif call.role in ("group", "example"):
            kind = GROUP_KEYWORDS.get(call.word, BlockKind.EXAMPLE)
            parameters = parse_block_parameters(line.masked[token.end:], line.code[token.end:])
            frame.builder = _BlockBuilder(
                kind, parse_title(args), call.word, line.number, owner.next_path(), parameters
            )
        elif call.role == "binding":
            name_match = BINDING_NAME_PATTERN.match(args)
            name = (name_match.group(1) or name_match.group(2)) if name_match else None
            is_subject = call.word.startswith("subject")
            if name is None and not is_subject:
                logger.debug("Ignoring unnamed '%s' at %s:%d", call.word, self.path, line.number)
                frame.role = "other"
            else:
                frame.call = {
                    "name": name or "subject",
                    "eager": call.word.endswith("!"),
                    "is_subject": is_subject,
                    "anonymous": is_subject and name is None,
                }
        elif call.role == "hook":
            scope_match = HOOK_SCOPE_PATTERN.match(args)
            frame.call = {
                "phase": call.word,
                "scope": scope_match.group(1) if scope_match else None,
            }
        elif call.role == "include":
            frame.builder = self._include_draft(call, line, args, masked_args, owner)

        self._stack.append(frame)

    def _include_draft(
        self,
        call: _DslCall,
        line: SourceLine,
        args: str,
        masked_args: str,
        owner: _BlockBuilder,
    ) -> _IncludeDraft:
        if args.startswith("(") and args.endswith(")"):
            args, masked_args = args[1:-1], masked_args[1:-1]
        parts = split_arguments(args, masked_args)
        name = parse_title(parts[0]) if parts else None
        return _IncludeDraft(
            keyword=call.word,
            name=name,
            line=line.number,
            arguments=tuple(parts[1:]),
            path=owner.path,
        )

    # ------------------------------------------------------------------
    # Closing blocks
    # ------------------------------------------------------------------

    def _close(self, token: _Token, line: SourceLine) -> None:
        if len(self._stack) == 1:
            raise SpecSyntaxError(f"unexpected '{token.text}' with no open block", line=line.number)
        frame = self._stack.pop()
        if frame.closer != token.text:
            raise SpecSyntaxError(
                f"'{token.text}' cannot close the block opened at line {frame.line} "
                f"(expected '{frame.closer}')",
                line=line.number,
            )

        if frame.role in ("group", "example"):
            statements: tuple[Statement, ...] = ()
            if frame.role == "example":
                statements = self._statements(frame, line.number, token.col)
            node = frame.builder.build(self.path, line.number, statements)
            frame.owner.children.append(node)
        elif frame.role == "binding":
            statements = self._statements(frame, line.number, token.col)
            frame.owner.add_binding(
                Binding(
                    name=frame.call["name"],
                    expression="; ".join(s.text for s in statements),
                    line=frame.line,
                    block_path=frame.owner.path,
                    eager=frame.call["eager"],
                    is_subject=frame.call["is_subject"],
                    anonymous=frame.call["anonymous"],
                )
            )
        elif frame.role == "hook":
            frame.owner.hooks.append(
                Hook(
                    phase=frame.call["phase"],
                    line=frame.line,
                    scope=frame.call["scope"],
                    statements=self._statements(frame, line.number, token.col),
                )
            )
        elif frame.role == "include":
            frame.owner.includes.append(frame.builder.build())

    def _statements(self, frame: _Frame, end_line: int, end_col: int) -> tuple[Statement, ...]:
        """Collect statement text between a frame's opener and its closer."""
        statements: list[Statement] = []
        for number in range(frame.line, end_line + 1):
            source = self._lines.get(number)
            if source is None:
                continue
            lo = frame.col if number == frame.line else 0
            hi = end_col if number == end_line else len(source.code)
            code, masked = source.code[lo:hi], source.masked[lo:hi]
            if number == frame.line:
                params = BLOCK_PARAMS_PATTERN.match(masked)
                if params:
                    code, masked = code[params.end():], masked[params.end():]
            start = 0
            for i, ch in enumerate(masked + ";"):
                if ch == ";":
                    text = code[start:i].strip()
                    if text:
                        statements.append(Statement(text=text, line=number))
                    start = i + 1
        return tuple(statements)


def parse_source(text: str, path: str = "<string>") -> BlockNode:
    """Parse spec source text into its block tree.

    Args:
        text: Spec file contents
        path: File path recorded in every node's span

    Returns:
        Root BlockNode

    Raises:
        SpecSyntaxError: If the text cannot be decomposed into balanced
            nested blocks
    """
    return SpecParser(path).parse(text)
