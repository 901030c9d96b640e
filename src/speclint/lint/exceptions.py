"""Exception hierarchy for spec linting."""

from __future__ import annotations


class SpecLintError(Exception):
    """Base exception for speclint errors."""
    pass


class SpecSyntaxError(SpecLintError):
    """Spec source cannot be decomposed into balanced nested blocks.

    Reported per file as a ``syntax-error`` finding; other files in the
    same run are still analysed.
    """

    def __init__(self, message: str, line: int | None = None, path: str | None = None):
        """Initialize SpecSyntaxError.

        Args:
            message: What is wrong with the source
            line: 1-based line where the problem was detected
            path: File the source came from, when known
        """
        self.message = message
        self.line = line
        self.path = path
        location = f"line {line}: " if line is not None else ""
        super().__init__(f"{location}{message}")

    def with_path(self, path: str) -> "SpecSyntaxError":
        return SpecSyntaxError(self.message, line=self.line, path=path)


class AnalysisTimeout(SpecLintError):
    """Analysis of one file exceeded its time budget."""

    def __init__(self, path: str, timeout: float):
        self.path = path
        self.timeout = timeout
        super().__init__(f"Analysis of {path} exceeded {timeout:g}s")


class ConfigError(SpecLintError):
    """Invalid lint configuration. Fatal: raised before any analysis."""
    pass


class TemplateError(SpecLintError):
    """Shared example group cannot be instantiated with the given arguments."""
    pass
