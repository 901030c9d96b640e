"""Static style checks for RSpec-style spec files."""

from .models import (
    BlockKind,
    BlockNode,
    Binding,
    Hook,
    IncludeDirective,
    Severity,
    SourceSpan,
    Statement,
    Finding,
    FileReport,
    RunReport,
)
from .exceptions import (
    SpecLintError,
    SpecSyntaxError,
    AnalysisTimeout,
    ConfigError,
    TemplateError,
)
from .parser import parse_source
from .scope import ScopeChain, resolve_binding, walk
from .config import LintConfig, LintSettings, RuleSettings, load_config, apply_overrides
from .rules import RULES, Rule, RuleContext
from .engine import evaluate
from .templates import (
    collect_shared_groups,
    bind_parameters,
    expand_shared_group,
    instantiate_includes,
)
from .runner import analyze_source, analyze_file, discover_files, run_paths

__all__ = [
    "BlockKind",
    "BlockNode",
    "Binding",
    "Hook",
    "IncludeDirective",
    "Severity",
    "SourceSpan",
    "Statement",
    "Finding",
    "FileReport",
    "RunReport",
    "SpecLintError",
    "SpecSyntaxError",
    "AnalysisTimeout",
    "ConfigError",
    "TemplateError",
    "parse_source",
    "ScopeChain",
    "resolve_binding",
    "walk",
    "LintConfig",
    "LintSettings",
    "RuleSettings",
    "load_config",
    "apply_overrides",
    "RULES",
    "Rule",
    "RuleContext",
    "evaluate",
    "collect_shared_groups",
    "bind_parameters",
    "expand_shared_group",
    "instantiate_includes",
    "analyze_source",
    "analyze_file",
    "discover_files",
    "run_paths",
]
