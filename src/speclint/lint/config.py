"""Lint configuration: rule enablement, severity overrides and heuristics.

Configuration comes from ``.speclint.yaml`` (or an explicit ``--config``
file) and is then overridden by CLI flags. Unlike most lookups in this
package, an invalid configuration is fatal: ConfigError is raised before
any file is analysed.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import ruamel.yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from ruamel.yaml.error import YAMLError

from .exceptions import ConfigError
from .models import Severity

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = ".speclint.yaml"

DEFAULT_CONDITIONAL_WORDS = [
    "when",
    "if",
    "unless",
    "whenever",
    "given that",
    "provided that",
    "in case",
]

DEFAULT_MUTATING_METHODS = [
    "update",
    "update_attribute",
    "update_attributes",
    "update_column",
    "update_columns",
    "assign_attributes",
    "save",
    "destroy",
    "delete",
    "clear",
    "push",
    "append",
    "prepend",
    "insert",
    "concat",
    "store",
    "replace",
    "increment",
    "decrement",
    "toggle",
    "touch",
]


class RuleSettings(BaseModel):
    """Per-rule switch and severity override."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    severity: Optional[Severity] = None


class LintSettings(BaseModel):
    """Heuristic thresholds shared by the rules and the runner."""

    model_config = ConfigDict(extra="forbid")

    conditional_words: List[str] = Field(default_factory=lambda: list(DEFAULT_CONDITIONAL_WORDS))
    mutating_methods: List[str] = Field(default_factory=lambda: list(DEFAULT_MUTATING_METHODS))
    min_depth: int = Field(default=2, ge=2)
    min_siblings: int = Field(default=2, ge=2)
    max_anonymous_references: int = Field(default=1, ge=1)
    jobs: int = Field(default=4, ge=1)
    timeout_seconds: Optional[float] = Field(default=None, gt=0)
    patterns: List[str] = Field(default_factory=lambda: ["*_spec.rb"])


class LintConfig(BaseModel):
    """Top-level lint configuration."""

    model_config = ConfigDict(extra="forbid")

    rules: Dict[str, RuleSettings] = Field(default_factory=dict)
    settings: LintSettings = Field(default_factory=LintSettings)

    def is_enabled(self, rule_id: str) -> bool:
        rule = self.rules.get(rule_id)
        return rule is None or rule.enabled

    def severity_for(self, rule_id: str, default: Severity = Severity.WARNING) -> Severity:
        """Return the configured severity for a rule, or the default."""
        rule = self.rules.get(rule_id)
        if rule is not None and rule.severity is not None:
            return rule.severity
        return default


def known_rule_ids() -> List[str]:
    # Import inside function to avoid circular dependency
    from .rules import RULES

    return sorted(RULES)


def validate_rule_ids(config: LintConfig, known: Iterable[str] | None = None) -> None:
    """Reject configuration entries for rules that do not exist.

    Raises:
        ConfigError: If any configured rule id is unknown
    """
    valid = set(known if known is not None else known_rule_ids())
    unknown = sorted(set(config.rules) - valid)
    if unknown:
        raise ConfigError(
            f"Unknown rule id(s): {', '.join(unknown)}. Valid rules: {', '.join(sorted(valid))}"
        )


def parse_config(data: object, source: str = "<config>") -> LintConfig:
    """Validate raw mapping data into a LintConfig.

    Raises:
        ConfigError: If the data is not a mapping or fails validation
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"{source}: top level must be a mapping")
    try:
        config = LintConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"{source}: {exc}") from exc
    validate_rule_ids(config)
    return config


def load_config(config_path: Path | None = None, cwd: Path | None = None) -> LintConfig:
    """Load lint configuration from YAML.

    An explicit path must exist. Without one, ``.speclint.yaml`` in the
    working directory is used when present, otherwise the defaults.

    Args:
        config_path: Explicit configuration file (``--config``)
        cwd: Directory searched for the default file

    Returns:
        Validated LintConfig

    Raises:
        ConfigError: If the file is missing, malformed or invalid
    """
    if config_path is None:
        candidate = (cwd or Path.cwd()) / DEFAULT_CONFIG_NAME
        if not candidate.exists():
            logger.debug("No %s found, using defaults", DEFAULT_CONFIG_NAME)
            return LintConfig()
        config_path = candidate
    elif not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    yaml = ruamel.yaml.YAML(typ="safe")
    try:
        with config_path.open(encoding="utf-8") as f:
            data = yaml.load(f)
    except YAMLError as exc:
        raise ConfigError(f"{config_path}: malformed YAML: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"{config_path}: cannot read config: {exc}") from exc

    logger.debug("Loaded lint config from %s", config_path)
    return parse_config(data, source=str(config_path))


def parse_severity_override(raw: str) -> tuple[str, Severity]:
    """Parse a ``RULE=LEVEL`` command-line override.

    Raises:
        ConfigError: If the text is not RULE=LEVEL or LEVEL is unknown
    """
    rule_id, sep, level = raw.partition("=")
    rule_id, level = rule_id.strip(), level.strip().lower()
    if not sep or not rule_id or not level:
        raise ConfigError(f"Invalid severity override '{raw}'. Expected RULE=LEVEL")
    try:
        return rule_id, Severity(level)
    except ValueError:
        valid = ", ".join(s.value for s in Severity)
        raise ConfigError(f"Invalid severity '{level}' for {rule_id}. Valid values: {valid}") from None


def apply_overrides(
    config: LintConfig,
    disable: Iterable[str] = (),
    severities: Iterable[str] = (),
    jobs: int | None = None,
    timeout_seconds: float | None = None,
) -> LintConfig:
    """Return a copy of config with command-line overrides applied.

    CLI values take precedence over the configuration file.

    Raises:
        ConfigError: If an override names an unknown rule or is invalid
    """
    rules = {rule_id: settings.model_copy() for rule_id, settings in config.rules.items()}

    for rule_id in disable:
        rules.setdefault(rule_id, RuleSettings()).enabled = False

    for raw in severities:
        rule_id, severity = parse_severity_override(raw)
        rules.setdefault(rule_id, RuleSettings()).severity = severity

    settings_update: Dict[str, object] = {}
    if jobs is not None:
        settings_update["jobs"] = jobs
    if timeout_seconds is not None:
        settings_update["timeout_seconds"] = timeout_seconds

    data = {
        "rules": {rule_id: s.model_dump(exclude_none=True, mode="json") for rule_id, s in rules.items()},
        "settings": {**config.settings.model_dump(mode="json"), **settings_update},
    }
    return parse_config(data, source="command line")
