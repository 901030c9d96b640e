"""Tests for lint configuration loading and overrides."""

import pytest

from speclint.lint.config import (
    DEFAULT_CONFIG_NAME,
    LintConfig,
    apply_overrides,
    load_config,
    parse_config,
    parse_severity_override,
)
from speclint.lint.exceptions import ConfigError
from speclint.lint.models import Severity


class TestDefaults:
    def test_all_rules_enabled_with_warning(self):
        config = LintConfig()
        assert config.is_enabled("flat-example")
        assert config.severity_for("flat-example") == Severity.WARNING

    def test_default_settings(self):
        settings = LintConfig().settings
        assert settings.min_depth == 2
        assert settings.min_siblings == 2
        assert settings.max_anonymous_references == 1
        assert settings.jobs == 4
        assert settings.timeout_seconds is None
        assert settings.patterns == ["*_spec.rb"]
        assert "when" in settings.conditional_words
        assert "update" in settings.mutating_methods


class TestLoadConfig:
    def test_missing_default_file_means_defaults(self, tmp_path):
        assert load_config(cwd=tmp_path) == LintConfig()

    def test_default_file_in_working_directory(self, tmp_path):
        (tmp_path / DEFAULT_CONFIG_NAME).write_text(
            "rules:\n"
            "  context-mutation:\n"
            "    severity: error\n"
            "  manual-change-capture:\n"
            "    enabled: false\n"
            "settings:\n"
            "  conditional_words: [when, if]\n"
            "  timeout_seconds: 10\n",
            encoding="utf-8",
        )
        config = load_config(cwd=tmp_path)
        assert config.severity_for("context-mutation") == Severity.ERROR
        assert not config.is_enabled("manual-change-capture")
        assert config.settings.conditional_words == ["when", "if"]
        assert config.settings.timeout_seconds == 10

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "lint.yaml"
        path.write_text("settings:\n  jobs: 2\n", encoding="utf-8")
        assert load_config(path).settings.jobs == 2

    def test_empty_file_means_defaults(self, tmp_path):
        path = tmp_path / "lint.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == LintConfig()

    def test_explicit_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "missing.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "lint.yaml"
        path.write_text("rules: [\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="malformed YAML"):
            load_config(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "lint.yaml"
        path.write_text("- flat-example\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)


class TestValidation:
    def test_unknown_rule_id(self):
        with pytest.raises(ConfigError, match="Unknown rule id"):
            parse_config({"rules": {"no-such-rule": {"enabled": False}}})

    def test_unknown_severity(self):
        with pytest.raises(ConfigError):
            parse_config({"rules": {"flat-example": {"severity": "fatal"}}})

    def test_unknown_key(self):
        with pytest.raises(ConfigError):
            parse_config({"settings": {"max_depth": 3}})

    def test_invalid_threshold(self):
        with pytest.raises(ConfigError):
            parse_config({"settings": {"min_depth": 1}})

    def test_invalid_timeout(self):
        with pytest.raises(ConfigError):
            parse_config({"settings": {"timeout_seconds": 0}})


class TestOverrides:
    def test_parse_severity_override(self):
        assert parse_severity_override("flat-example=ERROR") == ("flat-example", Severity.ERROR)

    @pytest.mark.parametrize("raw", ["flat-example", "=error", "flat-example=", "flat-example=fatal"])
    def test_invalid_severity_override(self, raw):
        with pytest.raises(ConfigError):
            parse_severity_override(raw)

    def test_cli_values_win(self):
        config = parse_config(
            {
                "rules": {"flat-example": {"severity": "info"}},
                "settings": {"jobs": 8},
            }
        )
        updated = apply_overrides(
            config,
            disable=["unnamed-subject"],
            severities=["flat-example=error"],
            jobs=1,
            timeout_seconds=2.5,
        )
        assert updated.severity_for("flat-example") == Severity.ERROR
        assert not updated.is_enabled("unnamed-subject")
        assert updated.settings.jobs == 1
        assert updated.settings.timeout_seconds == 2.5

    def test_original_config_untouched(self):
        config = LintConfig()
        apply_overrides(config, disable=["flat-example"])
        assert config.is_enabled("flat-example")

    def test_unknown_rule_in_override(self):
        with pytest.raises(ConfigError, match="Unknown rule id"):
            apply_overrides(LintConfig(), disable=["no-such-rule"])

    def test_invalid_jobs_override(self):
        with pytest.raises(ConfigError):
            apply_overrides(LintConfig(), jobs=0)
