"""Tests for the single-level-context rule."""

from speclint.lint.config import LintConfig, LintSettings
from speclint.lint.models import BlockKind
from speclint.lint.parser import parse_source
from speclint.lint.rules import RuleContext, SingleLevelContextRule
from speclint.lint.rules.single_level_context import measure_product


def _check(source, config=None):
    root = parse_source(source, "price_spec.rb")
    return SingleLevelContextRule().check(root, RuleContext("price_spec.rb", config or LintConfig()))


def _contexts(source):
    method = parse_source(source).children[0].children[0]
    return method.child_blocks(BlockKind.CONTEXT)


class TestMeasureProduct:
    def test_nested_binary_product(self, nested_contexts_spec):
        shape = measure_product(_contexts(nested_contexts_spec), min_siblings=2)
        assert shape.depth == 2
        assert shape.levels == (frozenset({"member"}), frozenset({"on_sale"}))
        assert shape.combinations == (
            ("when member", "when on sale"),
            ("when member", "when not on sale"),
            ("when not member", "when on sale"),
            ("when not member", "when not on sale"),
        )

    def test_flattened_siblings_are_not_a_product(self, flattened_contexts_spec):
        assert measure_product(_contexts(flattened_contexts_spec), min_siblings=2) is None

    def test_hooks_break_the_product(self, nested_contexts_spec):
        source = nested_contexts_spec.replace(
            "      let(:member) { true }\n",
            "      let(:member) { true }\n      before { sign_in }\n",
        )
        assert measure_product(_contexts(source), min_siblings=2) is None

    def test_different_binding_names_break_the_product(self, nested_contexts_spec):
        source = nested_contexts_spec.replace("let(:member) { false }", "let(:guest) { true }")
        assert measure_product(_contexts(source), min_siblings=2) is None


class TestSingleLevelContextRule:
    def test_two_nested_levels_produce_one_finding(self, nested_contexts_spec):
        findings = _check(nested_contexts_spec)
        assert len(findings) == 1
        finding = findings[0]
        assert finding.rule_id == "single-level-context"
        assert finding.line == 2
        assert "2 levels" in finding.message
        assert "4 combinations" in finding.message
        assert "context 'when member and when on sale' do ... end" in finding.suggestion

    def test_flattened_form_is_clean(self, flattened_contexts_spec):
        assert _check(flattened_contexts_spec) == []

    def test_min_depth_threshold(self, nested_contexts_spec):
        config = LintConfig(settings=LintSettings(min_depth=3))
        assert _check(nested_contexts_spec, config) == []

    def test_min_siblings_threshold(self, nested_contexts_spec):
        config = LintConfig(settings=LintSettings(min_siblings=3))
        assert _check(nested_contexts_spec, config) == []

    def test_product_at_file_top_level_reports_first_context(self):
        source = (
            "context 'when member' do\n"
            "  let(:member) { true }\n"
            "  context 'when on sale' do\n"
            "    let(:on_sale) { true }\n"
            "    it 'works' do\n"
            "    end\n"
            "  end\n"
            "  context 'when not on sale' do\n"
            "    let(:on_sale) { false }\n"
            "    it 'works' do\n"
            "    end\n"
            "  end\n"
            "end\n"
            "context 'when not member' do\n"
            "  let(:member) { false }\n"
            "  context 'when on sale' do\n"
            "    let(:on_sale) { true }\n"
            "    it 'works' do\n"
            "    end\n"
            "  end\n"
            "  context 'when not on sale' do\n"
            "    let(:on_sale) { false }\n"
            "    it 'works' do\n"
            "    end\n"
            "  end\n"
            "end\n"
        )
        (finding,) = _check(source)
        assert finding.line == 1
        assert "this block" in finding.message
