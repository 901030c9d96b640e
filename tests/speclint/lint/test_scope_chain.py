"""Tests for binding scope resolution."""

import pytest

from speclint.lint.models import BlockKind
from speclint.lint.parser import parse_source
from speclint.lint.scope import ScopeChain, resolve_binding, walk

SOURCE = (
    "describe 'outer' do\n"
    "  let(:book) { build(:book) }\n"
    "  subject(:reservation) { book.reserve }\n"
    "  context 'inner' do\n"
    "    let(:book) { build(:ebook) }\n"
    "    it 'uses the inner book' do\n"
    "      expect(book).to be_digital\n"
    "    end\n"
    "  end\n"
    "  it 'uses the outer book' do\n"
    "    expect(book).not_to be_digital\n"
    "  end\n"
    "end\n"
)


def _chain_for(root, title):
    for chain in walk(root):
        if chain.block.title == title:
            return chain
    raise AssertionError(f"no block titled {title!r}")


@pytest.fixture
def root():
    return parse_source(SOURCE)


class TestWalk:
    def test_walk_visits_blocks_in_source_order(self, root):
        titles = [chain.block.title for chain in walk(root)]
        assert titles == [None, "outer", "inner", "uses the inner book", "uses the outer book"]

    def test_chain_ancestors(self, root):
        chain = _chain_for(root, "uses the inner book")
        assert [b.title for b in chain.ancestors] == [None, "outer", "inner"]
        assert chain.within(BlockKind.CONTEXT)
        assert not _chain_for(root, "uses the outer book").within(BlockKind.CONTEXT)

    def test_empty_chain_rejected(self):
        with pytest.raises(ValueError):
            ScopeChain(())


class TestResolve:
    def test_child_declaration_shadows_parent(self, root):
        chain = _chain_for(root, "uses the inner book")
        assert chain.resolve("book").expression == "build(:ebook)"

    def test_falls_back_to_parent(self, root):
        chain = _chain_for(root, "uses the outer book")
        binding = resolve_binding(chain, "book")
        assert binding.expression == "build(:book)"
        assert chain.declared_in_ancestor(binding)
        assert chain.declaring_block(binding).title == "outer"

    def test_unknown_name(self, root):
        chain = _chain_for(root, "uses the outer book")
        assert chain.resolve("library") is None

    def test_subject_resolves_to_named_subject(self, root):
        chain = _chain_for(root, "uses the inner book")
        subject = chain.resolve("subject")
        assert subject.name == "reservation"
        assert chain.resolve("reservation") is subject

    def test_lookup_is_memoized(self, root):
        chain = _chain_for(root, "uses the inner book")
        assert chain.resolve("book") is chain.resolve("book")

    def test_own_binding_is_not_from_ancestor(self, root):
        chain = _chain_for(root, "inner")
        binding = chain.resolve("book")
        assert not chain.declared_in_ancestor(binding)
