"""Pytest fixtures for speclint tests."""

import textwrap

import pytest

from speclint.lint.config import LintConfig


def spec_source(text: str) -> str:
    """Dedent a spec snippet written inside a triple-quoted string."""
    return textwrap.dedent(text).lstrip("\n")


FLAT_EXAMPLE_SPEC = spec_source(
    """
    RSpec.describe Book do
      describe '#reserve' do
        it 'raises an error when already reserved' do
          expect { book.reserve }.to raise_error(AlreadyReserved)
        end
      end
    end
    """
)

CONTEXT_EXAMPLE_SPEC = spec_source(
    """
    RSpec.describe Book do
      describe '#reserve' do
        context 'when already reserved' do
          it 'raises an error' do
            expect { book.reserve }.to raise_error(AlreadyReserved)
          end
        end
      end
    end
    """
)

NESTED_CONTEXTS_SPEC = spec_source(
    """
    RSpec.describe Book do
      describe '#price' do
        context 'when member' do
          let(:member) { true }

          context 'when on sale' do
            let(:on_sale) { true }
            it 'applies both discounts' do
              expect(book.price).to eq(8)
            end
          end

          context 'when not on sale' do
            let(:on_sale) { false }
            it 'applies the member discount' do
              expect(book.price).to eq(9)
            end
          end
        end

        context 'when not member' do
          let(:member) { false }

          context 'when on sale' do
            let(:on_sale) { true }
            it 'applies the sale discount' do
              expect(book.price).to eq(9)
            end
          end

          context 'when not on sale' do
            let(:on_sale) { false }
            it 'charges the full price' do
              expect(book.price).to eq(10)
            end
          end
        end
      end
    end
    """
)

FLATTENED_CONTEXTS_SPEC = spec_source(
    """
    RSpec.describe Book do
      describe '#price' do
        context 'when member and on sale' do
          let(:member) { true }
          let(:on_sale) { true }
          it 'applies both discounts' do
            expect(book.price).to eq(8)
          end
        end

        context 'when member and not on sale' do
          let(:member) { true }
          let(:on_sale) { false }
          it 'applies the member discount' do
            expect(book.price).to eq(9)
          end
        end

        context 'when not member and on sale' do
          let(:member) { false }
          let(:on_sale) { true }
          it 'applies the sale discount' do
            expect(book.price).to eq(9)
          end
        end

        context 'when not member and not on sale' do
          let(:member) { false }
          let(:on_sale) { false }
          it 'charges the full price' do
            expect(book.price).to eq(10)
          end
        end
      end
    end
    """
)

ANONYMOUS_SUBJECT_SPEC = spec_source(
    """
    RSpec.describe Book do
      subject { described_class.new(title: 'Dune') }

      it 'is available' do
        expect(subject).to be_available
      end

      it 'has a title' do
        expect(subject.title).to eq('Dune')
      end
    end
    """
)

NAMED_SUBJECT_SPEC = spec_source(
    """
    RSpec.describe Book do
      subject(:book) { described_class.new(title: 'Dune') }

      it 'is available' do
        expect(book).to be_available
      end

      it 'has a title' do
        expect(book.title).to eq('Dune')
      end
    end
    """
)

HOOK_MUTATION_SPEC = spec_source(
    """
    RSpec.describe Book do
      let(:book) { build(:book) }

      context 'when reserved' do
        before { book.update(reserved: true) }

        it 'cannot be reserved again' do
          expect(book.reservable?).to be(false)
        end
      end
    end
    """
)

BINDING_OVERRIDE_SPEC = spec_source(
    """
    RSpec.describe Book do
      let(:book) { build(:book) }

      context 'when reserved' do
        let(:book) { build(:book, reserved: true) }

        it 'cannot be reserved again' do
          expect(book.reservable?).to be(false)
        end
      end
    end
    """
)

MANUAL_CHANGE_SPEC = spec_source(
    """
    RSpec.describe Library do
      let(:library) { Library.new }

      it 'adds a book' do
        count = library.books.count
        library.add(Book.new)
        expect(library.books.count).to eq(count + 1)
      end
    end
    """
)

CHANGE_MATCHER_SPEC = spec_source(
    """
    RSpec.describe Library do
      let(:library) { Library.new }

      it 'adds a book' do
        expect { library.add(Book.new) }.to change { library.books.count }.by(1)
      end
    end
    """
)

SHARED_EXAMPLES_SPEC = spec_source(
    """
    shared_examples 'a reservable item' do |item|
      it 'can be reserved' do
        expect(item.reserve).to be(true)
      end
    end

    RSpec.describe Book do
      let(:book) { build(:book) }

      it_behaves_like 'a reservable item', book
    end
    """
)

MALFORMED_SPEC = spec_source(
    """
    RSpec.describe Book do
      it 'is never closed' do
        expect(book).to be_valid
    end
    """
)


@pytest.fixture
def default_config():
    """Default lint configuration."""
    return LintConfig()


@pytest.fixture
def write_spec(tmp_path):
    """Write a spec file under tmp_path and return its path."""

    def _write(name: str, source: str):
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def flat_example_spec():
    return FLAT_EXAMPLE_SPEC


@pytest.fixture
def context_example_spec():
    return CONTEXT_EXAMPLE_SPEC


@pytest.fixture
def nested_contexts_spec():
    """Two nested binary context levels varying only let values."""
    return NESTED_CONTEXTS_SPEC


@pytest.fixture
def flattened_contexts_spec():
    """The same four combinations as sibling contexts."""
    return FLATTENED_CONTEXTS_SPEC


@pytest.fixture
def anonymous_subject_spec():
    return ANONYMOUS_SUBJECT_SPEC


@pytest.fixture
def named_subject_spec():
    return NAMED_SUBJECT_SPEC


@pytest.fixture
def hook_mutation_spec():
    return HOOK_MUTATION_SPEC


@pytest.fixture
def binding_override_spec():
    return BINDING_OVERRIDE_SPEC


@pytest.fixture
def manual_change_spec():
    return MANUAL_CHANGE_SPEC


@pytest.fixture
def change_matcher_spec():
    return CHANGE_MATCHER_SPEC


@pytest.fixture
def shared_examples_spec():
    return SHARED_EXAMPLES_SPEC


@pytest.fixture
def malformed_spec():
    """describe block left open at end of file."""
    return MALFORMED_SPEC
