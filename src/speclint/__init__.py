"""
speclint - structural style checks for RSpec-style spec files.

Usage:
    speclint check spec/
    speclint rules
    speclint tree spec/models/book_spec.rb
"""

import typer

from speclint.cli.commands import register_commands

__version__ = "0.1.0"

app = typer.Typer(
    name="speclint",
    help="Lint behaviour specs for flat examples, nested context products, unnamed subjects and more",
    add_completion=False,
    no_args_is_help=True,
)

register_commands(app)


def main():
    app()


if __name__ == "__main__":
    main()
