"""CLI command modules for speclint."""

import typer

from . import lint


def register_commands(app: typer.Typer) -> None:
    """Attach every speclint command to the root application."""
    app.command("check")(lint.check)
    app.command("rules")(lint.list_rules)
    app.command("tree")(lint.tree)


__all__ = ["register_commands"]
