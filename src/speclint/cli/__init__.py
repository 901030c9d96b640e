"""Command-line interface for speclint."""

from .commands import register_commands

__all__ = ["register_commands"]
