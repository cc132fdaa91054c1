"""
CLI module for flarecore.

Provides the command-line interface using Click.
"""

from flarecore.cli.main import cli, main

__all__ = ["main", "cli"]
