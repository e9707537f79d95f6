"""Subcommand modules for wafctl.

Provides register_commands() which uses deferred imports to keep
``wafctl --help`` fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all standalone commands on the root CLI group."""
    from wafctl.commands.call import call
    from wafctl.commands.operations import operations
    from wafctl.commands.serve import serve
    from wafctl.commands.whoami import whoami

    cli.add_command(serve)
    cli.add_command(whoami)
    cli.add_command(operations)
    cli.add_command(call)
