"""operations — list the registered gateway operations."""

from __future__ import annotations

import click

from wafctl.commands._base import WafCommand
from wafctl.commands._context import AppContext
from wafctl.services.result import ServiceResult


@click.command(
    cls=WafCommand,
    examples="""\
  wafctl operations
  wafctl --json operations""",
)
@click.pass_obj
def operations(app: AppContext) -> None:
    """List every operation exposed to MCP clients."""
    from wafctl.mcp.tools import REGISTRY

    catalog = REGISTRY.catalog()
    app.emit(
        ServiceResult.success("operations", {"count": len(catalog), "operations": catalog})
    )
