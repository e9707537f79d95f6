"""serve — start the MCP server."""

from __future__ import annotations

import click
import structlog

from wafctl.commands._base import WafCommand
from wafctl.commands._context import AppContext

log = structlog.get_logger(__name__)


@click.command(
    cls=WafCommand,
    examples="""\
  # Start the MCP server (stdio transport, token from CLOUDFLARE_API_TOKEN)
  wafctl serve

  # Streamable HTTP on custom host/port; clients send Authorization: Bearer <token>
  wafctl serve --transport streamable-http --host 0.0.0.0 --port 9000

  # SSE transport on the configured address
  wafctl serve --transport sse""",
)
@click.option(
    "--transport",
    default=None,
    type=click.Choice(["stdio", "sse", "streamable-http"]),
    help="MCP transport protocol (default: [mcp] transport, stdio).",
)
@click.option("--host", default=None, help="Bind address (HTTP transports only).")
@click.option("--port", default=None, type=int, help="Listen port (HTTP transports only).")
@click.pass_obj
def serve(app: AppContext, transport: str | None, host: str | None, port: int | None) -> None:
    """Start the MCP server."""
    from wafctl.mcp.server import create_server

    transport = transport or app.settings.mcp.transport
    if transport == "stdio" and app.settings.fallback_token is None:
        click.echo(
            "WARNING: no CLOUDFLARE_API_TOKEN set; every tool call will require authentication.",
            err=True,
        )

    server = create_server(
        app.settings, host=host, port=port, client_factory=app.client_factory
    )
    log.info("server.starting", transport=transport)
    server.run(transport=transport)
