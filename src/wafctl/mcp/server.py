"""FastMCP server setup.

Transport: stdio default; sse and streamable HTTP optional. Over stdio the
environment token authenticates the single session. Over HTTP each
request's ``Authorization`` header selects the session.
"""

from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP

from wafctl.config.settings import WafSettings
from wafctl.mcp.prompts import register_prompts
from wafctl.mcp.resources import register_resources
from wafctl.mcp.tools import REGISTRY, register_tools
from wafctl.services.identity import ClientFactory
from wafctl.services.session import SessionManager

__all__ = ["create_server"]


def create_server(
    settings: WafSettings | None = None,
    *,
    host: str | None = None,
    port: int | None = None,
    client_factory: ClientFactory | None = None,
) -> Any:
    """Create and configure the MCP server.

    Builds a :class:`SessionManager` from *settings* (or the discovered
    configuration) and registers all tools, resources, and prompts. The
    server lifespan holds the manager open, so sessions and their HTTP
    clients are closed when the last connection ends.
    Returns the FastMCP instance.

    *host* and *port* override ``[mcp]`` settings for HTTP transports
    (sse, streamable-http). They are ignored when using stdio.
    """
    settings = settings or WafSettings.from_cli()
    sessions = SessionManager(settings, client_factory=client_factory)

    server = FastMCP(
        "wafctl",
        host=host or settings.mcp.host,
        port=port or settings.mcp.port,
        lifespan=lambda _server: sessions.serving(),
    )

    register_tools(server, sessions, REGISTRY)
    register_resources(server, REGISTRY)
    register_prompts(server)

    return server
