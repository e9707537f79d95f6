"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, wafctl.toml only contains overrides.
A fresh install needs no config file at all.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

CLOUDFLARE_API_BASE = "https://api.cloudflare.com/client/v4"
CLOUDFLARE_GRAPHQL_URL = "https://api.cloudflare.com/client/v4/graphql"


class ApiConfig(BaseModel):
    """[api] section.

    ``timeout`` is None by default: the gateway has no timeout layer of its
    own and relies on the host's request deadline.
    """

    model_config = {"frozen": True}

    base_url: str = CLOUDFLARE_API_BASE
    graphql_url: str = CLOUDFLARE_GRAPHQL_URL
    timeout: float | None = None
    user_agent: str = "wafctl"


class McpConfig(BaseModel):
    """[mcp] section.

    ``max_sessions`` caps cached authenticated sessions; the least recently
    used one is closed first. A session idle longer than
    ``session_idle_seconds`` is closed on the next resolve (None keeps it).
    """

    model_config = {"frozen": True}

    transport: str = "stdio"
    host: str = "127.0.0.1"
    port: int = 8000
    max_sessions: int = Field(default=256, ge=1)
    session_idle_seconds: float | None = Field(default=1800.0, gt=0)
