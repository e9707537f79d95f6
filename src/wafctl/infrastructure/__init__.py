"""Infrastructure layer — the Cloudflare REST and GraphQL gateway.

This layer depends on stdlib, httpx, the domain models, and telemetry.
It must never import from commands, output, or mcp.
"""
