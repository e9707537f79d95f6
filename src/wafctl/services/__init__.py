"""Service layer — identity, sessions, rule management, and analytics.

Services may import from domain, infrastructure, and config layers.
They must never import from commands, output, or mcp.
"""
