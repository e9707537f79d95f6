"""Domain layer — provider models, identifiers, and redaction.

This layer depends only on stdlib, pydantic, and wafctl.exceptions.
It must never import from services, infrastructure, commands, or config.
"""
