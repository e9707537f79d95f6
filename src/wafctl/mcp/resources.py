"""MCP resource definitions — 3 URI-based resources.

URIs: waf://reference/actions, waf://reference/phases, waf://operations.
Each resource has a ``<name>_impl`` function testable without the mcp package.
"""

from __future__ import annotations

import json
from typing import Any

from wafctl.domain.ids import ACTION_DESCRIPTIONS, CUSTOM_PHASE, MANAGED_PHASE, RulesetPhase

# ---------------------------------------------------------------------------
# Resource implementations (testable without mcp)
# ---------------------------------------------------------------------------


def actions_impl() -> list[dict[str, str]]:
    """Rule actions accepted by ``create_custom_rule``."""
    return [
        {"action": str(action), "description": description}
        for action, description in ACTION_DESCRIPTIONS.items()
    ]


def phases_impl() -> list[dict[str, Any]]:
    """Ruleset phases, marking the two the firewall tools operate on."""
    return [
        {
            "phase": phase.value,
            "custom_rules": phase.value == CUSTOM_PHASE,
            "managed_rules": phase.value == MANAGED_PHASE,
        }
        for phase in RulesetPhase
    ]


def operations_impl(registry: Any) -> dict[str, Any]:
    """Registry catalog: every operation with its side effect and input schema."""
    catalog = registry.catalog()
    return {"count": len(catalog), "operations": catalog}


# ---------------------------------------------------------------------------
# FastMCP registration
# ---------------------------------------------------------------------------


def register_resources(server: Any, registry: Any) -> None:
    """Register all 3 MCP resources on the FastMCP server."""

    @server.resource("waf://reference/actions")  # type: ignore[untyped-decorator]
    def actions_resource() -> str:
        """Rule actions and what each one does."""
        return json.dumps(actions_impl(), indent=2)

    @server.resource("waf://reference/phases")  # type: ignore[untyped-decorator]
    def phases_resource() -> str:
        """Known ruleset phases."""
        return json.dumps(phases_impl(), indent=2)

    @server.resource("waf://operations")  # type: ignore[untyped-decorator]
    def operations_resource() -> str:
        """Operation catalog with JSON input schemas."""
        return json.dumps(operations_impl(registry), indent=2)
