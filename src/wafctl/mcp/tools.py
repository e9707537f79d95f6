"""MCP tool definitions — 16 operations across 3 categories.

Categories: Read (8), Write (5), Analytics (3).
Each operation has a ``<name>_impl`` handler registered on ``REGISTRY``;
handlers take an already-validated contract and are testable without
the mcp package. ``register_tools()`` exposes them through FastMCP.

No ``from __future__ import annotations`` here: FastMCP finds the
``Context`` parameter from runtime annotations.
"""

from typing import Annotated, Any

from mcp.server.fastmcp import Context
from mcp.types import ToolAnnotations
from pydantic import BaseModel, WithJsonSchema

from wafctl.domain.ids import CUSTOM_PHASE, MANAGED_PHASE
from wafctl.domain.types import TimeWindow
from wafctl.mcp.contracts import (
    AccountInput,
    AttackSummaryInput,
    CreateCustomRuleInput,
    ListZonesInput,
    NoInput,
    RuleRefInput,
    RulesetInput,
    SecurityEventsInput,
    SuggestRuleInput,
    ToggleRuleInput,
    TopPathsInput,
    UpdateCustomRuleInput,
    ZoneInput,
)
from wafctl.mcp.registry import OperationRegistry, SideEffect
from wafctl.services.analytics import (
    SUGGESTION_EVENT_LIMIT,
    suggest_rules,
    window_from_minutes,
)
from wafctl.services.result import ServiceResult
from wafctl.services.session import Session, SessionManager

REGISTRY = OperationRegistry()

NO_CUSTOM_RULES = "No custom rules configured for this zone"
NO_MANAGED_RULESETS = "No managed rulesets deployed to this zone"
NO_EVENTS = (
    "No security events found in the specified time period. No rule suggestions available."
)


def to_mcp_response(result: ServiceResult) -> dict[str, Any]:
    """Convert a ServiceResult to an MCP-friendly dict."""
    response: dict[str, Any] = {
        "ok": result.ok,
        "op": result.op,
        "data": result.data,
    }
    if result.warnings:
        response["warnings"] = result.warnings
    if result.error is not None:
        error: dict[str, Any] = {
            "code": result.error.code,
            "message": result.error.message,
        }
        if result.error.detail:
            error["detail"] = result.error.detail
        response["error"] = error
    if result.meta:
        response["meta"] = result.meta
    return response


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def _time_range(window: TimeWindow) -> dict[str, str]:
    return window.to_variables()


# ---------------------------------------------------------------------------
# Read tools (8)
# ---------------------------------------------------------------------------


@REGISTRY.operation(
    "list_accounts",
    description="List all Cloudflare accounts the authenticated user has access to",
    contract=NoInput,
    failure_prefix="Failed to list accounts",
)
async def list_accounts_impl(session: Session, params: NoInput) -> ServiceResult:
    accounts = await session.client.list_accounts()
    return ServiceResult.success(
        "list_accounts",
        {"accounts": [_dump(a) for a in accounts], "count": len(accounts)},
    )


@REGISTRY.operation(
    "list_zones",
    description=(
        "List all zones (domains) in a Cloudflare account. If no accountId is "
        "provided, lists zones across all accessible accounts."
    ),
    contract=ListZonesInput,
    failure_prefix="Failed to list zones",
)
async def list_zones_impl(session: Session, params: ListZonesInput) -> ServiceResult:
    zones = await session.client.list_zones(params.account_id)
    return ServiceResult.success(
        "list_zones", {"zones": [_dump(z) for z in zones], "count": len(zones)}
    )


@REGISTRY.operation(
    "get_zone",
    description=(
        "Get detailed information about a specific zone including its plan and status"
    ),
    contract=ZoneInput,
    failure_prefix="Failed to get zone",
)
async def get_zone_impl(session: Session, params: ZoneInput) -> ServiceResult:
    zone = await session.client.get_zone(params.zone_id)
    return ServiceResult.success("get_zone", {"zone": _dump(zone)})


@REGISTRY.operation(
    "list_custom_rules",
    description=(
        "List all custom WAF rules for a zone. These are user-created rules in the "
        "http_request_firewall_custom phase."
    ),
    contract=ZoneInput,
    failure_prefix="Failed to list custom rules",
)
async def list_custom_rules_impl(session: Session, params: ZoneInput) -> ServiceResult:
    ruleset = await session.rules.list_phase_rules(params.zone_id, CUSTOM_PHASE)
    if ruleset is None:
        return ServiceResult.success(
            "list_custom_rules", {"rules": [], "message": NO_CUSTOM_RULES}
        )
    return ServiceResult.success("list_custom_rules", {"ruleset": _dump(ruleset)})


@REGISTRY.operation(
    "list_managed_rulesets",
    description=(
        "List all managed WAF rulesets deployed to a zone "
        "(Cloudflare Managed Rules, OWASP, etc.)"
    ),
    contract=ZoneInput,
    failure_prefix="Failed to list managed rulesets",
)
async def list_managed_rulesets_impl(session: Session, params: ZoneInput) -> ServiceResult:
    ruleset = await session.rules.list_phase_rules(params.zone_id, MANAGED_PHASE)
    if ruleset is None:
        return ServiceResult.success(
            "list_managed_rulesets", {"rules": [], "message": NO_MANAGED_RULESETS}
        )
    return ServiceResult.success("list_managed_rulesets", {"ruleset": _dump(ruleset)})


@REGISTRY.operation(
    "get_ruleset",
    description=(
        "Get a specific ruleset with all its rules. Use this to see the full "
        "configuration of a ruleset."
    ),
    contract=RulesetInput,
    failure_prefix="Failed to get ruleset",
)
async def get_ruleset_impl(session: Session, params: RulesetInput) -> ServiceResult:
    ruleset = await session.client.get_ruleset(params.zone_id, params.ruleset_id)
    return ServiceResult.success("get_ruleset", {"ruleset": _dump(ruleset)})


@REGISTRY.operation(
    "list_all_rulesets",
    description=(
        "List all rulesets for a zone across all phases. This gives an overview of "
        "all WAF configurations."
    ),
    contract=ZoneInput,
    failure_prefix="Failed to list rulesets",
)
async def list_all_rulesets_impl(session: Session, params: ZoneInput) -> ServiceResult:
    rulesets = await session.client.list_rulesets(params.zone_id)
    return ServiceResult.success(
        "list_all_rulesets",
        {"rulesets": [_dump(r) for r in rulesets], "count": len(rulesets)},
    )


@REGISTRY.operation(
    "list_account_rulesets",
    description=(
        "List all account-level WAF rulesets. These can be deployed across multiple "
        "zones. Enterprise feature."
    ),
    contract=AccountInput,
    failure_prefix="Failed to list account rulesets",
)
async def list_account_rulesets_impl(session: Session, params: AccountInput) -> ServiceResult:
    rulesets = await session.client.list_account_rulesets(params.account_id)
    return ServiceResult.success(
        "list_account_rulesets",
        {"rulesets": [_dump(r) for r in rulesets], "count": len(rulesets)},
    )


# ---------------------------------------------------------------------------
# Write tools (5)
# ---------------------------------------------------------------------------


@REGISTRY.operation(
    "create_custom_rule",
    description=(
        "Create a new custom WAF rule for a zone. Use this to add new security rules "
        "based on conditions like IP addresses, countries, user agents, etc."
    ),
    contract=CreateCustomRuleInput,
    side_effect=SideEffect.WRITE,
    failure_prefix="Failed to create rule",
)
async def create_custom_rule_impl(
    session: Session, params: CreateCustomRuleInput
) -> ServiceResult:
    rule = await session.rules.create_custom_rule(params.zone_id, params.to_spec())
    return ServiceResult.success(
        "create_custom_rule",
        {"message": "Successfully created custom rule.", "rule": _dump(rule)},
    )


@REGISTRY.operation(
    "update_custom_rule",
    description=(
        "Update an existing custom WAF rule. You can modify its description, "
        "expression, action, or enabled status."
    ),
    contract=UpdateCustomRuleInput,
    side_effect=SideEffect.WRITE,
    failure_prefix="Failed to update rule",
)
async def update_custom_rule_impl(
    session: Session, params: UpdateCustomRuleInput
) -> ServiceResult:
    rule = await session.rules.update_custom_rule(
        params.zone_id, params.ruleset_id, params.rule_id, params.to_patch()
    )
    return ServiceResult.success(
        "update_custom_rule",
        {"message": "Successfully updated rule.", "rule": _dump(rule)},
    )


@REGISTRY.operation(
    "delete_custom_rule",
    description="Delete a custom WAF rule. This action cannot be undone.",
    contract=RuleRefInput,
    side_effect=SideEffect.DESTRUCTIVE,
    failure_prefix="Failed to delete rule",
)
async def delete_custom_rule_impl(session: Session, params: RuleRefInput) -> ServiceResult:
    await session.rules.delete_custom_rule(params.zone_id, params.ruleset_id, params.rule_id)
    return ServiceResult.success(
        "delete_custom_rule",
        {"message": f"Successfully deleted rule {params.rule_id}", "ruleId": params.rule_id},
    )


@REGISTRY.operation(
    "toggle_rule",
    description="Quickly enable or disable a WAF rule without changing other settings.",
    contract=ToggleRuleInput,
    side_effect=SideEffect.WRITE,
    failure_prefix="Failed to toggle rule",
)
async def toggle_rule_impl(session: Session, params: ToggleRuleInput) -> ServiceResult:
    rule = await session.rules.toggle_rule(
        params.zone_id, params.ruleset_id, params.rule_id, enabled=params.enabled
    )
    state = "enabled" if params.enabled else "disabled"
    return ServiceResult.success(
        "toggle_rule",
        {"message": f"Successfully {state} rule {params.rule_id}", "rule": _dump(rule)},
    )


@REGISTRY.operation(
    "suggest_rule_from_events",
    description=(
        "Analyze recent security events and suggest a WAF rule to block or challenge "
        "similar traffic. This helps create rules based on actual attack patterns."
    ),
    contract=SuggestRuleInput,
    failure_prefix="Failed to analyze events",
)
async def suggest_rule_from_events_impl(
    session: Session, params: SuggestRuleInput
) -> ServiceResult:
    window = window_from_minutes(params.minutes)
    events = await session.analytics.get_security_events(
        params.zone_id, window, SUGGESTION_EVENT_LIMIT
    )
    if not events:
        return ServiceResult.success(
            "suggest_rule_from_events",
            {"message": NO_EVENTS, "eventCount": 0, "suggestions": []},
        )
    report = suggest_rules(events, minutes=params.minutes, action=params.action_type)
    return ServiceResult.success(
        "suggest_rule_from_events",
        {
            "message": report.render(),
            "eventCount": report.event_count,
            "suggestions": [s.model_dump(mode="json") for s in report.suggestions],
            "report": report.model_dump(mode="json"),
        },
    )


# ---------------------------------------------------------------------------
# Analytics tools (3)
# ---------------------------------------------------------------------------


@REGISTRY.operation(
    "get_security_events",
    description=(
        "Get recent WAF security events for a zone. Shows blocked requests, "
        "challenges, and other security actions."
    ),
    contract=SecurityEventsInput,
    failure_prefix="Failed to get security events",
)
async def get_security_events_impl(
    session: Session, params: SecurityEventsInput
) -> ServiceResult:
    window = window_from_minutes(params.minutes)
    events = await session.analytics.get_security_events(params.zone_id, window, params.limit)
    return ServiceResult.success(
        "get_security_events",
        {
            "timeRange": _time_range(window),
            "eventCount": len(events),
            "events": [_dump(e) for e in events],
        },
    )


@REGISTRY.operation(
    "get_attack_summary",
    description=(
        "Get a summary of security events grouped by action, source, and country. "
        "Useful for understanding attack patterns."
    ),
    contract=AttackSummaryInput,
    failure_prefix="Failed to get attack summary",
)
async def get_attack_summary_impl(
    session: Session, params: AttackSummaryInput
) -> ServiceResult:
    window = window_from_minutes(params.minutes)
    summary = await session.analytics.get_security_events_summary(params.zone_id, window)
    return ServiceResult.success(
        "get_attack_summary",
        {"timeRange": _time_range(window), "summary": _dump(summary)},
    )


@REGISTRY.operation(
    "get_top_attacked_paths",
    description=(
        "Get the most frequently attacked URL paths. Useful for identifying which "
        "endpoints are being targeted."
    ),
    contract=TopPathsInput,
    failure_prefix="Failed to get top attacked paths",
)
async def get_top_attacked_paths_impl(session: Session, params: TopPathsInput) -> ServiceResult:
    window = window_from_minutes(params.minutes)
    paths = await session.analytics.get_top_attacked_paths(params.zone_id, window, params.limit)
    return ServiceResult.success(
        "get_top_attacked_paths",
        {"timeRange": _time_range(window), "topPaths": [_dump(p) for p in paths]},
    )


# ---------------------------------------------------------------------------
# FastMCP registration
# ---------------------------------------------------------------------------


def authorization_header(ctx: Context | None) -> str | None:
    """The inbound ``Authorization`` header, or None outside an HTTP request."""
    if ctx is None:
        return None
    try:
        request = ctx.request_context.request
    except (AttributeError, LookupError, ValueError):
        return None
    headers = getattr(request, "headers", None)
    if headers is None:
        return None
    return headers.get("authorization")


def register_tools(
    server: Any,
    sessions: SessionManager,
    registry: OperationRegistry = REGISTRY,
) -> None:
    """Register all 16 MCP tools on the FastMCP server."""

    async def call(ctx: Context | None, name: str, **arguments: Any) -> dict[str, Any]:
        session = await sessions.resolve(authorization_header(ctx))
        result = await registry.invoke(name, session, arguments)
        return to_mcp_response(result)

    def tool(name: str) -> Any:
        operation = registry.get(name)
        return server.tool(
            name=name,
            description=operation.description,
            annotations=ToolAnnotations(
                readOnlyHint=operation.read_only,
                destructiveHint=operation.side_effect is SideEffect.DESTRUCTIVE,
                openWorldHint=True,
            ),
        )

    def arg(name: str, field: str) -> WithJsonSchema:
        """Publish the contract's schema for one argument of operation *name*."""
        return WithJsonSchema(registry.get(name).argument_schemas()[field])

    # -- Read --

    @tool("list_accounts")
    async def list_accounts(ctx: Context) -> dict[str, Any]:
        return await call(ctx, "list_accounts")

    @tool("list_zones")
    async def list_zones(
        ctx: Context,
        accountId: Annotated[str | None, arg("list_zones", "accountId")] = None,  # noqa: N803
    ) -> dict[str, Any]:
        return await call(ctx, "list_zones", accountId=accountId)

    @tool("get_zone")
    async def get_zone(
        ctx: Context,
        zoneId: Annotated[str, arg("get_zone", "zoneId")],  # noqa: N803
    ) -> dict[str, Any]:
        return await call(ctx, "get_zone", zoneId=zoneId)

    @tool("list_custom_rules")
    async def list_custom_rules(
        ctx: Context,
        zoneId: Annotated[str, arg("list_custom_rules", "zoneId")],  # noqa: N803
    ) -> dict[str, Any]:
        return await call(ctx, "list_custom_rules", zoneId=zoneId)

    @tool("list_managed_rulesets")
    async def list_managed_rulesets(
        ctx: Context,
        zoneId: Annotated[str, arg("list_managed_rulesets", "zoneId")],  # noqa: N803
    ) -> dict[str, Any]:
        return await call(ctx, "list_managed_rulesets", zoneId=zoneId)

    @tool("get_ruleset")
    async def get_ruleset(
        ctx: Context,
        zoneId: Annotated[str, arg("get_ruleset", "zoneId")],  # noqa: N803
        rulesetId: Annotated[str, arg("get_ruleset", "rulesetId")],  # noqa: N803
    ) -> dict[str, Any]:
        return await call(ctx, "get_ruleset", zoneId=zoneId, rulesetId=rulesetId)

    @tool("list_all_rulesets")
    async def list_all_rulesets(
        ctx: Context,
        zoneId: Annotated[str, arg("list_all_rulesets", "zoneId")],  # noqa: N803
    ) -> dict[str, Any]:
        return await call(ctx, "list_all_rulesets", zoneId=zoneId)

    @tool("list_account_rulesets")
    async def list_account_rulesets(
        ctx: Context,
        accountId: Annotated[str, arg("list_account_rulesets", "accountId")],  # noqa: N803
    ) -> dict[str, Any]:
        return await call(ctx, "list_account_rulesets", accountId=accountId)

    # -- Write --

    @tool("create_custom_rule")
    async def create_custom_rule(
        ctx: Context,
        zoneId: Annotated[str, arg("create_custom_rule", "zoneId")],  # noqa: N803
        description: Annotated[str, arg("create_custom_rule", "description")],
        expression: Annotated[str, arg("create_custom_rule", "expression")],
        action: Annotated[str, arg("create_custom_rule", "action")],
        enabled: Annotated[bool, arg("create_custom_rule", "enabled")] = True,
    ) -> dict[str, Any]:
        return await call(
            ctx,
            "create_custom_rule",
            zoneId=zoneId,
            description=description,
            expression=expression,
            action=action,
            enabled=enabled,
        )

    @tool("update_custom_rule")
    async def update_custom_rule(
        ctx: Context,
        zoneId: Annotated[str, arg("update_custom_rule", "zoneId")],  # noqa: N803
        rulesetId: Annotated[str, arg("update_custom_rule", "rulesetId")],  # noqa: N803
        ruleId: Annotated[str, arg("update_custom_rule", "ruleId")],  # noqa: N803
        description: Annotated[str | None, arg("update_custom_rule", "description")] = None,
        expression: Annotated[str | None, arg("update_custom_rule", "expression")] = None,
        action: Annotated[str | None, arg("update_custom_rule", "action")] = None,
        enabled: Annotated[bool | None, arg("update_custom_rule", "enabled")] = None,
    ) -> dict[str, Any]:
        return await call(
            ctx,
            "update_custom_rule",
            zoneId=zoneId,
            rulesetId=rulesetId,
            ruleId=ruleId,
            description=description,
            expression=expression,
            action=action,
            enabled=enabled,
        )

    @tool("delete_custom_rule")
    async def delete_custom_rule(
        ctx: Context,
        zoneId: Annotated[str, arg("delete_custom_rule", "zoneId")],  # noqa: N803
        rulesetId: Annotated[str, arg("delete_custom_rule", "rulesetId")],  # noqa: N803
        ruleId: Annotated[str, arg("delete_custom_rule", "ruleId")],  # noqa: N803
    ) -> dict[str, Any]:
        return await call(
            ctx, "delete_custom_rule", zoneId=zoneId, rulesetId=rulesetId, ruleId=ruleId
        )

    @tool("toggle_rule")
    async def toggle_rule(
        ctx: Context,
        zoneId: Annotated[str, arg("toggle_rule", "zoneId")],  # noqa: N803
        rulesetId: Annotated[str, arg("toggle_rule", "rulesetId")],  # noqa: N803
        ruleId: Annotated[str, arg("toggle_rule", "ruleId")],  # noqa: N803
        enabled: Annotated[bool, arg("toggle_rule", "enabled")],
    ) -> dict[str, Any]:
        return await call(
            ctx,
            "toggle_rule",
            zoneId=zoneId,
            rulesetId=rulesetId,
            ruleId=ruleId,
            enabled=enabled,
        )

    @tool("suggest_rule_from_events")
    async def suggest_rule_from_events(
        ctx: Context,
        zoneId: Annotated[str, arg("suggest_rule_from_events", "zoneId")],  # noqa: N803
        minutes: Annotated[int, arg("suggest_rule_from_events", "minutes")] = 60,
        actionType: Annotated[  # noqa: N803
            str, arg("suggest_rule_from_events", "actionType")
        ] = "block",
    ) -> dict[str, Any]:
        return await call(
            ctx,
            "suggest_rule_from_events",
            zoneId=zoneId,
            minutes=minutes,
            actionType=actionType,
        )

    # -- Analytics --

    @tool("get_security_events")
    async def get_security_events(
        ctx: Context,
        zoneId: Annotated[str, arg("get_security_events", "zoneId")],  # noqa: N803
        minutes: Annotated[int, arg("get_security_events", "minutes")] = 60,
        limit: Annotated[int, arg("get_security_events", "limit")] = 100,
    ) -> dict[str, Any]:
        return await call(
            ctx, "get_security_events", zoneId=zoneId, minutes=minutes, limit=limit
        )

    @tool("get_attack_summary")
    async def get_attack_summary(
        ctx: Context,
        zoneId: Annotated[str, arg("get_attack_summary", "zoneId")],  # noqa: N803
        minutes: Annotated[int, arg("get_attack_summary", "minutes")] = 60,
    ) -> dict[str, Any]:
        return await call(ctx, "get_attack_summary", zoneId=zoneId, minutes=minutes)

    @tool("get_top_attacked_paths")
    async def get_top_attacked_paths(
        ctx: Context,
        zoneId: Annotated[str, arg("get_top_attacked_paths", "zoneId")],  # noqa: N803
        minutes: Annotated[int, arg("get_top_attacked_paths", "minutes")] = 60,
        limit: Annotated[int, arg("get_top_attacked_paths", "limit")] = 10,
    ) -> dict[str, Any]:
        return await call(
            ctx, "get_top_attacked_paths", zoneId=zoneId, minutes=minutes, limit=limit
        )
