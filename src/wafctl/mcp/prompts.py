"""MCP prompt definitions — 3 WAF workflow prompts.

Prompts: security_audit, incident_response, rule_builder.
Each prompt has a ``<name>_impl`` function testable without the mcp package.
"""

from __future__ import annotations

from typing import Any

TIME_RANGES: dict[str, int] = {"1h": 60, "6h": 360, "24h": 1440}

SYMPTOMS: dict[str, str] = {
    "high_blocks": "The user is seeing an unusual number of blocked requests.",
    "slow_response": "The application is responding slowly, possibly due to attack traffic.",
    "error_spike": "There's a spike in 4xx/5xx errors that may indicate an attack.",
    "suspicious_traffic": "Suspicious traffic patterns have been observed.",
    "unknown": "The user suspects an attack but hasn't identified specific symptoms.",
}

SCENARIOS: dict[str, str] = {
    "block_country": """Create a rule to block traffic from specific countries.
Ask which countries to block and which paths to protect (or all paths).
Consider whether to use "block" or "managed_challenge" for less aggressive protection.""",
    "protect_endpoint": """Create a rule to protect a specific endpoint.
Ask about the endpoint path and what protection is needed:
- Geographic restrictions
- Bot protection (challenge)
- Complete blocking of certain patterns""",
    "block_user_agent": """Create a rule to block specific user agents.
Ask about:
- User agent patterns to block (bots, scrapers, specific tools)
- Whether to use exact match or contains
- Action (block vs challenge)""",
    "custom": """Help create a custom WAF rule.
Ask the user to describe what they want to protect against, then:
1. Suggest an appropriate expression using Cloudflare's rule language
2. Recommend the right action (block, challenge, log)
3. Explain what the rule will do""",
}

_NO_SCENARIO = """Ask the user what type of protection they need:
1. Block traffic from specific countries
2. Protect a specific endpoint
3. Block specific user agents
4. Custom rule (describe the threat)"""


def _unknown(kind: str, value: str, allowed: dict[str, Any]) -> ValueError:
    return ValueError(f"Unknown {kind} {value!r}; expected one of: {', '.join(allowed)}")


# ---------------------------------------------------------------------------
# Prompt implementations (testable without mcp)
# ---------------------------------------------------------------------------


def security_audit_impl(zone_id: str | None = None, time_range: str = "24h") -> str:
    """Generate instructions for a full WAF security audit of one zone."""
    if time_range not in TIME_RANGES:
        raise _unknown("time range", time_range, TIME_RANGES)
    minutes = TIME_RANGES[time_range]
    zone_context = (
        f"Analyze zone ID: {zone_id}"
        if zone_id
        else "First, list available zones (use `list_zones`) and ask which one to audit."
    )
    return f"""## WAF Security Audit

{zone_context}

### Workflow
1. **Rule inventory**
   - List all custom WAF rules with `list_custom_rules`
   - List deployed managed rulesets with `list_managed_rulesets`
   - Flag disabled rules that may indicate gaps
2. **Event analysis** (last {time_range})
   - Summarize events with `get_attack_summary` (minutes={minutes})
   - Find targeted endpoints with `get_top_attacked_paths` (minutes={minutes})
   - Break attack patterns down by source country and action taken
3. **Gap analysis**
   - Compare current rules against observed attack patterns
   - Identify unprotected endpoints receiving attack traffic
   - Look for log-only rules on critical paths
4. **Recommendations**
   - Prioritized rule additions (`suggest_rule_from_events` can draft them)
   - Rules that could be tightened or removed
   - Managed rulesets that should be enabled

Format the output as a structured security report with actionable items.
Do not create, change, or delete any rule without explicit approval.
"""


def incident_response_impl(zone_id: str | None = None, symptom: str = "unknown") -> str:
    """Generate instructions for investigating an active attack."""
    if symptom not in SYMPTOMS:
        raise _unknown("symptom", symptom, SYMPTOMS)
    zone_context = (
        f"Investigating zone ID: {zone_id}"
        if zone_id
        else "First, identify which zone is affected (use `list_zones`)."
    )
    return f"""## Incident Response

{zone_context}
Context: {SYMPTOMS[symptom]}

### Workflow
1. **Immediate assessment**
   - Recent events: `get_security_events` with minutes=15, limit=200
   - Attack summary: `get_attack_summary` with minutes=15
   - Targeted endpoints: `get_top_attacked_paths` with minutes=15
2. **Pattern analysis**
   - Attack type: credential stuffing, scanning, scraping, flood
   - Source: single IP, range, ASN, or region
   - Target: specific endpoints, API, or the whole site
3. **Current protection**
   - Review existing rules with `list_custom_rules`
   - Note whether they already block the attack, and any gaps
4. **Mitigation**
   - Draft a rule with `suggest_rule_from_events`
   - Show the exact expression and action, and its impact on legitimate traffic
   - Ask for approval, then apply with `create_custom_rule` or `toggle_rule`
5. **Follow-up**
   - Re-run the event analysis to confirm the mitigation holds
   - Summarize the incident and suggest preventive rules
"""


def rule_builder_impl(zone_id: str | None = None, scenario: str | None = None) -> str:
    """Generate instructions for building a custom WAF rule interactively."""
    if scenario is not None and scenario not in SCENARIOS:
        raise _unknown("scenario", scenario, SCENARIOS)
    guide = SCENARIOS[scenario] if scenario else _NO_SCENARIO
    zone_context = (
        f"Working with zone ID: {zone_id}"
        if zone_id
        else "First, list available zones (use `list_zones`) and ask which zone to protect."
    )
    return f"""## WAF Rule Builder

{zone_context}

{guide}

### For any rule
1. Show the proposed configuration first:
   - Expression (Cloudflare rule language)
   - Action (block, challenge, js_challenge, managed_challenge, log, skip)
   - Description
2. Explain what traffic the rule will match
3. Ask for confirmation before creating
4. Create it with `create_custom_rule`

### Expression reference
- `ip.src eq 1.2.3.4` (IP match)
- `ip.geoip.country eq "US"` (country match)
- `http.request.uri.path contains "/admin"` (path match)
- `http.user_agent contains "bot"` (user agent match)
- `http.request.method eq "POST"` (method match)
- Combine with `and`, `or`, `not`, and parentheses

Afterwards, offer to review the full ruleset with `list_custom_rules`.
"""


# ---------------------------------------------------------------------------
# FastMCP registration
# ---------------------------------------------------------------------------


def register_prompts(server: Any) -> None:
    """Register all 3 MCP prompts on the FastMCP server."""

    @server.prompt()  # type: ignore[untyped-decorator]
    def security_audit(zone_id: str | None = None, time_range: str = "24h") -> str:
        """Audit a zone's WAF configuration: rules, recent events, and gaps."""
        return security_audit_impl(zone_id, time_range)

    @server.prompt()  # type: ignore[untyped-decorator]
    def incident_response(zone_id: str | None = None, symptom: str = "unknown") -> str:
        """Investigate an active attack and walk through mitigation options."""
        return incident_response_impl(zone_id, symptom)

    @server.prompt()  # type: ignore[untyped-decorator]
    def rule_builder(zone_id: str | None = None, scenario: str | None = None) -> str:
        """Build a custom WAF rule for a protection scenario."""
        return rule_builder_impl(zone_id, scenario)
