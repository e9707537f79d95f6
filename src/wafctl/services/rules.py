"""RuleManager — custom firewall rule lifecycle on top of the gateway client.

Custom rules live in the zone's entry-point ruleset for the
``http_request_firewall_custom`` phase. Cloudflare does not create that
ruleset on demand, so creation is a two-phase algorithm:

  1. LOOKUP  — explicit existence check (``find_entry_point_ruleset``)
  2. APPEND  — create the empty ruleset first if the lookup found none,
               then append the rule

Nothing is retried. A failure after the ruleset was created surfaces as
:class:`PartialCreateError`.
"""

from __future__ import annotations

import structlog

from wafctl.domain.ids import CUSTOM_PHASE, CUSTOM_RULESET_NAME
from wafctl.domain.sanitize import sanitize
from wafctl.domain.types import Rule, RulePatch, Ruleset, RuleSpec
from wafctl.exceptions import (
    ApiError,
    ConsistencyError,
    PartialCreateError,
    TransportError,
    ValidationError,
)
from wafctl.infrastructure.client import CloudflareClient

log = structlog.get_logger(__name__)


class RuleManager:
    """Create, update, delete, and toggle custom WAF rules for a zone."""

    def __init__(self, client: CloudflareClient) -> None:
        self._client = client

    async def list_phase_rules(self, zone_id: str, phase: str) -> Ruleset | None:
        """Entry-point ruleset for *phase*, or None when the zone has none."""
        return await self._client.find_entry_point_ruleset(zone_id, phase)

    async def create_custom_rule(self, zone_id: str, spec: RuleSpec) -> Rule:
        """Append a rule to the zone's custom ruleset, creating the ruleset if absent.

        Returns the last rule of the ruleset after the append, which is the
        one just added.
        """
        ruleset = await self._client.find_entry_point_ruleset(zone_id, CUSTOM_PHASE)
        created = ruleset is None
        if ruleset is None:
            ruleset = await self._client.create_ruleset(
                zone_id, phase=CUSTOM_PHASE, name=CUSTOM_RULESET_NAME
            )
            log.info("rules.ruleset_created", phase=CUSTOM_PHASE)

        try:
            updated = await self._client.add_rule(zone_id, ruleset.id, spec.to_payload())
        except (ApiError, TransportError) as exc:
            if not created:
                raise
            msg = sanitize(
                f"Created the custom ruleset but could not add the rule to it: {exc.message}"
            )
            raise PartialCreateError(msg, ruleset_id=ruleset.id, cause=exc) from exc

        if not updated.rules:
            raise ConsistencyError("Rule append response contained no rules")
        return updated.rules[-1]

    async def update_custom_rule(
        self,
        zone_id: str,
        ruleset_id: str,
        rule_id: str,
        patch: RulePatch,
    ) -> Rule:
        """PATCH only the fields set on *patch* and return the updated rule."""
        if patch.is_empty:
            msg = "Nothing to update: supply description, expression, action, or enabled"
            raise ValidationError(msg)

        ruleset = await self._client.update_rule(zone_id, ruleset_id, rule_id, patch.to_payload())
        rule = ruleset.find_rule(rule_id)
        if rule is None:
            raise ConsistencyError("Updated rule not found in response")
        return rule

    async def delete_custom_rule(self, zone_id: str, ruleset_id: str, rule_id: str) -> None:
        """Delete a rule. Deleting an already-deleted rule raises ApiError."""
        await self._client.delete_rule(zone_id, ruleset_id, rule_id)
        log.info("rules.deleted")

    async def toggle_rule(
        self, zone_id: str, ruleset_id: str, rule_id: str, *, enabled: bool
    ) -> Rule:
        return await self.update_custom_rule(
            zone_id, ruleset_id, rule_id, RulePatch(enabled=enabled)
        )
