"""Input contracts for every registered operation.

One pydantic model per operation shape. Field names are snake_case in
Python and camelCase on the wire (``zoneId``, ``actionType``), and the
JSON schemas published to MCP clients are generated from these models.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

from wafctl.domain.ids import CLOUDFLARE_ID_PATTERN, RuleAction, SuggestedAction
from wafctl.domain.types import RulePatch, RuleSpec

CloudflareId = Annotated[str, StringConstraints(pattern=CLOUDFLARE_ID_PATTERN)]
RuleDescription = Annotated[str, StringConstraints(min_length=1, max_length=500)]
RuleExpression = Annotated[str, StringConstraints(min_length=1, max_length=4096)]

WindowMinutes = Annotated[
    int, Field(ge=1, le=1440, description="Time range in minutes to look back (1-1440).")
]


class Contract(BaseModel):
    """Base for operation inputs: frozen, camelCase aliases, no unknown keys."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class NoInput(Contract):
    pass


class ListZonesInput(Contract):
    account_id: CloudflareId | None = Field(
        default=None,
        description="Optional account ID to filter zones (32-character hex string).",
    )


class ZoneInput(Contract):
    zone_id: CloudflareId = Field(
        description="The zone ID (32-character hex string). Get this from list_zones."
    )


class AccountInput(Contract):
    account_id: CloudflareId = Field(description="The account ID (32-character hex string).")


class RulesetInput(ZoneInput):
    ruleset_id: CloudflareId = Field(description="The ruleset ID (32-character hex string).")


class RuleRefInput(RulesetInput):
    rule_id: CloudflareId = Field(description="The rule ID (32-character hex string).")


class CreateCustomRuleInput(ZoneInput):
    description: RuleDescription = Field(description="Human-readable description of the rule.")
    expression: RuleExpression = Field(
        description=(
            "Cloudflare rule expression, e.g. "
            '(ip.src eq 1.2.3.4) or (http.request.uri.path contains "/admin").'
        )
    )
    action: RuleAction = Field(description="Action to take when the rule matches.")
    enabled: bool = Field(default=True, description="Whether the rule is enabled.")

    def to_spec(self) -> RuleSpec:
        return RuleSpec(
            description=self.description,
            expression=self.expression,
            action=self.action,
            enabled=self.enabled,
        )


class UpdateCustomRuleInput(RuleRefInput):
    description: RuleDescription | None = Field(default=None, description="New description.")
    expression: RuleExpression | None = Field(default=None, description="New rule expression.")
    action: RuleAction | None = Field(default=None, description="New action.")
    enabled: bool | None = Field(default=None, description="Enable or disable the rule.")

    def to_patch(self) -> RulePatch:
        return RulePatch(
            description=self.description,
            expression=self.expression,
            action=self.action,
            enabled=self.enabled,
        )


class ToggleRuleInput(RuleRefInput):
    enabled: bool = Field(description="True to enable the rule, False to disable it.")


class SecurityEventsInput(ZoneInput):
    minutes: WindowMinutes = 60
    limit: int = Field(
        default=100, ge=1, le=1000, description="Maximum number of events to return."
    )


class AttackSummaryInput(ZoneInput):
    minutes: WindowMinutes = 60


class TopPathsInput(ZoneInput):
    minutes: WindowMinutes = 60
    limit: int = Field(default=10, ge=1, le=100, description="Number of top paths to return.")


class SuggestRuleInput(ZoneInput):
    minutes: WindowMinutes = 60
    action_type: SuggestedAction = Field(
        default=SuggestedAction.BLOCK,
        description="Type of action the suggested rule should take.",
    )
