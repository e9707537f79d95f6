"""Pydantic models for Cloudflare accounts, zones, rulesets, and events.

Read models allow extra fields so provider payloads pass through to the
assistant untouched; only the fields the gateway relies on are declared.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr
from pydantic.alias_generators import to_camel

from wafctl.domain.ids import RuleAction

# --- Session identity ---


class Identity(BaseModel):
    """Validated user record for one session. Never persisted."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    credential: SecretStr


# --- Response envelope ---


class EnvelopeMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    code: int | None = None
    message: str = ""


class ResultInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    page: int | None = None
    per_page: int | None = None
    total_pages: int | None = None
    count: int | None = None
    total_count: int | None = None


class Envelope(BaseModel):
    """Uniform REST response wrapper."""

    success: bool
    errors: list[EnvelopeMessage] = Field(default_factory=list)
    messages: list[EnvelopeMessage | str] = Field(default_factory=list)
    result: Any = None
    result_info: ResultInfo | None = None


# --- Read models ---


class Account(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    type: str | None = None


class AccountRef(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: str | None = None


class ZonePlan(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | None = None
    name: str | None = None


class Zone(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    status: str | None = None
    account: AccountRef | None = None
    plan: ZonePlan | None = None


class RuleLogging(BaseModel):
    model_config = ConfigDict(extra="allow")

    enabled: bool


class Rule(BaseModel):
    """One rule inside a ruleset. Order within the ruleset is significant."""

    model_config = ConfigDict(extra="allow")

    id: str
    version: str | None = None
    action: str | None = None
    expression: str | None = None
    description: str | None = None
    enabled: bool = True
    action_parameters: dict[str, Any] | None = None
    logging: RuleLogging | None = None
    ref: str | None = None
    last_updated: str | None = None


class Ruleset(BaseModel):
    """Phase-scoped, ordered container of rules."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: str | None = None
    description: str | None = None
    kind: str | None = None
    version: str | None = None
    phase: str | None = None
    rules: list[Rule] = Field(default_factory=list)
    last_updated: str | None = None

    def find_rule(self, rule_id: str) -> Rule | None:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None


# --- Write models ---


class RuleSpec(BaseModel):
    """Body of a new custom rule."""

    model_config = ConfigDict(frozen=True)

    description: str
    expression: str
    action: RuleAction
    enabled: bool = True

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class RulePatch(BaseModel):
    """Partial rule update. A field left as None is left unchanged."""

    model_config = ConfigDict(frozen=True)

    description: str | None = None
    expression: str | None = None
    action: RuleAction | None = None
    enabled: bool | None = None

    def to_payload(self) -> dict[str, Any]:
        """Only the supplied fields, ready for a PATCH body."""
        return self.model_dump(mode="json", exclude_none=True)

    @property
    def is_empty(self) -> bool:
        return not self.to_payload()


# --- Analytics ---


class TimeWindow(BaseModel):
    """Half-open ``[start, end)`` analytics window in UTC."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @property
    def seconds(self) -> float:
        return (self.end - self.start).total_seconds()

    def to_variables(self) -> dict[str, str]:
        return {"start": _iso(self.start), "end": _iso(self.end)}


def _iso(value: datetime) -> str:
    """ISO-8601 with millisecond precision and a ``Z`` suffix."""
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class SecurityEvent(_CamelModel):
    """One firewall event. Immutable historical record."""

    action: str | None = None
    client_asn: str | int | None = None
    client_country_name: str | None = None
    client_ip: str | None = Field(default=None, alias="clientIP")
    client_request_path: str | None = None
    client_request_query: str | None = None
    occurred_at: str | None = Field(default=None, alias="datetime")
    source: str | None = None
    user_agent: str | None = None
    rule_id: str | None = None


class ActionCount(_CamelModel):
    action: str | None = None
    count: int


class SourceCount(_CamelModel):
    source: str | None = None
    count: int


class CountryCount(_CamelModel):
    country: str | None = None
    count: int


class PathCount(_CamelModel):
    path: str | None = None
    count: int


class SecuritySummary(_CamelModel):
    by_action: list[ActionCount] = Field(default_factory=list)
    by_source: list[SourceCount] = Field(default_factory=list)
    by_country: list[CountryCount] = Field(default_factory=list)


class UserInfo(BaseModel):
    """Result of the whoami-style ``/user`` endpoint."""

    model_config = ConfigDict(extra="allow")

    id: str
    email: str
    username: str | None = None
