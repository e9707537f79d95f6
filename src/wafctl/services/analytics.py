"""AnalyticsAggregator — firewall event analytics over the GraphQL API.

Every query takes an explicit ``[start, end)`` window. The only place
"now" is read is :func:`window_from_minutes`, which callers use to build
that window. Zone tags and limits always travel as GraphQL variables.
"""

from __future__ import annotations

import ipaddress
from collections import Counter
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar

from pydantic import BaseModel, Field

from wafctl.domain.ids import SuggestedAction, require_id
from wafctl.domain.types import (
    ActionCount,
    CountryCount,
    PathCount,
    SecurityEvent,
    SecuritySummary,
    SourceCount,
    TimeWindow,
)
from wafctl.infrastructure.client import CloudflareClient, parse_record

MIN_WINDOW_MINUTES = 1
MAX_WINDOW_MINUTES = 1440
SUMMARY_GROUP_LIMIT = 20
SUGGESTION_EVENT_LIMIT = 100

EVENTS_QUERY = """
query GetSecurityEvents($zoneTag: string!, $start: Time!, $end: Time!, $limit: Int!) {
  viewer {
    zones(filter: { zoneTag: $zoneTag }) {
      firewallEventsAdaptive(
        filter: { datetime_geq: $start, datetime_lt: $end }
        limit: $limit
        orderBy: [datetime_DESC]
      ) {
        action
        clientAsn
        clientCountryName
        clientIP
        clientRequestPath
        clientRequestQuery
        datetime
        source
        userAgent
        ruleId
      }
    }
  }
}
"""

SUMMARY_QUERY = """
query GetSecuritySummary($zoneTag: string!, $start: Time!, $end: Time!, $limit: Int!) {
  viewer {
    zones(filter: { zoneTag: $zoneTag }) {
      byAction: firewallEventsAdaptiveGroups(
        filter: { datetime_geq: $start, datetime_lt: $end }
        limit: $limit
        orderBy: [count_DESC]
      ) {
        count
        dimensions { action }
      }
      bySource: firewallEventsAdaptiveGroups(
        filter: { datetime_geq: $start, datetime_lt: $end }
        limit: $limit
        orderBy: [count_DESC]
      ) {
        count
        dimensions { source }
      }
      byCountry: firewallEventsAdaptiveGroups(
        filter: { datetime_geq: $start, datetime_lt: $end }
        limit: $limit
        orderBy: [count_DESC]
      ) {
        count
        dimensions { clientCountryName }
      }
    }
  }
}
"""

TOP_PATHS_QUERY = """
query GetTopAttackedPaths($zoneTag: string!, $start: Time!, $end: Time!, $limit: Int!) {
  viewer {
    zones(filter: { zoneTag: $zoneTag }) {
      firewallEventsAdaptiveGroups(
        filter: { datetime_geq: $start, datetime_lt: $end }
        limit: $limit
        orderBy: [count_DESC]
      ) {
        count
        dimensions { clientRequestPath }
      }
    }
  }
}
"""


def window_from_minutes(minutes: int, *, now: datetime | None = None) -> TimeWindow:
    """Window ending at *now* (default: current UTC time) spanning *minutes*.

    *minutes* is clamped to [1, 1440].
    """
    minutes = max(MIN_WINDOW_MINUTES, min(MAX_WINDOW_MINUTES, int(minutes)))
    end = now or datetime.now(UTC)
    return TimeWindow(start=end - timedelta(minutes=minutes), end=end)


def _first_zone(data: dict[str, Any]) -> dict[str, Any]:
    viewer = data.get("viewer") or {}
    zones = viewer.get("zones") or []
    if zones and isinstance(zones[0], dict):
        return zones[0]
    return {}


def _groups(zone: dict[str, Any], key: str) -> list[dict[str, Any]]:
    rows = zone.get(key) or []
    return sorted(
        (row for row in rows if isinstance(row, dict)),
        key=lambda row: row.get("count") or 0,
        reverse=True,
    )


def _dimension(row: dict[str, Any], name: str) -> Any:
    return (row.get("dimensions") or {}).get(name)


_C = TypeVar("_C", bound=BaseModel)


def _group_count(model: type[_C], field: str, row: dict[str, Any], dimension: str) -> _C:
    record = {field: _dimension(row, dimension), "count": row.get("count") or 0}
    return parse_record(model, record)


class AnalyticsAggregator:
    """Translates time-window requests into GraphQL and reshapes the results."""

    def __init__(self, client: CloudflareClient) -> None:
        self._client = client

    def _variables(self, zone_id: str, window: TimeWindow, limit: int) -> dict[str, Any]:
        return {"zoneTag": require_id(zone_id, "zone"), **window.to_variables(), "limit": limit}

    async def get_security_events(
        self, zone_id: str, window: TimeWindow, limit: int = 100
    ) -> list[SecurityEvent]:
        """Raw events, most recent first, at most *limit*."""
        data = await self._client.graphql_call(
            EVENTS_QUERY, self._variables(zone_id, window, limit)
        )
        rows = _first_zone(data).get("firewallEventsAdaptive") or []
        return [parse_record(SecurityEvent, row) for row in rows[:limit]]

    async def get_security_events_summary(
        self, zone_id: str, window: TimeWindow
    ) -> SecuritySummary:
        """Counts grouped by action, source, and country (top 20 each)."""
        data = await self._client.graphql_call(
            SUMMARY_QUERY, self._variables(zone_id, window, SUMMARY_GROUP_LIMIT)
        )
        zone = _first_zone(data)
        cap = SUMMARY_GROUP_LIMIT
        return SecuritySummary(
            by_action=[
                _group_count(ActionCount, "action", row, "action")
                for row in _groups(zone, "byAction")[:cap]
            ],
            by_source=[
                _group_count(SourceCount, "source", row, "source")
                for row in _groups(zone, "bySource")[:cap]
            ],
            by_country=[
                _group_count(CountryCount, "country", row, "clientCountryName")
                for row in _groups(zone, "byCountry")[:cap]
            ],
        )

    async def get_top_attacked_paths(
        self, zone_id: str, window: TimeWindow, limit: int = 10
    ) -> list[PathCount]:
        data = await self._client.graphql_call(
            TOP_PATHS_QUERY, self._variables(zone_id, window, limit)
        )
        rows = _groups(_first_zone(data), "firewallEventsAdaptiveGroups")
        return [
            _group_count(PathCount, "path", row, "clientRequestPath")
            for row in rows[:limit]
        ]


# ---------------------------------------------------------------------------
# Rule suggestions
# ---------------------------------------------------------------------------

COUNTRY_SHARE_THRESHOLD = 0.3
PATH_SHARE_THRESHOLD = 0.4
IP_EVENT_THRESHOLD = 5


class PatternCount(BaseModel):
    value: str
    count: int


class RuleSuggestion(BaseModel):
    title: str
    expression: str
    action: SuggestedAction
    reason: str


class SuggestionReport(BaseModel):
    """Attack patterns found in a batch of events and the rules they motivate."""

    minutes: int
    event_count: int
    top_country: PatternCount | None = None
    top_ip: PatternCount | None = None
    top_path: PatternCount | None = None
    top_source: PatternCount | None = None
    suggestions: list[RuleSuggestion] = Field(default_factory=list)

    def render(self) -> str:
        """Markdown summary for the assistant."""
        lines = [
            f"Analyzed {self.event_count} security events from the last {self.minutes} minutes.",
            "",
            "**Top Attack Patterns:**",
        ]
        for label, pattern in (
            ("Country", self.top_country),
            ("IP", self.top_ip),
            ("Path", self.top_path),
            ("Source", self.top_source),
        ):
            if pattern is not None:
                lines.append(f"- {label}: {pattern.value} ({pattern.count} events)")
        lines += ["", "**Suggested Rules:**", ""]
        if not self.suggestions:
            lines.append("No single pattern dominates; no rule suggested.")
        for index, suggestion in enumerate(self.suggestions, start=1):
            lines += [
                f"{index}. **{suggestion.title}**",
                f"   Expression: `{suggestion.expression}`",
                f"   Action: {suggestion.action}",
                f"   Reason: {suggestion.reason}",
                "",
            ]
        lines.append(
            "To create a rule, use the `create_custom_rule` tool with the suggested expression."
        )
        return "\n".join(lines)


def _quote(value: str) -> str:
    """Render *value* as a ruleset-language string literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _top(values: Iterable[str | None]) -> PatternCount | None:
    counter = Counter(v for v in values if v)
    if not counter:
        return None
    value, count = counter.most_common(1)[0]
    return PatternCount(value=value, count=count)


def suggest_rules(
    events: list[SecurityEvent], *, minutes: int, action: SuggestedAction
) -> SuggestionReport:
    """Find dominant countries, IPs, and paths and propose matching rules.

    Thresholds: a country over 30% of events, a single IP over 5 events,
    a path over 40% of events.
    """
    total = len(events)
    report = SuggestionReport(
        minutes=minutes,
        event_count=total,
        top_country=_top(e.client_country_name for e in events),
        top_ip=_top(e.client_ip for e in events),
        top_path=_top(e.client_request_path for e in events),
        top_source=_top(e.source for e in events),
    )
    if total == 0:
        return report

    country, ip, path = report.top_country, report.top_ip, report.top_path
    if country is not None and country.count > total * COUNTRY_SHARE_THRESHOLD:
        report.suggestions.append(
            RuleSuggestion(
                title=f"Block traffic from {country.value}",
                expression=f"(ip.geoip.country eq {_quote(country.value)})",
                action=action,
                reason=f"{round(country.count / total * 100)}% of attacks from this country",
            )
        )
    if ip is not None and ip.count > IP_EVENT_THRESHOLD and _is_ip(ip.value):
        report.suggestions.append(
            RuleSuggestion(
                title="Block specific IP address",
                expression=f"(ip.src eq {ip.value})",
                action=action,
                reason=f"This IP generated {ip.count} security events",
            )
        )
    if path is not None and path.count > total * PATH_SHARE_THRESHOLD:
        report.suggestions.append(
            RuleSuggestion(
                title="Protect specific path",
                expression=f"(http.request.uri.path eq {_quote(path.value)})",
                action=action,
                reason=f"{round(path.count / total * 100)}% of attacks target this path",
            )
        )
    return report


def _is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True
