"""Shared pytest fixtures and an in-memory Cloudflare API for wafctl tests."""

from __future__ import annotations

import json
import re
import uuid
from collections import Counter
from collections.abc import AsyncIterator, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import httpx
import pytest
from click.testing import CliRunner
from pydantic import SecretStr

from wafctl.config.settings import WafSettings
from wafctl.domain.types import Identity
from wafctl.infrastructure.client import CloudflareClient
from wafctl.services.session import Session, SessionManager

VALID_TOKEN = "valid-token-Abc123_xyz"
OTHER_TOKEN = "other-token-Def456_uvw"
USER_ID = "7c5dae5552338874e5053f2534d2767a"
OTHER_USER_ID = "9a7806061c88ada191ed06f989cc3dac"
ACCOUNT_ID = "01a7362d577a6c3019a474fd6f485823"
ZONE_ID = "023e105f4ecef8ad9ca31a8372d0c353"
OTHER_ZONE_ID = "353c0d2738a13ac9da8fece4f501e320"
MISSING_ID = "ffffffffffffffffffffffffffffffff"

CUSTOM = "http_request_firewall_custom"
MANAGED = "http_request_firewall_managed"

_API_PREFIX = "/client/v4"


def _new_id() -> str:
    return uuid.uuid4().hex


def _ok(result: Any, status: int = 200) -> httpx.Response:
    return httpx.Response(
        status, json={"success": True, "errors": [], "messages": [], "result": result}
    )


def _fail(status: int, code: int, message: str) -> httpx.Response:
    return httpx.Response(
        status,
        json={
            "success": False,
            "errors": [{"code": code, "message": message}],
            "messages": [],
            "result": None,
        },
    )


def _parse_time(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _minutes_ago(minutes: float) -> str:
    moment = datetime.now(UTC) - timedelta(minutes=minutes)
    return moment.isoformat(timespec="seconds").replace("+00:00", "Z")


class FakeCloudflare:
    """Stateful stand-in for the Cloudflare v4 REST and GraphQL APIs.

    Served to :class:`CloudflareClient` through ``httpx.MockTransport``.
    Every request is recorded in ``requests``. ``fail_next(method, path, ...)``
    makes the next matching request fail with a provider error envelope.
    """

    def __init__(self) -> None:
        self.users: dict[str, dict[str, Any]] = {
            VALID_TOKEN: {"id": USER_ID, "email": "ops@example.com"},
            OTHER_TOKEN: {"id": OTHER_USER_ID, "email": "sec@example.org"},
        }
        self.accounts = [{"id": ACCOUNT_ID, "name": "Example Account", "type": "standard"}]
        self.zones: dict[str, dict[str, Any]] = {
            ZONE_ID: {
                "id": ZONE_ID,
                "name": "example.com",
                "status": "active",
                "account": {"id": ACCOUNT_ID, "name": "Example Account"},
                "plan": {"id": "0feeeeeeeeeeeeeeeeeeeeeeeeeeeeee", "name": "Free Website"},
            },
            OTHER_ZONE_ID: {
                "id": OTHER_ZONE_ID,
                "name": "example.net",
                "status": "active",
                "account": {"id": ACCOUNT_ID, "name": "Example Account"},
            },
        }
        self.rulesets: dict[str, dict[str, Any]] = {}
        self.ruleset_owner: dict[str, str] = {}
        self.account_rulesets: dict[str, list[dict[str, Any]]] = {ACCOUNT_ID: []}
        self.events: dict[str, list[dict[str, Any]]] = {ZONE_ID: [], OTHER_ZONE_ID: []}
        self.graphql_errors: list[dict[str, Any]] | None = None
        self.requests: list[httpx.Request] = []
        self._failures: dict[tuple[str, str], httpx.Response] = {}

    # -- test helpers --

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def fail_next(self, method: str, path: str, status: int, code: int, message: str) -> None:
        self._failures[(method, path)] = _fail(status, code, message)

    def calls(self, method: str | None = None, contains: str = "") -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if (method is None or r.method == method) and contains in r.url.path
        ]

    def graphql_bodies(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.calls("POST", "/graphql")]

    def add_ruleset(
        self,
        zone_id: str,
        phase: str,
        rules: list[dict[str, Any]] | None = None,
        *,
        name: str = "Custom Firewall Rules",
    ) -> dict[str, Any]:
        ruleset = {
            "id": _new_id(),
            "name": name,
            "kind": "zone",
            "phase": phase,
            "version": "1",
            "rules": [self._make_rule(r) for r in rules or []],
        }
        self.rulesets[ruleset["id"]] = ruleset
        self.ruleset_owner[ruleset["id"]] = zone_id
        return ruleset

    def entry_point(self, zone_id: str, phase: str) -> dict[str, Any] | None:
        for rsid, ruleset in self.rulesets.items():
            if (
                self.ruleset_owner[rsid] == zone_id
                and ruleset["phase"] == phase
                and ruleset["kind"] == "zone"
            ):
                return ruleset
        return None

    def add_event(self, zone_id: str = ZONE_ID, **fields: Any) -> dict[str, Any]:
        event = {
            "action": "block",
            "clientAsn": "13335",
            "clientCountryName": "US",
            "clientIP": "198.51.100.7",
            "clientRequestPath": "/",
            "clientRequestQuery": "",
            "datetime": _minutes_ago(1),
            "source": "firewallCustom",
            "userAgent": "curl/8.0",
            "ruleId": _new_id(),
        }
        event.update(fields)
        self.events[zone_id].append(event)
        return event

    @staticmethod
    def _make_rule(body: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": body.get("id") or _new_id(),
            "version": "1",
            "action": body["action"],
            "expression": body["expression"],
            "description": body.get("description", ""),
            "enabled": body.get("enabled", True),
            "last_updated": "2026-10-19T12:00:00Z",
        }

    # -- dispatch --

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        token = request.headers.get("authorization", "").removeprefix("Bearer ")
        if token not in self.users:
            return _fail(400, 1000, "Invalid API Token")

        path = request.url.path.removeprefix(_API_PREFIX)
        if path == "/graphql":
            return self._graphql(request)

        injected = self._failures.pop((request.method, path), None)
        if injected is not None:
            return injected

        for method, pattern, handler in self._routes():
            if method != request.method:
                continue
            match = re.fullmatch(pattern, path)
            if match:
                return handler(request, *match.groups())
        return _fail(404, 7003, f"Could not route to {path}")

    def _routes(self) -> list[tuple[str, str, Callable[..., httpx.Response]]]:
        hexid = r"([0-9a-f]{32})"
        return [
            ("GET", r"/user", self._user),
            ("GET", r"/accounts", self._accounts),
            ("GET", rf"/accounts/{hexid}/rulesets", self._account_rulesets),
            ("GET", r"/zones", self._list_zones),
            ("GET", rf"/zones/{hexid}", self._get_zone),
            ("GET", rf"/zones/{hexid}/rulesets", self._list_rulesets),
            ("POST", rf"/zones/{hexid}/rulesets", self._create_ruleset),
            ("GET", rf"/zones/{hexid}/rulesets/phases/([a-z_]+)/entrypoint", self._entrypoint),
            ("GET", rf"/zones/{hexid}/rulesets/{hexid}", self._get_ruleset),
            ("POST", rf"/zones/{hexid}/rulesets/{hexid}/rules", self._add_rule),
            ("PATCH", rf"/zones/{hexid}/rulesets/{hexid}/rules/{hexid}", self._update_rule),
            ("DELETE", rf"/zones/{hexid}/rulesets/{hexid}/rules/{hexid}", self._delete_rule),
        ]

    def _user(self, request: httpx.Request) -> httpx.Response:
        token = request.headers["authorization"].removeprefix("Bearer ")
        return _ok(self.users[token])

    def _accounts(self, request: httpx.Request) -> httpx.Response:
        return _ok(self.accounts)

    def _account_rulesets(self, request: httpx.Request, account_id: str) -> httpx.Response:
        if account_id not in self.account_rulesets:
            return _fail(404, 7003, f"Could not route to /accounts/{account_id}/rulesets")
        return _ok(self.account_rulesets[account_id])

    def _list_zones(self, request: httpx.Request) -> httpx.Response:
        account_id = request.url.params.get("account.id")
        zones = [
            z for z in self.zones.values() if account_id is None or z["account"]["id"] == account_id
        ]
        return _ok(zones)

    def _zone_or_404(self, zone_id: str) -> httpx.Response | None:
        if zone_id in self.zones:
            return None
        msg = f"Could not route to /zones/{zone_id}, perhaps your object identifier is invalid?"
        return _fail(404, 7003, msg)

    def _get_zone(self, request: httpx.Request, zone_id: str) -> httpx.Response:
        return self._zone_or_404(zone_id) or _ok(self.zones[zone_id])

    def _list_rulesets(self, request: httpx.Request, zone_id: str) -> httpx.Response:
        missing = self._zone_or_404(zone_id)
        if missing:
            return missing
        phase = request.url.params.get("phase")
        rulesets = [
            {k: v for k, v in rs.items() if k != "rules"}
            for rsid, rs in self.rulesets.items()
            if self.ruleset_owner[rsid] == zone_id and (phase is None or rs["phase"] == phase)
        ]
        return _ok(rulesets)

    def _create_ruleset(self, request: httpx.Request, zone_id: str) -> httpx.Response:
        body = json.loads(request.content)
        if self.entry_point(zone_id, body["phase"]) is not None:
            return _fail(400, 20217, "A similar configuration with rules already exists")
        ruleset = self.add_ruleset(zone_id, body["phase"], body.get("rules"), name=body["name"])
        ruleset["kind"] = body["kind"]
        return _ok(ruleset)

    def _entrypoint(self, request: httpx.Request, zone_id: str, phase: str) -> httpx.Response:
        ruleset = self.entry_point(zone_id, phase)
        if ruleset is None:
            return _fail(
                404, 10003, f"Could not find entrypoint ruleset in the {phase} phase"
            )
        return _ok(ruleset)

    def _ruleset_or_404(self, zone_id: str, ruleset_id: str) -> httpx.Response | None:
        if self.ruleset_owner.get(ruleset_id) == zone_id:
            return None
        return _fail(404, 10000, f"could not find ruleset {ruleset_id}")

    def _get_ruleset(self, request: httpx.Request, zone_id: str, ruleset_id: str) -> httpx.Response:
        return self._ruleset_or_404(zone_id, ruleset_id) or _ok(self.rulesets[ruleset_id])

    def _add_rule(self, request: httpx.Request, zone_id: str, ruleset_id: str) -> httpx.Response:
        missing = self._ruleset_or_404(zone_id, ruleset_id)
        if missing:
            return missing
        ruleset = self.rulesets[ruleset_id]
        ruleset["rules"].append(self._make_rule(json.loads(request.content)))
        ruleset["version"] = str(int(ruleset["version"]) + 1)
        return _ok(ruleset)

    def _find_rule(self, ruleset_id: str, rule_id: str) -> dict[str, Any] | None:
        for rule in self.rulesets[ruleset_id]["rules"]:
            if rule["id"] == rule_id:
                return rule
        return None

    def _update_rule(
        self, request: httpx.Request, zone_id: str, ruleset_id: str, rule_id: str
    ) -> httpx.Response:
        missing = self._ruleset_or_404(zone_id, ruleset_id)
        if missing:
            return missing
        rule = self._find_rule(ruleset_id, rule_id)
        if rule is None:
            return _fail(404, 10000, f"could not find rule {rule_id}")
        rule.update(json.loads(request.content))
        rule["version"] = str(int(rule["version"]) + 1)
        return _ok(self.rulesets[ruleset_id])

    def _delete_rule(
        self, request: httpx.Request, zone_id: str, ruleset_id: str, rule_id: str
    ) -> httpx.Response:
        missing = self._ruleset_or_404(zone_id, ruleset_id)
        if missing:
            return missing
        rule = self._find_rule(ruleset_id, rule_id)
        if rule is None:
            return _fail(404, 10000, f"could not find rule {rule_id}")
        self.rulesets[ruleset_id]["rules"].remove(rule)
        return _ok(self.rulesets[ruleset_id])

    # -- GraphQL --

    def _graphql(self, request: httpx.Request) -> httpx.Response:
        if self.graphql_errors is not None:
            return httpx.Response(200, json={"data": None, "errors": self.graphql_errors})
        body = json.loads(request.content)
        query, variables = body["query"], body["variables"]
        zone_tag = variables["zoneTag"]
        if zone_tag not in self.events:
            return httpx.Response(200, json={"data": {"viewer": {"zones": []}}, "errors": None})

        start, end = _parse_time(variables["start"]), _parse_time(variables["end"])
        in_window = [
            e for e in self.events[zone_tag] if start <= _parse_time(e["datetime"]) < end
        ]
        limit = variables["limit"]

        if "byAction:" in query:
            zone = {
                "byAction": self._groups(in_window, "action", limit),
                "bySource": self._groups(in_window, "source", limit),
                "byCountry": self._groups(in_window, "clientCountryName", limit),
            }
        elif "firewallEventsAdaptiveGroups" in query:
            zone = {
                "firewallEventsAdaptiveGroups": self._groups(
                    in_window, "clientRequestPath", limit
                )
            }
        else:
            ordered = sorted(in_window, key=lambda e: _parse_time(e["datetime"]), reverse=True)
            zone = {"firewallEventsAdaptive": ordered[:limit]}
        return httpx.Response(200, json={"data": {"viewer": {"zones": [zone]}}, "errors": None})

    @staticmethod
    def _groups(events: list[dict[str, Any]], field: str, limit: int) -> list[dict[str, Any]]:
        counts = Counter(e[field] for e in events)
        return [
            {"count": count, "dimensions": {field: value}}
            for value, count in counts.most_common(limit)
        ]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def fake() -> FakeCloudflare:
    return FakeCloudflare()


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> WafSettings:
    """Settings isolated from the developer's environment and config files."""
    for var in ("WAFCTL_API_TOKEN", "CLOUDFLARE_API_TOKEN", "WAFCTL_CONFIG"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return WafSettings.from_cli(start=tmp_path)


@pytest.fixture
def client_factory(
    fake: FakeCloudflare, settings: WafSettings
) -> Callable[[str], CloudflareClient]:
    """Client factory whose clients talk to ``fake`` instead of the network."""

    def factory(credential: str) -> CloudflareClient:
        return CloudflareClient.from_settings(credential, settings, transport=fake.transport())

    return factory


@pytest.fixture
async def client(
    client_factory: Callable[[str], CloudflareClient],
) -> AsyncIterator[CloudflareClient]:
    c = client_factory(VALID_TOKEN)
    try:
        yield c
    finally:
        await c.aclose()


@pytest.fixture
def identity() -> Identity:
    return Identity(id=USER_ID, email="ops@example.com", credential=SecretStr(VALID_TOKEN))


@pytest.fixture
async def session(
    identity: Identity, client_factory: Callable[[str], CloudflareClient]
) -> AsyncIterator[Session]:
    s = Session(identity, client_factory)
    try:
        yield s
    finally:
        await s.aclose()


@pytest.fixture
async def sessions(
    settings: WafSettings, client_factory: Callable[[str], CloudflareClient]
) -> AsyncIterator[SessionManager]:
    manager = SessionManager(settings, client_factory=client_factory)
    try:
        yield manager
    finally:
        await manager.aclose()
