"""CloudflareClient — authenticated REST + GraphQL gateway.

One instance owns exactly one credential, fixed at construction. Sessions
create one client per identity, which is what keeps concurrent users from
ever sharing credentials. There are no retries and no caches: every call
maps to a single HTTP request and every failure is raised once.

Failure contract:
  * provider envelope with ``success=false``  -> ApiError (sanitized)
  * GraphQL response with ``errors``           -> ApiError (sanitized)
  * network failure / non-JSON / bad shape     -> TransportError
  * malformed identifier or unknown phase      -> ValidationError (no request)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Self, TypeVar
from urllib.parse import quote

import httpx
import pydantic
import structlog

from wafctl.config.models import CLOUDFLARE_API_BASE, CLOUDFLARE_GRAPHQL_URL
from wafctl.domain.ids import require_id, require_phase
from wafctl.domain.sanitize import sanitize
from wafctl.domain.types import Account, Envelope, Ruleset, UserInfo, Zone
from wafctl.exceptions import ApiError, AuthenticationError, TransportError
from wafctl.services.telemetry import trace_span

if TYPE_CHECKING:
    from wafctl.config.settings import WafSettings

log = structlog.get_logger(__name__)

_M = TypeVar("_M", bound=pydantic.BaseModel)


def _segment(value: str) -> str:
    """Percent-encode one path segment, slashes included."""
    return quote(value, safe="")


def parse_record(model: type[_M], value: Any) -> _M:
    """Validate one upstream record; a malformed one is a TransportError."""
    try:
        return model.model_validate(value)
    except pydantic.ValidationError as exc:
        msg = f"Malformed {model.__name__} record from Cloudflare API"
        raise TransportError(msg) from exc


class CloudflareClient:
    """Async client for the Cloudflare v4 API and the GraphQL analytics API.

    Usage::

        async with CloudflareClient(token) as client:
            zones = await client.list_zones()
    """

    def __init__(
        self,
        credential: str,
        *,
        base_url: str = CLOUDFLARE_API_BASE,
        graphql_url: str = CLOUDFLARE_GRAPHQL_URL,
        timeout: float | None = None,
        user_agent: str = "wafctl",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not credential:
            raise AuthenticationError("No Cloudflare API token supplied")
        self._graphql_url = graphql_url
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {credential}",
                "Content-Type": "application/json",
                "User-Agent": user_agent,
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        credential: str,
        settings: WafSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> CloudflareClient:
        """Build a client from the ``[api]`` section of :class:`WafSettings`."""
        api = settings.api
        return cls(
            credential,
            base_url=api.base_url,
            graphql_url=api.graphql_url,
            timeout=api.timeout,
            user_agent=api.user_agent,
            transport=transport,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    @property
    def closed(self) -> bool:
        return self._http.is_closed

    # ------------------------------------------------------------------
    # Request primitives
    # ------------------------------------------------------------------

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        with trace_span(f"cloudflare.{method.lower()}", method=method) as span:
            try:
                response = await self._http.request(method, url, params=params, json=json)
            except httpx.HTTPError as exc:
                log.warning("cloudflare.transport_failed", method=method, error=type(exc).__name__)
                detail = sanitize(f"{type(exc).__name__}: {exc}")
                raise TransportError(f"Request to Cloudflare API failed: {detail}") from exc
            if span is not None:
                span.annotate("status", response.status_code)
        log.debug("cloudflare.response", method=method, status=response.status_code)
        return response

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            msg = f"Malformed response from Cloudflare API (HTTP {response.status_code})"
            raise TransportError(msg) from exc

    async def rest_call(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
    ) -> Envelope:
        """Perform one REST call and unwrap the response envelope."""
        response = await self._send(method, endpoint, params=params, json=json)
        payload = self._decode(response)

        if payload is None:
            if response.is_success:
                return Envelope(success=True)
            raise ApiError(
                f"Cloudflare API error: HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            envelope = Envelope.model_validate(payload)
        except pydantic.ValidationError as exc:
            msg = f"Unexpected response shape from Cloudflare API (HTTP {response.status_code})"
            raise TransportError(msg) from exc

        if not envelope.success:
            joined = ", ".join(e.message for e in envelope.errors if e.message)
            codes = [e.code for e in envelope.errors if e.code is not None]
            log.debug(
                "cloudflare.api_error",
                method=method,
                status=response.status_code,
                error_codes=codes,
            )
            raise ApiError(
                f"Cloudflare API error: {sanitize(joined or f'HTTP {response.status_code}')}",
                status_code=response.status_code,
                error_codes=codes,
            )
        return envelope

    async def graphql_call(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """POST a GraphQL query. Parameters travel only as *variables*."""
        response = await self._send(
            "POST", self._graphql_url, json={"query": query, "variables": variables}
        )
        payload = self._decode(response)
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            msg = f"Unexpected GraphQL response shape (HTTP {response.status_code})"
            raise TransportError(msg)

        errors = payload.get("errors") or []
        if errors:
            joined = ", ".join(
                str(e.get("message", "")) if isinstance(e, dict) else str(e) for e in errors
            )
            raise ApiError(f"GraphQL error: {sanitize(joined)}", status_code=response.status_code)
        if not response.is_success:
            raise ApiError(
                f"GraphQL error: HTTP {response.status_code}", status_code=response.status_code
            )
        return payload.get("data") or {}

    # ------------------------------------------------------------------
    # Accounts, users, zones
    # ------------------------------------------------------------------

    async def get_user_info(self) -> UserInfo:
        envelope = await self.rest_call("GET", "/user")
        return parse_record(UserInfo, envelope.result)

    async def list_accounts(self) -> list[Account]:
        envelope = await self.rest_call("GET", "/accounts")
        return [parse_record(Account, item) for item in envelope.result or []]

    async def list_zones(self, account_id: str | None = None) -> list[Zone]:
        params: dict[str, str] = {}
        if account_id:
            params["account.id"] = require_id(account_id, "account")
        envelope = await self.rest_call("GET", "/zones", params=params or None)
        return [parse_record(Zone, item) for item in envelope.result or []]

    async def get_zone(self, zone_id: str) -> Zone:
        path = f"/zones/{_segment(require_id(zone_id, 'zone'))}"
        envelope = await self.rest_call("GET", path)
        return parse_record(Zone, envelope.result)

    # ------------------------------------------------------------------
    # Zone rulesets
    # ------------------------------------------------------------------

    @staticmethod
    def _zone_rulesets(zone_id: str) -> str:
        return f"/zones/{_segment(require_id(zone_id, 'zone'))}/rulesets"

    async def list_rulesets(self, zone_id: str, phase: str | None = None) -> list[Ruleset]:
        params = {"phase": require_phase(phase)} if phase else None
        envelope = await self.rest_call("GET", self._zone_rulesets(zone_id), params=params)
        return [parse_record(Ruleset, item) for item in envelope.result or []]

    async def get_ruleset(self, zone_id: str, ruleset_id: str) -> Ruleset:
        path = f"{self._zone_rulesets(zone_id)}/{_segment(require_id(ruleset_id, 'ruleset'))}"
        envelope = await self.rest_call("GET", path)
        return parse_record(Ruleset, envelope.result)

    async def get_entry_point_ruleset(self, zone_id: str, phase: str) -> Ruleset:
        path = (
            f"{self._zone_rulesets(zone_id)}/phases/"
            f"{_segment(require_phase(phase))}/entrypoint"
        )
        envelope = await self.rest_call("GET", path)
        return parse_record(Ruleset, envelope.result)

    async def find_entry_point_ruleset(self, zone_id: str, phase: str) -> Ruleset | None:
        """Like :meth:`get_entry_point_ruleset` but None when the phase has none."""
        try:
            return await self.get_entry_point_ruleset(zone_id, phase)
        except ApiError as exc:
            if exc.not_found:
                return None
            raise

    async def create_ruleset(
        self,
        zone_id: str,
        *,
        phase: str,
        name: str,
        kind: str = "zone",
        rules: list[dict[str, Any]] | None = None,
    ) -> Ruleset:
        body = {"name": name, "kind": kind, "phase": require_phase(phase), "rules": rules or []}
        envelope = await self.rest_call("POST", self._zone_rulesets(zone_id), json=body)
        return parse_record(Ruleset, envelope.result)

    def _rules_path(self, zone_id: str, ruleset_id: str) -> str:
        return (
            f"{self._zone_rulesets(zone_id)}/{_segment(require_id(ruleset_id, 'ruleset'))}/rules"
        )

    async def add_rule(self, zone_id: str, ruleset_id: str, body: dict[str, Any]) -> Ruleset:
        envelope = await self.rest_call("POST", self._rules_path(zone_id, ruleset_id), json=body)
        return parse_record(Ruleset, envelope.result)

    async def update_rule(
        self, zone_id: str, ruleset_id: str, rule_id: str, body: dict[str, Any]
    ) -> Ruleset:
        path = f"{self._rules_path(zone_id, ruleset_id)}/{_segment(require_id(rule_id, 'rule'))}"
        envelope = await self.rest_call("PATCH", path, json=body)
        return parse_record(Ruleset, envelope.result)

    async def delete_rule(self, zone_id: str, ruleset_id: str, rule_id: str) -> Ruleset | None:
        path = f"{self._rules_path(zone_id, ruleset_id)}/{_segment(require_id(rule_id, 'rule'))}"
        envelope = await self.rest_call("DELETE", path)
        if envelope.result is None:
            return None
        return parse_record(Ruleset, envelope.result)

    # ------------------------------------------------------------------
    # Account rulesets
    # ------------------------------------------------------------------

    @staticmethod
    def _account_rulesets(account_id: str) -> str:
        return f"/accounts/{_segment(require_id(account_id, 'account'))}/rulesets"

    async def list_account_rulesets(
        self, account_id: str, phase: str | None = None
    ) -> list[Ruleset]:
        params = {"phase": require_phase(phase)} if phase else None
        envelope = await self.rest_call("GET", self._account_rulesets(account_id), params=params)
        return [parse_record(Ruleset, item) for item in envelope.result or []]

    async def get_account_ruleset(self, account_id: str, ruleset_id: str) -> Ruleset:
        path = f"{self._account_rulesets(account_id)}/{_segment(require_id(ruleset_id, 'ruleset'))}"
        envelope = await self.rest_call("GET", path)
        return parse_record(Ruleset, envelope.result)
