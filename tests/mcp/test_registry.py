"""Tests for OperationRegistry: validation, dispatch, and the error boundary."""

from __future__ import annotations

from typing import Any

import pytest

from tests.conftest import ZONE_ID
from wafctl.domain.ids import RuleAction
from wafctl.exceptions import ApiError, PartialCreateError, ValidationError
from wafctl.mcp.contracts import CreateCustomRuleInput, UpdateCustomRuleInput, ZoneInput
from wafctl.mcp.registry import Operation, OperationRegistry, SideEffect
from wafctl.services.identity import ClientFactory
from wafctl.services.result import ServiceResult
from wafctl.services.session import Session
from wafctl.services.telemetry import disable_telemetry, enable_telemetry


class Recorder:
    """Handler that records calls and returns or raises on demand."""

    def __init__(self, raises: Exception | None = None) -> None:
        self.calls: list[Any] = []
        self.raises = raises

    async def __call__(self, session: Session, params: ZoneInput) -> ServiceResult:
        self.calls.append(params)
        if self.raises is not None:
            raise self.raises
        return ServiceResult.success("inspect_zone", {"zone": params.zone_id})


def _registry(handler: Recorder, **kwargs: Any) -> OperationRegistry:
    registry = OperationRegistry()
    registry.register(
        Operation(
            name="inspect_zone",
            description="Inspect a zone",
            contract=ZoneInput,
            handler=handler,
            failure_prefix="Failed to inspect",
            **kwargs,
        )
    )
    return registry


class TestRegistration:
    def test_lookup(self) -> None:
        registry = _registry(Recorder())
        assert "inspect_zone" in registry
        assert len(registry) == 1
        assert registry.names() == ["inspect_zone"]
        assert registry.get("inspect_zone").description == "Inspect a zone"

    def test_unknown_lookup_raises(self) -> None:
        with pytest.raises(KeyError):
            OperationRegistry().get("nope")

    def test_duplicate_rejected(self) -> None:
        registry = _registry(Recorder())
        with pytest.raises(ValueError, match="already registered"):
            registry.register(registry.get("inspect_zone"))

    def test_decorator_returns_handler(self) -> None:
        registry = OperationRegistry()
        handler = Recorder()
        decorated = registry.operation(
            "inspect_zone", description="d", contract=ZoneInput, side_effect=SideEffect.WRITE
        )(handler)
        assert decorated is handler
        assert registry.get("inspect_zone").side_effect is SideEffect.WRITE
        assert not registry.get("inspect_zone").read_only


class TestCatalog:
    def test_describe(self) -> None:
        entry = _registry(Recorder(), side_effect=SideEffect.DESTRUCTIVE).catalog()[0]
        assert entry["name"] == "inspect_zone"
        assert entry["side_effect"] == "destructive"
        schema = entry["input_schema"]
        assert schema["required"] == ["zoneId"]
        assert "pattern" in schema["properties"]["zoneId"]

    def test_argument_schemas_inline_definitions(self) -> None:
        registry = OperationRegistry()
        registry.operation(
            "create_rule", description="d", contract=CreateCustomRuleInput
        )(Recorder())
        arguments = registry.get("create_rule").argument_schemas()
        assert list(arguments) == ["zoneId", "description", "expression", "action", "enabled"]
        assert arguments["action"]["enum"] == [a.value for a in RuleAction]
        assert arguments["action"]["description"] == "Action to take when the rule matches."
        assert "$ref" not in arguments["action"]

    def test_argument_schemas_inline_inside_any_of(self) -> None:
        registry = OperationRegistry()
        registry.operation(
            "update_rule", description="d", contract=UpdateCustomRuleInput
        )(Recorder())
        action = registry.get("update_rule").argument_schemas()["action"]
        assert {"type": "null"} in action["anyOf"]
        enums = [branch["enum"] for branch in action["anyOf"] if "enum" in branch]
        assert enums == [[a.value for a in RuleAction]]


class TestInvoke:
    async def test_success(self, session: Session) -> None:
        handler = Recorder()
        result = await _registry(handler).invoke("inspect_zone", session, {"zoneId": ZONE_ID})
        assert result.ok
        assert result.data == {"zone": ZONE_ID}
        assert handler.calls[0].zone_id == ZONE_ID

    async def test_unknown_operation(self, session: Session) -> None:
        result = await OperationRegistry().invoke("nope", session, {})
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "UNKNOWN_OPERATION"

    @pytest.mark.parametrize(
        "arguments",
        [
            {},
            {"zoneId": "not-hex"},
            {"zoneId": ZONE_ID, "extra": 1},
            {"zoneId": 42},
        ],
    )
    async def test_invalid_input_never_reaches_handler(
        self, session: Session, arguments: dict[str, Any]
    ) -> None:
        handler = Recorder()
        result = await _registry(handler).invoke("inspect_zone", session, arguments)
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "VALIDATION_ERROR"
        assert result.error.message.startswith("Invalid input: ")
        assert handler.calls == []

    async def test_validation_message_does_not_echo_input(self, session: Session) -> None:
        result = await _registry(Recorder()).invoke(
            "inspect_zone", session, {"zoneId": "sk-live-secret-value"}
        )
        assert result.error is not None
        assert "sk-live-secret-value" not in result.error.message
        assert "zoneId" in result.error.message

    async def test_waf_error_is_prefixed_and_sanitized(self, session: Session) -> None:
        error = ApiError(f"zone {ZONE_ID} denied for ops@example.com", status_code=403)
        handler = Recorder(error)
        result = await _registry(handler).invoke("inspect_zone", session, {"zoneId": ZONE_ID})
        assert result.error is not None
        assert result.error.code == "API_ERROR"
        assert result.error.message.startswith("Failed to inspect: ")
        assert ZONE_ID not in result.error.message
        assert "ops@example.com" not in result.error.message

    async def test_validation_error_from_handler(self, session: Session) -> None:
        handler = Recorder(ValidationError("Nothing to update"))
        result = await _registry(handler).invoke("inspect_zone", session, {"zoneId": ZONE_ID})
        assert result.error is not None
        assert result.error.code == "VALIDATION_ERROR"

    async def test_partial_create_carries_ruleset_id(self, session: Session) -> None:
        cause = ApiError("filter parsing error", status_code=400)
        handler = Recorder(PartialCreateError("half done", ruleset_id="rs-1", cause=cause))
        result = await _registry(handler).invoke("inspect_zone", session, {"zoneId": ZONE_ID})
        assert result.error is not None
        assert result.error.code == "PARTIAL_CREATE"
        assert result.error.detail == {"ruleset_id": "rs-1"}

    async def test_unexpected_exception_becomes_internal_error(self, session: Session) -> None:
        handler = Recorder(RuntimeError("Bearer abc123secret leaked"))
        result = await _registry(handler).invoke("inspect_zone", session, {"zoneId": ZONE_ID})
        assert result.error is not None
        assert result.error.code == "INTERNAL_ERROR"
        assert "abc123secret" not in result.error.message

    async def test_unauthenticated_session(self, client_factory: ClientFactory) -> None:
        async def needs_client(session: Session, params: ZoneInput) -> ServiceResult:
            await session.client.get_zone(params.zone_id)
            return ServiceResult.success("inspect_zone")

        registry = OperationRegistry()
        registry.operation("inspect_zone", description="d", contract=ZoneInput)(needs_client)
        anonymous = Session(None, client_factory)
        result = await registry.invoke("inspect_zone", anonymous, {"zoneId": ZONE_ID})
        assert result.error is not None
        assert result.error.code == "AUTHENTICATION_REQUIRED"

    async def test_telemetry_span_named_after_operation(self, session: Session) -> None:
        enable_telemetry()
        try:
            registry = _registry(Recorder())
            result = await registry.invoke("inspect_zone", session, {"zoneId": ZONE_ID})
        finally:
            disable_telemetry()
        assert result.meta is not None
        assert result.meta["telemetry"]["name"] == "op.inspect_zone"

    async def test_upstream_calls_appear_in_trace(self, session: Session) -> None:
        async def fetch_zone(session: Session, params: ZoneInput) -> ServiceResult:
            await session.client.get_zone(params.zone_id)
            return ServiceResult.success("inspect_zone")

        registry = OperationRegistry()
        registry.operation("inspect_zone", description="d", contract=ZoneInput)(fetch_zone)
        enable_telemetry()
        try:
            result = await registry.invoke("inspect_zone", session, {"zoneId": ZONE_ID})
        finally:
            disable_telemetry()
        assert result.meta is not None
        (call,) = result.meta["telemetry"]["children"]
        assert call["name"] == "cloudflare.get"
        assert call["annotations"] == {"method": "GET", "status": 200}
