"""OperationRegistry — declared operations and the single error boundary.

Each :class:`Operation` pairs a name and description with an input
contract, a handler, and a declared side effect. :meth:`invoke` is the
only path from an MCP tool call to a handler:

  1. VALIDATE — ``contract.model_validate(arguments)``; a violation
     returns a VALIDATION_ERROR result and nothing else runs
  2. HANDLE   — ``await handler(session, params)``
  3. CONVERT  — any exception becomes a structured failure whose
     message has been through the sanitizer

Handlers never see raw arguments and never build failure results.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import pydantic
import structlog

from wafctl.domain.sanitize import sanitize
from wafctl.exceptions import PartialCreateError, WafError
from wafctl.services.result import ServiceResult
from wafctl.services.session import Session
from wafctl.services.telemetry import traced

log = structlog.get_logger(__name__)

Handler = Callable[[Session, Any], Awaitable[ServiceResult]]


class SideEffect(StrEnum):
    """What invoking an operation does to provider state."""

    READ = "read"
    WRITE = "write"
    DESTRUCTIVE = "destructive"


@dataclass(frozen=True)
class Operation:
    name: str
    description: str
    contract: type[pydantic.BaseModel]
    handler: Handler
    side_effect: SideEffect = SideEffect.READ
    failure_prefix: str = "Operation failed"

    @property
    def read_only(self) -> bool:
        return self.side_effect is SideEffect.READ

    def input_schema(self) -> dict[str, Any]:
        return self.contract.model_json_schema(by_alias=True)

    def argument_schemas(self) -> dict[str, dict[str, Any]]:
        """Per-argument JSON schemas keyed by wire name, ``$defs`` inlined."""
        schema = self.input_schema()
        defs = schema.get("$defs", {})
        return {
            name: _inline_refs(prop, defs)
            for name, prop in schema.get("properties", {}).items()
        }

    def describe(self) -> dict[str, Any]:
        """Catalog entry for this operation."""
        return {
            "name": self.name,
            "description": self.description,
            "side_effect": str(self.side_effect),
            "input_schema": self.input_schema(),
        }


def _inline_refs(node: Any, defs: dict[str, Any]) -> Any:
    """Replace local ``#/$defs/...`` pointers with the definitions they name."""
    if isinstance(node, list):
        return [_inline_refs(item, defs) for item in node]
    if not isinstance(node, dict):
        return node
    ref = node.get("$ref")
    if isinstance(ref, str) and ref.startswith("#/$defs/"):
        target = _inline_refs(defs[ref.removeprefix("#/$defs/")], defs)
        rest = {k: _inline_refs(v, defs) for k, v in node.items() if k != "$ref"}
        return {**target, **rest}
    return {k: _inline_refs(v, defs) for k, v in node.items()}


def _describe_validation(exc: pydantic.ValidationError) -> str:
    """Field locations and messages only; input values are never echoed."""
    parts = []
    for error in exc.errors(include_url=False, include_input=False):
        location = ".".join(str(part) for part in error["loc"]) or "input"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


def _failure_detail(exc: WafError) -> dict[str, Any]:
    if isinstance(exc, PartialCreateError):
        return {"ruleset_id": exc.ruleset_id}
    return {}


class OperationRegistry:
    """Name-indexed set of operations with one invocation path."""

    def __init__(self) -> None:
        self._operations: dict[str, Operation] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._operations

    def __iter__(self) -> Iterator[Operation]:
        return iter(self._operations.values())

    def __len__(self) -> int:
        return len(self._operations)

    def names(self) -> list[str]:
        return list(self._operations)

    def get(self, name: str) -> Operation:
        """Look up an operation. Raises KeyError if unknown."""
        return self._operations[name]

    def register(self, operation: Operation) -> Operation:
        if operation.name in self._operations:
            msg = f"Operation already registered: {operation.name}"
            raise ValueError(msg)
        self._operations[operation.name] = operation
        return operation

    def operation(
        self,
        name: str,
        *,
        description: str,
        contract: type[pydantic.BaseModel],
        side_effect: SideEffect = SideEffect.READ,
        failure_prefix: str = "Operation failed",
    ) -> Callable[[Handler], Handler]:
        """Decorator form of :meth:`register`. Returns the handler unchanged."""

        def decorator(handler: Handler) -> Handler:
            self.register(
                Operation(
                    name=name,
                    description=description,
                    contract=contract,
                    handler=handler,
                    side_effect=side_effect,
                    failure_prefix=failure_prefix,
                )
            )
            return handler

        return decorator

    def catalog(self) -> list[dict[str, Any]]:
        return [op.describe() for op in self._operations.values()]

    async def invoke(
        self,
        name: str,
        session: Session,
        arguments: dict[str, Any] | None = None,
    ) -> ServiceResult:
        """Validate, run, and convert. Always returns a ServiceResult."""
        operation = self._operations.get(name)
        if operation is None:
            return ServiceResult.failure(
                name, "UNKNOWN_OPERATION", f"Unknown operation: {sanitize(name)}"
            )
        run = traced(self._run, name=f"op.{operation.name}")
        return await run(operation, session, arguments or {})

    async def _run(
        self,
        operation: Operation,
        session: Session,
        arguments: dict[str, Any],
    ) -> ServiceResult:
        try:
            params = operation.contract.model_validate(arguments)
        except pydantic.ValidationError as exc:
            log.info("operation.rejected", op=operation.name, errors=exc.error_count())
            return ServiceResult.failure(
                operation.name,
                "VALIDATION_ERROR",
                f"Invalid input: {sanitize(_describe_validation(exc))}",
            )

        try:
            return await operation.handler(session, params)
        except WafError as exc:
            log.info("operation.failed", op=operation.name, code=exc.code)
            return ServiceResult.failure(
                operation.name,
                exc.code,
                f"{operation.failure_prefix}: {sanitize(exc.message)}",
                **_failure_detail(exc),
            )
        except Exception as exc:
            log.error("operation.crashed", op=operation.name, error_type=type(exc).__name__)
            detail = sanitize(str(exc)) or type(exc).__name__
            return ServiceResult.failure(
                operation.name,
                "INTERNAL_ERROR",
                f"{operation.failure_prefix}: {detail}",
            )
