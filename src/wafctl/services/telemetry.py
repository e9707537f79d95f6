"""Request tracing for gateway operations.

A trace is a tree of :class:`Span` objects rooted at one operation
(``op.<name>``). Every upstream Cloudflare call made while the operation
runs hangs a child span off that root, annotated with the HTTP method,
path, and status. The finished tree lands in ``ServiceResult.meta`` under
``"telemetry"``, which ``--verbose`` renders as a timing tree.

Tracing is off unless enabled. When off, :func:`traced` and
:func:`trace_span` cost one ContextVar lookup per call.
"""

from __future__ import annotations

import functools
import time
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, ParamSpec, TypeVar

import structlog

from wafctl.services.result import ServiceResult

log = structlog.get_logger("wafctl.telemetry")

_tracing: ContextVar[bool] = ContextVar("wafctl_tracing", default=False)
_current_span: ContextVar[Span | None] = ContextVar("wafctl_current_span", default=None)


@dataclass
class Span:
    """One timed step of an operation: the operation itself or an API call."""

    name: str
    annotations: dict[str, Any] = field(default_factory=dict)
    children: list[Span] = field(default_factory=list)
    start_time: float = field(default_factory=time.perf_counter)
    end_time: float | None = None

    @property
    def duration_ms(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time) * 1000

    def end(self) -> None:
        if self.end_time is None:
            self.end_time = time.perf_counter()

    def annotate(self, key: str, value: Any) -> None:
        self.annotations[key] = value

    def descendants(self) -> Iterator[Span]:
        for child in self.children:
            yield child
            yield from child.descendants()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "duration_ms": round(self.duration_ms, 2)}
        if self.annotations:
            data["annotations"] = dict(self.annotations)
        if self.children:
            data["children"] = [child.to_dict() for child in self.children]
        return data


@contextmanager
def trace_span(name: str, **annotations: Any) -> Iterator[Span | None]:
    """Open a child span under the active operation.

    Yields None when tracing is off or no operation span is active, so
    callers guard annotation with ``if span is not None``.
    """
    parent = _current_span.get() if _tracing.get() else None
    if parent is None:
        yield None
        return

    child = Span(name=name, annotations=annotations)
    parent.children.append(child)
    token = _current_span.set(child)
    try:
        yield child
    finally:
        child.end()
        _current_span.reset(token)


_P = ParamSpec("_P")
_R = TypeVar("_R")


def traced(
    func: Callable[_P, Awaitable[_R]], *, name: str | None = None
) -> Callable[_P, Awaitable[_R]]:
    """Run *func* as the root span of a trace.

    A ServiceResult return value gets the span tree merged into its
    ``meta``. Log events emitted inside carry ``op=<name>``.
    """
    span_name = name or func.__qualname__

    @functools.wraps(func)
    async def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> _R:
        if not _tracing.get():
            return await func(*args, **kwargs)

        root = Span(name=span_name)
        token = _current_span.set(root)
        ok = False
        try:
            with structlog.contextvars.bound_contextvars(op=span_name):
                result = await func(*args, **kwargs)
            ok = not isinstance(result, ServiceResult) or result.ok
        finally:
            root.end()
            _current_span.reset(token)
            log.debug(
                "trace.finished",
                span_name=span_name,
                duration_ms=round(root.duration_ms, 2),
                upstream_calls=sum(1 for _ in root.descendants()),
                ok=ok,
            )

        if isinstance(result, ServiceResult):
            meta = {**(result.meta or {}), "telemetry": root.to_dict()}
            return result.model_copy(update={"meta": meta})  # type: ignore[return-value]
        return result

    return wrapper


def enable_telemetry() -> None:
    """Turn tracing on for the current context (``--verbose``)."""
    _tracing.set(True)


def disable_telemetry() -> None:
    _tracing.set(False)


def get_current_span() -> Span | None:
    """The innermost active span, or None when tracing is off."""
    if not _tracing.get():
        return None
    return _current_span.get()
