"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a Rich Console (backed by StringIO). Renderers
are dispatched by ``result.op`` in :func:`render_result`; unknown ops
fall through to a generic key-value renderer.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from wafctl.output.console import create_console, get_output, style_for_side_effect

if TYPE_CHECKING:
    from rich.console import Console

    from wafctl.services.result import ServiceResult


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich."""
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


# ── Helpers ───────────────────────────────────────────────────────────


def _status_line(console: Console, result: ServiceResult) -> None:
    console.print(Text("OK", style="waf.ok"), Text(f"  {result.op}", style="waf.op"), sep="")


def _field(console: Console, key: str, value: Any) -> None:
    k = Text(f"  {key}: ", style="waf.key")
    style = "waf.id" if key == "id" or key.endswith("Id") else ""
    if isinstance(value, (dict, list)):
        value = json.dumps(value, separators=(",", ":"))
    console.print(k, Text(str(value), style=style), sep="")


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Print the meta block, including the telemetry span tree."""
    if not result.meta:
        return
    console.print()
    console.print(Text("  meta:", style="dim"))
    for key, value in result.meta.items():
        if key == "telemetry":
            _render_telemetry_tree(console, value, indent=4)
        else:
            console.print(f"    {key}: {value}", markup=False)


def _render_telemetry_tree(console: Console, span: dict[str, Any], indent: int = 4) -> None:
    prefix = " " * indent
    duration = span.get("duration_ms", 0.0)
    if duration > 1000:
        style = "bold red"
    elif duration > 100:
        style = "yellow"
    else:
        style = "dim"

    line = f"{prefix}[{style}]{duration:>8.2f}ms[/{style}]  {span.get('name', '?')}"
    annotations = span.get("annotations") or {}
    if annotations:
        line += "  (" + ", ".join(f"{k}={v}" for k, v in annotations.items()) + ")"
    console.print(line)

    for child in span.get("children", []):
        _render_telemetry_tree(console, child, indent=indent + 4)


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    code = f" [{err.code}]" if err else ""
    console.print(
        Text("ERROR", style="waf.error"),
        Text(f"  {result.op}{code}", style="waf.op"),
        Text(" — "),
        Text(msg),
        sep="",
    )
    if verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for key, value in err.detail.items():
            console.print(f"    {key}: {value}", markup=False)


# ── Op renderers ──────────────────────────────────────────────────────


def _render_identity(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    for key in ("id", "email"):
        if key in result.data:
            _field(console, key, result.data[key])
    if verbose:
        _render_meta(console, result)


def _render_operations(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Operation", style="waf.op", no_wrap=True)
    table.add_column("Effect", no_wrap=True)
    table.add_column("Description")
    for op in result.data.get("operations", []):
        effect = op.get("side_effect", "")
        table.add_row(
            op.get("name", ""),
            Text(effect, style=style_for_side_effect(effect)),
            op.get("description", ""),
        )
    console.print(table)


def _render_message(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Results that carry a human message (writes, suggestions) print it verbatim."""
    _status_line(console, result)
    message = result.data.get("message")
    if message:
        console.print(message, markup=False)
    for key, value in result.data.items():
        if key not in ("message", "report"):
            _field(console, key, value)
    if verbose:
        _render_meta(console, result)


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        _field(console, key, value)
    if verbose:
        _render_meta(console, result)


_OP_RENDERERS: dict[str, Any] = {
    "whoami": _render_identity,
    "operations": _render_operations,
    "create_custom_rule": _render_message,
    "update_custom_rule": _render_message,
    "delete_custom_rule": _render_message,
    "toggle_rule": _render_message,
    "suggest_rule_from_events": _render_message,
}
