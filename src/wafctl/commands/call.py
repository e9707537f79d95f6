"""call — invoke one registered operation from the shell."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import click

from wafctl.commands._base import WafCommand
from wafctl.commands._context import AppContext
from wafctl.services.result import ServiceResult


def build_arguments(params_json: str | None, pairs: tuple[str, ...]) -> dict[str, Any]:
    """Merge ``--params`` JSON with ``-p key=value`` pairs (pairs win)."""
    arguments: dict[str, Any] = {}
    if params_json:
        try:
            loaded = json.loads(params_json)
        except json.JSONDecodeError as exc:
            raise click.BadParameter(f"not valid JSON: {exc.msg}", param_hint="--params") from exc
        if not isinstance(loaded, dict):
            raise click.BadParameter("must be a JSON object", param_hint="--params")
        arguments.update(loaded)
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got {pair!r}", param_hint="--param")
        arguments[key] = raw
    return arguments


async def call_impl(app: AppContext, name: str, arguments: dict[str, Any]) -> ServiceResult:
    from wafctl.mcp.tools import REGISTRY

    sessions = app.session_manager()
    try:
        session = await sessions.resolve()
        return await REGISTRY.invoke(name, session, arguments)
    finally:
        await sessions.aclose()


@click.command(
    cls=WafCommand,
    needs_token=True,
    examples="""\
  wafctl call list_zones
  wafctl call list_custom_rules -p zoneId=023e105f4ecef8ad9ca31a8372d0c353
  wafctl call get_security_events -p zoneId=023e105f4ecef8ad9ca31a8372d0c353 -p minutes=15
  wafctl call create_custom_rule --params '{"zoneId": "...", "description": "Block bad IP",
      "expression": "(ip.src eq 203.0.113.7)", "action": "block"}'""",
)
@click.argument("name")
@click.option("--params", "params_json", default=None, help="Arguments as a JSON object.")
@click.option(
    "-p",
    "--param",
    "pairs",
    multiple=True,
    help="One argument as key=value (repeatable).",
)
@click.pass_obj
def call(app: AppContext, name: str, params_json: str | None, pairs: tuple[str, ...]) -> None:
    """Invoke operation NAME with the configured API token."""
    arguments = build_arguments(params_json, pairs)
    app.emit(asyncio.run(call_impl(app, name, arguments)))
