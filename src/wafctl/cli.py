"""Root CLI group for wafctl with global flags and command registration."""

from __future__ import annotations

import click

from wafctl import __version__
from wafctl.commands import register_commands
from wafctl.commands._context import AppContext
from wafctl.config.settings import WafSettings


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="wafctl")
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging and timing spans.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option("-c", "--config", "config_path", default=None, help="Override config file path.")
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    verbose: bool,
    log_json: bool,
    config_path: str | None,
) -> None:
    """wafctl — Cloudflare WAF gateway for AI assistants."""
    ctx.ensure_object(dict)
    settings = WafSettings.from_cli(
        config_path=config_path,
        json_output=json_output or None,
        verbose=verbose or None,
        log_json=log_json or None,
    )
    ctx.obj = AppContext(settings)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)
