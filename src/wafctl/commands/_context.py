"""AppContext — shared Click context for all commands.

Created once by the root CLI group and flows to all subcommands via
``@click.pass_obj``. Configures logging and telemetry, builds session
managers on demand, and centralizes result emission (stdout/stderr
routing + exit codes).
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING

import click

from wafctl.config.logging import configure_logging
from wafctl.infrastructure.client import CloudflareClient
from wafctl.output.formatters import format_result
from wafctl.services.telemetry import enable_telemetry

if TYPE_CHECKING:
    from wafctl.config.settings import WafSettings
    from wafctl.services.identity import ClientFactory
    from wafctl.services.result import ServiceResult
    from wafctl.services.session import SessionManager


class AppContext:
    """Shared context flowing through Click's command hierarchy.

    ``client_factory`` defaults to building a real gateway client from
    *settings*; tests inject one backed by an in-memory transport.
    """

    def __init__(self, settings: WafSettings, client_factory: ClientFactory | None = None) -> None:
        self.settings = settings
        self.client_factory: ClientFactory = client_factory or functools.partial(
            CloudflareClient.from_settings, settings=settings
        )

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)
        if settings.verbose:
            enable_telemetry()

    def session_manager(self) -> SessionManager:
        from wafctl.services.session import SessionManager

        return SessionManager(self.settings, client_factory=self.client_factory)

    def emit(self, result: ServiceResult) -> None:
        """Format and output a ServiceResult with correct exit semantics.

        * Success (``result.ok``): writes to stdout, returns normally.
          Warnings go to stderr so they don't pollute piped output.
        * Failure: writes to stderr, exits with code 1.
        """
        output = format_result(
            result, json_output=self.settings.json_output, verbose=self.settings.verbose
        )
        if result.ok:
            click.echo(output)
            if not self.settings.json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)
