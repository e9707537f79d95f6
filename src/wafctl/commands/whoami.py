"""whoami — validate the configured API token and show its identity."""

from __future__ import annotations

import asyncio

import click

from wafctl.commands._base import WafCommand
from wafctl.commands._context import AppContext
from wafctl.exceptions import AuthenticationError, AuthenticationRequired
from wafctl.services.identity import IdentityValidator, extract_credential
from wafctl.services.result import ServiceResult


async def whoami_impl(app: AppContext) -> ServiceResult:
    credential = extract_credential(None, app.settings.fallback_token)
    if credential is None:
        exc = AuthenticationRequired()
        return ServiceResult.failure("whoami", exc.code, exc.message)
    try:
        identity = await IdentityValidator(app.client_factory).validate(credential)
    except AuthenticationError as exc:
        return ServiceResult.failure("whoami", exc.code, exc.message)
    return ServiceResult.success("whoami", {"id": identity.id, "email": identity.email})


@click.command(
    cls=WafCommand,
    needs_token=True,
    examples="""\
  CLOUDFLARE_API_TOKEN=... wafctl whoami
  wafctl --json whoami""",
)
@click.pass_obj
def whoami(app: AppContext) -> None:
    """Validate the configured Cloudflare API token."""
    app.emit(asyncio.run(whoami_impl(app)))
