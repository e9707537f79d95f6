"""WafCommand — click Command with ``--examples`` and token-aware help.

``--examples`` prints usage examples and exits, which keeps ``--help``
short. Commands that talk to Cloudflare pass ``needs_token=True`` and
their help ends with where the token is read from.
"""

from __future__ import annotations

from typing import Any

import click

TOKEN_EPILOG = (
    "Reads the Cloudflare API token from CLOUDFLARE_API_TOKEN (or WAFCTL_API_TOKEN)."
)


class WafCommand(click.Command):
    def __init__(
        self,
        *args: Any,
        examples: str | None = None,
        needs_token: bool = False,
        **kwargs: Any,
    ) -> None:
        if needs_token and not kwargs.get("epilog"):
            kwargs["epilog"] = TOKEN_EPILOG
        super().__init__(*args, **kwargs)
        self.examples = examples
        self.needs_token = needs_token
        if examples:
            self.params.append(
                click.Option(
                    ["--examples"],
                    is_flag=True,
                    expose_value=False,
                    is_eager=True,
                    callback=self._print_examples,
                    help="Show usage examples and exit.",
                )
            )

    def _print_examples(self, ctx: click.Context, _param: click.Parameter, value: bool) -> None:
        if not value or ctx.resilient_parsing:
            return
        click.echo(f"Examples for '{ctx.command_path}':\n")
        click.echo(self.examples)
        ctx.exit(0)
