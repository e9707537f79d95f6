"""WafSettings — one object for CLI flags, environment, and ``wafctl.toml``.

Sources, highest priority first:

  1. CLI flags (``--json``, ``--verbose``, ...) passed to :meth:`WafSettings.from_cli`
  2. ``WAFCTL_*`` environment variables, nested with ``__``
     (``WAFCTL_MCP__PORT=9000``); the token also answers to
     ``CLOUDFLARE_API_TOKEN``
  3. ``wafctl.toml``: ``[api]`` and ``[mcp]`` tables only
  4. Defaults in :mod:`wafctl.config.models`

The API token never comes from the TOML file. A config file that names one
is rejected rather than read, since config files get committed.
"""

from __future__ import annotations

import tomllib
from contextvars import ContextVar
from pathlib import Path
from typing import Any

import click
from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from wafctl.config.discovery import find_config
from wafctl.config.models import ApiConfig, McpConfig

_FORBIDDEN_TOML_KEYS = frozenset({"api_token", "token", "cloudflare_api_token"})

_active_toml: ContextVar[Path | None] = ContextVar("wafctl_active_toml", default=None)


def load_toml(path: Path) -> dict[str, Any]:
    """Parse *path*; malformed files and inline tokens are usage errors."""
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise click.ClickException(f"Invalid TOML in {path}: {exc}") from exc
    leaked = _FORBIDDEN_TOML_KEYS & {k.lower() for k in data}
    if leaked:
        raise click.ClickException(
            f"{path} sets {', '.join(sorted(leaked))}; provide the API token through "
            "CLOUDFLARE_API_TOKEN or the Authorization header instead"
        )
    return data


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Settings source backed by the ``wafctl.toml`` chosen in :meth:`WafSettings.from_cli`."""

    def __init__(self, settings_cls: type[BaseSettings], path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data = load_toml(path) if path is not None else {}

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        return self._data.get(field_name), field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        return dict(self._data)


class WafSettings(BaseSettings):
    """Settings for the wafctl CLI and MCP server.

    Attributes:
        config_path: The ``wafctl.toml`` that was read, or None.
        api_token: Credential for requests that carry no ``Authorization``
            header (the stdio transport, ``whoami``, ``call``).
    """

    model_config = {
        "frozen": True,
        "env_prefix": "WAFCTL_",
        "env_nested_delimiter": "__",
        "populate_by_name": True,
    }

    config_path: Path | None = None

    json_output: bool = False
    verbose: bool = False
    log_json: bool = False

    api_token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("WAFCTL_API_TOKEN", "CLOUDFLARE_API_TOKEN"),
    )

    api: ApiConfig = Field(default_factory=ApiConfig)
    mcp: McpConfig = Field(default_factory=McpConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, _active_toml.get()),
        )

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        start: Path | None = None,
        **cli_flags: Any,
    ) -> WafSettings:
        """Build settings for one CLI invocation.

        An explicit *config_path* must exist. Otherwise ``wafctl.toml`` is
        discovered from *start*, and having none is fine. Flags passed as
        None are dropped so the environment and TOML still apply.
        """
        if config_path:
            toml_path: Path | None = Path(config_path)
            if not toml_path.is_file():
                raise click.ClickException(f"Config file not found: {config_path}")
        else:
            toml_path = find_config(start)

        overrides = {k: v for k, v in cli_flags.items() if v is not None}
        token = _active_toml.set(toml_path)
        try:
            return cls(config_path=toml_path, **overrides)
        finally:
            _active_toml.reset(token)

    @property
    def fallback_token(self) -> str | None:
        if self.api_token is None:
            return None
        return self.api_token.get_secret_value()
