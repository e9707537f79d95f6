"""Credential intake and identity validation.

A credential is exchanged for an :class:`Identity` exactly once per
session by calling the provider's ``/user`` endpoint. The raw credential
is never logged; it travels only into the gateway client.
"""

from __future__ import annotations

from collections.abc import Callable

import structlog
from pydantic import SecretStr

from wafctl.domain.sanitize import sanitize
from wafctl.domain.types import Identity
from wafctl.exceptions import AuthenticationError, WafError
from wafctl.infrastructure.client import CloudflareClient

log = structlog.get_logger(__name__)

ClientFactory = Callable[[str], CloudflareClient]

_BEARER_PREFIX = "Bearer "


def extract_credential(authorization: str | None, fallback: str | None = None) -> str | None:
    """Pick the credential for a request.

    An ``Authorization: Bearer <token>`` header wins. Otherwise the
    environment-sourced *fallback* is used, with or without its own
    ``Bearer `` prefix.

    Examples:
        >>> extract_credential("Bearer abc", "env")
        'abc'
        >>> extract_credential(None, "Bearer env")
        'env'
        >>> extract_credential("Basic xyz", None) is None
        True
    """
    if authorization and authorization.startswith(_BEARER_PREFIX):
        token = authorization[len(_BEARER_PREFIX) :].strip()
        if token:
            return token
    if fallback:
        token = fallback[len(_BEARER_PREFIX) :] if fallback.startswith(_BEARER_PREFIX) else fallback
        return token.strip() or None
    return None


class IdentityValidator:
    """Exchanges a bearer credential for an identity record."""

    def __init__(self, client_factory: ClientFactory) -> None:
        self._client_factory = client_factory

    async def validate(self, credential: str) -> Identity:
        """Validate *credential* against ``/user``.

        Raises:
            AuthenticationError: credential empty or rejected, or the
                lookup itself failed (network, malformed response).
        """
        if not credential:
            raise AuthenticationError("No Cloudflare API token supplied")
        try:
            async with self._client_factory(credential) as client:
                user = await client.get_user_info()
        except WafError as exc:
            log.warning("identity.rejected", error_code=exc.code)
            msg = f"Invalid Cloudflare API token: {sanitize(exc.message)}"
            raise AuthenticationError(msg) from exc

        log.debug("identity.validated")
        return Identity(id=user.id, email=user.email, credential=SecretStr(credential))
