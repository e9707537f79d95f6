"""Sessions — one isolated execution context per authenticated identity.

A :class:`Session` holds exactly one :class:`Identity` (or none) and a
lazily-built gateway client bound to that identity's credential. Nothing
mutable is shared between sessions.

:class:`SessionManager` plays the host's part: on each inbound request
it resolves the credential, validates it once, and hands back the
session for that identity. Failed validation yields the anonymous
session, whose operations raise :class:`AuthenticationRequired`.
"""

from __future__ import annotations

import contextlib
import functools
import hashlib
import time
from collections import OrderedDict
from collections.abc import AsyncIterator, Callable
from typing import TYPE_CHECKING

import structlog

from wafctl.domain.types import Identity
from wafctl.exceptions import AuthenticationError, AuthenticationRequired
from wafctl.infrastructure.client import CloudflareClient
from wafctl.services.analytics import AnalyticsAggregator
from wafctl.services.identity import ClientFactory, IdentityValidator, extract_credential
from wafctl.services.rules import RuleManager

if TYPE_CHECKING:
    from wafctl.config.settings import WafSettings

log = structlog.get_logger(__name__)


class Session:
    """Per-identity context handed to every operation handler."""

    def __init__(self, identity: Identity | None, client_factory: ClientFactory) -> None:
        self._identity = identity
        self._client_factory = client_factory
        self._client: CloudflareClient | None = None

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def authenticated(self) -> bool:
        return self._identity is not None

    @property
    def client(self) -> CloudflareClient:
        """Gateway client for this identity, created on first use."""
        if self._identity is None:
            raise AuthenticationRequired()
        if self._client is None:
            self._client = self._client_factory(self._identity.credential.get_secret_value())
        return self._client

    @property
    def rules(self) -> RuleManager:
        return RuleManager(self.client)

    @property
    def analytics(self) -> AnalyticsAggregator:
        return AnalyticsAggregator(self.client)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _fingerprint(credential: str) -> str:
    return hashlib.sha256(credential.encode("utf-8")).hexdigest()


class SessionManager:
    """Resolves inbound credentials to isolated sessions.

    Authenticated sessions are keyed by a SHA-256 digest of the credential,
    so each credential is validated once and the raw token is never used
    as a key. The cache is bounded: past ``max_sessions`` the least
    recently used session is closed, and sessions idle longer than
    ``idle_seconds`` are closed on the next :meth:`resolve`. An evicted
    credential is simply validated again on its next request.
    """

    def __init__(
        self,
        settings: WafSettings,
        *,
        client_factory: ClientFactory | None = None,
        max_sessions: int | None = None,
        idle_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fallback_token = settings.fallback_token
        self._client_factory: ClientFactory = client_factory or functools.partial(
            CloudflareClient.from_settings, settings=settings
        )
        self._validator = IdentityValidator(self._client_factory)
        self._max_sessions = max_sessions or settings.mcp.max_sessions
        self._idle_seconds = (
            idle_seconds if idle_seconds is not None else settings.mcp.session_idle_seconds
        )
        self._clock = clock
        self._sessions: OrderedDict[str, Session] = OrderedDict()
        self._last_used: dict[str, float] = {}
        self._anonymous = Session(None, self._client_factory)
        self._holders = 0

    def __len__(self) -> int:
        return len(self._sessions)

    async def resolve(self, authorization: str | None = None) -> Session:
        """Session for the request's ``Authorization`` header (or the env token)."""
        await self._close_idle()
        credential = extract_credential(authorization, self._fallback_token)
        if credential is None:
            return self._anonymous

        key = _fingerprint(credential)
        session = self._sessions.get(key)
        if session is not None:
            self._touch(key)
            return session

        try:
            identity = await self._validator.validate(credential)
        except AuthenticationError as exc:
            log.warning("session.unauthenticated", reason=exc.message)
            return self._anonymous

        session = self._sessions.setdefault(key, Session(identity, self._client_factory))
        self._touch(key)
        log.info("session.established", active_sessions=len(self._sessions))
        await self._enforce_limit()
        return session

    async def end(self, authorization: str | None) -> bool:
        """Destroy the session for a credential. Returns False if none existed."""
        credential = extract_credential(authorization, self._fallback_token)
        if credential is None:
            return False
        return await self._drop(_fingerprint(credential), reason="ended")

    async def aclose(self) -> None:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        self._last_used.clear()
        for session in sessions:
            await session.aclose()

    @contextlib.asynccontextmanager
    async def serving(self) -> AsyncIterator[SessionManager]:
        """Hold the manager open while a server connection runs.

        Connections may overlap; the last one to leave closes every session.
        """
        self._holders += 1
        try:
            yield self
        finally:
            self._holders -= 1
            if self._holders == 0:
                await self.aclose()

    def _touch(self, key: str) -> None:
        self._sessions.move_to_end(key)
        self._last_used[key] = self._clock()

    async def _drop(self, key: str, *, reason: str) -> bool:
        session = self._sessions.pop(key, None)
        self._last_used.pop(key, None)
        if session is None:
            return False
        await session.aclose()
        log.info("session.closed", reason=reason, active_sessions=len(self._sessions))
        return True

    async def _enforce_limit(self) -> None:
        while len(self._sessions) > self._max_sessions:
            oldest = next(iter(self._sessions))
            await self._drop(oldest, reason="evicted")

    async def _close_idle(self) -> None:
        if self._idle_seconds is None or not self._sessions:
            return
        cutoff = self._clock() - self._idle_seconds
        # Recency order: the first entry is always the least recently used.
        while self._sessions:
            oldest = next(iter(self._sessions))
            if self._last_used.get(oldest, cutoff) > cutoff:
                break
            await self._drop(oldest, reason="idle")
