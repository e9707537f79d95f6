"""Tests for credential extraction and identity validation."""

from __future__ import annotations

import pytest

from tests.conftest import USER_ID, VALID_TOKEN, FakeCloudflare
from wafctl.exceptions import AuthenticationError
from wafctl.services.identity import ClientFactory, IdentityValidator, extract_credential


class TestExtractCredential:
    def test_header_wins_over_fallback(self) -> None:
        assert extract_credential("Bearer from-header", "from-env") == "from-header"

    def test_fallback_without_header(self) -> None:
        assert extract_credential(None, "from-env") == "from-env"

    def test_fallback_with_bearer_prefix(self) -> None:
        assert extract_credential(None, "Bearer from-env") == "from-env"

    def test_non_bearer_header_falls_back(self) -> None:
        assert extract_credential("Basic dXNlcjpwYXNz", "from-env") == "from-env"

    def test_empty_bearer_falls_back(self) -> None:
        assert extract_credential("Bearer ", "from-env") == "from-env"

    def test_nothing(self) -> None:
        assert extract_credential(None, None) is None
        assert extract_credential("", "") is None


class TestIdentityValidator:
    async def test_valid_token(self, client_factory: ClientFactory) -> None:
        identity = await IdentityValidator(client_factory).validate(VALID_TOKEN)
        assert identity.id == USER_ID
        assert identity.email == "ops@example.com"
        assert identity.credential.get_secret_value() == VALID_TOKEN

    async def test_rejected_token(self, client_factory: ClientFactory) -> None:
        with pytest.raises(AuthenticationError) as exc_info:
            await IdentityValidator(client_factory).validate("revoked-token")
        assert exc_info.value.code == "AUTHENTICATION_FAILED"
        assert exc_info.value.message.startswith("Invalid Cloudflare API token: ")
        assert "revoked-token" not in exc_info.value.message

    async def test_empty_token(self, client_factory: ClientFactory) -> None:
        with pytest.raises(AuthenticationError):
            await IdentityValidator(client_factory).validate("")

    async def test_calls_user_endpoint_once(
        self,
        client_factory: ClientFactory,
        fake: FakeCloudflare,
    ) -> None:
        await IdentityValidator(client_factory).validate(VALID_TOKEN)
        assert len(fake.calls("GET", "/user")) == 1
