"""Tests for structlog configuration."""

from __future__ import annotations

import json
import logging
from collections.abc import Generator

import pytest
import structlog

from wafctl.config.logging import configure_logging, scrub_credentials


@pytest.fixture(autouse=True)
def _restore_logging() -> Generator[None]:
    """Restore root logger state after each test."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    waf = logging.getLogger("wafctl")
    waf_level = waf.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    waf.setLevel(waf_level)


class TestConfigureLogging:
    def test_verbose_enables_debug(self) -> None:
        configure_logging(verbose=True, log_json=False)
        assert logging.getLogger("wafctl").level == logging.DEBUG
        assert logging.getLogger().level == logging.WARNING

    def test_non_verbose_sets_warning(self) -> None:
        configure_logging(verbose=False, log_json=False)
        assert logging.getLogger("wafctl").level == logging.WARNING

    def test_json_mode_output_goes_to_stderr(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=True, log_json=True)
        log = structlog.get_logger("wafctl.test")
        log.warning("session.unauthenticated", reason="Invalid token")
        captured = capfd.readouterr()
        assert captured.out == ""
        parsed = json.loads(captured.err.strip())
        assert parsed["event"] == "session.unauthenticated"
        assert parsed["reason"] == "Invalid token"
        assert parsed["level"] == "warning"
        assert parsed["logger"] == "wafctl.test"
        assert "timestamp" in parsed

    def test_http_client_debug_is_suppressed(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=True, log_json=True)
        logging.getLogger("httpx").info("HTTP Request: GET https://api.cloudflare.com/...")
        logging.getLogger("httpcore").debug("connect_tcp.started")
        assert capfd.readouterr().err == ""

    def test_idempotent_calls(self) -> None:
        """Multiple configure_logging calls don't stack handlers."""
        configure_logging(verbose=True, log_json=False)
        configure_logging(verbose=True, log_json=True)
        assert len(logging.getLogger().handlers) == 1

    def test_bearer_tokens_are_scrubbed(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=True, log_json=True)
        structlog.get_logger("wafctl.test").warning(
            "Bearer abc123secret rejected", header="Bearer abc123secret", zone="z1"
        )
        parsed = json.loads(capfd.readouterr().err.strip())
        assert parsed["event"] == "Bearer [REDACTED] rejected"
        assert parsed["header"] == "Bearer [REDACTED]"
        assert parsed["zone"] == "z1"

    def test_foreign_records_are_scrubbed(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=False, log_json=True)
        logging.getLogger("starlette").warning("auth header: Bearer abc123secret")
        parsed = json.loads(capfd.readouterr().err.strip())
        assert parsed["event"] == "auth header: Bearer [REDACTED]"


class TestScrubCredentials:
    def test_leaves_non_strings(self) -> None:
        event = {"event": "x", "status": 401, "tokens": ["Bearer abc"]}
        assert scrub_credentials(None, "info", event) == event
