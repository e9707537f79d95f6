"""Identifier patterns, ruleset phases, and rule actions.

Cloudflare zone, account, ruleset, and rule IDs share one shape: 32
lowercase hex characters. Anything else is rejected before it can reach
a request path.
"""

from __future__ import annotations

import re
from enum import StrEnum

from wafctl.exceptions import ValidationError

CLOUDFLARE_ID_PATTERN = r"^[a-f0-9]{32}$"
CLOUDFLARE_ID_RE: re.Pattern[str] = re.compile(CLOUDFLARE_ID_PATTERN)

CUSTOM_PHASE = "http_request_firewall_custom"
MANAGED_PHASE = "http_request_firewall_managed"

CUSTOM_RULESET_NAME = "Custom Firewall Rules"


class RulesetPhase(StrEnum):
    """Request-processing phases a ruleset can be bound to."""

    FIREWALL_CUSTOM = CUSTOM_PHASE
    FIREWALL_MANAGED = MANAGED_PHASE
    RATELIMIT = "http_ratelimit"
    SBFM = "http_request_sbfm"
    TRANSFORM = "http_request_transform"
    ORIGIN = "http_request_origin"
    CACHE_SETTINGS = "http_request_cache_settings"
    CONFIG_SETTINGS = "http_config_settings"
    DYNAMIC_REDIRECT = "http_request_dynamic_redirect"
    REDIRECT = "http_request_redirect"
    RESPONSE_HEADERS_TRANSFORM = "http_response_headers_transform"
    RESPONSE_FIREWALL_MANAGED = "http_response_firewall_managed"
    LOG_CUSTOM_FIELDS = "http_log_custom_fields"


KNOWN_PHASES: frozenset[str] = frozenset(p.value for p in RulesetPhase)


class RuleAction(StrEnum):
    """Actions a custom WAF rule may take when its expression matches."""

    BLOCK = "block"
    CHALLENGE = "challenge"
    JS_CHALLENGE = "js_challenge"
    MANAGED_CHALLENGE = "managed_challenge"
    LOG = "log"
    SKIP = "skip"


class SuggestedAction(StrEnum):
    """Subset of actions offered by rule suggestions."""

    BLOCK = "block"
    CHALLENGE = "challenge"
    LOG = "log"


ACTION_DESCRIPTIONS: dict[str, str] = {
    RuleAction.BLOCK: "Immediately block the request.",
    RuleAction.CHALLENGE: "Present an interactive challenge (CAPTCHA).",
    RuleAction.JS_CHALLENGE: "Present a JavaScript challenge that verifies the browser.",
    RuleAction.MANAGED_CHALLENGE: "Let Cloudflare pick the challenge type.",
    RuleAction.LOG: "Record the match without blocking.",
    RuleAction.SKIP: "Skip the remaining rules (allow-lists).",
}


def is_cloudflare_id(value: str) -> bool:
    """Check whether *value* has the 32-character lowercase hex ID shape."""
    return CLOUDFLARE_ID_RE.fullmatch(value) is not None


def is_known_phase(phase: str) -> bool:
    return phase in KNOWN_PHASES


def require_id(value: str, kind: str) -> str:
    """Return *value* unchanged, or raise ValidationError before any request is built."""
    if not isinstance(value, str) or not is_cloudflare_id(value):
        msg = f"Invalid {kind} ID format (expected 32-character hex string)"
        raise ValidationError(msg, {"field": kind})
    return value


def require_phase(phase: str) -> str:
    if not is_known_phase(phase):
        raise ValidationError("Unknown ruleset phase", {"field": "phase"})
    return phase
