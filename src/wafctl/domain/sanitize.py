"""Redaction of sensitive substrings from failure messages.

Every message that leaves the gateway on a failure path passes through
:func:`sanitize`. Patterns are applied in a fixed order and truncation
always runs last so redaction markers survive.
"""

from __future__ import annotations

import re

MAX_MESSAGE_LENGTH = 200
TRUNCATION_MARKER = "..."

_BEARER = re.compile(r"Bearer\s+[a-zA-Z0-9_\-]+", re.IGNORECASE)

_REDACTIONS: list[tuple[re.Pattern[str], str]] = [
    (_BEARER, "Bearer [REDACTED]"),
    (re.compile(r"[a-fA-F0-9]{32,}"), "[REDACTED_ID]"),
    (re.compile(r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}"), "[REDACTED_EMAIL]"),
    (re.compile(r"\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b"), "[REDACTED_IP]"),
]


def sanitize(message: str) -> str:
    """Redact tokens, IDs, emails and IPv4 addresses, then cap the length.

    Examples:
        >>> sanitize("Authorization failed for Bearer abc123")
        'Authorization failed for Bearer [REDACTED]'
        >>> sanitize("zone 023e105f4ecef8ad9ca31a8372d0c353 not found")
        'zone [REDACTED_ID] not found'
    """
    sanitized = str(message)
    for pattern, replacement in _REDACTIONS:
        sanitized = pattern.sub(replacement, sanitized)
    if len(sanitized) > MAX_MESSAGE_LENGTH:
        sanitized = sanitized[:MAX_MESSAGE_LENGTH] + TRUNCATION_MARKER
    return sanitized


def redact_credentials(text: str) -> str:
    """Replace bearer tokens only. Used on log events, which keep IDs."""
    return _BEARER.sub("Bearer [REDACTED]", text)
