"""Exception hierarchy for wafctl.

Components raise the most specific kind. The operation registry is the
only place that converts these into structured failure results; every
``code`` below is what the assistant sees in ``error.code``.
"""

from __future__ import annotations

from typing import Any


class WafError(Exception):
    """Base exception for all wafctl errors.

    Attributes:
        message: Human-readable error description, already safe to surface.
        details: Additional structured context (never credentials).
    """

    code = "WAF_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(WafError):
    """Input contract violation: field shape, range, or enum membership.

    Always raised before any side effect.
    """

    code = "VALIDATION_ERROR"


class AuthenticationError(WafError):
    """Credential missing, or rejected by the identity endpoint."""

    code = "AUTHENTICATION_FAILED"


class AuthenticationRequired(AuthenticationError):
    """Operation needs an identity but the session has none."""

    code = "AUTHENTICATION_REQUIRED"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "Authentication required: provide a Cloudflare API token via the "
            "Authorization header or CLOUDFLARE_API_TOKEN."
        )


class ApiError(WafError):
    """Provider returned a failed envelope or a GraphQL error list.

    The message has already been through the sanitizer.

    Attributes:
        status_code: HTTP status of the failed response, if any.
        error_codes: Numeric provider error codes from the envelope.
    """

    code = "API_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_codes: list[int] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.error_codes = error_codes or []
        merged = {"status_code": status_code, "error_codes": self.error_codes}
        merged.update(details or {})
        super().__init__(message, merged)

    @property
    def not_found(self) -> bool:
        """Structured not-found signal (HTTP 404)."""
        return self.status_code == 404


class PartialCreateError(ApiError):
    """A ruleset was created but appending the rule to it failed.

    The newly created (empty) ruleset is left in place and reported
    through ``ruleset_id``.
    """

    code = "PARTIAL_CREATE"

    def __init__(self, message: str, *, ruleset_id: str, cause: WafError) -> None:
        self.ruleset_id = ruleset_id
        super().__init__(
            message,
            status_code=getattr(cause, "status_code", None),
            error_codes=getattr(cause, "error_codes", None),
            details={"ruleset_id": ruleset_id},
        )


class ConsistencyError(WafError):
    """Provider response contradicts the requested mutation."""

    code = "CONSISTENCY_ERROR"


class TransportError(WafError):
    """Network failure or unparseable response."""

    code = "TRANSPORT_ERROR"
