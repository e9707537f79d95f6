"""structlog configuration for wafctl.

All log output goes to stderr: stdout belongs to the stdio MCP transport
and to command results. ``--log-json`` switches the console renderer for
JSON lines. Every event passes through :func:`scrub_credentials` before
rendering, so a bearer token that ends up in an exception string or a
header dump never reaches the log.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

from wafctl.domain.sanitize import redact_credentials

# Third-party loggers pinned at WARNING regardless of --verbose. httpx logs
# full request URLs at INFO.
QUIET_LOGGERS = ("httpx", "httpcore", "mcp", "uvicorn.access")


def scrub_credentials(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor: redact bearer tokens in string values."""
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = redact_credentials(value)
    return event_dict


def _renderer(log_json: bool) -> structlog.types.Processor:
    if log_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(*, verbose: bool = False, log_json: bool = False) -> None:
    """Route structlog and stdlib logging through one stderr handler.

    Args:
        verbose: ``wafctl.*`` loggers at DEBUG instead of WARNING.
        log_json: JSON lines instead of the console renderer.
    """
    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        scrub_credentials,
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_json),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.WARNING)

    logging.getLogger("wafctl").setLevel(logging.DEBUG if verbose else logging.WARNING)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
