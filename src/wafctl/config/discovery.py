"""Locate ``wafctl.toml``.

``WAFCTL_CONFIG`` names the file outright. Otherwise the nearest
``wafctl.toml`` in the start directory or any of its parents wins, so a
checkout can pin MCP transport and API endpoints for everyone working in it.
"""

from __future__ import annotations

import os
from pathlib import Path

CONFIG_FILENAME = "wafctl.toml"
CONFIG_ENV_VAR = "WAFCTL_CONFIG"


def find_config(start: Path | None = None) -> Path | None:
    """Return the config file that applies to *start* (default: cwd), if any.

    A ``WAFCTL_CONFIG`` that points nowhere disables discovery: the result
    is None even when a ``wafctl.toml`` sits in the tree.
    """
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        path = Path(override)
        return path if path.is_file() else None

    here = (start or Path.cwd()).resolve()
    for directory in (here, *here.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None
