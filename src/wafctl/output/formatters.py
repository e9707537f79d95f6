"""Rich/JSON output helpers.

The CLI renders ServiceResult for humans (Rich) or machines (--json).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from wafctl.output.renderers import render_result

if TYPE_CHECKING:
    from wafctl.services.result import ServiceResult


def format_result(
    result: ServiceResult, *, json_output: bool = False, verbose: bool = False
) -> str:
    """Format a ServiceResult for display.

    Args:
        result: The service result to format.
        json_output: If True, return JSON; otherwise Rich-rendered text.
        verbose: Include the meta block (telemetry) in human output.
    """
    if json_output:
        return result.model_dump_json(indent=2, exclude_none=True)
    return render_result(result, verbose=verbose)
