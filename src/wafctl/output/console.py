"""Rich Console factory and theme for wafctl output.

Creates Console instances that render to a StringIO buffer, preserving
the ``format_result() -> str`` contract. In non-TTY environments
(tests, pipes) Rich automatically disables color codes.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

WAF_THEME = Theme(
    {
        "waf.ok": "bold green",
        "waf.error": "bold red",
        "waf.warning": "bold yellow",
        "waf.op": "bold cyan",
        "waf.key": "dim",
        "waf.id": "bold blue",
        "waf.read": "green",
        "waf.write": "yellow",
        "waf.destructive": "bold red",
    }
)

_SIDE_EFFECT_STYLES: dict[str, str] = {
    "read": "waf.read",
    "write": "waf.write",
    "destructive": "waf.destructive",
}


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer."""
    return Console(
        file=StringIO(),
        theme=WAF_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_side_effect(side_effect: str) -> str:
    return _SIDE_EFFECT_STYLES.get(side_effect, "")
