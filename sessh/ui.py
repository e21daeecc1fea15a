"""
ui.py

Console output for sessh, built on Rich.
  - log_info, log_error, log_success for human-readable lines.
  - print_raw for text that must reach stdout verbatim (captured pane output).

Info and errors go to stderr so stdout stays clean for callers that
parse it.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.theme import Theme

# ---------- Console + Theme ----------

_THEME = Theme(
    {
        "ui.info": "cyan",
        "ui.success": "green bold",
        "ui.error": "red bold",
    }
)

console = Console(theme=_THEME, highlight=False)
err_console = Console(theme=_THEME, highlight=False, stderr=True)

# ---------- Global State ----------

VERBOSE = False


def set_verbose(verbose: bool) -> None:
    """Set global verbosity. If False, log_info is suppressed."""
    global VERBOSE
    VERBOSE = bool(verbose)


# ---------- Basic Logging ----------


def log_info(message: str) -> None:
    """Info is suppressed unless VERBOSE is True."""
    if VERBOSE:
        err_console.print(f"[ui.info]ℹ  {escape(message)}[/]", soft_wrap=True)


def log_error(message: str) -> None:
    err_console.print(f"[ui.error]❌ {escape(message)}[/]", soft_wrap=True)


def log_success(message: str) -> None:
    console.print(f"[ui.success]✅ {escape(message)}[/]", soft_wrap=True)


def print_raw(text: str) -> None:
    """Write text to stdout without markup, highlighting or wrapping."""
    console.out(text, highlight=False)
