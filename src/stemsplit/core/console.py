"""Shared Rich console for the StemSplit shell.

Track titles and stem filenames are user data and often contain square
brackets ("Song [Live].mp3"), so lines are printed with markup and
highlighting off; colour comes only from the style argument.
"""

from rich.console import Console

_console: Console | None = None


def get_console() -> Console:
    """Return the process-wide console, created on first use."""
    global _console
    if _console is None:
        _console = Console(highlight=False)
    return _console


def set_console(console: Console | None) -> None:
    """Swap the shared console; None recreates the default on next use."""
    global _console
    _console = console


def safe_print(message: str, style: str | None = None) -> None:
    """Print a user-facing line. The message is never parsed as markup."""
    get_console().print(message, style=style, markup=False)
