"""
Command parsing utilities.

Shell input is split like a POSIX shell so titles and paths can be quoted.
"""

import shlex
from typing import List, Tuple


def split_args(text: str) -> List[str]:
    """Split respecting quotes; unbalanced quotes fall back to whitespace.

    Example:
        'rename 2 "Live at Wembley"' -> ['rename', '2', 'Live at Wembley']
    """
    try:
        return shlex.split(text)
    except ValueError:
        # e.g. an apostrophe in "say don't stop"
        return text.split()


def parse_command(user_input: str) -> Tuple[str, List[str]]:
    """
    Parse user input into command and arguments.

    Returns:
        Tuple of (command, args) where command is lowercase
    """
    parts = split_args(user_input.strip())
    if not parts:
        return "", []
    return parts[0].lower(), parts[1:]


__all__ = ["split_args", "parse_command"]
