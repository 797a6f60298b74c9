"""
Cross-cutting utilities for StemSplit.

Contains:
- parsers: Command parsing
"""

from .parsers import parse_command, split_args

__all__ = ["parse_command", "split_args"]
