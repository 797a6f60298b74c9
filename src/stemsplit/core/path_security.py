"""
Path security validation utilities for StemSplit.

Archive entries from the backend are written into the session directory;
these checks keep them from escaping it (directory traversal, absolute
names, symlink tricks).
"""

from pathlib import Path
from typing import Optional


def is_path_within(file_path: Path, root: Path) -> bool:
    """Pure function - validates path resolves to a location under root.

    Args:
        file_path: The file path to validate
        root: Allowed root directory

    Returns:
        True if path is within root, False otherwise
    """
    try:
        file_path.resolve().relative_to(root.resolve())
        return True
    except ValueError:
        # relative_to raises ValueError if path is not a subpath
        return False
    except (OSError, RuntimeError):
        # Path.resolve() can raise OSError for invalid paths or RuntimeError for recursion
        return False


def safe_join(root: Path, entry_name: str) -> Optional[Path]:
    """Join an archive entry name onto root, or None if it would escape.

    Backslash separators are treated like forward slashes.
    """
    parts = [p for p in entry_name.replace("\\", "/").split("/") if p not in ("", ".")]
    if not parts or any(p == ".." for p in parts):
        return None

    candidate = root.joinpath(*parts)
    if not is_path_within(candidate, root):
        return None
    return candidate
