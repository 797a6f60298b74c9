"""
Unified output system using Loguru.
Dual output for user-facing messages: log file + console.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from .config import LoggingConfig, get_data_dir
from .console import safe_print

# When quiet, log() writes to the log file only (used by tests and scripted runs)
_quiet = False

_LEVEL_STYLES = {
    "debug": "cyan",
    "info": None,
    "success": "green",
    "warning": "yellow",
    "error": "red",
}


def get_log_file_path() -> Path:
    """Get the default path to the log file."""
    return get_data_dir() / "stemsplit.log"


def setup_loguru(
    log_file: Optional[Path] = None,
    level: str = "INFO",
    rotation_mb: int = 10,
    retention: int = 5,
    console_output: bool = False,
) -> None:
    """
    Configure loguru with a rotating file sink.

    Args:
        log_file: Path to log file (default: ~/.local/share/stemsplit/stemsplit.log)
        level: Minimum level for file logging (DEBUG, INFO, WARNING, ERROR)
        rotation_mb: Rotate the file once it reaches this size
        retention: Number of rotated files to keep
        console_output: Also emit log records on stderr
    """
    log_file = log_file or get_log_file_path()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    # Remove default handler
    logger.remove()

    logger.add(
        log_file,
        rotation=f"{rotation_mb} MB",
        retention=retention,
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}",
        enqueue=False,
    )

    if console_output:
        logger.add(sys.stderr, level=level, format="{level}: {message}")

    logger.info(f"Loguru initialized: {log_file} (level={level})")


def setup_from_config(logging_config: LoggingConfig) -> None:
    """Configure logging from the [logging] config section."""
    setup_loguru(
        Path(logging_config.log_file) if logging_config.log_file else None,
        level=logging_config.level,
        rotation_mb=logging_config.max_file_size_mb,
        retention=logging_config.backup_count,
        console_output=logging_config.console_output,
    )


def set_quiet(quiet: bool) -> None:
    """Suppress (or restore) console echo of log() messages."""
    global _quiet
    _quiet = quiet


def log(message: str, level: str = "info") -> None:
    """
    Unified logging: writes to the log file AND prints to the console.

    Use this instead of print() for user-facing messages that should also be logged.

    Args:
        message: User-facing message
        level: Log level (debug, info, success, warning, error)
    """
    log_func = getattr(logger, level, logger.info)
    log_func(message)

    if not _quiet and level != "debug":
        safe_print(message, style=_LEVEL_STYLES.get(level))
