"""Core infrastructure layer - no business logic dependencies.

This module provides foundation-level services:
- Configuration management (TOML + .env)
- Key-value persistence (SQLite)
- Backend HTTP client (httpx)
- Console management (Rich)

Clean architecture principle: The core layer has no dependencies on
domain or application layers.
"""

# Configuration
from .config import (
    Config,
    load_config,
    get_config_dir,
    get_config_path,
    get_data_dir,
    create_default_config,
    ensure_directories,
)

# Storage
from .storage import (
    KeyValueStore,
    SqliteKeyValueStore,
    MemoryKeyValueStore,
    get_database_path,
)

# Identity and backend
from .identity import IdentityProvider, StaticIdentity, UserSession
from .api import ApiError, BackendClient, NotAuthenticatedError, UploadResult

# Console
from .console import get_console, safe_print, set_console

__all__ = [
    # Config
    "Config",
    "load_config",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "create_default_config",
    "ensure_directories",
    # Storage
    "KeyValueStore",
    "SqliteKeyValueStore",
    "MemoryKeyValueStore",
    "get_database_path",
    # Identity and backend
    "IdentityProvider",
    "StaticIdentity",
    "UserSession",
    "ApiError",
    "BackendClient",
    "NotAuthenticatedError",
    "UploadResult",
    # Console
    "get_console",
    "safe_print",
    "set_console",
]
