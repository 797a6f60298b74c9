"""
Configuration management for StemSplit
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

DEFAULT_API_BASE_URL = "http://localhost:8000"


@dataclass
class ApiConfig:
    """Configuration for the splitting backend."""

    base_url: str = DEFAULT_API_BASE_URL
    recaptcha_site_key: str = ""  # Empty = bot verification skipped
    timeout_seconds: float = 30.0
    transcribe_path: str = "/ws/transcribe"


@dataclass
class UploadConfig:
    """Configuration for upload validation."""

    max_file_size_mb: int = 10
    accepted_extensions: List[str] = field(default_factory=lambda: [".mp3"])
    default_stems: List[str] = field(
        default_factory=lambda: ["vocals", "drums", "bass", "other", "instrumental"]
    )

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


@dataclass
class PlayerConfig:
    """Configuration for stem playback channels."""

    mpv_path: str = "mpv"
    volume: int = 100
    socket_dir: Optional[str] = None  # Defaults to the system temp dir


@dataclass
class VoiceConfig:
    """Configuration for the voice command pipeline."""

    chunk_ms: int = 250
    inactivity_timeout_seconds: float = 10.0
    transcript_linger_seconds: float = 3.5
    sample_rate: int = 16000
    channels: int = 1


@dataclass
class StorageConfig:
    """Configuration for the durable library cache."""

    database_path: Optional[str] = None  # Default: ~/.local/share/stemsplit/stemsplit.db


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = (
        None  # Custom log file path (default: ~/.local/share/stemsplit/stemsplit.log)
    )
    max_file_size_mb: int = 10
    backup_count: int = 5
    console_output: bool = False


@dataclass
class NotificationsConfig:
    """Configuration for desktop notifications."""

    enabled: bool = False
    show_success: bool = True
    show_errors: bool = True


@dataclass
class IdentityConfig:
    """Static identity used by the shell (token issuance is external)."""

    user_id: str = ""
    auth_token: str = ""


@dataclass
class Config:
    """Main configuration object."""

    api: ApiConfig = field(default_factory=ApiConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    player: PlayerConfig = field(default_factory=PlayerConfig)
    voice: VoiceConfig = field(default_factory=VoiceConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    identity: IdentityConfig = field(default_factory=IdentityConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "stemsplit"
    return Path.home() / ".config" / "stemsplit"


def get_config_path() -> Path:
    """Get the configuration file path."""
    return get_config_dir() / "config.toml"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "stemsplit"
    return Path.home() / ".local" / "share" / "stemsplit"


def transcribe_url(api: ApiConfig) -> str:
    """Derive the voice streaming endpoint from the API origin.

    http://host -> ws://host, https://host -> wss://host.
    """
    base = api.base_url.rstrip("/")
    if base.startswith("http"):
        base = "ws" + base[len("http"):]
    return base + api.transcribe_path


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return f"""
# StemSplit Configuration

[api]
# Origin of the splitting backend
base_url = "{DEFAULT_API_BASE_URL}"

# Bot verification site key (leave empty to skip verification)
recaptcha_site_key = ""

# Request timeout in seconds
timeout_seconds = 30.0

[upload]
# Largest accepted upload in megabytes
max_file_size_mb = 10

# Stems requested when none are chosen explicitly
default_stems = ["vocals", "drums", "bass", "other", "instrumental"]

[player]
# mpv binary used for stem channels
mpv_path = "mpv"

# Channel volume (0-100)
volume = 100

[voice]
# Audio chunk length streamed to the transcription service
chunk_ms = 250

# Stop listening after this many seconds without a transcript
inactivity_timeout_seconds = 10.0

# How long a final transcript stays on screen
transcript_linger_seconds = 3.5

[logging]
# Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL
level = "INFO"

# Custom log file path (default: ~/.local/share/stemsplit/stemsplit.log)
# log_file = "~/stemsplit.log"

[notifications]
# Desktop notifications via notify-send
enabled = false
""".lstrip()


def _section(data: dict, name: str) -> dict:
    value = data.get(name, {})
    return value if isinstance(value, dict) else {}


def parse_config(toml_data: dict) -> Config:
    """Build a Config from parsed TOML, falling back to defaults per key."""
    config = Config()

    api_data = _section(toml_data, "api")
    config.api = ApiConfig(
        base_url=api_data.get("base_url", config.api.base_url),
        recaptcha_site_key=api_data.get(
            "recaptcha_site_key", config.api.recaptcha_site_key
        ),
        timeout_seconds=float(
            api_data.get("timeout_seconds", config.api.timeout_seconds)
        ),
        transcribe_path=api_data.get("transcribe_path", config.api.transcribe_path),
    )

    upload_data = _section(toml_data, "upload")
    config.upload = UploadConfig(
        max_file_size_mb=upload_data.get(
            "max_file_size_mb", config.upload.max_file_size_mb
        ),
        accepted_extensions=upload_data.get(
            "accepted_extensions", config.upload.accepted_extensions
        ),
        default_stems=upload_data.get("default_stems", config.upload.default_stems),
    )

    player_data = _section(toml_data, "player")
    config.player = PlayerConfig(
        mpv_path=player_data.get("mpv_path", config.player.mpv_path),
        volume=player_data.get("volume", config.player.volume),
        socket_dir=player_data.get("socket_dir"),
    )

    voice_data = _section(toml_data, "voice")
    config.voice = VoiceConfig(
        chunk_ms=voice_data.get("chunk_ms", config.voice.chunk_ms),
        inactivity_timeout_seconds=float(
            voice_data.get(
                "inactivity_timeout_seconds", config.voice.inactivity_timeout_seconds
            )
        ),
        transcript_linger_seconds=float(
            voice_data.get(
                "transcript_linger_seconds", config.voice.transcript_linger_seconds
            )
        ),
        sample_rate=voice_data.get("sample_rate", config.voice.sample_rate),
        channels=voice_data.get("channels", config.voice.channels),
    )

    storage_data = _section(toml_data, "storage")
    database_path = storage_data.get("database_path")
    if database_path:
        database_path = str(Path(database_path).expanduser())
    config.storage = StorageConfig(database_path=database_path)

    logging_data = _section(toml_data, "logging")
    log_file = logging_data.get("log_file")
    if log_file:
        log_file = str(Path(log_file).expanduser())
    config.logging = LoggingConfig(
        level=logging_data.get("level", config.logging.level).upper(),
        log_file=log_file,
        max_file_size_mb=logging_data.get(
            "max_file_size_mb", config.logging.max_file_size_mb
        ),
        backup_count=logging_data.get("backup_count", config.logging.backup_count),
        console_output=logging_data.get(
            "console_output", config.logging.console_output
        ),
    )

    notifications_data = _section(toml_data, "notifications")
    config.notifications = NotificationsConfig(
        enabled=notifications_data.get("enabled", config.notifications.enabled),
        show_success=notifications_data.get(
            "show_success", config.notifications.show_success
        ),
        show_errors=notifications_data.get(
            "show_errors", config.notifications.show_errors
        ),
    )

    identity_data = _section(toml_data, "identity")
    config.identity = IdentityConfig(
        user_id=identity_data.get("user_id", ""),
        auth_token=identity_data.get("auth_token", ""),
    )

    return config


def apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides.

    - STEMSPLIT_API_BASE_URL
    - STEMSPLIT_RECAPTCHA_SITE_KEY
    - STEMSPLIT_USER_ID / STEMSPLIT_AUTH_TOKEN
    """
    base_url = os.environ.get("STEMSPLIT_API_BASE_URL")
    if base_url:
        config.api.base_url = base_url

    site_key = os.environ.get("STEMSPLIT_RECAPTCHA_SITE_KEY")
    if site_key is not None:
        config.api.recaptcha_site_key = site_key

    user_id = os.environ.get("STEMSPLIT_USER_ID")
    if user_id:
        config.identity.user_id = user_id

    auth_token = os.environ.get("STEMSPLIT_AUTH_TOKEN")
    if auth_token:
        config.identity.auth_token = auth_token

    return config


def load_config() -> Config:
    """Load configuration from file or create default.

    Environment variables override TOML values (see apply_env_overrides).
    """
    # Load .env file from config directory if it exists
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = get_config_path()

    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_default_config())
        print(f"Created default configuration at: {config_path}")
        return apply_env_overrides(Config())

    try:
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)
        config = parse_config(toml_data)
    except (tomllib.TOMLDecodeError, OSError, ValueError, TypeError) as e:
        print(f"Error loading configuration: {e}")
        print("Using default configuration.")
        config = Config()

    return apply_env_overrides(config)


def ensure_directories() -> None:
    """Ensure all necessary directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_data_dir().mkdir(parents=True, exist_ok=True)
