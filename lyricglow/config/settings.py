"""
Configuration management for LyricGlow

This module handles loading, validation, and management of application settings
from YAML files and environment variables. It provides a centralized configuration
system shared by the cache, the network layer and every data provider.

The configuration is organized into logical sections using dataclasses:
- Cache settings (expiry window, storage root)
- Network settings (timeouts, reachability probe)
- Provider settings (LRCLIB lyrics, TheAudioDB, Spotify)
- Polling, logging and security settings

Sensitive or deployment-specific values (Spotify client id, cache location,
expiry window) can be supplied through environment variables or a .env file,
while everything else lives in YAML.
"""

import os
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, asdict
from dotenv import load_dotenv

from ..exceptions import ConfigError

# Load environment variables from .env file if present
load_dotenv()

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


@dataclass
class CacheConfig:
    """
    Offline-first cache configuration

    expiry_hours is the staleness window: entries older than this are
    refreshed when the network is reachable and kept when it is not.
    """
    expiry_hours: int = 168  # 7 days
    directory: str = "~/.lyricglow/cache"
    clear_expired_on_start: bool = True


@dataclass
class NetworkConfig:
    """
    Network and HTTP configuration settings

    Controls request timeouts and the lightweight reachability probe used to
    decide whether stale cache entries should be refreshed.
    """
    user_agent: str = "LyricGlow/1.0"
    request_timeout: float = 10.0
    probe_url: str = "https://www.google.com"
    probe_timeout: float = 3.0
    probe_cooldown: float = 60.0


@dataclass
class LyricsConfig:
    """LRCLIB synced lyrics provider settings"""
    enabled: bool = True
    base_url: str = "https://lrclib.net/api"


@dataclass
class AudioDBConfig:
    """
    TheAudioDB artist metadata provider settings

    The default api_key is TheAudioDB's public test key. Requests are spaced
    by min_request_interval seconds to stay inside the free tier limits.
    """
    enabled: bool = True
    base_url: str = "https://www.theaudiodb.com"
    api_key: str = "523532"
    min_request_interval: float = 0.5
    bio_summary_length: int = 300


@dataclass
class SpotifyConfig:
    """
    Spotify Web API configuration

    Uses the PKCE flow, so only a client id is needed. The client id should
    come from the SPOTIFY_CLIENT_ID environment variable.
    """
    client_id: str = ""
    redirect_url: str = "musicdisplay://callback"
    scope: str = "user-read-private user-read-email"
    market: str = "US"
    albums_limit: int = 4
    top_tracks_limit: int = 5


@dataclass
class PollingConfig:
    """
    Media player polling configuration

    source_command is a shell command printing the current track as JSON
    (an empty object when nothing is playing).
    """
    interval: float = 3.0
    source_command: str = ""


@dataclass
class LoggingConfig:
    """
    Logging configuration and output settings

    Controls application logging behavior including log levels, file output,
    rotation, and console formatting.
    """
    level: str = "INFO"
    file: str = ""
    max_size: str = "10MB"
    backup_count: int = 3
    console_output: bool = True
    colored_output: bool = True


@dataclass
class SecurityConfig:
    """
    Security and storage configuration

    Controls where the configuration directory and the Spotify token live.
    """
    config_directory: str = "~/.lyricglow/"
    token_storage_path: str = "~/.lyricglow/spotify_token.json"


class Settings:
    """
    Main settings class that manages all configuration

    Loads settings from YAML files, then applies environment variable
    overrides, and provides a unified interface for accessing configuration
    throughout the application.
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize settings from config file or environment variables

        Args:
            config_path: Path to custom config file, if None uses default locations
        """
        self.config_path = config_path
        self.config_dir = Path.home() / ".lyricglow"
        self.loaded_from: Optional[Path] = None

        # Initialize all configuration objects with default values
        self.cache = CacheConfig()
        self.network = NetworkConfig()
        self.lyrics = LyricsConfig()
        self.audiodb = AudioDBConfig()
        self.spotify = SpotifyConfig()
        self.polling = PollingConfig()
        self.logging = LoggingConfig()
        self.security = SecurityConfig()

        # Load configuration from various sources in order of precedence
        self._load_config()
        self._load_environment_variables()

    def _sections(self) -> Dict[str, Any]:
        return {
            'cache': self.cache,
            'network': self.network,
            'lyrics': self.lyrics,
            'audiodb': self.audiodb,
            'spotify': self.spotify,
            'polling': self.polling,
            'logging': self.logging,
            'security': self.security,
        }

    def _load_config(self) -> None:
        """
        Load configuration from YAML file

        Searches for configuration files in multiple locations in order of
        precedence. The first file found will be used.

        Raises:
            ConfigError: If an explicitly given config file is missing or unreadable
        """
        if self.config_path:
            path = Path(self.config_path).expanduser()
            if not path.exists():
                raise ConfigError("Config file not found", {"file_path": str(path)})
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    config_data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigError("Invalid config file", {"file_path": str(path), "error": str(e)}) from e
            self.loaded_from = path
            self._apply_config(self._as_mapping(config_data))
            return

        config_paths = [
            self.config_dir / "config.yaml",
            Path("config/config.yaml"),
            Path("config.yaml")
        ]

        config_data = {}
        for path in config_paths:
            if path.exists():
                try:
                    with open(path, 'r', encoding='utf-8') as f:
                        config_data = yaml.safe_load(f) or {}
                    self.loaded_from = Path(path)
                    break
                except (OSError, yaml.YAMLError) as e:
                    logger.warning(f"Failed to load config from {path}: {e}")

        self._apply_config(self._as_mapping(config_data))

    def _as_mapping(self, config_data: Any) -> Dict[str, Any]:
        if not isinstance(config_data, dict):
            logger.warning(f"Ignoring config file {self.loaded_from}: top level is not a mapping")
            return {}
        return config_data

    def _apply_config(self, config_data: Dict[str, Any]) -> None:
        """
        Apply configuration data to dataclass instances

        Only attributes that exist on the section dataclass are updated;
        unknown keys and unknown sections are ignored.

        Args:
            config_data: Dictionary containing configuration sections
        """
        config_mapping = self._sections()

        for section_name, section_data in config_data.items():
            if section_name in config_mapping and isinstance(section_data, dict):
                config_obj = config_mapping[section_name]
                for key, value in section_data.items():
                    if hasattr(config_obj, key):
                        setattr(config_obj, key, value)

    def _load_environment_variables(self) -> None:
        """
        Load deployment-specific configuration from environment variables

        Environment variables take precedence over file-based configuration.
        CACHE_DURATION_HOURS must be an integer; anything else is ignored.
        """
        expiry = os.getenv('CACHE_DURATION_HOURS')
        if expiry:
            try:
                self.cache.expiry_hours = int(expiry)
            except ValueError:
                logger.warning(f"Ignoring non-integer CACHE_DURATION_HOURS={expiry!r}")

        env_mappings = {
            'LYRICGLOW_CACHE_DIR': lambda v: setattr(self.cache, 'directory', v),
            'SPOTIFY_CLIENT_ID': lambda v: setattr(self.spotify, 'client_id', v),
            'SPOTIFY_REDIRECT_URL': lambda v: setattr(self.spotify, 'redirect_url', v),
            'LYRICGLOW_LOG_LEVEL': lambda v: setattr(self.logging, 'level', v),
        }

        for env_var, setter in env_mappings.items():
            value = os.getenv(env_var)
            if value:
                setter(value)

    def get_cache_directory(self) -> Path:
        """Get the expanded cache root path"""
        return Path(self.cache.directory).expanduser()

    def get_config_directory(self) -> Path:
        """Get the expanded config directory path"""
        return Path(self.security.config_directory).expanduser()

    def get_token_storage_path(self) -> Path:
        """Get the expanded Spotify token storage path"""
        return Path(self.security.token_storage_path).expanduser()

    def get_cache_expiry_ms(self) -> int:
        """
        Get the cache expiry window in milliseconds

        Cache timestamps are epoch milliseconds, so the window is converted
        once here rather than at every comparison.
        """
        return int(self.cache.expiry_hours * 60 * 60 * 1000)

    def save_config(self, path: Optional[str] = None) -> Path:
        """
        Save current configuration to file

        The Spotify client id is blanked so the file can be shared safely.

        Args:
            path: Custom path to save config, defaults to user config directory

        Returns:
            Path the configuration was written to
        """
        target = Path(path) if path else self.get_config_directory() / "config.yaml"

        config_data = {name: asdict(section) for name, section in self._sections().items()}
        config_data['spotify']['client_id'] = ""

        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f, default_flow_style=False, indent=2)
        return target

    def validate(self) -> bool:
        """
        Validate current configuration

        Returns:
            True if configuration is valid, False otherwise
        """
        errors = []

        if not isinstance(self.cache.expiry_hours, (int, float)) or self.cache.expiry_hours <= 0:
            errors.append(f"Invalid cache expiry: {self.cache.expiry_hours}")

        if self.network.request_timeout <= 0:
            errors.append(f"Invalid request timeout: {self.network.request_timeout}")

        if self.network.probe_timeout <= 0:
            errors.append(f"Invalid probe timeout: {self.network.probe_timeout}")

        if self.polling.interval <= 0:
            errors.append(f"Invalid polling interval: {self.polling.interval}")

        if str(self.logging.level).upper() not in VALID_LOG_LEVELS:
            errors.append(f"Invalid log level: {self.logging.level}")

        if errors:
            logger.error("Configuration validation errors:")
            for error in errors:
                logger.error(f"  - {error}")
            return False

        return True

    def __str__(self) -> str:
        sections = [
            f"Cache: {self.cache.directory} ({self.cache.expiry_hours}h)",
            f"Timeout: {self.network.request_timeout}s",
            f"Lyrics: {'enabled' if self.lyrics.enabled else 'disabled'}",
            f"AudioDB: {'enabled' if self.audiodb.enabled else 'disabled'}",
        ]
        return f"Settings({', '.join(sections)})"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings instance

    The instance is created on first access and shared afterwards.

    Returns:
        The global Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings(config_path: Optional[str] = None) -> Settings:
    """
    Reload settings from configuration files

    Args:
        config_path: Optional path to specific config file

    Returns:
        New Settings instance with reloaded configuration
    """
    global _settings
    _settings = Settings(config_path)
    return _settings
