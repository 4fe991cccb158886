"""Configuration management using XDG Base Directory Specification.

Settings are a handful of key/value pairs in an INI file. The session never
reads the file itself: it receives a PlayerSettings struct at construction
and publishes EventBus.SETTINGS_CHANGED when a setter changes it; the entry
point writes the struct back with PlayerSettings.save_to().
"""

import configparser
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from privateplayer.exceptions import ConfigurationError
from privateplayer.queue_manager import PlayMode

DEFAULT_POLL_INTERVAL_MS = 1000
MIN_POLL_INTERVAL_MS = 50


class Config:
    """
    Configuration manager using XDG Base Directory Specification.

    Follows Linux standards:
    - Config: ~/.config/privateplayer/ (or XDG_CONFIG_HOME)
    - Data: ~/.local/share/privateplayer/ (or XDG_DATA_HOME)
    """

    _instance: Optional['Config'] = None

    def __init__(self) -> None:
        """
        Initialize configuration manager.

        Sets up XDG Base Directory paths and loads or creates configuration.
        """
        self.config_home = Path(os.getenv('XDG_CONFIG_HOME', Path.home() / '.config'))
        self.data_home = Path(os.getenv('XDG_DATA_HOME', Path.home() / '.local' / 'share'))

        self.app_name = 'privateplayer'
        self.config_dir = self.config_home / self.app_name
        self.data_dir = self.data_home / self.app_name

        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        self.config_file = self.config_dir / 'config.ini'
        self.config = configparser.ConfigParser()

        self._load_config()

    @classmethod
    def get_instance(cls) -> 'Config':
        """Get the singleton config instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Forget the singleton so the next access re-reads the environment."""
        cls._instance = None

    def _load_config(self) -> None:
        """Load configuration from file or create defaults."""
        if self.config_file.exists():
            try:
                self.config.read(self.config_file)
            except configparser.Error as e:
                raise ConfigurationError(
                    f"Unreadable config file {self.config_file}: {e}"
                ) from e
        else:
            self._create_default_config()

    def _create_default_config(self) -> None:
        """Create default configuration with sensible defaults."""
        self.config['playback'] = {
            'play_mode': str(PlayMode.NONE.value),
            'stealth': 'false',
            'poll_interval_ms': str(DEFAULT_POLL_INTERVAL_MS),
        }

        # File names are hidden by default
        self.config['privacy'] = {
            'hide_names': 'true',
        }

        self.save()

    def save(self) -> None:
        """
        Save configuration to file.

        Writes current configuration state to the config file.
        """
        try:
            with open(self.config_file, 'w') as f:
                self.config.write(f)
        except OSError as e:
            from privateplayer.logging import get_logger
            logger = get_logger(__name__)
            logger.error("Failed to save config: %s", e, exc_info=True)

    def get(self, section: str, key: str, fallback: Optional[str] = None) -> Optional[str]:
        """Get a configuration value."""
        return self.config.get(section, key, fallback=fallback)

    def set(self, section: str, key: str, value: str, save: bool = True) -> None:
        """
        Set a configuration value.

        Args:
            section: Configuration section name
            key: Configuration key name
            value: Value to set
            save: Write the file immediately
        """
        if section not in self.config:
            self.config.add_section(section)
        self.config.set(section, key, value)
        if save:
            self.save()

    def get_bool(self, section: str, key: str, fallback: bool = False) -> bool:
        """Get a boolean configuration value."""
        try:
            return self.config.getboolean(section, key, fallback=fallback)
        except ValueError as e:
            raise ConfigurationError(f"[{section}] {key} is not a boolean") from e

    def get_int(self, section: str, key: str, fallback: int = 0) -> int:
        """Get an integer configuration value."""
        try:
            return self.config.getint(section, key, fallback=fallback)
        except ValueError as e:
            raise ConfigurationError(f"[{section}] {key} is not an integer") from e

    @property
    def log_dir(self) -> Path:
        """Get log directory."""
        log_dir = self.data_dir / 'logs'
        log_dir.mkdir(parents=True, exist_ok=True)
        return log_dir


@dataclass
class PlayerSettings:
    """Explicit settings struct handed to the session at construction."""

    stealth: bool = False
    play_mode: PlayMode = PlayMode.NONE
    privacy_names: bool = True
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS

    @classmethod
    def from_config(cls, config: Config) -> 'PlayerSettings':
        """Read settings, falling back to defaults for unknown values."""
        raw_mode = config.get_int('playback', 'play_mode', PlayMode.NONE.value)
        try:
            play_mode = PlayMode(raw_mode)
        except ValueError:
            play_mode = PlayMode.NONE
        interval = config.get_int('playback', 'poll_interval_ms', DEFAULT_POLL_INTERVAL_MS)
        return cls(
            stealth=config.get_bool('playback', 'stealth', False),
            play_mode=play_mode,
            privacy_names=config.get_bool('privacy', 'hide_names', True),
            poll_interval_ms=max(MIN_POLL_INTERVAL_MS, interval),
        )

    def save_to(self, config: Config) -> None:
        """Write settings back and save the file once."""
        config.set('playback', 'play_mode', str(self.play_mode.value), save=False)
        config.set('playback', 'stealth', str(self.stealth).lower(), save=False)
        config.set('playback', 'poll_interval_ms', str(self.poll_interval_ms), save=False)
        config.set('privacy', 'hide_names', str(self.privacy_names).lower(), save=False)
        config.save()


def get_config() -> Config:
    """Get the configuration instance."""
    return Config.get_instance()
