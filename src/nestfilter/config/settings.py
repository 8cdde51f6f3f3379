"""
Application settings and configuration.

This module provides centralized access to application settings with automatic
persistence to disk. Settings are stored as JSON in a platform-specific location:

- Windows: %APPDATA%/LocalLow/nestfilter/settings.json
- macOS: ~/Library/Application Support/nestfilter/settings.json
- Linux: ~/.config/nestfilter/settings.json

Settings are automatically loaded on first access and saved when updated.

Example:
    from nestfilter.config.settings import get_settings, get_settings_manager

    settings = get_settings()
    print(settings.theme)

    # Update settings (auto-saves)
    manager = get_settings_manager()
    manager.update(theme="light_blue", animate_layout_changes=False)
"""

import json
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional

from ..infrastructure.paths import get_filter_state_directory, get_persistent_data_directory


PATH_SETTINGS = ('log_file_path', 'filter_state_directory')


def _to_posix(path) -> str:
    return str(Path(path)).replace('\\', '/')


@dataclass
class AppSettings:
    """Application-wide settings."""

    # Logging settings
    log_level: int = logging.INFO
    log_to_file: bool = True
    log_file_path: Optional[Path] = None
    """None means log.txt in the persistent data directory."""

    # UI settings
    window_width: int = 900
    window_height: int = 640
    theme: str = "light_blue"  # Any qt_material theme, e.g. dark_teal, light_amber
    animate_layout_changes: bool = True

    # Filter state
    filter_state_directory: Optional[Path] = None
    """None means filters/ in the persistent data directory."""

    # Recent files
    recent_filter_files: list[str] = field(default_factory=list)
    recent_column_files: list[str] = field(default_factory=list)
    max_recent_items: int = 10

    def resolved_filter_state_directory(self) -> Path:
        if self.filter_state_directory is None:
            return get_filter_state_directory()
        return Path(self.filter_state_directory)


class SettingsManager:
    """
    Manages loading and saving application settings.
    """

    def __init__(self, config_file: Optional[Path] = None):
        """
        Initialize the settings manager.

        Args:
            config_file: Path to configuration file. If None, uses default location.
        """
        if config_file is None:
            config_file = get_persistent_data_directory() / "settings.json"

        self.config_file = config_file
        self._settings = AppSettings()
        self._logger = logging.getLogger(__name__)

    def load(self) -> AppSettings:
        """
        Load settings from configuration file.

        Returns:
            The loaded settings object.
        """
        if not self.config_file.exists():
            self._logger.info(f"Settings file not found at {self.config_file}, using defaults")
            return self._settings

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)

            for key in PATH_SETTINGS:
                if data.get(key):
                    data[key] = Path(data[key])

            for key in ('recent_filter_files', 'recent_column_files'):
                if data.get(key):
                    data[key] = [_to_posix(p) for p in data[key]]

            for key, value in data.items():
                if hasattr(self._settings, key):
                    setattr(self._settings, key, value)

            self._logger.info(f"Settings loaded from {self.config_file}")

        except json.JSONDecodeError as e:
            self._logger.error(f"Failed to parse settings file: {e}. Using defaults.")
        except (OSError, TypeError, AttributeError) as e:
            self._logger.error(f"Failed to load settings: {e}. Using defaults.")

        return self._settings

    def save(self, settings: Optional[AppSettings] = None) -> None:
        """
        Save settings to configuration file.

        Args:
            settings: Settings object to save. If None, saves current settings.
        """
        if settings is not None:
            self._settings = settings

        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)

            data = asdict(self._settings)
            for key in PATH_SETTINGS:
                if data.get(key):
                    data[key] = _to_posix(data[key])

            # Atomic write: write to temp file, then rename
            temp_file = self.config_file.with_suffix('.tmp')
            with open(temp_file, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            temp_file.replace(self.config_file)

            self._logger.info(f"Settings saved to {self.config_file}")

        except OSError as e:
            self._logger.error(f"Failed to save settings: {e}")

    def get(self) -> AppSettings:
        """
        Get the current settings.

        Returns:
            The current settings object.
        """
        return self._settings

    def update(self, **kwargs) -> None:
        """
        Update specific settings and auto-save.

        Args:
            **kwargs: Setting names and values to update.
        """
        for key, value in kwargs.items():
            if hasattr(self._settings, key):
                setattr(self._settings, key, value)
            else:
                self._logger.warning(f"Ignoring unknown setting: {key}")

        self.save()

    def _push_recent(self, items: list[str], path: str) -> list[str]:
        normalized = _to_posix(path)
        items = [p for p in items if p != normalized]
        items.insert(0, normalized)
        return items[:self._settings.max_recent_items]

    def add_recent_filter_file(self, path: str) -> None:
        """
        Add a filter file to the front of the recent list and save.

        Args:
            path: Path to the filter JSON file.
        """
        self._settings.recent_filter_files = self._push_recent(
            self._settings.recent_filter_files, path
        )
        self.save()

    def add_recent_column_file(self, path: str) -> None:
        """Add a column catalog file to the front of the recent list and save."""
        self._settings.recent_column_files = self._push_recent(
            self._settings.recent_column_files, path
        )
        self.save()

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values and save."""
        self._settings = AppSettings()
        self.save()


# Global settings instance
_settings_manager: Optional[SettingsManager] = None


def get_settings_manager() -> SettingsManager:
    """
    Get the global settings manager instance.

    Returns:
        The global SettingsManager.
    """
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
        _settings_manager.load()
    return _settings_manager


def get_settings() -> AppSettings:
    """
    Get the current application settings.

    Returns:
        The current AppSettings object.
    """
    return get_settings_manager().get()
