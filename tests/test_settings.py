"""
Tests for the SettingsManager persistence behaviour.

These tests verify that settings are saved and loaded correctly and that the
global settings manager uses the persistent data directory when no custom
config_file is provided.
"""
from __future__ import annotations

from pathlib import Path
import json
import logging


def test_save_and_load(tmp_path: Path):
    from nestfilter.config.settings import SettingsManager

    config_file = tmp_path / "settings.json"

    # Create a manager with a custom file path
    manager = SettingsManager(config_file=config_file)
    manager.load()

    # Update and add recent files (auto-saves)
    manager.update(theme="dark_teal", window_width=1400, animate_layout_changes=False)
    manager.add_recent_filter_file("/path/to/filter1.json")
    manager.add_recent_column_file("C:\\data\\columns.json")

    # File should be created
    assert config_file.exists()

    # Load again using a new manager instance to verify persistence
    new_manager = SettingsManager(config_file=config_file)
    new_manager.load()
    settings = new_manager.get()

    assert settings.theme == "dark_teal"
    assert settings.window_width == 1400
    assert settings.animate_layout_changes is False
    assert settings.recent_filter_files == ["/path/to/filter1.json"]
    assert settings.recent_column_files == ["C:/data/columns.json"]

    # Check contents on disk match expectations
    with open(config_file, "r", encoding="utf-8") as f:
        data = json.load(f)

    assert data["theme"] == "dark_teal"
    assert data["window_width"] == 1400


def test_recent_list_is_deduplicated_and_capped(tmp_path: Path):
    from nestfilter.config.settings import SettingsManager

    manager = SettingsManager(config_file=tmp_path / "settings.json")
    manager.update(max_recent_items=2)
    for name in ("a.json", "b.json", "a.json", "c.json"):
        manager.add_recent_filter_file(name)

    assert manager.get().recent_filter_files == ["c.json", "a.json"]


def test_path_settings_round_trip(tmp_path: Path):
    from nestfilter.config.settings import SettingsManager

    config_file = tmp_path / "settings.json"
    manager = SettingsManager(config_file=config_file)
    manager.update(filter_state_directory=tmp_path / "saved", log_level=logging.DEBUG)

    loaded = SettingsManager(config_file=config_file).load()
    assert loaded.filter_state_directory == tmp_path / "saved"
    assert loaded.resolved_filter_state_directory() == tmp_path / "saved"
    assert loaded.log_level == logging.DEBUG


def test_corrupt_file_falls_back_to_defaults(tmp_path: Path):
    from nestfilter.config.settings import AppSettings, SettingsManager

    config_file = tmp_path / "settings.json"
    config_file.write_text("{broken", encoding="utf-8")
    assert SettingsManager(config_file=config_file).load() == AppSettings()


def test_unknown_keys_ignored(tmp_path: Path):
    from nestfilter.config.settings import SettingsManager

    manager = SettingsManager(config_file=tmp_path / "settings.json")
    manager.update(not_a_setting=1)
    assert not hasattr(manager.get(), "not_a_setting")


def test_reset_to_defaults(tmp_path: Path):
    from nestfilter.config.settings import AppSettings, SettingsManager

    manager = SettingsManager(config_file=tmp_path / "settings.json")
    manager.update(theme="dark_red")
    manager.reset_to_defaults()
    assert manager.get() == AppSettings()


def test_get_settings_manager_uses_default_path(isolated_data_directory: Path):
    import nestfilter.config.settings as settings_mod

    # Call the helper which should create a manager under the patched directory
    manager = settings_mod.get_settings_manager()
    assert manager.config_file.parent == isolated_data_directory
    assert manager.config_file.name == "settings.json"
    assert settings_mod.get_settings() is manager.get()

    manager.save()
    assert manager.config_file.exists()

    # The default filter directory lives next to the settings file
    assert manager.get().resolved_filter_state_directory() == isolated_data_directory / "filters"
