"""Tests for configuration management."""

from pathlib import Path

import pytest

from cart_copilot.config import ConfigManager


@pytest.fixture
def config_file(tmp_path):
    """Create a temporary config file."""
    config_path = tmp_path / "config.toml"
    config_path.write_text("""
[data]
storage_dir = "/custom/data"
backend = "sqlite"

[defaults]
store = "Costco"
category = "Produce"

[telemetry]
enabled = false

[logging]
level = "debug"
""")
    return config_path


class TestConfigManager:
    """Tests for ConfigManager."""

    def test_load_config_file(self, config_file):
        """Load configuration from file."""
        manager = ConfigManager(config_path=config_file)

        assert manager.data.storage_dir == Path("/custom/data")
        assert manager.data.backend == "sqlite"

    def test_defaults_config(self, config_file):
        manager = ConfigManager(config_path=config_file)

        assert manager.defaults.store == "Costco"
        assert manager.defaults.category == "Produce"

    def test_telemetry_and_logging(self, config_file):
        """Log level is normalized to upper case."""
        manager = ConfigManager(config_path=config_file)

        assert manager.telemetry.enabled is False
        assert manager.logging.level == "DEBUG"

    def test_missing_config_uses_defaults(self, tmp_path):
        """Missing config file uses default values."""
        manager = ConfigManager(config_path=tmp_path / "nonexistent.toml")

        assert manager.data.backend == "json"
        assert manager.data.storage_dir == Path.home() / "cart-copilot" / "data"
        assert manager.defaults.store == "Other"
        assert manager.defaults.category == "Other"
        assert manager.telemetry.enabled is True
        assert manager.logging.level == "WARNING"

    def test_storage_dir_expands_home(self, tmp_path):
        config_path = tmp_path / "config.toml"
        config_path.write_text('[data]\nstorage_dir = "~/groceries"\n')

        manager = ConfigManager(config_path=config_path)
        assert manager.data.storage_dir == Path.home() / "groceries"

    def test_get_by_path(self, config_file):
        """Get config value by dot-notation path."""
        manager = ConfigManager(config_path=config_file)

        assert manager.get("defaults.store") == "Costco"
        assert manager.get("telemetry.enabled") is False

    def test_get_with_default(self, config_file):
        """Get returns default for missing path."""
        manager = ConfigManager(config_path=config_file)

        assert manager.get("nonexistent.key", "default") == "default"
        assert manager.get("nonexistent", None) is None

    def test_partial_config(self, tmp_path):
        """Config file with only some sections."""
        config_path = tmp_path / "partial.toml"
        config_path.write_text("""
[defaults]
store = "Aldi"
""")
        manager = ConfigManager(config_path=config_path)

        assert manager.defaults.store == "Aldi"
        assert manager.defaults.category == "Other"  # Default
        assert manager.data.backend == "json"  # Default


class TestConfigDiscovery:
    """Tests for config file discovery."""

    def test_finds_local_config(self, tmp_path, monkeypatch):
        """Finds config.toml in current directory."""
        monkeypatch.chdir(tmp_path)
        (tmp_path / "config.toml").write_text('[defaults]\nstore = "Local"\n')

        manager = ConfigManager()
        assert manager.config_path == tmp_path / "config.toml"
        assert manager.defaults.store == "Local"

    def test_falls_back_to_user_config_path(self, tmp_path, monkeypatch):
        """With no config anywhere, the XDG-style path is used."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(Path, "home", lambda: tmp_path / "home")

        manager = ConfigManager()
        assert manager.config_path == tmp_path / "home" / ".config" / "cart-copilot" / "config.toml"
        assert manager.defaults.store == "Other"
