"""
Tests for cloudnav/config.py configuration management.

Tests the hierarchical configuration system with sensible defaults,
including file loading, environment variables, and path expansion, plus
the immutable options handed to the sync controller.
"""
import os
from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest
import tomli

import cloudnav.config as config_module
from cloudnav.config import CloudNavConfig, SyncOptions, default_snapshot, get_config, init_config


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Run in an empty directory with a fake home and no CLOUDNAV_* variables."""
    home = tmp_path / "home"
    home.mkdir()
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    for key in list(os.environ):
        if key.startswith("CLOUDNAV_"):
            monkeypatch.delenv(key)
    monkeypatch.setattr(config_module, "_config", None)
    return tmp_path


class TestCloudNavConfigDefaults:
    """Test default configuration values."""

    def test_default_remote_url(self):
        """Default remote should be the local development server."""
        config = CloudNavConfig()
        assert config.remote_url == "http://localhost:8788"

    def test_default_output_format_is_table(self):
        config = CloudNavConfig()
        assert config.output_format == "table"

    def test_default_timeout_is_10(self):
        """Default timeout should be 10 seconds."""
        config = CloudNavConfig()
        assert config.timeout == 10

    def test_default_saved_reset_delay(self):
        """Saved status should revert after 2 seconds by default."""
        config = CloudNavConfig()
        assert config.saved_reset_delay == 2.0

    def test_default_fallback_category(self):
        config = CloudNavConfig()
        assert config.fallback_category_id == "common"

    def test_default_verify_ssl_is_true(self):
        config = CloudNavConfig()
        assert config.verify_ssl is True


class TestConfigLoading:
    """Test configuration loading from files."""

    def test_load_defaults_when_no_files_exist(self, isolated):
        """Load should return defaults when no config files exist."""
        config = CloudNavConfig.load()
        assert config.remote_url == "http://localhost:8788"
        assert config.database == str(isolated / "home" / ".local/share/cloudnav/cloudnav.db")

    def test_load_from_local_cloudnav_toml(self, isolated):
        """Should load config from ./cloudnav.toml."""
        Path("cloudnav.toml").write_text('remote_url = "https://nav.example.com"\ntimeout = 30\n')

        config = CloudNavConfig.load()
        assert config.remote_url == "https://nav.example.com"
        assert config.timeout == 30

    def test_load_from_cloudnavrc(self, isolated):
        """Should load config from ./.cloudnavrc."""
        Path(".cloudnavrc").write_text('database = "rc.db"\n')

        config = CloudNavConfig.load()
        assert config.database == "rc.db"

    def test_cloudnav_toml_takes_precedence_over_rc(self, isolated):
        """Only the first local config file found is used."""
        Path("cloudnav.toml").write_text('database = "toml.db"\n')
        Path(".cloudnavrc").write_text('database = "rc.db"\n')

        assert CloudNavConfig.load().database == "toml.db"

    def test_local_overrides_user_config(self, isolated):
        """Local config should override user config."""
        user_dir = isolated / "home" / ".config" / "cloudnav"
        user_dir.mkdir(parents=True)
        (user_dir / "config.toml").write_text('remote_url = "https://user"\ntimeout = 20\n')
        Path("cloudnav.toml").write_text('remote_url = "https://local"\n')

        config = CloudNavConfig.load()
        assert config.remote_url == "https://local"
        assert config.timeout == 20

    def test_explicit_config_file(self, isolated):
        explicit = isolated / "explicit.toml"
        explicit.write_text('log_level = "DEBUG"\n')

        assert CloudNavConfig.load(explicit).log_level == "DEBUG"

    def test_unknown_keys_ignored(self, isolated):
        Path("cloudnav.toml").write_text('not_a_setting = 1\n')
        config = CloudNavConfig.load()
        assert not hasattr(config, "not_a_setting")


class TestEnvironmentVariables:
    """Test CLOUDNAV_* environment overrides."""

    def test_string_value(self, isolated, monkeypatch):
        monkeypatch.setenv("CLOUDNAV_REMOTE_URL", "https://env.example.com")
        assert CloudNavConfig.load().remote_url == "https://env.example.com"

    def test_int_value(self, isolated, monkeypatch):
        monkeypatch.setenv("CLOUDNAV_TIMEOUT", "45")
        assert CloudNavConfig.load().timeout == 45

    def test_float_value(self, isolated, monkeypatch):
        monkeypatch.setenv("CLOUDNAV_SAVED_RESET_DELAY", "0.5")
        assert CloudNavConfig.load().saved_reset_delay == 0.5

    @pytest.mark.parametrize("raw,expected", [("true", True), ("1", True), ("no", False), ("false", False)])
    def test_bool_value(self, isolated, monkeypatch, raw, expected):
        monkeypatch.setenv("CLOUDNAV_VERIFY_SSL", raw)
        assert CloudNavConfig.load().verify_ssl is expected

    def test_env_overrides_file(self, isolated, monkeypatch):
        Path("cloudnav.toml").write_text('remote_url = "https://file"\n')
        monkeypatch.setenv("CLOUDNAV_REMOTE_URL", "https://env")
        assert CloudNavConfig.load().remote_url == "https://env"

    def test_database_path_expanded(self, isolated, monkeypatch):
        monkeypatch.setenv("CLOUDNAV_DATABASE", "~/nav.db")
        assert CloudNavConfig.load().database == str(isolated / "home" / "nav.db")


class TestConfigSave:
    """Test writing configuration."""

    def test_save_round_trip(self, isolated):
        path = isolated / "out" / "config.toml"
        config = CloudNavConfig(remote_url="https://saved", timeout=12)
        config.save(path)

        with open(path, "rb") as f:
            data = tomli.load(f)
        assert data["remote_url"] == "https://saved"
        assert data["timeout"] == 12

    def test_relative_database_path_resolved(self, isolated):
        config = CloudNavConfig(database="local.db")
        assert config.get_database_path() == Path.cwd() / "local.db"


class TestGlobalConfig:
    """Test get_config/init_config."""

    def test_get_config_is_cached(self, isolated):
        assert get_config() is get_config()

    def test_init_config_overrides(self, isolated):
        config = init_config(remote_url="https://cli", database=None)
        assert config.remote_url == "https://cli"
        # None means "not given on the command line"
        assert config.database.endswith("cloudnav.db")

    def test_init_config_with_file_reloads(self, isolated):
        get_config()
        explicit = isolated / "explicit.toml"
        explicit.write_text('remote_url = "https://explicit"\n')
        assert init_config(config_file=explicit).remote_url == "https://explicit"


class TestSyncOptions:
    """Test the immutable controller options."""

    def test_defaults(self):
        options = SyncOptions()
        assert options.defaults == default_snapshot()
        assert options.data_cache_key == "cloudnav_data_cache"
        assert options.saved_reset_delay == 2.0

    def test_frozen(self):
        options = SyncOptions()
        with pytest.raises(FrozenInstanceError):
            options.saved_reset_delay = 5

    def test_default_category_is_first_seed(self):
        assert SyncOptions().default_category.id == "common"

    def test_default_category_without_seed(self):
        from cloudnav.models import Snapshot
        options = SyncOptions(defaults=Snapshot(), fallback_category_id="misc")
        assert options.default_category.id == "misc"

    def test_from_config(self):
        config = CloudNavConfig(saved_reset_delay=0.25, fallback_category_id="misc")
        options = SyncOptions.from_config(config)
        assert options.saved_reset_delay == 0.25
        assert options.fallback_category_id == "misc"
