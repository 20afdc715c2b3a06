"""
Configuration management for CloudNav.

Provides a hierarchical configuration system with sensible defaults.
Supports both global (~/.config/cloudnav/config.toml) and local
(cloudnav.toml) configurations.

``CloudNavConfig`` is the mutable, file-backed configuration used by the
command line. The sync layer never reads it directly: it receives an
immutable ``SyncOptions`` built from it.
"""
import os
import tomli
import tomli_w
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, field, asdict

from cloudnav import constants
from cloudnav.models import Category, LinkItem, SiteSettings, Snapshot


@dataclass
class CloudNavConfig:
    """
    CloudNav configuration with sensible defaults.

    Configuration hierarchy (highest to lowest priority):
    1. Command-line arguments
    2. Environment variables (CLOUDNAV_*)
    3. Local config file (./cloudnav.toml or ./.cloudnavrc)
    4. User config file (~/.config/cloudnav/config.toml)
    5. System defaults
    """

    # Local cache
    database: str = field(default="~/.local/share/cloudnav/cloudnav.db")
    database_echo: bool = field(default=False)  # SQLAlchemy echo for debugging

    # Remote store
    remote_url: str = field(default="http://localhost:8788")

    # Network settings
    timeout: int = field(default=constants.DEFAULT_REQUEST_TIMEOUT)
    user_agent: str = field(default="CloudNav/1.0")
    verify_ssl: bool = field(default=True)

    # Sync behaviour
    saved_reset_delay: float = field(default=constants.SAVED_RESET_DELAY)
    fallback_category_id: str = field(default=constants.FALLBACK_CATEGORY_ID)

    # Display settings
    output_format: str = field(default="table")  # table, json, urls

    log_level: str = field(default="WARNING")

    @classmethod
    def load(cls, config_file: Optional[Path] = None) -> "CloudNavConfig":
        """
        Load configuration from files and environment.

        Args:
            config_file: Specific config file to load (overrides search)

        Returns:
            Merged configuration object
        """
        config = cls()

        user_config_path = Path.home() / ".config" / "cloudnav" / "config.toml"
        if user_config_path.exists():
            config._merge(cls._load_toml(user_config_path))

        local_paths = [
            Path.cwd() / "cloudnav.toml",
            Path.cwd() / ".cloudnavrc",
        ]

        for path in local_paths:
            if path.exists():
                config._merge(cls._load_toml(path))
                break

        if config_file and config_file.exists():
            config._merge(cls._load_toml(config_file))

        config._apply_env_vars()
        config._expand_paths()

        return config

    @staticmethod
    def _load_toml(path: Path) -> Dict[str, Any]:
        """Load TOML configuration file."""
        with open(path, "rb") as f:
            return tomli.load(f)

    def _merge(self, data: Dict[str, Any]):
        """Merge configuration data into this instance."""
        for key, value in data.items():
            if hasattr(self, key):
                setattr(self, key, value)

    def _apply_env_vars(self):
        """Apply environment variables with CLOUDNAV_ prefix."""
        prefix = "CLOUDNAV_"
        for key, value in os.environ.items():
            if key.startswith(prefix):
                config_key = key[len(prefix):].lower()
                if hasattr(self, config_key):
                    # Convert string values to appropriate types
                    current_value = getattr(self, config_key)
                    if isinstance(current_value, bool):
                        setattr(self, config_key, value.lower() in ("true", "1", "yes"))
                    elif isinstance(current_value, int):
                        setattr(self, config_key, int(value))
                    elif isinstance(current_value, float):
                        setattr(self, config_key, float(value))
                    else:
                        setattr(self, config_key, value)

    def _expand_paths(self):
        """Expand ~ and environment variables in paths."""
        expanded = os.path.expanduser(os.path.expandvars(self.database))
        self.database = expanded

    def save(self, path: Optional[Path] = None):
        """
        Save current configuration to TOML file.

        Args:
            path: Path to save to (defaults to user config)
        """
        if path is None:
            path = Path.home() / ".config" / "cloudnav" / "config.toml"

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "wb") as f:
            tomli_w.dump(asdict(self), f)

    def get_database_path(self) -> Path:
        """Get the resolved database path."""
        path = Path(self.database)
        if not path.is_absolute():
            path = Path.cwd() / path
        return path


def default_snapshot() -> Snapshot:
    """The built-in seed snapshot used when no stored state exists."""
    return Snapshot(
        links=tuple(LinkItem.from_dict(item) for item in constants.INITIAL_LINKS),
        categories=tuple(Category.from_dict(item) for item in constants.DEFAULT_CATEGORIES),
        settings=SiteSettings.from_dict(constants.DEFAULT_SITE_SETTINGS),
    )


@dataclass(frozen=True)
class SyncOptions:
    """
    Immutable configuration handed to the sync controller at construction.

    Attributes:
        defaults: Snapshot seeded when neither remote nor local state exists
        fallback_category_id: Category that receives links of a deleted category
        saved_reset_delay: Seconds before a "saved" status reverts to "idle"
        data_cache_key: Local storage key of the snapshot cache
        auth_token_key: Local storage key of the stored credential
    """
    defaults: Snapshot = field(default_factory=default_snapshot)
    fallback_category_id: str = constants.FALLBACK_CATEGORY_ID
    saved_reset_delay: float = constants.SAVED_RESET_DELAY
    data_cache_key: str = constants.DATA_CACHE_KEY
    auth_token_key: str = constants.AUTH_TOKEN_KEY

    @property
    def default_category(self) -> Category:
        """Category reinserted when the last one is deleted."""
        if self.defaults.categories:
            return self.defaults.categories[0]
        return Category(id=self.fallback_category_id, name="Common")

    @classmethod
    def from_config(cls, config: CloudNavConfig) -> "SyncOptions":
        return cls(
            fallback_category_id=config.fallback_category_id,
            saved_reset_delay=float(config.saved_reset_delay),
        )


# Global configuration instance
_config: Optional[CloudNavConfig] = None


def get_config(reload: bool = False, config_file: Optional[Path] = None) -> CloudNavConfig:
    """
    Get the global configuration instance.

    Args:
        reload: Force reload configuration from files
        config_file: Specific config file to load

    Returns:
        Global configuration instance
    """
    global _config
    if _config is None or reload:
        _config = CloudNavConfig.load(config_file)
    return _config


def init_config(config_file: Optional[Path] = None, **kwargs) -> CloudNavConfig:
    """
    Initialize configuration with command-line overrides.

    Args:
        config_file: Specific config file to load
        **kwargs: Configuration overrides (None values are ignored)

    Returns:
        Configured instance
    """
    config = get_config(reload=config_file is not None, config_file=config_file)

    for key, value in kwargs.items():
        if hasattr(config, key) and value is not None:
            setattr(config, key, value)

    return config
