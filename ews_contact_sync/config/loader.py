"""
Configuration loader module for Exchange contact distribution.

Provides YAML-based configuration file loading with support for:
- Loading configuration from default or custom paths
- Graceful handling of missing configuration files
- Validation of configuration structure, types and required keys
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from ews_contact_sync.utils.paths import CONFIG_DIR_ENV_VAR, DEFAULT_CONFIG_DIR

# Default configuration file name
DEFAULT_CONFIG_FILE = "config.yaml"

# Keys that must be present for a sync run
REQUIRED_KEYS = ("source_mailbox", "destination_group", "folder_name")
REQUIRED_EXCHANGE_KEYS = ("username",)
REQUIRED_DIRECTORY_KEYS = ("server", "base_dn")

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def _type_name(expected: type[Any] | tuple[type[Any], ...]) -> str:
    if isinstance(expected, tuple):
        return " or ".join(t.__name__ for t in expected)
    return expected.__name__


def _check_types(
    section: dict[str, Any],
    valid_keys: dict[str, type[Any] | tuple[type[Any], ...]],
    prefix: str = "",
) -> None:
    for key, value in section.items():
        if key not in valid_keys:
            continue
        expected_type = valid_keys[key]
        # bool is a subclass of int; don't accept True for an int setting
        if isinstance(value, bool) and bool not in (
            expected_type if isinstance(expected_type, tuple) else (expected_type,)
        ):
            raise ConfigError(
                f"Invalid type for '{prefix}{key}': expected "
                f"{_type_name(expected_type)}, got bool"
            )
        if not isinstance(value, expected_type):
            raise ConfigError(
                f"Invalid type for '{prefix}{key}': expected "
                f"{_type_name(expected_type)}, got {type(value).__name__}"
            )


class ConfigLoader:
    """
    YAML configuration file loader.

    Handles loading and validation of YAML configuration files
    for the ews-contact-sync application.

    Attributes:
        config_dir: Directory containing the configuration file
        config_file: Name of the configuration file

    Usage:
        loader = ConfigLoader()
        config = loader.load()

        # With custom path
        loader = ConfigLoader(config_dir=Path("/custom/path"))
        config = loader.load()

        # Load from specific file
        config = loader.load_from_file("/path/to/config.yaml")
    """

    def __init__(
        self, config_dir: Path | None = None, config_file: str = DEFAULT_CONFIG_FILE
    ):
        """
        Initialize the configuration loader.

        Args:
            config_dir: Directory containing the configuration file.
                       Defaults to ~/.ews-contact-sync/ or $EWS_CONTACT_SYNC_CONFIG_DIR
            config_file: Name of the configuration file (default: config.yaml)
        """
        if config_dir is not None:
            self.config_dir = Path(config_dir)
        else:
            env_dir = os.environ.get(CONFIG_DIR_ENV_VAR)
            if env_dir:
                self.config_dir = Path(env_dir)
            else:
                self.config_dir = DEFAULT_CONFIG_DIR

        self.config_file = config_file

    def _get_config_path(self) -> Path:
        """Get the full path to the configuration file."""
        return self.config_dir / self.config_file

    def load(self) -> dict[str, Any]:
        """
        Load configuration from the default configuration file.

        Returns an empty dict if the file doesn't exist.

        Raises:
            ConfigError: If the configuration file exists but cannot be parsed
        """
        return self.load_from_file(self._get_config_path())

    def load_from_file(self, path: Path | str) -> dict[str, Any]:
        """
        Load configuration from a specific file.

        Returns an empty dict if the file doesn't exist, allowing
        commands such as ``init-config`` to run without one.

        Args:
            path: Path to the configuration file

        Returns:
            Dictionary containing configuration values, or empty dict if file
            doesn't exist

        Raises:
            ConfigError: If the configuration file exists but cannot be parsed
        """
        path = Path(path)

        if not path.exists():
            logger.debug(f"Configuration file not found: {path}")
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                config = yaml.safe_load(f)

            if config is None:
                logger.debug(f"Configuration file is empty: {path}")
                return {}

            if not isinstance(config, dict):
                raise ConfigError(
                    f"Configuration file must contain a YAML dictionary, "
                    f"got {type(config).__name__}"
                )

            logger.debug(f"Loaded configuration from {path}")
            return config

        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}") from e

    def validate(self, config: dict[str, Any]) -> None:
        """
        Validate configuration structure and value types.

        Unknown keys are ignored. Required keys are checked separately by
        :meth:`validate_required` because commands such as ``status`` can
        run on a partial configuration.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ConfigError: If configuration is invalid
        """
        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration must be a dictionary, got {type(config).__name__}"
            )

        top_level: dict[str, type[Any] | tuple[type[Any], ...]] = {
            "source_mailbox": str,
            "destination_group": str,
            "folder_name": str,
            "exchange": dict,
            "directory": dict,
            "log_dir": str,
            "log_to_console": bool,
            "verbose": bool,
            "dry_run": bool,
        }
        _check_types(config, top_level)

        exchange_keys: dict[str, type[Any] | tuple[type[Any], ...]] = {
            "server": str,
            "service_endpoint": str,
            "autodiscover": bool,
            "username": str,
            "password_env": str,
            "max_wait": (int, float),
            "page_size": int,
            "max_items": int,
        }
        _check_types(config.get("exchange") or {}, exchange_keys, "exchange.")

        directory_keys: dict[str, type[Any] | tuple[type[Any], ...]] = {
            "server": str,
            "use_ssl": bool,
            "base_dn": str,
            "bind_user": str,
            "password_env": str,
        }
        _check_types(config.get("directory") or {}, directory_keys, "directory.")

        if "source_mailbox" in config and "@" not in config["source_mailbox"]:
            raise ConfigError(
                f"source_mailbox must be an email address, "
                f"got '{config['source_mailbox']}'"
            )

        if "folder_name" in config and not config["folder_name"].strip():
            raise ConfigError("folder_name cannot be empty")

        exchange = config.get("exchange") or {}
        for key in ("page_size", "max_items"):
            if key in exchange and exchange[key] < 1:
                raise ConfigError(f"exchange.{key} must be >= 1, got {exchange[key]}")
        if "max_wait" in exchange and exchange["max_wait"] <= 0:
            raise ConfigError(
                f"exchange.max_wait must be > 0, got {exchange['max_wait']}"
            )

    def validate_required(self, config: dict[str, Any]) -> None:
        """
        Check that every key needed for a sync run is present and non-empty.

        Raises:
            ConfigError: Listing all missing keys
        """
        missing = [key for key in REQUIRED_KEYS if not config.get(key)]

        exchange = config.get("exchange") or {}
        missing += [
            f"exchange.{key}" for key in REQUIRED_EXCHANGE_KEYS if not exchange.get(key)
        ]
        if not (exchange.get("server") or exchange.get("service_endpoint")) and (
            not exchange.get("autodiscover")
        ):
            missing.append("exchange.server (or exchange.autodiscover: true)")

        directory = config.get("directory") or {}
        missing += [
            f"directory.{key}"
            for key in REQUIRED_DIRECTORY_KEYS
            if not directory.get(key)
        ]

        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")

    def load_and_validate(self) -> dict[str, Any]:
        """
        Load configuration and validate it.

        Convenience method that combines load() and validate().

        Raises:
            ConfigError: If configuration cannot be loaded or is invalid
        """
        config = self.load()
        if config:
            self.validate(config)
        return config
