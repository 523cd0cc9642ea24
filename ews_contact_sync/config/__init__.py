"""
ews_contact_sync.config - Configuration management module

Contains configuration loading, validation, and the immutable run context.
"""

from ews_contact_sync.config.loader import (
    DEFAULT_CONFIG_FILE,
    ConfigError,
    ConfigLoader,
)
from ews_contact_sync.config.run_config import (
    DirectorySettings,
    ExchangeSettings,
    RunConfig,
    RunContext,
)

__all__ = [
    "ConfigError",
    "ConfigLoader",
    "DEFAULT_CONFIG_FILE",
    "DirectorySettings",
    "ExchangeSettings",
    "RunConfig",
    "RunContext",
]
