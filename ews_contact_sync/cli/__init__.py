"""CLI package for ews_contact_sync."""

from ews_contact_sync.cli.formatters import (
    show_config_status,
    show_mailbox_details,
    show_mailboxes,
)
from ews_contact_sync.cli.main import (
    DEFAULT_CONFIG_FILE,
    cli,
    get_config_dir,
    get_config_file,
)
from ews_contact_sync.utils import DEFAULT_CONFIG_DIR

__all__ = [
    "DEFAULT_CONFIG_DIR",
    "DEFAULT_CONFIG_FILE",
    "cli",
    "get_config_dir",
    "get_config_file",
    "show_config_status",
    "show_mailbox_details",
    "show_mailboxes",
]
