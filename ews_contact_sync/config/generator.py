"""
Configuration file generator for Exchange contact distribution.

Provides functionality to generate a default configuration file with
documentation and examples for all available options.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def generate_default_config() -> str:
    """
    Generate default YAML configuration with all options documented.

    Returns:
        String containing YAML configuration with comments

    Example:
        config_yaml = generate_default_config()
        with open("config.yaml", "w") as f:
            f.write(config_yaml)
    """
    return """# Exchange Contact Sync Configuration
# ===================================
#
# Copies every contact of one mailbox into a contacts sub-folder of each
# member of a directory group. The destination folder is deleted and
# recreated on every run.
#
# To use this configuration:
#   1. Save as ~/.ews-contact-sync/config.yaml (or custom location)
#   2. Fill in the required values below
#   3. Export the password environment variables
#   4. Run: ews-contact-sync sync --dry-run


# What to Copy
# ------------

# Mailbox whose Contacts folder is the source (required)
source_mailbox: contacts@example.com

# Directory group whose members receive the contacts (required)
# Distinguished name, sAMAccountName, cn or group mail address
destination_group: All-Staff

# Name of the sub-folder under each member's Contacts folder (required)
# WARNING: an existing folder with this name is permanently deleted
folder_name: Company Contacts


# Exchange Web Services
# ---------------------

exchange:
  # EWS host name (or set service_endpoint to the full EWS URL)
  server: mail.example.com
  # service_endpoint: https://mail.example.com/EWS/Exchange.asmx

  # Use autodiscover instead of server/service_endpoint
  # autodiscover: false

  # Service account with the ApplicationImpersonation role (required)
  username: svc-contact-sync@example.com

  # Environment variable holding the service account password
  # Default: EWS_CONTACT_SYNC_PASSWORD
  # password_env: EWS_CONTACT_SYNC_PASSWORD

  # Seconds to keep retrying throttled requests (default: fail fast)
  # max_wait: 300

  # Paging of the source Contacts folder
  # page_size: 1000
  # max_items: 1000


# Directory (LDAP / Active Directory)
# -----------------------------------

directory:
  # LDAP URL (ldap:// or ldaps://) or host name (required)
  server: ldaps://dc01.example.com

  # Search base for the group and its members (required)
  base_dn: DC=example,DC=com

  # Bind identity; leave empty for an anonymous bind
  bind_user: svc-contact-sync@example.com

  # Environment variable holding the bind password
  # Default: EWS_CONTACT_SYNC_LDAP_PASSWORD
  # password_env: EWS_CONTACT_SYNC_LDAP_PASSWORD

  # Force SSL when server is a bare host name
  # use_ssl: false


# Logging Options
# ---------------

# Directory for per-run log files
# Default: ~/.ews-contact-sync/logs
# log_dir: /var/log/ews-contact-sync

# Write the run log to the console instead of a file
# Default: false
# log_to_console: false

# Enable verbose console output
# Default: false
# verbose: false

# Read the source and resolve members without changing any mailbox
# Default: false
# dry_run: false
"""


def save_config_file(
    config_path: Path, overwrite: bool = False
) -> tuple[bool, str | None]:
    """
    Save default configuration file to specified path.

    Creates parent directories if they don't exist and saves
    the configuration with secure permissions.

    Args:
        config_path: Path where the config file should be saved
        overwrite: If True, overwrite existing file. If False, fail if file exists.

    Returns:
        Tuple of (success: bool, error_message: Optional[str])
    """
    try:
        config_path = config_path.expanduser().resolve()

        if config_path.exists() and not overwrite:
            return (
                False,
                f"Configuration file already exists: {config_path}\n"
                "Use --force to overwrite.",
            )

        config_path.parent.mkdir(parents=True, mode=0o700, exist_ok=True)

        config_path.write_text(generate_default_config(), encoding="utf-8")

        # Readable/writable by owner only
        config_path.chmod(0o600)

        logger.info(f"Created configuration file: {config_path}")
        return (True, None)

    except OSError as e:
        error_msg = f"Failed to create configuration file: {e}"
        logger.error(error_msg)
        return (False, error_msg)
