"""
Run configuration for Exchange contact distribution.

Provides immutable configuration dataclasses built once at startup from the
YAML configuration file:

    source_mailbox: contacts@example.com
    destination_group: All-Staff
    folder_name: Company Contacts
    exchange:
        server: mail.example.com
        username: svc-sync@example.com
        password_env: EWS_CONTACT_SYNC_PASSWORD
    directory:
        server: ldaps://dc01.example.com
        base_dn: DC=example,DC=com
        bind_user: svc-sync@example.com
        password_env: EWS_CONTACT_SYNC_LDAP_PASSWORD

Notes:
    - Passwords are never stored in the file, only the name of the
      environment variable that holds them
    - RunContext is the single object passed through the pipeline; nothing
      about a run is kept in module-level state
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from ews_contact_sync.config.loader import ConfigError

# Default environment variables holding service account passwords
DEFAULT_EXCHANGE_PASSWORD_ENV = "EWS_CONTACT_SYNC_PASSWORD"
DEFAULT_DIRECTORY_PASSWORD_ENV = "EWS_CONTACT_SYNC_LDAP_PASSWORD"

# Source folder paging defaults (one page of up to 1000 items)
DEFAULT_PAGE_SIZE = 1000
DEFAULT_MAX_ITEMS = 1000


def _read_secret(env_var: str, setting: str) -> str:
    value = os.environ.get(env_var)
    if not value:
        raise ConfigError(
            f"Environment variable {env_var} is not set (required by {setting})"
        )
    return value


@dataclass(frozen=True)
class RunConfig:
    """
    What to copy and where.

    Attributes:
        source_mailbox: Address of the mailbox whose contacts are copied
        destination_group: Directory group whose members receive the contacts
            (distinguished name, sAMAccountName, cn or mail)
        folder_name: Name of the contacts sub-folder recreated in every
            destination mailbox
    """

    source_mailbox: str
    destination_group: str
    folder_name: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RunConfig:
        return cls(
            source_mailbox=data["source_mailbox"].strip(),
            destination_group=data["destination_group"].strip(),
            folder_name=data["folder_name"].strip(),
        )


@dataclass(frozen=True)
class ExchangeSettings:
    """
    EWS connection settings for the impersonating service account.

    Attributes:
        username: Service account name (UPN or DOMAIN\\user)
        server: EWS host name, used when service_endpoint is not given
        service_endpoint: Full EWS URL, e.g. https://mail/EWS/Exchange.asmx
        autodiscover: Locate the EWS endpoint through autodiscover instead
        password_env: Environment variable holding the password
        max_wait: Seconds to keep retrying throttled requests (None: fail fast)
        page_size: Items requested per EWS FindItem page
        max_items: Upper bound on source contacts read
    """

    username: str
    server: str | None = None
    service_endpoint: str | None = None
    autodiscover: bool = False
    password_env: str = DEFAULT_EXCHANGE_PASSWORD_ENV
    max_wait: float | None = None
    page_size: int = DEFAULT_PAGE_SIZE
    max_items: int = DEFAULT_MAX_ITEMS

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ExchangeSettings:
        data = data or {}
        return cls(
            username=data.get("username", ""),
            server=data.get("server"),
            service_endpoint=data.get("service_endpoint"),
            autodiscover=data.get("autodiscover", False),
            password_env=data.get("password_env", DEFAULT_EXCHANGE_PASSWORD_ENV),
            max_wait=data.get("max_wait"),
            page_size=data.get("page_size", DEFAULT_PAGE_SIZE),
            max_items=data.get("max_items", DEFAULT_MAX_ITEMS),
        )

    def password(self) -> str:
        """Read the service account password from the environment."""
        return _read_secret(self.password_env, "exchange.password_env")


@dataclass(frozen=True)
class DirectorySettings:
    """
    LDAP connection settings.

    Attributes:
        server: LDAP URL or host (ldap://, ldaps:// or bare host name)
        base_dn: Search base for group and user lookups
        bind_user: Bind identity; anonymous bind when empty
        use_ssl: Force SSL for a bare host name
        password_env: Environment variable holding the bind password
    """

    server: str
    base_dn: str
    bind_user: str | None = None
    use_ssl: bool = False
    password_env: str = DEFAULT_DIRECTORY_PASSWORD_ENV

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> DirectorySettings:
        data = data or {}
        return cls(
            server=data.get("server", ""),
            base_dn=data.get("base_dn", ""),
            bind_user=data.get("bind_user") or None,
            use_ssl=data.get("use_ssl", False),
            password_env=data.get("password_env", DEFAULT_DIRECTORY_PASSWORD_ENV),
        )

    def password(self) -> str | None:
        """Read the bind password from the environment (None for anonymous bind)."""
        if not self.bind_user:
            return None
        return _read_secret(self.password_env, "directory.password_env")


@dataclass(frozen=True)
class RunContext:
    """
    Everything a run needs, built once at startup and read-only thereafter.

    Attributes:
        config: What to copy and where
        exchange: EWS connection settings
        directory: LDAP connection settings
        log_file: Run log file, or None when logging to the console
        dry_run: Read and resolve only; make no changes to destination mailboxes
        started_at: Run start time
    """

    config: RunConfig
    exchange: ExchangeSettings
    directory: DirectorySettings
    log_file: Path | None = None
    dry_run: bool = False
    started_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        log_file: Path | None = None,
        dry_run: bool = False,
        started_at: datetime | None = None,
    ) -> RunContext:
        """
        Build a RunContext from a validated configuration dictionary.

        Args:
            data: Configuration dictionary (see ConfigLoader.validate_required)
            log_file: Run log file path, or None for console logging
            dry_run: Whether destination mailboxes are left untouched
            started_at: Run start time (default: now)

        Raises:
            ConfigError: If a required key is missing
        """
        try:
            config = RunConfig.from_dict(data)
        except (KeyError, AttributeError) as e:
            raise ConfigError(f"Missing or invalid run setting: {e}") from e

        return cls(
            config=config,
            exchange=ExchangeSettings.from_dict(data.get("exchange")),
            directory=DirectorySettings.from_dict(data.get("directory")),
            log_file=log_file,
            dry_run=dry_run,
            started_at=started_at or datetime.now(),
        )
