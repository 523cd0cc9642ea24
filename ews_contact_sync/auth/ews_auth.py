"""
Exchange Web Services authentication for Exchange contact distribution.

Provides impersonation-based access to arbitrary mailboxes with:
- One service account credential shared by every mailbox
- A single cached exchangelib Configuration (one HTTP session pool)
- Explicit or autodiscovered EWS endpoints
- Optional retry policy for throttled requests
"""

import logging

from exchangelib import (
    IMPERSONATION,
    Account,
    Configuration,
    Credentials,
    FailFast,
    FaultTolerance,
)

from ews_contact_sync.config.loader import ConfigError
from ews_contact_sync.config.run_config import ExchangeSettings

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Raised when service account credentials are missing or unusable."""

    pass


class ExchangeAuth:
    """
    Impersonation credentials for the EWS service account.

    The service account needs the ApplicationImpersonation role on every
    mailbox it opens. No per-mailbox credentials are used.

    Attributes:
        settings: EWS connection settings

    Usage:
        auth = ExchangeAuth(settings)

        # Open a mailbox as its owner
        account = auth.account_for("alice@example.com")
    """

    def __init__(self, settings: ExchangeSettings):
        self.settings = settings
        self._credentials: Credentials | None = None
        self._configuration: Configuration | None = None

    @property
    def credentials(self) -> Credentials:
        """
        Service account credentials, read from the environment on first use.

        Raises:
            AuthenticationError: If the username or password is missing
        """
        if self._credentials is None:
            if not self.settings.username:
                raise AuthenticationError("exchange.username is not configured")
            try:
                password = self.settings.password()
            except ConfigError as e:
                raise AuthenticationError(str(e)) from e
            self._credentials = Credentials(
                username=self.settings.username, password=password
            )
            logger.debug(f"Loaded EWS credentials for {self.settings.username}")
        return self._credentials

    def _retry_policy(self) -> FailFast | FaultTolerance:
        if self.settings.max_wait:
            return FaultTolerance(max_wait=self.settings.max_wait)
        return FailFast()

    @property
    def configuration(self) -> Configuration:
        """
        Shared EWS configuration.

        Without a server or endpoint the configuration carries only the
        credentials and retry policy, and each account is located through
        autodiscover.

        Raises:
            AuthenticationError: If credentials cannot be loaded
        """
        if self._configuration is None:
            if self.settings.service_endpoint:
                self._configuration = Configuration(
                    service_endpoint=self.settings.service_endpoint,
                    credentials=self.credentials,
                    retry_policy=self._retry_policy(),
                )
            elif self.settings.server:
                self._configuration = Configuration(
                    server=self.settings.server,
                    credentials=self.credentials,
                    retry_policy=self._retry_policy(),
                )
            else:
                self._configuration = Configuration(
                    credentials=self.credentials,
                    retry_policy=self._retry_policy(),
                )
            target = (
                self.settings.service_endpoint or self.settings.server or "autodiscover"
            )
            logger.debug(f"Created EWS configuration for {target}")
        return self._configuration

    @property
    def uses_autodiscover(self) -> bool:
        return self.settings.autodiscover and not (
            self.settings.server or self.settings.service_endpoint
        )

    def account_for(self, mailbox: str) -> Account:
        """
        Build an impersonated Account for a mailbox.

        No request is sent until the account is first used.

        Args:
            mailbox: Primary SMTP address of the mailbox to open

        Returns:
            exchangelib Account acting as the mailbox owner
        """
        return Account(
            primary_smtp_address=mailbox,
            config=self.configuration,
            autodiscover=self.uses_autodiscover,
            access_type=IMPERSONATION,
        )
