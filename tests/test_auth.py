"""
Unit tests for EWS impersonation authentication.

exchangelib classes are patched where the module imports them.
"""

import os
from unittest.mock import patch

import pytest

from ews_contact_sync.auth import AuthenticationError, ExchangeAuth
from ews_contact_sync.auth.ews_auth import IMPERSONATION
from ews_contact_sync.config import ExchangeSettings

PASSWORD_ENV = {"EWS_CONTACT_SYNC_PASSWORD": "s3cret"}


@pytest.fixture
def settings():
    """Settings for an explicit EWS server."""
    return ExchangeSettings(username="svc@example.com", server="mail.example.com")


class TestCredentials:
    """Tests for service account credentials."""

    @patch.dict(os.environ, PASSWORD_ENV)
    @patch("ews_contact_sync.auth.ews_auth.Credentials")
    def test_credentials_from_environment(self, mock_credentials, settings):
        """Test that credentials use the configured username and env password."""
        auth = ExchangeAuth(settings)

        assert auth.credentials is mock_credentials.return_value
        mock_credentials.assert_called_once_with(
            username="svc@example.com", password="s3cret"
        )

    @patch.dict(os.environ, PASSWORD_ENV)
    @patch("ews_contact_sync.auth.ews_auth.Credentials")
    def test_credentials_cached(self, mock_credentials, settings):
        """Test that credentials are built once."""
        auth = ExchangeAuth(settings)
        _ = auth.credentials
        _ = auth.credentials
        assert mock_credentials.call_count == 1

    @patch.dict(os.environ, {}, clear=True)
    def test_missing_password(self, settings):
        """Test that an unset password variable raises AuthenticationError."""
        with pytest.raises(AuthenticationError, match="EWS_CONTACT_SYNC_PASSWORD"):
            _ = ExchangeAuth(settings).credentials

    def test_missing_username(self):
        """Test that an empty username raises AuthenticationError."""
        auth = ExchangeAuth(ExchangeSettings(username="", server="mail.example.com"))
        with pytest.raises(AuthenticationError, match="username"):
            _ = auth.credentials


@patch.dict(os.environ, PASSWORD_ENV)
@patch("ews_contact_sync.auth.ews_auth.Credentials")
class TestConfiguration:
    """Tests for the shared EWS configuration."""

    @patch("ews_contact_sync.auth.ews_auth.FailFast")
    @patch("ews_contact_sync.auth.ews_auth.Configuration")
    def test_server(self, mock_config, mock_fail_fast, mock_credentials, settings):
        """Test a configuration for an explicit server."""
        auth = ExchangeAuth(settings)

        assert auth.configuration is mock_config.return_value
        mock_config.assert_called_once_with(
            server="mail.example.com",
            credentials=mock_credentials.return_value,
            retry_policy=mock_fail_fast.return_value,
        )

    @patch("ews_contact_sync.auth.ews_auth.Configuration")
    def test_service_endpoint_preferred(self, mock_config, mock_credentials):
        """Test that a full endpoint URL wins over the server name."""
        settings = ExchangeSettings(
            username="svc@example.com",
            server="mail.example.com",
            service_endpoint="https://mail.example.com/EWS/Exchange.asmx",
        )

        _ = ExchangeAuth(settings).configuration

        kwargs = mock_config.call_args.kwargs
        assert kwargs["service_endpoint"] == "https://mail.example.com/EWS/Exchange.asmx"
        assert "server" not in kwargs

    @patch("ews_contact_sync.auth.ews_auth.FaultTolerance")
    @patch("ews_contact_sync.auth.ews_auth.Configuration")
    def test_retry_policy(self, mock_config, mock_fault_tolerance, mock_credentials):
        """Test that max_wait enables the fault-tolerant retry policy."""
        settings = ExchangeSettings(
            username="svc@example.com", server="mail.example.com", max_wait=120
        )

        _ = ExchangeAuth(settings).configuration

        mock_fault_tolerance.assert_called_once_with(max_wait=120)
        assert (
            mock_config.call_args.kwargs["retry_policy"]
            is mock_fault_tolerance.return_value
        )

    @patch("ews_contact_sync.auth.ews_auth.Configuration")
    def test_configuration_cached(self, mock_config, mock_credentials, settings):
        """Test that one configuration is shared by every mailbox."""
        auth = ExchangeAuth(settings)
        _ = auth.configuration
        _ = auth.configuration
        assert mock_config.call_count == 1

    @patch("ews_contact_sync.auth.ews_auth.FaultTolerance")
    @patch("ews_contact_sync.auth.ews_auth.Configuration")
    def test_autodiscover_keeps_retry_policy(
        self, mock_config, mock_fault_tolerance, mock_credentials
    ):
        """Test that autodiscover still gets credentials and the retry policy."""
        settings = ExchangeSettings(
            username="svc@example.com", autodiscover=True, max_wait=120
        )

        assert ExchangeAuth(settings).configuration is mock_config.return_value
        mock_config.assert_called_once_with(
            credentials=mock_credentials.return_value,
            retry_policy=mock_fault_tolerance.return_value,
        )
        mock_fault_tolerance.assert_called_once_with(max_wait=120)


@patch.dict(os.environ, PASSWORD_ENV)
@patch("ews_contact_sync.auth.ews_auth.Credentials")
@patch("ews_contact_sync.auth.ews_auth.Configuration")
@patch("ews_contact_sync.auth.ews_auth.Account")
class TestAccountFor:
    """Tests for impersonated account creation."""

    def test_with_configuration(
        self, mock_account, mock_config, mock_credentials, settings
    ):
        """Test an impersonated account on the shared configuration."""
        account = ExchangeAuth(settings).account_for("alice@example.com")

        assert account is mock_account.return_value
        mock_account.assert_called_once_with(
            primary_smtp_address="alice@example.com",
            config=mock_config.return_value,
            autodiscover=False,
            access_type=IMPERSONATION,
        )

    def test_with_autodiscover(self, mock_account, mock_config, mock_credentials):
        """Test an impersonated account located through autodiscover."""
        settings = ExchangeSettings(username="svc@example.com", autodiscover=True)

        ExchangeAuth(settings).account_for("alice@example.com")

        mock_account.assert_called_once_with(
            primary_smtp_address="alice@example.com",
            config=mock_config.return_value,
            autodiscover=True,
            access_type=IMPERSONATION,
        )
