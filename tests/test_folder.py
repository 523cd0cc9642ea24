"""
Tests for destination folder management.
"""

import logging
from unittest.mock import MagicMock

import pytest

from ews_contact_sync.api import ExchangeAPI, ExchangeAPIError
from ews_contact_sync.sync.folder import FolderAction, FolderManager
from ews_contact_sync.utils.logging import MailboxLogger

FOLDER_NAME = "Company Contacts"


@pytest.fixture
def mock_api():
    """Create a mock ExchangeAPI."""
    return MagicMock(spec=ExchangeAPI)


@pytest.fixture
def manager(mock_api):
    return FolderManager(mock_api)


@pytest.fixture
def log():
    """Logger tagged with a destination mailbox."""
    return MailboxLogger(logging.getLogger("ews_contact_sync.test"), "alice@example.com")


class TestRecreate:
    """Tests for FolderManager.recreate."""

    def test_creates_when_missing(self, manager, mock_api, log, caplog):
        """Test that a folder is created when none exists."""
        caplog.set_level(logging.INFO, logger="ews_contact_sync")
        new_folder = MagicMock(id="AAMk-new")
        mock_api.find_contact_folders.return_value = []
        mock_api.create_contact_folder.return_value = new_folder

        result = manager.recreate("account", FOLDER_NAME, log)

        assert result.ok is True
        assert result.action == FolderAction.CREATED
        assert result.folder is new_folder
        assert result.deleted == 0
        assert result.info.folder_id == "AAMk-new"
        assert result.info.name == FOLDER_NAME
        assert result.info.mailbox == "alice@example.com"
        mock_api.delete_folder.assert_not_called()
        assert [r.getMessage() for r in caplog.records] == [
            f"Created folder {FOLDER_NAME}"
        ]

    def test_deletes_then_creates(self, manager, mock_api, log, caplog):
        """Test that an existing folder is deleted before the new one is made."""
        caplog.set_level(logging.INFO, logger="ews_contact_sync")
        old_folder = MagicMock()
        calls = []
        mock_api.find_contact_folders.return_value = [old_folder]
        mock_api.delete_folder.side_effect = lambda f: calls.append("delete")
        mock_api.create_contact_folder.side_effect = lambda a, n: (
            calls.append("create") or MagicMock(id="AAMk-new")
        )

        result = manager.recreate("account", FOLDER_NAME, log)

        assert result.action == FolderAction.RECREATED
        assert result.deleted == 1
        assert calls == ["delete", "create"]
        mock_api.delete_folder.assert_called_once_with(old_folder)
        assert [r.getMessage() for r in caplog.records] == [
            f"Deleted folder {FOLDER_NAME}",
            f"Created folder {FOLDER_NAME}",
        ]

    def test_deletes_every_duplicate(self, manager, mock_api, log):
        """Test that duplicate folders with the same name are all removed."""
        mock_api.find_contact_folders.return_value = [MagicMock(), MagicMock()]
        mock_api.create_contact_folder.return_value = MagicMock(id="x")

        result = manager.recreate("account", FOLDER_NAME, log)

        assert result.deleted == 2
        assert mock_api.delete_folder.call_count == 2
        assert result.ok is True

    def test_delete_failure_skips_create(self, manager, mock_api, log, caplog):
        """Test that a failed delete leaves the old folder and creates nothing."""
        caplog.set_level(logging.INFO, logger="ews_contact_sync")
        mock_api.find_contact_folders.return_value = [MagicMock()]
        mock_api.delete_folder.side_effect = ExchangeAPIError("access denied")

        result = manager.recreate("account", FOLDER_NAME, log)

        assert result.ok is False
        assert result.action == FolderAction.DELETE_FAILED
        assert "access denied" in result.error
        mock_api.create_contact_folder.assert_not_called()
        error_records = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert error_records[0].mailbox == "alice@example.com"
        assert str(error_records[0].error) == "access denied"

    def test_create_failure(self, manager, mock_api, log):
        """Test that a failed create is reported."""
        mock_api.find_contact_folders.return_value = []
        mock_api.create_contact_folder.side_effect = ExchangeAPIError("quota")

        result = manager.recreate("account", FOLDER_NAME, log)

        assert result.ok is False
        assert result.action == FolderAction.CREATE_FAILED
        assert result.folder is None
        assert result.info is None

    def test_find_failure(self, manager, mock_api, log):
        """Test that a failed folder search is reported as a search failure."""
        mock_api.find_contact_folders.side_effect = ExchangeAPIError("timeout")

        result = manager.recreate("account", FOLDER_NAME, log)

        assert result.ok is False
        assert result.action == FolderAction.SEARCH_FAILED
        mock_api.delete_folder.assert_not_called()
        mock_api.create_contact_folder.assert_not_called()
