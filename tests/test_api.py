"""
Unit tests for the Exchange Web Services wrapper.

The exchangelib boundary is mocked; no Exchange server is required.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, PropertyMock, patch

import pytest
from exchangelib import Contact, FileAttachment
from exchangelib.errors import EWSError
from exchangelib.items import HARD_DELETE
from requests.exceptions import ConnectionError as RequestsConnectionError

from ews_contact_sync.api import ExchangeAPI, ExchangeAPIError
from ews_contact_sync.api.ews_api import CONTACT_FOLDER_CLASS, CONTACT_ITEM_CLASS
from ews_contact_sync.auth import AuthenticationError, ExchangeAuth
from ews_contact_sync.sync.contact import SourceContact
from ews_contact_sync.sync.photo import CONTACT_PHOTO_NAME


def contact_item(display_name, photo=None):
    """A mocked exchangelib Contact with an optional contact photo."""
    item = MagicMock(spec=Contact)
    item.given_name = display_name.split()[0]
    item.surname = display_name.split()[-1]
    item.display_name = display_name
    item.department = None
    item.office = None
    item.job_title = None
    item.phone_numbers = None
    item.email_addresses = None
    item.attachments = []
    if photo is not None:
        attachment = MagicMock(spec=FileAttachment)
        attachment.is_contact_photo = True
        attachment.content = photo
        item.attachments = [attachment]
    return item


@pytest.fixture
def mock_auth():
    """A mocked ExchangeAuth."""
    return MagicMock(spec=ExchangeAuth)


@pytest.fixture
def mock_account():
    """A mocked exchangelib Account."""
    account = MagicMock()
    account.primary_smtp_address = "contacts@example.com"
    return account


@pytest.fixture
def api(mock_auth):
    """An ExchangeAPI with small paging limits."""
    return ExchangeAPI(mock_auth, page_size=50, max_items=200)


class TestConnect:
    """Tests for opening a mailbox."""

    def test_connect_returns_account(self, api, mock_auth, mock_account):
        """Test that the impersonated account is returned."""
        mock_auth.account_for.return_value = mock_account

        assert api.connect("alice@example.com") is mock_account
        mock_auth.account_for.assert_called_once_with("alice@example.com")

    def test_connect_ews_error(self, api, mock_auth):
        """Test that an EWS failure becomes ExchangeAPIError."""
        mock_auth.account_for.side_effect = EWSError("impersonation denied")

        with pytest.raises(ExchangeAPIError, match="impersonation denied"):
            api.connect("alice@example.com")

    def test_connect_transport_error(self, api, mock_auth):
        """Test that a transport failure becomes ExchangeAPIError."""
        mock_auth.account_for.side_effect = RequestsConnectionError("unreachable")

        with pytest.raises(ExchangeAPIError, match="connect"):
            api.connect("alice@example.com")

    def test_connect_missing_credentials(self, api, mock_auth):
        """Test that missing credentials become ExchangeAPIError."""
        mock_auth.account_for.side_effect = AuthenticationError("password not set")

        with pytest.raises(ExchangeAPIError, match="password not set"):
            api.connect("alice@example.com")


class TestListContacts:
    """Tests for reading source contacts."""

    def test_reads_contacts_and_photos(self, api, mock_account):
        """Test that contacts are returned in folder order with photos."""
        queryset = MagicMock()
        queryset.__getitem__.return_value = [
            contact_item("Jane Doe", photo=b"jpeg-bytes"),
            contact_item("John Smith"),
        ]
        mock_account.contacts.filter.return_value = queryset

        contacts = api.list_contacts(mock_account)

        mock_account.contacts.filter.assert_called_once_with(
            item_class=CONTACT_ITEM_CLASS
        )
        queryset.__getitem__.assert_called_once_with(slice(None, 200, None))
        assert queryset.page_size == 50
        assert [c.display_name for c in contacts] == ["Jane Doe", "John Smith"]
        assert all(isinstance(c, SourceContact) for c in contacts)
        assert contacts[0].photo == b"jpeg-bytes"
        assert contacts[1].photo is None

    def test_skips_non_contact_items(self, api, mock_account):
        """Test that distribution lists and other items are left out."""
        queryset = MagicMock()
        queryset.__getitem__.return_value = [contact_item("Jane Doe"), object()]
        mock_account.contacts.filter.return_value = queryset

        contacts = api.list_contacts(mock_account)

        assert len(contacts) == 1

    def test_empty_folder(self, api, mock_account):
        """Test that an empty Contacts folder yields an empty list."""
        queryset = MagicMock()
        queryset.__getitem__.return_value = []
        mock_account.contacts.filter.return_value = queryset

        assert api.list_contacts(mock_account) == []

    def test_photo_failure_keeps_contact(self, api, mock_account):
        """Test that a photo that cannot be loaded does not drop the contact."""
        item = contact_item("Jane Doe", photo=b"unused")
        type(item.attachments[0]).content = PropertyMock(
            side_effect=EWSError("attachment gone")
        )
        queryset = MagicMock()
        queryset.__getitem__.return_value = [item]
        mock_account.contacts.filter.return_value = queryset

        contacts = api.list_contacts(mock_account)

        assert contacts[0].display_name == "Jane Doe"
        assert contacts[0].photo is None

    def test_read_failure_raises(self, api, mock_account):
        """Test that a failed FindItem becomes ExchangeAPIError."""
        mock_account.contacts.filter.side_effect = EWSError("folder not found")

        with pytest.raises(ExchangeAPIError, match="list_contacts"):
            api.list_contacts(mock_account)


class TestFolders:
    """Tests for folder lookup, creation and deletion."""

    def test_find_exact_name(self, api, mock_account):
        """Test that only folders with exactly the name are returned."""
        wanted = SimpleNamespace(name="Company Contacts")
        mock_account.contacts.children = [
            SimpleNamespace(name="company contacts"),
            wanted,
            SimpleNamespace(name="Company Contacts (old)"),
        ]

        assert api.find_contact_folders(mock_account, "Company Contacts") == [wanted]

    def test_find_none(self, api, mock_account):
        """Test that no match yields an empty list."""
        mock_account.contacts.children = []
        assert api.find_contact_folders(mock_account, "Company Contacts") == []

    @patch("ews_contact_sync.api.ews_api.Contacts")
    def test_create_folder(self, mock_contacts_cls, api, mock_account):
        """Test that a contacts folder is created under Contacts."""
        folder = mock_contacts_cls.return_value

        result = api.create_contact_folder(mock_account, "Company Contacts")

        assert result is folder
        mock_contacts_cls.assert_called_once_with(
            parent=mock_account.contacts,
            name="Company Contacts",
            folder_class=CONTACT_FOLDER_CLASS,
        )
        folder.save.assert_called_once_with()

    @patch("ews_contact_sync.api.ews_api.Contacts")
    def test_create_folder_failure(self, mock_contacts_cls, api, mock_account):
        """Test that a failed save becomes ExchangeAPIError."""
        mock_contacts_cls.return_value.save.side_effect = EWSError("quota")

        with pytest.raises(ExchangeAPIError, match="create_contact_folder"):
            api.create_contact_folder(mock_account, "Company Contacts")

    def test_delete_folder_hard(self, api):
        """Test that folders are hard-deleted."""
        folder = MagicMock()
        folder.name = "Company Contacts"

        api.delete_folder(folder)

        folder.delete.assert_called_once_with(delete_type=HARD_DELETE)

    def test_delete_folder_failure(self, api):
        """Test that a failed delete becomes ExchangeAPIError."""
        folder = MagicMock()
        folder.name = "Company Contacts"
        folder.delete.side_effect = EWSError("access denied")

        with pytest.raises(ExchangeAPIError, match="access denied"):
            api.delete_folder(folder)

    def test_list_display_names(self, api):
        """Test that display names are returned as a set."""
        folder = MagicMock()
        folder.all.return_value.values_list.return_value = [
            "Jane Doe",
            None,
            "John Smith",
            "Jane Doe",
        ]

        assert api.list_display_names(folder) == {"Jane Doe", "John Smith"}
        folder.all.return_value.values_list.assert_called_once_with(
            "display_name", flat=True
        )


class TestCreateContact:
    """Tests for contact creation."""

    @patch("ews_contact_sync.api.ews_api.Contact")
    def test_create_contact(self, mock_contact_cls, api, mock_account):
        """Test that a contact is built from the snapshot and saved."""
        folder = MagicMock()
        contact = SourceContact(given_name="Jane", surname="Doe", display_name="Jane Doe")

        item = api.create_contact(mock_account, folder, contact)

        assert item is mock_contact_cls.return_value
        kwargs = mock_contact_cls.call_args.kwargs
        assert kwargs["account"] is mock_account
        assert kwargs["folder"] is folder
        assert kwargs["display_name"] == "Jane Doe"
        assert kwargs["given_name"] == "Jane"
        item.save.assert_called_once_with()

    @patch("ews_contact_sync.api.ews_api.Contact")
    def test_create_contact_ews_error(self, mock_contact_cls, api, mock_account):
        """Test that a rejected save becomes ExchangeAPIError."""
        mock_contact_cls.return_value.save.side_effect = EWSError("mailbox full")

        with pytest.raises(ExchangeAPIError, match="mailbox full"):
            api.create_contact(mock_account, MagicMock(), SourceContact(display_name="A"))

    @patch("ews_contact_sync.api.ews_api.Contact")
    def test_create_contact_invalid_value(self, mock_contact_cls, api, mock_account):
        """Test that client-side validation errors become ExchangeAPIError."""
        mock_contact_cls.return_value.save.side_effect = ValueError("bad phone")

        with pytest.raises(ExchangeAPIError, match="bad phone"):
            api.create_contact(mock_account, MagicMock(), SourceContact(display_name="A"))


class TestAttachPhoto:
    """Tests for contact photo attachment."""

    @patch("ews_contact_sync.api.ews_api.FileAttachment")
    def test_attach_photo(self, mock_attachment_cls, api):
        """Test that the photo is attached as a contact picture."""
        item = MagicMock()

        api.attach_photo(item, b"jpeg")

        mock_attachment_cls.assert_called_once_with(
            name=CONTACT_PHOTO_NAME,
            content=b"jpeg",
            content_type="image/jpeg",
            is_contact_photo=True,
        )
        item.attach.assert_called_once_with(mock_attachment_cls.return_value)

    @patch("ews_contact_sync.api.ews_api.FileAttachment")
    def test_attach_photo_failure(self, mock_attachment_cls, api):
        """Test that a failed attach becomes ExchangeAPIError."""
        item = MagicMock()
        item.attach.side_effect = EWSError("too large")

        with pytest.raises(ExchangeAPIError, match="attach_photo"):
            api.attach_photo(item, b"jpeg")
