"""
Exchange Web Services wrapper for contact distribution.

Provides a high-level interface to EWS through exchangelib for:
- Opening mailboxes through impersonation
- Reading contacts (with photos) from a mailbox's Contacts folder
- Finding, creating and hard-deleting contacts sub-folders
- Listing display names in a folder and creating contacts in it

Every exchangelib or transport failure is re-raised as ExchangeAPIError so
callers deal with one exception type.
"""

import logging
from collections.abc import Callable
from typing import Any

from exchangelib import Account, Contact, FileAttachment
from exchangelib.errors import EWSError
from exchangelib.folders import Contacts
from exchangelib.items import HARD_DELETE
from requests.exceptions import RequestException

from ews_contact_sync.auth.ews_auth import AuthenticationError, ExchangeAuth
from ews_contact_sync.config.run_config import DEFAULT_MAX_ITEMS, DEFAULT_PAGE_SIZE
from ews_contact_sync.sync.contact import SourceContact
from ews_contact_sync.sync.photo import CONTACT_PHOTO_NAME

# Item and folder classes of Exchange contacts
CONTACT_ITEM_CLASS = "IPM.Contact"
CONTACT_FOLDER_CLASS = "IPF.Contact"

# Errors that mean "the remote operation failed"
REMOTE_ERRORS = (EWSError, RequestException, AuthenticationError)

logger = logging.getLogger(__name__)


class ExchangeAPIError(Exception):
    """Raised when an EWS operation fails."""

    pass


class ExchangeAPI:
    """
    EWS wrapper for contact and folder operations.

    Attributes:
        auth: Impersonation credentials for the service account
        page_size: Items per FindItem page when reading contacts
        max_items: Upper bound on contacts read from one folder

    Usage:
        api = ExchangeAPI(ExchangeAuth(settings))

        # Read the source mailbox
        source = api.connect("contacts@example.com")
        contacts = api.list_contacts(source)

        # Rebuild a folder in a destination mailbox
        account = api.connect("alice@example.com")
        for folder in api.find_contact_folders(account, "Company Contacts"):
            api.delete_folder(folder)
        folder = api.create_contact_folder(account, "Company Contacts")

        # Copy a contact
        item = api.create_contact(account, folder, contacts[0])
    """

    def __init__(
        self,
        auth: ExchangeAuth,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_items: int = DEFAULT_MAX_ITEMS,
    ):
        self.auth = auth
        self.page_size = page_size
        self.max_items = max_items

    def _execute(self, operation: Callable[[], Any], operation_name: str) -> Any:
        """
        Run an EWS operation and translate its failures.

        Throttling retries are handled by the exchangelib retry policy
        configured in ExchangeAuth.

        Raises:
            ExchangeAPIError: If the operation fails
        """
        try:
            return operation()
        except REMOTE_ERRORS as e:
            logger.debug(f"{operation_name} failed: {type(e).__name__}: {e}")
            raise ExchangeAPIError(f"{operation_name} failed: {e}") from e

    def connect(self, mailbox: str) -> Account:
        """
        Open a mailbox through impersonation.

        Resolves the mailbox's Contacts folder so that authentication,
        impersonation rights and mailbox existence are checked here rather
        than on the first real operation.

        Args:
            mailbox: Primary SMTP address

        Returns:
            exchangelib Account acting as the mailbox owner

        Raises:
            ExchangeAPIError: If the mailbox cannot be opened
        """
        logger.debug(f"Connecting to mailbox {mailbox}")

        def execute_connect() -> Account:
            account = self.auth.account_for(mailbox)
            _ = account.contacts
            return account

        return self._execute(execute_connect, f"connect({mailbox})")

    def _contact_photo(self, item: Contact) -> bytes | None:
        for attachment in item.attachments or []:
            if isinstance(attachment, FileAttachment) and attachment.is_contact_photo:
                return attachment.content
        return None

    def list_contacts(self, account: Account) -> list[SourceContact]:
        """
        Read contacts from a mailbox's Contacts folder.

        Reads up to ``max_items`` items of class IPM.Contact with all
        first-class properties, plus their contact photos.

        Args:
            account: Mailbox to read

        Returns:
            List of SourceContact snapshots in folder order

        Raises:
            ExchangeAPIError: If the folder cannot be read
        """

        def execute_list() -> list[Contact]:
            queryset = account.contacts.filter(item_class=CONTACT_ITEM_CLASS)
            queryset.page_size = self.page_size
            return [
                item
                for item in queryset[: self.max_items]
                if isinstance(item, Contact)
            ]

        items = self._execute(
            execute_list, f"list_contacts({account.primary_smtp_address})"
        )

        contacts: list[SourceContact] = []
        for item in items:
            photo = None
            try:
                photo = self._execute(
                    lambda item=item: self._contact_photo(item),
                    f"load_photo({item.display_name})",
                )
            except ExchangeAPIError as e:
                logger.warning(f"Could not load photo of {item.display_name}: {e}")
            contacts.append(SourceContact.from_exchange_item(item, photo=photo))

        logger.debug(
            f"Read {len(contacts)} contacts from {account.primary_smtp_address}"
        )
        return contacts

    def find_contact_folders(self, account: Account, name: str) -> list[Contacts]:
        """
        Find direct children of the Contacts folder with an exact name.

        Args:
            account: Mailbox to search
            name: Folder display name (case-sensitive)

        Returns:
            Matching folders (normally zero or one)
        """

        def execute_find() -> list[Contacts]:
            return [
                folder for folder in account.contacts.children if folder.name == name
            ]

        return self._execute(execute_find, f"find_contact_folders({name})")

    def create_contact_folder(self, account: Account, name: str) -> Contacts:
        """
        Create a contacts folder under the mailbox's Contacts folder.

        Raises:
            ExchangeAPIError: If creation fails
        """

        def execute_create() -> Contacts:
            folder = Contacts(
                parent=account.contacts,
                name=name,
                folder_class=CONTACT_FOLDER_CLASS,
            )
            folder.save()
            return folder

        return self._execute(execute_create, f"create_contact_folder({name})")

    def delete_folder(self, folder: Contacts) -> None:
        """
        Permanently delete a folder and everything in it.

        The folder bypasses Deleted Items and recoverable items.

        Raises:
            ExchangeAPIError: If deletion fails
        """
        self._execute(
            lambda: folder.delete(delete_type=HARD_DELETE),
            f"delete_folder({folder.name})",
        )

    def list_display_names(self, folder: Contacts) -> set[str]:
        """
        Display names of all items in a folder, fetched in one listing.

        Raises:
            ExchangeAPIError: If the folder cannot be read
        """

        def execute_list() -> set[str]:
            return {
                name
                for name in folder.all().values_list("display_name", flat=True)
                if isinstance(name, str)
            }

        return self._execute(execute_list, f"list_display_names({folder.name})")

    def create_contact(
        self, account: Account, folder: Contacts, contact: SourceContact
    ) -> Contact:
        """
        Save a copy of a source contact into a folder.

        Args:
            account: Destination mailbox
            folder: Destination contacts folder
            contact: Source snapshot to copy

        Returns:
            The saved exchangelib Contact

        Raises:
            ExchangeAPIError: If the contact cannot be saved
        """

        def execute_create() -> Contact:
            item = Contact(account=account, folder=folder, **contact.to_exchange_fields())
            item.save()
            return item

        try:
            return self._execute(
                execute_create, f"create_contact({contact.display_name})"
            )
        except (ValueError, TypeError) as e:
            # exchangelib rejects invalid field values before sending
            raise ExchangeAPIError(
                f"create_contact({contact.display_name}) failed: {e}"
            ) from e

    def attach_photo(self, item: Contact, photo: bytes) -> None:
        """
        Attach a contact picture to a saved contact.

        Raises:
            ExchangeAPIError: If the attachment cannot be created
        """
        attachment = FileAttachment(
            name=CONTACT_PHOTO_NAME,
            content=photo,
            content_type="image/jpeg",
            is_contact_photo=True,
        )
        self._execute(
            lambda: item.attach(attachment), f"attach_photo({item.display_name})"
        )
