"""
Destination folder management for Exchange contact distribution.

Gives each destination mailbox a fresh, empty contacts sub-folder:
- No folder with the configured name: create one
- Existing folder(s): hard-delete, then create a new empty one
- Search, deletion or creation fails: report failure so the caller can skip the
  mailbox instead of writing into a stale or missing folder
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from ews_contact_sync.api.ews_api import ExchangeAPI, ExchangeAPIError
from ews_contact_sync.sync.contact import ContactFolder
from ews_contact_sync.utils.logging import MailboxLogger

logger = logging.getLogger(__name__)


class FolderAction(str, Enum):
    """What the folder manager did for one mailbox."""

    CREATED = "created"  # No previous folder existed
    RECREATED = "recreated"  # Previous folder deleted, new one created
    DELETE_FAILED = "delete_failed"  # Previous folder left in place
    CREATE_FAILED = "create_failed"  # No usable folder
    SEARCH_FAILED = "search_failed"  # Existing folders could not be listed


@dataclass
class FolderResult:
    """
    Outcome of rebuilding the destination folder in one mailbox.

    Attributes:
        action: What happened
        folder: The new folder handle, or None on failure
        info: Identifier and name of the new folder, or None on failure
        deleted: Number of previous folders deleted
        error: Failure detail, if any
    """

    action: FolderAction
    folder: Optional[Any] = None
    info: Optional[ContactFolder] = None
    deleted: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.folder is not None


class FolderManager:
    """
    Delete-then-create of the destination contacts folder.

    Usage:
        manager = FolderManager(api)
        result = manager.recreate(account, "Company Contacts", log)
        if result.ok:
            write_contacts(result.folder)
    """

    def __init__(self, api: ExchangeAPI):
        self.api = api

    def recreate(
        self, account: Any, folder_name: str, log: MailboxLogger
    ) -> FolderResult:
        """
        Give a mailbox a fresh, empty contacts folder named ``folder_name``.

        Any existing direct child of the Contacts folder with exactly that
        name is permanently deleted first, including contacts added to it by
        hand. If a deletion fails no folder is created and the old folder is
        left untouched.

        Args:
            account: Destination mailbox
            folder_name: Display name of the folder
            log: Logger tagged with the mailbox address

        Returns:
            FolderResult; ``result.ok`` is False on any failure
        """
        try:
            existing = self.api.find_contact_folders(account, folder_name)
        except ExchangeAPIError as e:
            log.error(f"Could not search for folder {folder_name}", extra={"error": e})
            return FolderResult(action=FolderAction.SEARCH_FAILED, error=str(e))

        deleted = 0
        for folder in existing:
            try:
                self.api.delete_folder(folder)
            except ExchangeAPIError as e:
                log.error(f"Could not delete folder {folder_name}", extra={"error": e})
                return FolderResult(
                    action=FolderAction.DELETE_FAILED, deleted=deleted, error=str(e)
                )
            deleted += 1
            log.info(f"Deleted folder {folder_name}")

        try:
            folder = self.api.create_contact_folder(account, folder_name)
        except ExchangeAPIError as e:
            log.error(f"Could not create folder {folder_name}", extra={"error": e})
            return FolderResult(
                action=FolderAction.CREATE_FAILED, deleted=deleted, error=str(e)
            )

        log.info(f"Created folder {folder_name}")
        return FolderResult(
            action=FolderAction.RECREATED if deleted else FolderAction.CREATED,
            folder=folder,
            info=ContactFolder(
                folder_id=getattr(folder, "id", None) or "",
                name=folder_name,
                mailbox=log.mailbox,
            ),
            deleted=deleted,
        )
