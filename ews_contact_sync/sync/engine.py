"""
Sync engine for Exchange contact distribution.

Orchestrates one run:

    read source contacts -> resolve destination mailboxes ->
    for each mailbox: rebuild folder -> copy contacts

Only three conditions abort a run: the source mailbox cannot be read or has
no contacts, or the destination group resolves to no mailboxes. Everything
else is logged and the run moves on to the next contact or mailbox.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ews_contact_sync.api.ews_api import ExchangeAPI, ExchangeAPIError
from ews_contact_sync.config.run_config import RunConfig, RunContext
from ews_contact_sync.directory.ldap_directory import DirectoryError, LDAPDirectory
from ews_contact_sync.sync.contact import DestinationMailbox, SourceContact
from ews_contact_sync.sync.folder import FolderAction, FolderManager, FolderResult
from ews_contact_sync.sync.photo import PhotoError, process_photo
from ews_contact_sync.utils.logging import MailboxLogger

logger = logging.getLogger(__name__)

# Reason given in the "Mailbox skipped" event when the folder cannot be rebuilt
FOLDER_FAILURE_REASONS = {
    FolderAction.SEARCH_FAILED: "existing folders could not be listed",
    FolderAction.DELETE_FAILED: "old folder could not be deleted",
    FolderAction.CREATE_FAILED: "folder could not be created",
}


class SyncError(Exception):
    """Base class for sync engine errors."""

    pass


class SyncAbortedError(SyncError):
    """Raised when a run cannot continue at all."""

    pass


class SourceUnavailableError(SyncAbortedError):
    """Raised when the source mailbox cannot be opened or read."""

    pass


class NoSourceContactsError(SyncAbortedError):
    """Raised when the source mailbox has no contacts."""

    pass


class DestinationsUnavailableError(SyncAbortedError):
    """Raised when the destination group cannot be read."""

    pass


class NoDestinationMailboxesError(SyncAbortedError):
    """Raised when the destination group resolves to no mailboxes."""

    pass


class MailboxStatus(str, Enum):
    """Outcome for one destination mailbox."""

    SYNCED = "synced"
    CONNECT_FAILED = "connect_failed"  # Skipped: mailbox could not be opened
    FOLDER_FAILED = "folder_failed"  # Skipped: folder could not be rebuilt
    PLANNED = "planned"  # Dry run: nothing changed


@dataclass
class MailboxResult:
    """
    What happened in one destination mailbox.

    Attributes:
        mailbox: The destination mailbox
        status: Overall outcome
        folder: Folder rebuild result (None if never attempted)
        created: Display names of contacts created
        skipped: Display names skipped because they already existed
        failed: Display names whose save failed
        photos_attached: Photos attached to created contacts
        photos_failed: Photos that could not be attached
        error: Failure detail for skipped mailboxes
    """

    mailbox: DestinationMailbox
    status: MailboxStatus = MailboxStatus.SYNCED
    folder: Optional[FolderResult] = None
    created: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    photos_attached: int = 0
    photos_failed: int = 0
    error: Optional[str] = None

    @property
    def was_skipped(self) -> bool:
        return self.status in (MailboxStatus.CONNECT_FAILED, MailboxStatus.FOLDER_FAILED)


@dataclass
class SyncStats:
    """
    Statistics from a sync run.

    Tracks counts of all operations performed during the run.
    """

    source_contacts: int = 0
    destination_mailboxes: int = 0
    mailboxes_synced: int = 0
    mailboxes_skipped: int = 0
    folders_created: int = 0
    folders_deleted: int = 0
    contacts_created: int = 0
    contacts_skipped: int = 0
    contacts_failed: int = 0
    photos_attached: int = 0
    photos_failed: int = 0

    @property
    def has_failures(self) -> bool:
        return bool(
            self.mailboxes_skipped or self.contacts_failed or self.photos_failed
        )


@dataclass
class SyncResult:
    """
    Result of a sync run.

    Contains the source snapshot, resolved destinations, per-mailbox
    outcomes and statistics.
    """

    source_mailbox: str
    folder_name: str
    dry_run: bool = False
    contacts: list[SourceContact] = field(default_factory=list)
    destinations: list[DestinationMailbox] = field(default_factory=list)
    mailboxes: list[MailboxResult] = field(default_factory=list)
    stats: SyncStats = field(default_factory=SyncStats)

    def summary(self) -> str:
        """
        Generate a human-readable summary of the run.

        Returns:
            Formatted string summary of sync operations
        """
        mode = " (dry run)" if self.dry_run else ""
        lines = [
            f"Sync Summary{mode}:",
            f"  Source: {self.source_mailbox} "
            f"({self.stats.source_contacts} contacts)",
            f"  Folder: {self.folder_name}",
            f"  Destination mailboxes: {self.stats.destination_mailboxes}",
            "",
        ]

        if self.dry_run:
            lines.append(
                f"  Would rebuild {len(self.mailboxes)} folders and create up to "
                f"{self.stats.source_contacts * len(self.mailboxes)} contacts"
            )
            return "\n".join(lines)

        lines.extend(
            [
                f"  Mailboxes synced: {self.stats.mailboxes_synced}",
                f"  Mailboxes skipped: {self.stats.mailboxes_skipped}",
                f"  Folders created: {self.stats.folders_created}",
                f"  Folders deleted: {self.stats.folders_deleted}",
                f"  Contacts created: {self.stats.contacts_created}",
                f"  Contacts skipped (already present): "
                f"{self.stats.contacts_skipped}",
                f"  Contacts failed: {self.stats.contacts_failed}",
            ]
        )

        if self.stats.photos_attached or self.stats.photos_failed:
            lines.append("")
            lines.append("Photos:")
            lines.append(f"  Photos attached: {self.stats.photos_attached}")
            if self.stats.photos_failed:
                lines.append(f"  Photos failed: {self.stats.photos_failed}")

        skipped = [m for m in self.mailboxes if m.was_skipped]
        if skipped:
            lines.append("")
            lines.append("Skipped mailboxes:")
            for result in skipped:
                lines.append(f"  {result.mailbox.email}: {result.error}")

        return "\n".join(lines)


class SyncEngine:
    """
    One-way contact distribution from a source mailbox to a group.

    Every run rebuilds the destination folder from scratch. A contact whose
    display name is already in the destination folder is skipped, never
    updated.

    Usage:
        engine = SyncEngine(
            context=RunContext.from_dict(config, log_file=log_file),
            api=ExchangeAPI(ExchangeAuth(settings)),
            directory=LDAPDirectory(directory_settings),
        )
        result = engine.run()
        print(result.summary())
    """

    def __init__(
        self,
        context: RunContext,
        api: ExchangeAPI,
        directory: LDAPDirectory,
        folder_manager: Optional[FolderManager] = None,
    ):
        """
        Initialize the sync engine.

        Args:
            context: Immutable run context
            api: EWS wrapper used for every mailbox
            directory: Directory client used to resolve the destination group
            folder_manager: Folder rebuild strategy (default: FolderManager(api))
        """
        self.context = context
        self.api = api
        self.directory = directory
        self.folder_manager = folder_manager or FolderManager(api)

    @property
    def config(self) -> RunConfig:
        return self.context.config

    def run(self) -> SyncResult:
        """
        Perform a complete run.

        Returns:
            SyncResult with per-mailbox outcomes and statistics

        Raises:
            SyncAbortedError: If the source cannot be read, has no contacts,
                or no destination mailbox resolves
        """
        result = SyncResult(
            source_mailbox=self.config.source_mailbox,
            folder_name=self.config.folder_name,
            dry_run=self.context.dry_run,
        )

        logger.info(
            f"Starting sync of {self.config.source_mailbox} to group "
            f"{self.config.destination_group} (folder: {self.config.folder_name}, "
            f"dry_run={self.context.dry_run})"
        )

        result.contacts = self.read_source()
        result.stats.source_contacts = len(result.contacts)

        result.destinations = self.resolve_destinations()
        result.stats.destination_mailboxes = len(result.destinations)

        photos = self._prepare_photos(result.contacts)

        for mailbox in result.destinations:
            if self.context.dry_run:
                mailbox_result = self.plan_mailbox(mailbox, result.contacts)
            else:
                mailbox_result = self.sync_mailbox(mailbox, result.contacts, photos)
            result.mailboxes.append(mailbox_result)
            self._update_stats(result.stats, mailbox_result)

        logger.info(
            f"Sync finished: {result.stats.mailboxes_synced} mailboxes synced, "
            f"{result.stats.mailboxes_skipped} skipped, "
            f"{result.stats.contacts_created} contacts created"
        )
        return result

    def read_source(self) -> list[SourceContact]:
        """
        Read all contacts from the source mailbox.

        Raises:
            SourceUnavailableError: If the mailbox cannot be opened or read
            NoSourceContactsError: If it has no contacts
        """
        source = self.config.source_mailbox
        log = MailboxLogger(logger, source)

        try:
            account = self.api.connect(source)
            contacts = self.api.list_contacts(account)
        except ExchangeAPIError as e:
            log.error("Could not read source contacts", extra={"error": e})
            raise SourceUnavailableError(
                f"Could not read contacts of {source}: {e}"
            ) from e

        log.info(f"Read {len(contacts)} contacts from source mailbox")

        if not contacts:
            log.error("No contacts found in source mailbox, aborting")
            raise NoSourceContactsError(f"No contacts found in {source}")

        return contacts

    def resolve_destinations(self) -> list[DestinationMailbox]:
        """
        Resolve the destination group into mailboxes.

        Raises:
            DestinationsUnavailableError: If the group lookup fails
            NoDestinationMailboxesError: If no member resolves to a mailbox
        """
        group = self.config.destination_group
        try:
            mailboxes = self.directory.resolve_mailboxes(group)
        except DirectoryError as e:
            logger.error(f"Could not resolve group {group}", extra={"error": e})
            raise DestinationsUnavailableError(
                f"Could not resolve group {group}: {e}"
            ) from e

        if not mailboxes:
            logger.error(f"No destination mailboxes found in group {group}, aborting")
            raise NoDestinationMailboxesError(
                f"No destination mailboxes found in group {group}"
            )

        return mailboxes

    def _prepare_photos(self, contacts: list[SourceContact]) -> list[Optional[bytes]]:
        """Process each source photo once; None where there is no usable photo."""
        photos: list[Optional[bytes]] = []
        for contact in contacts:
            if not contact.has_photo or self.context.dry_run:
                photos.append(None)
                continue
            try:
                photos.append(process_photo(contact.photo))  # type: ignore[arg-type]
            except PhotoError as e:
                logger.warning(
                    f"Photo of {contact} cannot be used, copying without it",
                    extra={"error": e},
                )
                photos.append(None)
        return photos

    def plan_mailbox(
        self, mailbox: DestinationMailbox, contacts: list[SourceContact]
    ) -> MailboxResult:
        """Log what a real run would do in a mailbox, without connecting to it."""
        log = MailboxLogger(logger, mailbox.email)
        log.info(
            f"Dry run: would recreate folder {self.config.folder_name} "
            f"and create {len(contacts)} contacts"
        )
        return MailboxResult(mailbox=mailbox, status=MailboxStatus.PLANNED)

    def sync_mailbox(
        self,
        mailbox: DestinationMailbox,
        contacts: list[SourceContact],
        photos: Optional[list[Optional[bytes]]] = None,
    ) -> MailboxResult:
        """
        Rebuild the folder in one mailbox and copy every contact into it.

        The folder rebuild always completes before the first contact write.
        A mailbox that cannot be opened, or whose folder cannot be rebuilt,
        is skipped with a "Mailbox skipped" event.

        Args:
            mailbox: Destination mailbox
            contacts: Source contacts
            photos: Processed photo per contact (same order), if any

        Returns:
            MailboxResult for the mailbox
        """
        log = MailboxLogger(logger, mailbox.email)
        result = MailboxResult(mailbox=mailbox)
        photos = photos if photos is not None else [None] * len(contacts)

        try:
            account = self.api.connect(mailbox.email)
        except ExchangeAPIError as e:
            log.error("Could not connect to mailbox", extra={"error": e})
            log.warning("Mailbox skipped: connection failed")
            result.status = MailboxStatus.CONNECT_FAILED
            result.error = f"connection failed: {e}"
            return result

        folder_result = self.folder_manager.recreate(
            account, self.config.folder_name, log
        )
        result.folder = folder_result
        if not folder_result.ok:
            reason = FOLDER_FAILURE_REASONS[folder_result.action]
            log.warning(f"Mailbox skipped: {reason}")
            result.status = MailboxStatus.FOLDER_FAILED
            result.error = f"{reason}: {folder_result.error}"
            return result

        self.write_contacts(account, folder_result.folder, contacts, photos, log, result)
        return result

    def write_contacts(
        self,
        account: Any,
        folder: Any,
        contacts: list[SourceContact],
        photos: list[Optional[bytes]],
        log: MailboxLogger,
        result: MailboxResult,
    ) -> None:
        """
        Copy contacts into a folder, skipping display names already present.

        The folder is listed once; each created contact's display name is
        added to the in-memory set so a name repeated in the source is only
        created once. Save failures are logged and do not stop the loop.
        """
        try:
            existing = self.api.list_display_names(folder)
        except ExchangeAPIError as e:
            log.warning(
                "Could not list folder contents, assuming it is empty",
                extra={"error": e},
            )
            existing = set()

        for contact, photo in zip(contacts, photos):
            name = contact.display_name
            if name in existing:
                log.info(f"Contact {name} already exists, skipped")
                result.skipped.append(name)
                continue

            try:
                item = self.api.create_contact(account, folder, contact)
            except ExchangeAPIError as e:
                log.error(f"Failed to save contact {name}", extra={"error": e})
                result.failed.append(name)
                continue

            existing.add(name)
            result.created.append(name)
            log.info(f"Created contact {name}")

            if photo:
                try:
                    self.api.attach_photo(item, photo)
                    result.photos_attached += 1
                    log.debug(f"Attached photo to contact {name}")
                except ExchangeAPIError as e:
                    log.error(
                        f"Failed to attach photo to contact {name}",
                        extra={"error": e},
                    )
                    result.photos_failed += 1

    def _update_stats(self, stats: SyncStats, result: MailboxResult) -> None:
        if result.status == MailboxStatus.PLANNED:
            return

        if result.was_skipped:
            stats.mailboxes_skipped += 1
        else:
            stats.mailboxes_synced += 1

        if result.folder is not None:
            stats.folders_deleted += result.folder.deleted
            if result.folder.ok:
                stats.folders_created += 1

        stats.contacts_created += len(result.created)
        stats.contacts_skipped += len(result.skipped)
        stats.contacts_failed += len(result.failed)
        stats.photos_attached += result.photos_attached
        stats.photos_failed += result.photos_failed
