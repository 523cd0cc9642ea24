"""
LDAP directory access for Exchange contact distribution.

Resolves a directory group (Active Directory or any LDAP server with
``member`` attributes) into the mailboxes of its members:
- Group lookup by distinguished name, sAMAccountName, cn or mail
- One base-scope lookup per member for ``mail`` and ``displayName``
- Per-member isolation: a member that cannot be resolved is logged and
  skipped without affecting the others
"""

import logging
from typing import Any, Optional

from ldap3 import BASE, NONE, SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars

from ews_contact_sync.config.loader import ConfigError
from ews_contact_sync.config.run_config import DirectorySettings
from ews_contact_sync.sync.contact import DestinationMailbox

# Attributes read from each group member
USER_ATTRIBUTES = ["mail", "displayName", "objectClass"]

# Object classes treated as groups rather than mailbox owners
GROUP_OBJECT_CLASSES = frozenset({"group", "groupofnames", "groupofuniquenames"})

logger = logging.getLogger(__name__)


class DirectoryError(Exception):
    """Raised when a directory lookup fails."""

    pass


class MemberLookupError(DirectoryError):
    """Raised when a single group member cannot be resolved to a mailbox."""

    pass


def _values(entry: Any, attribute: str) -> list[Any]:
    """Attribute values of an ldap3 Entry, matched case-insensitively."""
    attributes = entry.entry_attributes_as_dict
    for name, values in attributes.items():
        if name.lower() == attribute.lower():
            return list(values or [])
    return []


def _first(entry: Any, attribute: str) -> str:
    values = _values(entry, attribute)
    if not values:
        return ""
    value = values[0]
    return value.strip() if isinstance(value, str) else str(value)


def is_distinguished_name(identifier: str) -> bool:
    """True for identifiers such as ``CN=All-Staff,OU=Groups,DC=example,DC=com``."""
    head = identifier.split(",", 1)[0]
    return "=" in head and "," in identifier


def group_filter(identifier: str) -> str:
    """LDAP filter matching a group by sAMAccountName, cn or mail."""
    value = escape_filter_chars(identifier)
    return (
        "(&(|(objectClass=group)(objectClass=groupOfNames))"
        f"(|(sAMAccountName={value})(cn={value})(mail={value})))"
    )


class LDAPDirectory:
    """
    LDAP client for group membership and user attribute lookups.

    Attributes:
        settings: Directory connection settings

    Usage:
        with LDAPDirectory(settings) as directory:
            mailboxes = directory.resolve_mailboxes("All-Staff")

        # Raw lookups
        member_dns = directory.get_group_members("All-Staff")
        mailbox = directory.get_user(member_dns[0])
    """

    def __init__(
        self, settings: DirectorySettings, connection: Optional[Connection] = None
    ):
        """
        Initialize the directory client.

        Args:
            settings: Directory connection settings
            connection: Pre-built ldap3 Connection (mainly for tests); when
                omitted one is created and bound on first use
        """
        self.settings = settings
        self._connection = connection

    @property
    def connection(self) -> Connection:
        """
        Bound ldap3 connection, created on first use.

        Raises:
            DirectoryError: If the server cannot be reached or the bind fails
        """
        if self._connection is None:
            try:
                password = self.settings.password()
            except ConfigError as e:
                raise DirectoryError(str(e)) from e

            try:
                server = Server(
                    self.settings.server, use_ssl=self.settings.use_ssl, get_info=NONE
                )
                self._connection = Connection(
                    server,
                    user=self.settings.bind_user,
                    password=password,
                    auto_bind=True,
                    read_only=True,
                )
            except LDAPException as e:
                raise DirectoryError(
                    f"Cannot bind to LDAP server {self.settings.server}: {e}"
                ) from e
            logger.debug(f"Bound to LDAP server {self.settings.server}")
        return self._connection

    def close(self) -> None:
        """Unbind the connection if one is open."""
        if self._connection is not None:
            try:
                self._connection.unbind()
            except LDAPException as e:
                logger.debug(f"LDAP unbind failed: {e}")
            self._connection = None

    def __enter__(self) -> "LDAPDirectory":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _search(
        self,
        search_base: str,
        search_filter: str,
        scope: str,
        attributes: list[str] | str,
    ) -> list[Any]:
        conn = self.connection
        try:
            conn.search(
                search_base, search_filter, search_scope=scope, attributes=attributes
            )
        except LDAPException as e:
            raise DirectoryError(f"LDAP search under {search_base} failed: {e}") from e

        result = conn.result or {}
        # 0 = success, 32 = noSuchObject
        if result.get("result", 0) not in (0, 32):
            raise DirectoryError(
                f"LDAP search under {search_base} failed: "
                f"{result.get('description')} {result.get('message', '')}".strip()
            )
        return list(conn.entries)

    def get_group_members(self, identifier: str) -> list[str]:
        """
        Distinguished names of a group's direct members, in directory order.

        Args:
            identifier: Group DN, sAMAccountName, cn or mail

        Returns:
            Member DNs (empty for an empty group)

        Raises:
            DirectoryError: If the group cannot be found, is ambiguous, or the
                lookup fails
        """
        if is_distinguished_name(identifier):
            entries = self._search(identifier, "(objectClass=*)", BASE, ["member"])
        else:
            entries = self._search(
                self.settings.base_dn, group_filter(identifier), SUBTREE, ["member"]
            )

        if not entries:
            raise DirectoryError(f"Group not found: {identifier}")
        if len(entries) > 1:
            dns = ", ".join(entry.entry_dn for entry in entries)
            raise DirectoryError(f"Group identifier {identifier} is ambiguous: {dns}")

        members = [str(dn) for dn in _values(entries[0], "member")]
        logger.debug(f"Group {entries[0].entry_dn} has {len(members)} members")
        return members

    def get_user(self, dn: str) -> DestinationMailbox:
        """
        Look up a member's mail address and display name.

        Args:
            dn: Distinguished name of the member

        Returns:
            DestinationMailbox for the member

        Raises:
            MemberLookupError: If the entry is missing, is a group, or has no
                mail address
        """
        try:
            entries = self._search(dn, "(objectClass=*)", BASE, USER_ATTRIBUTES)
        except DirectoryError as e:
            raise MemberLookupError(str(e)) from e

        if not entries:
            raise MemberLookupError(f"Directory entry not found: {dn}")

        entry = entries[0]
        object_classes = {str(c).lower() for c in _values(entry, "objectClass")}
        if object_classes & GROUP_OBJECT_CLASSES:
            raise MemberLookupError(f"Nested group is not a mailbox: {dn}")

        mail = _first(entry, "mail")
        if not mail:
            raise MemberLookupError(f"Directory entry has no mail address: {dn}")

        return DestinationMailbox(
            email=mail, display_name=_first(entry, "displayName"), dn=dn
        )

    def resolve_mailboxes(self, identifier: str) -> list[DestinationMailbox]:
        """
        Expand a group into its members' mailboxes.

        Group lookup failures propagate. Each member lookup is isolated: a
        member that fails is logged and left out.

        Args:
            identifier: Group DN, sAMAccountName, cn or mail

        Returns:
            Mailboxes in directory order

        Raises:
            DirectoryError: If the group itself cannot be read
        """
        mailboxes: list[DestinationMailbox] = []
        for dn in self.get_group_members(identifier):
            try:
                mailboxes.append(self.get_user(dn))
            except MemberLookupError as e:
                logger.warning(f"Skipping group member {dn}", extra={"error": e})
        logger.info(
            f"Resolved {len(mailboxes)} destination mailboxes from group {identifier}"
        )
        return mailboxes

