"""
ews_contact_sync.directory - Directory service module

Resolves directory groups into destination mailboxes over LDAP.
"""

from ews_contact_sync.directory.ldap_directory import (
    DirectoryError,
    LDAPDirectory,
    MemberLookupError,
)

__all__ = ["DirectoryError", "LDAPDirectory", "MemberLookupError"]
