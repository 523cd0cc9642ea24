"""
ews_contact_sync - Exchange contact distribution

Copies the contacts of one Exchange mailbox into a contacts sub-folder of
every member of a directory group.
"""

__version__ = "0.1.0"
