"""
Contact data models for Exchange contact distribution.

Provides:
- SourceContact, a read-only snapshot of one contact in the source mailbox,
  with conversion from and to exchangelib Contact fields
- DestinationMailbox, one member of the destination directory group
- ContactFolder, the contacts sub-folder recreated in a destination mailbox
"""

from dataclasses import dataclass
from typing import Any, Optional

from exchangelib.indexed_properties import EmailAddress, PhoneNumber

# Exchange phone number keys
BUSINESS_PHONE = "BusinessPhone"
MOBILE_PHONE = "MobilePhone"

# Exchange email address keys, in priority order
EMAIL_KEYS = ("EmailAddress1", "EmailAddress2", "EmailAddress3")

# Scalar fields copied 1:1 between Exchange contacts
TEXT_FIELDS = (
    "given_name",
    "surname",
    "display_name",
    "department",
    "office",
    "job_title",
)


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def phone_number(item: Any, label: str) -> str:
    """
    Return the phone number stored under ``label`` on an Exchange contact.

    Returns an empty string when the contact has no phone numbers at all or
    none with that label.
    """
    for entry in getattr(item, "phone_numbers", None) or []:
        if getattr(entry, "label", None) == label:
            return _text(getattr(entry, "phone_number", None))
    return ""


def primary_email(item: Any) -> str:
    """
    Return the primary email address of an Exchange contact.

    EmailAddress1 wins; otherwise the first address in the EmailAddress2,
    EmailAddress3 order. Empty string when the contact has none.
    """
    by_label = {
        getattr(entry, "label", None): _text(getattr(entry, "email", None))
        for entry in getattr(item, "email_addresses", None) or []
    }
    for key in EMAIL_KEYS:
        if by_label.get(key):
            return by_label[key]
    return ""


@dataclass(frozen=True)
class SourceContact:
    """
    Snapshot of one contact read from the source mailbox.

    Instances are immutable for the duration of a run. All text fields are
    strings; a value the source does not expose is an empty string.

    Attributes:
        given_name: First name
        surname: Last name
        display_name: Display name; the identity used for existence checks
        department: Department
        office: Office location
        business_phone: Business phone number
        mobile_phone: Mobile phone number
        email: Primary email address
        job_title: Job title
        photo: Contact photo bytes, if the source contact has one

    Usage:
        # Create from an exchangelib Contact
        contact = SourceContact.from_exchange_item(item, photo=photo_bytes)

        # Keyword arguments for a new exchangelib Contact
        fields = contact.to_exchange_fields()
    """

    given_name: str = ""
    surname: str = ""
    display_name: str = ""
    department: str = ""
    office: str = ""
    business_phone: str = ""
    mobile_phone: str = ""
    email: str = ""
    job_title: str = ""
    photo: Optional[bytes] = None

    @classmethod
    def from_exchange_item(
        cls, item: Any, photo: Optional[bytes] = None
    ) -> "SourceContact":
        """
        Create a SourceContact from an exchangelib Contact item.

        Missing fields, including phone kinds the source does not carry,
        become empty strings.

        Args:
            item: exchangelib Contact with first-class properties loaded
            photo: Contact photo bytes loaded from the item's attachments

        Returns:
            SourceContact populated from the item
        """
        return cls(
            given_name=_text(getattr(item, "given_name", None)),
            surname=_text(getattr(item, "surname", None)),
            display_name=_text(getattr(item, "display_name", None)),
            department=_text(getattr(item, "department", None)),
            office=_text(getattr(item, "office", None)),
            business_phone=phone_number(item, BUSINESS_PHONE),
            mobile_phone=phone_number(item, MOBILE_PHONE),
            email=primary_email(item),
            job_title=_text(getattr(item, "job_title", None)),
            photo=photo or None,
        )

    @property
    def has_photo(self) -> bool:
        return bool(self.photo)

    def to_exchange_fields(self) -> dict[str, Any]:
        """
        Convert to keyword arguments for an exchangelib Contact.

        Empty text fields are sent as None so Exchange leaves them unset;
        reading an unset field back yields an empty string again. The photo
        is not included: it is attached after the contact is saved.

        Returns:
            Dictionary of exchangelib Contact field values
        """
        fields: dict[str, Any] = {
            name: getattr(self, name) or None for name in TEXT_FIELDS
        }

        phones = []
        if self.business_phone:
            phones.append(
                PhoneNumber(label=BUSINESS_PHONE, phone_number=self.business_phone)
            )
        if self.mobile_phone:
            phones.append(PhoneNumber(label=MOBILE_PHONE, phone_number=self.mobile_phone))
        fields["phone_numbers"] = phones or None

        fields["email_addresses"] = (
            [EmailAddress(label=EMAIL_KEYS[0], email=self.email)] if self.email else None
        )

        return fields

    def __str__(self) -> str:
        return self.display_name or "<no display name>"


@dataclass(frozen=True)
class DestinationMailbox:
    """
    One member of the destination directory group.

    Attributes:
        email: Primary SMTP address of the member's mailbox
        display_name: Directory display name
        dn: Distinguished name of the directory entry
    """

    email: str
    display_name: str = ""
    dn: str = ""

    def __str__(self) -> str:
        if self.display_name:
            return f"{self.display_name} <{self.email}>"
        return self.email


@dataclass(frozen=True)
class ContactFolder:
    """
    Contacts sub-folder owned by one destination mailbox.

    Attributes:
        folder_id: Exchange folder identifier
        name: Folder display name
        mailbox: Address of the owning mailbox
    """

    folder_id: str
    name: str
    mailbox: str
