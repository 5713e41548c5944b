"""
Immutable contact snapshots consumed by the decision engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from survey_engine.contacts.models import Contact, ContactStatus, PreferredChannel


def _present(value: str | None) -> bool:
    return bool(value and value.strip())


@dataclass(frozen=True)
class ContactSnapshot:
    """Read-only view of a contact at decision time."""

    id: UUID
    brand_id: UUID | None = None
    location_id: UUID | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    preferred_channel: PreferredChannel | None = None
    status: ContactStatus = ContactStatus.ACTIVE
    language: str = "en"
    tag_ids: frozenset[UUID] = field(default_factory=frozenset)
    external_id: str | None = None

    @property
    def has_email(self) -> bool:
        return _present(self.email)

    @property
    def has_phone(self) -> bool:
        return _present(self.phone)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @classmethod
    def from_orm(cls, contact: Contact) -> "ContactSnapshot":
        """Build a snapshot from a loaded ORM contact (tags must be loaded)."""
        return cls(
            id=contact.id,
            brand_id=contact.brand_id,
            location_id=contact.location_id,
            first_name=contact.first_name,
            last_name=contact.last_name,
            email=contact.email,
            phone=contact.phone,
            preferred_channel=contact.preferred_channel,
            status=contact.status,
            language=contact.preferred_language,
            tag_ids=frozenset(tag.id for tag in contact.tags),
            external_id=contact.external_id,
        )
