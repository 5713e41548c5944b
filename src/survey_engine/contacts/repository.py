"""
Contact repository for database operations.
"""

from typing import Iterable, Protocol, Sequence
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.contacts.domain import ContactSnapshot
from survey_engine.contacts.models import Contact, Tag, contact_tags
from survey_engine.distribution.eligibility import FilterCriteria


class ContactRepositoryProtocol(Protocol):
    """Protocol for contact repository operations."""

    async def find_contacts(self, criteria: FilterCriteria) -> list[ContactSnapshot]:
        """Fetch candidate contacts for a distribution run."""
        ...

    async def find_by_identity(
        self,
        brand_id: UUID,
        *,
        external_id: str | None = None,
        email: str | None = None,
        phone: str | None = None,
    ) -> Contact | None:
        """Find an existing contact of the brand by external id, email or phone."""
        ...

    async def create(self, contact: Contact) -> Contact:
        """Create a single contact."""
        ...

    async def get_or_create_tags(self, brand_id: UUID, names: Iterable[str]) -> list[Tag]:
        """Resolve tag names to brand tags, creating missing ones."""
        ...


class ContactRepository:
    """Repository for contact database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async database session.
        """
        self._session = session

    async def get_by_id(self, contact_id: UUID) -> Contact | None:
        return await self._session.get(Contact, contact_id)

    async def find_contacts(self, criteria: FilterCriteria) -> list[ContactSnapshot]:
        """Fetch candidate contacts for a distribution run.

        Only the coarse dimensions (status, brand, location, tags) are pushed
        down to SQL; the eligibility predicates are re-applied in memory on
        the returned snapshots.

        Args:
            criteria: Segmentation filters.

        Returns:
            Contact snapshots ordered by creation time.
        """
        stmt = select(Contact).order_by(Contact.created_at)
        if criteria.statuses:
            stmt = stmt.where(Contact.status.in_(list(criteria.statuses)))
        if criteria.brand_ids:
            stmt = stmt.where(Contact.brand_id.in_(list(criteria.brand_ids)))
        if criteria.location_ids:
            stmt = stmt.where(Contact.location_id.in_(list(criteria.location_ids)))
        if criteria.tag_ids:
            tagged = select(contact_tags.c.contact_id).where(
                contact_tags.c.tag_id.in_(list(criteria.tag_ids))
            )
            stmt = stmt.where(Contact.id.in_(tagged))

        result = await self._session.execute(stmt)
        return [ContactSnapshot.from_orm(contact) for contact in result.scalars().all()]

    async def find_by_identity(
        self,
        brand_id: UUID,
        *,
        external_id: str | None = None,
        email: str | None = None,
        phone: str | None = None,
    ) -> Contact | None:
        """Find an existing contact of the brand.

        ``external_id`` wins when given; otherwise the first contact matching
        the email or the phone is returned.

        Returns:
            Matching contact or None.
        """
        if external_id:
            stmt = select(Contact).where(
                Contact.brand_id == brand_id,
                Contact.external_id == external_id,
            )
            contact = (await self._session.execute(stmt)).scalars().first()
            if contact is not None:
                return contact

        conditions = []
        if email:
            conditions.append(Contact.email == email)
        if phone:
            conditions.append(Contact.phone == phone)
        if not conditions:
            return None

        stmt = (
            select(Contact)
            .where(Contact.brand_id == brand_id, or_(*conditions))
            .order_by(Contact.created_at)
        )
        return (await self._session.execute(stmt)).scalars().first()

    async def create(self, contact: Contact) -> Contact:
        """Create a single contact.

        Args:
            contact: Contact to create.

        Returns:
            Created contact with ID.
        """
        self._session.add(contact)
        await self._session.flush()
        return contact

    async def get_or_create_tags(self, brand_id: UUID, names: Iterable[str]) -> list[Tag]:
        """Resolve tag names to brand tags, creating missing ones.

        Names are matched exactly after stripping; blanks and duplicates are ignored.
        """
        wanted: list[str] = []
        for name in names:
            name = name.strip()
            if name and name not in wanted:
                wanted.append(name)
        if not wanted:
            return []

        stmt = select(Tag).where(Tag.brand_id == brand_id, Tag.name.in_(wanted))
        existing: dict[str, Tag] = {
            tag.name: tag for tag in (await self._session.execute(stmt)).scalars().all()
        }
        created: Sequence[Tag] = [
            Tag(brand_id=brand_id, name=name) for name in wanted if name not in existing
        ]
        if created:
            self._session.add_all(created)
            await self._session.flush()
            existing.update({tag.name: tag for tag in created})
        return [existing[name] for name in wanted]
