"""
Survey event and invitation repository.
"""

from typing import Iterable, Protocol, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.events.models import Location, SurveyEvent, SurveyInvitation


class EventRepositoryProtocol(Protocol):
    """Protocol for event repository operations."""

    async def get_event(self, event_id: UUID) -> SurveyEvent | None:
        """Get a survey event by id."""
        ...

    async def list_invitations_for_contact(self, contact_id: UUID) -> Sequence[SurveyInvitation]:
        """All invitations of a contact, across events."""
        ...

    async def create_invitations(
        self, invitations: list[SurveyInvitation]
    ) -> list[SurveyInvitation]:
        """Persist queued invitations."""
        ...

    async def get_place_ids(self, location_ids: Iterable[UUID]) -> dict[UUID, str]:
        """Google place ids keyed by location id."""
        ...


class EventRepository:
    """Repository for events, locations and invitations."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_event(self, event_id: UUID) -> SurveyEvent | None:
        return await self._session.get(SurveyEvent, event_id)

    async def list_invitations_for_contact(self, contact_id: UUID) -> Sequence[SurveyInvitation]:
        stmt = (
            select(SurveyInvitation)
            .where(SurveyInvitation.contact_id == contact_id)
            .order_by(SurveyInvitation.created_at)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def list_invitations_for_contacts(
        self, contact_ids: Iterable[UUID]
    ) -> Sequence[SurveyInvitation]:
        """Invitations of several contacts, for batch eligibility."""
        ids = list(contact_ids)
        if not ids:
            return []
        stmt = select(SurveyInvitation).where(SurveyInvitation.contact_id.in_(ids))
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def create_invitations(
        self, invitations: list[SurveyInvitation]
    ) -> list[SurveyInvitation]:
        """Persist queued invitations.

        Args:
            invitations: New invitations.

        Returns:
            The same invitations with generated ids.
        """
        if not invitations:
            return []
        self._session.add_all(invitations)
        await self._session.flush()
        return invitations

    async def get_place_ids(self, location_ids: Iterable[UUID]) -> dict[UUID, str]:
        ids = list(location_ids)
        if not ids:
            return {}
        stmt = select(Location.id, Location.google_place_id).where(
            Location.id.in_(ids),
            Location.google_place_id.is_not(None),
        )
        result = await self._session.execute(stmt)
        return {row.id: row.google_place_id for row in result}
