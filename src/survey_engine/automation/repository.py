"""
Automation rule and follow-up repository.
"""

from typing import Protocol, Sequence
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.automation.models import AutomationRule, AutomationSend, AutomationStatus


class AutomationRepositoryProtocol(Protocol):
    """Protocol for automation persistence."""

    async def list_candidate_rules(self, brand_id: UUID | None) -> Sequence[AutomationRule]:
        ...

    async def list_sends_for_contact(self, contact_id: UUID) -> Sequence[AutomationSend]:
        ...

    async def create_sends(self, sends: list[AutomationSend]) -> list[AutomationSend]:
        ...


class AutomationRepository:
    """Repository for automation rules and sends."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_candidate_rules(self, brand_id: UUID | None) -> Sequence[AutomationRule]:
        """Active rules that are unscoped or scoped to ``brand_id``, newest first.

        Event scope, tier and feedback conditions are left to the matcher.
        """
        stmt = select(AutomationRule).where(AutomationRule.status == AutomationStatus.ACTIVE.value)
        if brand_id is not None:
            stmt = stmt.where(
                or_(AutomationRule.brand_id.is_(None), AutomationRule.brand_id == brand_id)
            )
        else:
            stmt = stmt.where(AutomationRule.brand_id.is_(None))
        stmt = stmt.order_by(AutomationRule.created_at.desc())
        return (await self._session.execute(stmt)).scalars().all()

    async def list_sends_for_contact(self, contact_id: UUID) -> Sequence[AutomationSend]:
        stmt = select(AutomationSend).where(AutomationSend.contact_id == contact_id)
        return (await self._session.execute(stmt)).scalars().all()

    async def create_sends(self, sends: list[AutomationSend]) -> list[AutomationSend]:
        if not sends:
            return []
        self._session.add_all(sends)
        await self._session.flush()
        return sends
