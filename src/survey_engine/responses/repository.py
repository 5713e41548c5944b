"""
Survey response repository.
"""

from typing import Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.responses.models import SurveyResponse


class ResponseRepositoryProtocol(Protocol):
    """Protocol for response lookups."""

    async def get_response(self, response_id: UUID) -> SurveyResponse | None:
        ...


class ResponseRepository:
    """Read access to completed responses."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_response(self, response_id: UUID) -> SurveyResponse | None:
        return await self._session.get(SurveyResponse, response_id)
