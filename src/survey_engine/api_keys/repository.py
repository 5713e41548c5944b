"""
API key repository.
"""

from datetime import datetime
from typing import Protocol, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.api_keys.models import ApiKey


class ApiKeyRepositoryProtocol(Protocol):
    """Protocol for API key persistence."""

    async def create(self, api_key: ApiKey) -> ApiKey:
        ...

    async def get(self, brand_id: UUID, key_id: UUID) -> ApiKey | None:
        ...

    async def list_for_brand(self, brand_id: UUID, include_revoked: bool = True) -> Sequence[ApiKey]:
        ...

    async def mark_used(self, key_id: UUID, used_at: datetime) -> None:
        ...

    async def save(self, api_key: ApiKey) -> ApiKey:
        ...


class ApiKeyRepository:
    """Repository for API key database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async database session.
        """
        self._session = session

    async def create(self, api_key: ApiKey) -> ApiKey:
        self._session.add(api_key)
        await self._session.flush()
        await self._session.refresh(api_key)
        return api_key

    async def get(self, brand_id: UUID, key_id: UUID) -> ApiKey | None:
        stmt = select(ApiKey).where(ApiKey.id == key_id, ApiKey.brand_id == brand_id)
        return (await self._session.execute(stmt)).scalars().first()

    async def list_for_brand(self, brand_id: UUID, include_revoked: bool = True) -> Sequence[ApiKey]:
        """List a brand's keys, newest first.

        Args:
            brand_id: Brand UUID.
            include_revoked: Also return revoked keys (audit view).
        """
        stmt = select(ApiKey).where(ApiKey.brand_id == brand_id)
        if not include_revoked:
            stmt = stmt.where(ApiKey.revoked_at.is_(None))
        stmt = stmt.order_by(ApiKey.created_at.desc())
        return (await self._session.execute(stmt)).scalars().all()

    async def mark_used(self, key_id: UUID, used_at: datetime) -> None:
        stmt = update(ApiKey).where(ApiKey.id == key_id).values(last_used_at=used_at)
        await self._session.execute(stmt)

    async def save(self, api_key: ApiKey) -> ApiKey:
        await self._session.flush()
        return api_key
