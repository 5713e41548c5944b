"""
Service layer for API key management and webhook authentication.
"""

from datetime import datetime, timezone
from typing import Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.api_keys.issuer import ApiKeyIssuer, ApiKeyRecord, IssuedApiKey
from survey_engine.api_keys.models import ApiKey
from survey_engine.api_keys.repository import ApiKeyRepository, ApiKeyRepositoryProtocol
from survey_engine.shared.exceptions import ApiKeyNotFoundError, InvalidApiKeyError
from survey_engine.shared.logging import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApiKeyService:
    """Issues, lists, revokes and authenticates brand API keys."""

    def __init__(
        self,
        session: AsyncSession | None = None,
        repository: ApiKeyRepositoryProtocol | None = None,
        issuer: ApiKeyIssuer | None = None,
    ) -> None:
        """Initialize service.

        Args:
            session: Async database session; used when no repository is given.
            repository: Key repository override.
            issuer: Key issuer override.
        """
        if repository is None:
            if session is None:
                raise ValueError("ApiKeyService needs a session or a repository")
            repository = ApiKeyRepository(session)
        self._repository = repository
        self._issuer = issuer or ApiKeyIssuer()

    async def create_key(self, brand_id: UUID, name: str) -> tuple[ApiKey, IssuedApiKey]:
        """Issue and persist a key.

        The key is generated in full before anything is written, so a failed
        issuance (ApiKeyIssuanceError) leaves no row behind.

        Returns:
            The stored row and the one-time issued key.
        """
        issued = self._issuer.issue(name)
        api_key = await self._repository.create(
            ApiKey(
                brand_id=brand_id,
                name=name,
                key_prefix=issued.prefix,
                key_hash=issued.key_hash,
            )
        )
        logger.info(
            "API key created",
            extra={
                "brand_id": str(brand_id),
                "key_id": str(api_key.id),
                "key_prefix": issued.prefix,
            },
        )
        return api_key, issued

    async def list_keys(self, brand_id: UUID) -> Sequence[ApiKey]:
        return await self._repository.list_for_brand(brand_id, include_revoked=True)

    async def revoke_key(self, brand_id: UUID, key_id: UUID) -> ApiKey:
        """Revoke a key by timestamp; the row is kept for audit.

        Raises:
            ApiKeyNotFoundError: If the key does not belong to the brand.
        """
        api_key = await self._repository.get(brand_id, key_id)
        if api_key is None:
            raise ApiKeyNotFoundError(key_id)

        revoked = self._issuer.revoke(ApiKeyRecord.from_orm(api_key), _utcnow())
        if api_key.revoked_at is None:
            api_key.revoked_at = revoked.revoked_at
            await self._repository.save(api_key)
            logger.info(
                "API key revoked",
                extra={"brand_id": str(brand_id), "key_id": str(key_id), "key_prefix": api_key.key_prefix},
            )
        return api_key

    async def authenticate(self, presented: str | None, brand_id: UUID) -> ApiKeyRecord:
        """Verify a presented key for a brand and record its use.

        Raises:
            InvalidApiKeyError: If no non-revoked key of the brand matches.
        """
        keys = await self._repository.list_for_brand(brand_id, include_revoked=False)
        record = self._issuer.verify(
            presented,
            (ApiKeyRecord.from_orm(key) for key in keys),
            brand_id=brand_id,
        )
        if record is None:
            logger.warning("API key rejected", extra={"brand_id": str(brand_id)})
            raise InvalidApiKeyError()

        await self._repository.mark_used(record.id, _utcnow())
        return record
