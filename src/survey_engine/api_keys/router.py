"""
API router for brand API key management.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.api_keys.schemas import (
    ApiKeyCreatedResponse,
    ApiKeyCreateRequest,
    ApiKeyListResponse,
    ApiKeyResponse,
)
from survey_engine.api_keys.service import ApiKeyService
from survey_engine.shared.database import get_db_session

router = APIRouter(prefix="/api/v1/brands/{brand_id}/api-keys", tags=["api-keys"])


def get_api_key_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiKeyService:
    """Dependency for API key service."""
    return ApiKeyService(session=session)


@router.post(
    "",
    response_model=ApiKeyCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue an API key",
    description="The full key is returned in this response only.",
)
async def create_api_key(
    brand_id: UUID,
    request: ApiKeyCreateRequest,
    service: Annotated[ApiKeyService, Depends(get_api_key_service)],
) -> ApiKeyCreatedResponse:
    api_key, issued = await service.create_key(brand_id, request.name)
    return ApiKeyCreatedResponse(
        id=api_key.id,
        brand_id=api_key.brand_id,
        name=api_key.name,
        key_prefix=api_key.key_prefix,
        created_at=api_key.created_at,
        last_used_at=api_key.last_used_at,
        revoked_at=api_key.revoked_at,
        key=issued.full_key,
    )


@router.get(
    "",
    response_model=ApiKeyListResponse,
    summary="List API keys",
)
async def list_api_keys(
    brand_id: UUID,
    service: Annotated[ApiKeyService, Depends(get_api_key_service)],
) -> ApiKeyListResponse:
    keys = await service.list_keys(brand_id)
    items = [ApiKeyResponse.model_validate(key) for key in keys]
    return ApiKeyListResponse(items=items, total=len(items))


@router.delete(
    "/{key_id}",
    response_model=ApiKeyResponse,
    summary="Revoke an API key",
)
async def revoke_api_key(
    brand_id: UUID,
    key_id: UUID,
    service: Annotated[ApiKeyService, Depends(get_api_key_service)],
) -> ApiKeyResponse:
    api_key = await service.revoke_key(brand_id, key_id)
    return ApiKeyResponse.model_validate(api_key)
