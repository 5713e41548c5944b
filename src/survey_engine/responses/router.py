"""
API router for response outcomes.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.responses.schemas import (
    FollowUpListResponse,
    FollowUpResponse,
    ThankYouButtonResponse,
    ThankYouContentResponse,
)
from survey_engine.responses.service import ResponseOutcomeService
from survey_engine.shared.database import get_db_session

router = APIRouter(prefix="/api/v1/responses", tags=["responses"])


def get_outcome_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> ResponseOutcomeService:
    """Dependency for the response outcome service."""
    return ResponseOutcomeService(session=session)


@router.get(
    "/{response_id}/thank-you",
    response_model=ThankYouContentResponse,
    summary="Thank-you content for a response",
)
async def get_thank_you(
    response_id: UUID,
    service: Annotated[ResponseOutcomeService, Depends(get_outcome_service)],
) -> ThankYouContentResponse:
    content = await service.thank_you(response_id)
    return ThankYouContentResponse(
        message=content.message,
        buttons=[ThankYouButtonResponse.model_validate(button) for button in content.buttons],
    )


@router.post(
    "/{response_id}/follow-ups",
    response_model=FollowUpListResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Schedule automated follow-ups for a response",
)
async def schedule_follow_ups(
    response_id: UUID,
    service: Annotated[ResponseOutcomeService, Depends(get_outcome_service)],
) -> FollowUpListResponse:
    sends = await service.schedule_follow_ups(response_id)
    items = [FollowUpResponse.model_validate(send) for send in sends]
    return FollowUpListResponse(items=items, total=len(items))
