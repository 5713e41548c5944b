"""
API router for the survey trigger webhook.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.shared.database import get_db_session
from survey_engine.shared.exceptions import InvalidApiKeyError
from survey_engine.webhooks.schemas import (
    TriggerStatus,
    TriggerSurveyRequest,
    TriggerSurveyResponse,
)
from survey_engine.webhooks.service import SurveyTriggerService

router = APIRouter(prefix="/api/v1/surveys", tags=["webhooks"])

bearer_scheme = HTTPBearer(auto_error=False)


async def get_bearer_key(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str:
    """Extract the API key from ``Authorization: Bearer <key>``."""
    if credentials is None or not credentials.credentials.strip():
        raise InvalidApiKeyError("Missing bearer API key")
    return credentials.credentials.strip()


def get_trigger_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> SurveyTriggerService:
    """Dependency for the trigger service."""
    return SurveyTriggerService(session=session)


@router.post(
    "/trigger",
    response_model=TriggerSurveyResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Trigger a survey for a contact",
    description="Queues the event's survey for the contact, subject to eligibility "
    "and the event's throttle window. Rejections are returned with 200 and a reason.",
)
async def trigger_survey(
    request: TriggerSurveyRequest,
    response: Response,
    api_key: Annotated[str, Depends(get_bearer_key)],
    service: Annotated[SurveyTriggerService, Depends(get_trigger_service)],
) -> TriggerSurveyResponse:
    result = await service.trigger(api_key, request)
    if result.status is TriggerStatus.REJECTED:
        response.status_code = status.HTTP_200_OK
    return result
