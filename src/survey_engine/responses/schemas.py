"""
Pydantic schemas for response outcome endpoints.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from survey_engine.thank_you.schemas import ButtonType


class ThankYouButtonResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    label: str
    type: ButtonType
    url: str


class ThankYouContentResponse(BaseModel):
    """Resolved thank-you content for a response."""

    model_config = ConfigDict(from_attributes=True)

    message: str = ""
    buttons: list[ThankYouButtonResponse] = Field(default_factory=list)


class FollowUpResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    rule_id: UUID
    contact_id: UUID
    channel: str
    scheduled_for: datetime | None = None


class FollowUpListResponse(BaseModel):
    items: list[FollowUpResponse]
    total: int
