"""
Pydantic schemas for the survey trigger webhook.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from survey_engine.contacts.models import ContactStatus, PreferredChannel
from survey_engine.distribution.channels import Channel, ChannelOverride


class SchedulingType(str, Enum):
    IMMEDIATE = "immediate"
    DELAYED = "delayed"


class DelayUnit(str, Enum):
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"


class WebhookContact(BaseModel):
    """Contact block of a trigger payload."""

    first_name: str | None = Field(default=None, max_length=255)
    last_name: str | None = Field(default=None, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=50)
    preferred_channel: PreferredChannel | None = None
    preferred_language: str | None = Field(default=None, min_length=2, max_length=10)
    tags: list[str] = Field(default_factory=list)
    external_id: str | None = Field(default=None, max_length=255)
    status: ContactStatus = ContactStatus.ACTIVE

    @field_validator(
        "email", "phone", "first_name", "last_name", "external_id", "preferred_language", mode="before"
    )
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v: Any) -> Any:
        # SFTP/CSV integrations send "a,b" instead of a list
        if v is None:
            return []
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    @model_validator(mode="after")
    def require_contact_info(self) -> "WebhookContact":
        if not self.email and not self.phone:
            raise ValueError("contact requires an email or a phone")
        return self


class Scheduling(BaseModel):
    """When the invitation should go out."""

    type: SchedulingType = SchedulingType.IMMEDIATE
    delay_value: int = Field(default=0, ge=0, le=10_000)
    delay_unit: DelayUnit = DelayUnit.HOURS

    @property
    def delay(self) -> timedelta:
        if self.type is SchedulingType.IMMEDIATE:
            return timedelta(0)
        return timedelta(**{self.delay_unit.value: self.delay_value})

    def scheduled_for(self, now: datetime) -> datetime:
        return now + self.delay


class TriggerSurveyRequest(BaseModel):
    """Inbound payload of ``POST /api/v1/surveys/trigger``."""

    event_id: UUID
    location_id: UUID | None = None
    contact: WebhookContact
    channel: ChannelOverride = ChannelOverride.PREFERRED
    scheduling: Scheduling = Field(default_factory=Scheduling)


class TriggerStatus(str, Enum):
    QUEUED = "queued"
    REJECTED = "rejected"


class TriggerSurveyResponse(BaseModel):
    """Outcome of a trigger call."""

    status: TriggerStatus
    contact_id: UUID | None = None
    invitation_ids: list[UUID] = Field(default_factory=list)
    channels: list[Channel] = Field(default_factory=list)
    scheduled_for: datetime | None = None
    reason: str | None = None
