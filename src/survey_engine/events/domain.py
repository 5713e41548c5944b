"""
Immutable event and invitation snapshots consumed by the decision engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from survey_engine.distribution.channels import Channel
from survey_engine.events.models import EventStatus, SurveyEvent, SurveyInvitation
from survey_engine.thank_you.schemas import ThankYouConfig

DEFAULT_THROTTLE_DAYS = 90


@dataclass(frozen=True)
class SurveyEventSnapshot:
    """Read-only view of a survey event."""

    id: UUID
    brand_id: UUID | None = None
    location_id: UUID | None = None
    name: str = ""
    status: EventStatus = EventStatus.ACTIVE
    throttle_days: int = DEFAULT_THROTTLE_DAYS
    thank_you_config: ThankYouConfig = field(default_factory=ThankYouConfig)

    def __post_init__(self) -> None:
        if self.throttle_days < 0:
            raise ValueError("throttle_days must be >= 0")

    @property
    def is_draft(self) -> bool:
        return self.status is EventStatus.DRAFT

    @classmethod
    def from_orm(
        cls,
        event: SurveyEvent,
        default_throttle_days: int = DEFAULT_THROTTLE_DAYS,
    ) -> "SurveyEventSnapshot":
        throttle = event.throttle_days if event.throttle_days is not None else default_throttle_days
        return cls(
            id=event.id,
            brand_id=event.brand_id,
            location_id=event.location_id,
            name=event.name,
            status=event.status,
            throttle_days=throttle,
            thank_you_config=ThankYouConfig.from_stored(event.thank_you_config),
        )


@dataclass(frozen=True)
class InvitationSnapshot:
    """Read-only view of a survey invitation."""

    contact_id: UUID
    event_id: UUID
    channel: Channel = Channel.EMAIL
    sent_at: datetime | None = None
    completed_at: datetime | None = None
    id: UUID | None = None

    @classmethod
    def from_orm(cls, invitation: SurveyInvitation) -> "InvitationSnapshot":
        return cls(
            id=invitation.id,
            contact_id=invitation.contact_id,
            event_id=invitation.event_id,
            channel=invitation.channel,
            sent_at=invitation.sent_at,
            completed_at=invitation.completed_at,
        )
