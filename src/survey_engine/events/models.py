"""
SQLAlchemy models for survey events, locations and invitations.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    String,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from survey_engine.distribution.channels import Channel
from survey_engine.shared.database import Base, enum_values


class EventStatus(str, Enum):
    """Survey event lifecycle status."""

    DRAFT = "draft"
    ACTIVE = "active"
    INACTIVE = "inactive"


class InvitationStatus(str, Enum):
    """Delivery / engagement state of an invitation."""

    QUEUED = "queued"
    SENT = "sent"
    DELIVERED = "delivered"
    OPENED = "opened"
    COMPLETED = "completed"
    BOUNCED = "bounced"
    FAILED = "failed"
    THROTTLED = "throttled"
    UNSUBSCRIBED = "unsubscribed"


class Location(Base):
    """Brand location; carries the Google place id used for review links."""

    __tablename__ = "locations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    brand_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    google_place_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<Location(id={self.id}, name={self.name})>"


class SurveyEvent(Base):
    """A configured survey (NPS event) that contacts are invited to."""

    __tablename__ = "survey_events"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    brand_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    location_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("locations.id", ondelete="SET NULL"),
        nullable=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[EventStatus] = mapped_column(
        SQLEnum(EventStatus, name="event_status", values_callable=enum_values),
        nullable=False,
        default=EventStatus.DRAFT,
    )
    throttle_days: Mapped[int | None] = mapped_column(Integer, nullable=True, default=90)
    thank_you_config: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<SurveyEvent(id={self.id}, name={self.name}, status={self.status})>"


class SurveyInvitation(Base):
    """One send attempt of an event to a contact. Never deleted."""

    __tablename__ = "survey_invitations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    contact_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("contacts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("survey_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    channel: Mapped[Channel] = mapped_column(
        SQLEnum(Channel, name="invitation_channel", values_callable=enum_values),
        nullable=False,
    )
    status: Mapped[InvitationStatus] = mapped_column(
        SQLEnum(InvitationStatus, name="invitation_status", values_callable=enum_values),
        nullable=False,
        default=InvitationStatus.QUEUED,
    )
    scheduled_for: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return (
            f"<SurveyInvitation(id={self.id}, contact_id={self.contact_id}, "
            f"event_id={self.event_id}, status={self.status})>"
        )
