"""
SQLAlchemy model for completed survey responses.
"""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from survey_engine.shared.database import Base


class SurveyResponse(Base):
    """A submitted survey. Immutable once written."""

    __tablename__ = "survey_responses"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    event_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("survey_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    contact_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("contacts.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    invitation_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("survey_invitations.id", ondelete="SET NULL"),
        nullable=True,
    )
    location_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    nps_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    consent_given: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    answers: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return (
            f"<SurveyResponse(id={self.id}, event_id={self.event_id}, "
            f"nps_score={self.nps_score})>"
        )
