"""
SQLAlchemy models for automation rules and the follow-ups they produced.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from survey_engine.shared.database import Base


class AutomationStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class AutomationRule(Base):
    """Admin-authored follow-up trigger.

    ``trigger_group`` and ``feedback_condition`` hold comma-joined
    multi-selections, e.g. ``"promoter,passive"``.
    """

    __tablename__ = "automation_rules"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    brand_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    event_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("survey_events.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    trigger_group: Mapped[str] = mapped_column(String(100), nullable=False)
    feedback_condition: Mapped[str] = mapped_column(String(100), nullable=False, default="either")
    channel: Mapped[str] = mapped_column(String(20), nullable=False, default="email")
    template_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    delay_hours: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0)
    throttle_days: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=AutomationStatus.ACTIVE.value)
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
        return f"<AutomationRule(id={self.id}, name={self.name}, status={self.status})>"


class AutomationSend(Base):
    """A follow-up scheduled or sent for a rule to a contact."""

    __tablename__ = "automation_sends"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    rule_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("automation_rules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    contact_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("contacts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    response_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("survey_responses.id", ondelete="SET NULL"),
        nullable=True,
    )
    channel: Mapped[str] = mapped_column(String(20), nullable=False)
    scheduled_for: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<AutomationSend(id={self.id}, rule_id={self.rule_id}, contact_id={self.contact_id})>"
