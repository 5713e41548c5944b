"""
SQLAlchemy models for contacts and contact tags.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import (
    Column,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    String,
    Table,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from survey_engine.shared.database import Base, enum_values


class ContactStatus(str, Enum):
    """Contact subscription status."""

    ACTIVE = "active"
    UNSUBSCRIBED = "unsubscribed"


class PreferredChannel(str, Enum):
    """Channel preference stored on a contact."""

    EMAIL = "email"
    SMS = "sms"
    BOTH = "both"


contact_tags = Table(
    "contact_tags",
    Base.metadata,
    Column("contact_id", Uuid, ForeignKey("contacts.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Uuid, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Tag(Base):
    """Brand-scoped label attached to contacts."""

    __tablename__ = "tags"
    __table_args__ = (UniqueConstraint("brand_id", "name", name="uq_tags_brand_name"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    brand_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    def __repr__(self) -> str:
        return f"<Tag(id={self.id}, name={self.name})>"


class Contact(Base):
    """Survey recipient."""

    __tablename__ = "contacts"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    brand_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    location_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    preferred_channel: Mapped[PreferredChannel | None] = mapped_column(
        SQLEnum(
            PreferredChannel,
            name="preferred_channel",
            values_callable=enum_values,
        ),
        nullable=True,
    )
    preferred_language: Mapped[str] = mapped_column(String(10), nullable=False, default="en")
    status: Mapped[ContactStatus] = mapped_column(
        SQLEnum(ContactStatus, name="contact_status", values_callable=enum_values),
        nullable=False,
        default=ContactStatus.ACTIVE,
    )
    unsubscribed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
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

    tags: Mapped[list[Tag]] = relationship(secondary=contact_tags, lazy="selectin")

    def __repr__(self) -> str:
        return f"<Contact(id={self.id}, email={self.email}, phone={self.phone}, status={self.status})>"
