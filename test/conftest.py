"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from survey_engine.contacts.domain import ContactSnapshot
from survey_engine.contacts.models import ContactStatus, PreferredChannel
from survey_engine.distribution.channels import Channel
from survey_engine.events.domain import InvitationSnapshot, SurveyEventSnapshot
from survey_engine.main import app
from survey_engine.shared.database import Base, get_db_session

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def brand_id() -> UUID:
    return uuid4()


def _make_contact(**overrides: Any) -> ContactSnapshot:
    values: dict[str, Any] = {
        "id": uuid4(),
        "brand_id": None,
        "first_name": "Sarah",
        "last_name": "Johnson",
        "email": "sarah.johnson@example.com",
        "phone": "+1-555-123-4567",
        "preferred_channel": PreferredChannel.EMAIL,
        "status": ContactStatus.ACTIVE,
    }
    values.update(overrides)
    return ContactSnapshot(**values)


def _make_event(**overrides: Any) -> SurveyEventSnapshot:
    values: dict[str, Any] = {"id": uuid4(), "name": "Post-visit NPS", "throttle_days": 90}
    values.update(overrides)
    return SurveyEventSnapshot(**values)


def _sent_invitation(
    contact: ContactSnapshot,
    event: SurveyEventSnapshot,
    days_ago: float,
    now: datetime = NOW,
    channel: Channel = Channel.EMAIL,
) -> InvitationSnapshot:
    return InvitationSnapshot(
        id=uuid4(),
        contact_id=contact.id,
        event_id=event.id,
        channel=channel,
        sent_at=now - timedelta(days=days_ago),
    )


@pytest.fixture
def make_contact():
    return _make_contact


@pytest.fixture
def make_event():
    return _make_event


@pytest.fixture
def sent_invitation():
    return _sent_invitation


# ---------------------------------------------------------------------------
# Database (in-memory SQLite)
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app, with the DB dependency pointed at SQLite."""

    async def _override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db_session] = _override_get_db_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.pop(get_db_session, None)
