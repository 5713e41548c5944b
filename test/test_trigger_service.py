"""
Unit tests for SurveyTriggerService with mocked repositories.
"""

from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from survey_engine.config import Settings
from survey_engine.contacts.models import Contact, ContactStatus, PreferredChannel, Tag
from survey_engine.distribution.channels import Channel
from survey_engine.events.models import (
    EventStatus,
    InvitationStatus,
    SurveyEvent,
    SurveyInvitation,
)
from survey_engine.shared.exceptions import (
    EventNotFoundError,
    EventNotSendableError,
    InvalidApiKeyError,
)
from survey_engine.webhooks.schemas import TriggerStatus, TriggerSurveyRequest
from survey_engine.webhooks.service import SurveyTriggerService

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
BRAND_ID = uuid4()


def _event(status: EventStatus = EventStatus.ACTIVE, throttle_days: int | None = 90) -> SurveyEvent:
    return SurveyEvent(
        id=uuid4(),
        brand_id=BRAND_ID,
        name="Post-visit NPS",
        status=status,
        throttle_days=throttle_days,
    )


def _stored_contact(**overrides: Any) -> Contact:
    values: dict[str, Any] = {
        "id": uuid4(),
        "brand_id": BRAND_ID,
        "external_id": "PAT-001234",
        "first_name": "John",
        "last_name": "Doe",
        "email": "john@example.com",
        "phone": None,
        "preferred_channel": PreferredChannel.EMAIL,
        "preferred_language": "en",
        "status": ContactStatus.ACTIVE,
        "tags": [],
    }
    values.update(overrides)
    return Contact(**values)


def _request(event: SurveyEvent, **contact: Any) -> TriggerSurveyRequest:
    payload_contact = {"email": "john@example.com", "external_id": "PAT-001234"}
    payload_contact.update(contact)
    return TriggerSurveyRequest.model_validate(
        {
            "event_id": str(event.id),
            "contact": payload_contact,
            "scheduling": {"type": "delayed", "delay_value": 2, "delay_unit": "hours"},
        }
    )


async def _assign_id(row):
    row.id = row.id or uuid4()
    return row


async def _assign_ids(rows):
    for row in rows:
        row.id = row.id or uuid4()
    return rows


@pytest.fixture
def events() -> MagicMock:
    repo = MagicMock()
    repo.get_event = AsyncMock(return_value=None)
    repo.list_invitations_for_contact = AsyncMock(return_value=[])
    repo.create_invitations = AsyncMock(side_effect=_assign_ids)
    return repo


@pytest.fixture
def contacts() -> MagicMock:
    repo = MagicMock()
    repo.find_by_identity = AsyncMock(return_value=None)
    repo.create = AsyncMock(side_effect=_assign_id)
    repo.get_or_create_tags = AsyncMock(return_value=[])
    return repo


@pytest.fixture
def api_keys() -> MagicMock:
    service = MagicMock()
    service.authenticate = AsyncMock()
    return service


@pytest.fixture
def service(events, contacts, api_keys) -> SurveyTriggerService:
    return SurveyTriggerService(
        events=events,
        contacts=contacts,
        api_keys=api_keys,
        settings=Settings(),
    )


class TestTrigger:
    @pytest.mark.asyncio
    async def test_new_contact_is_created_and_queued(self, service, events, contacts, api_keys) -> None:
        event = _event()
        events.get_event.return_value = event

        result = await service.trigger("upk_key", _request(event), now=NOW)

        api_keys.authenticate.assert_awaited_once_with("upk_key", BRAND_ID)
        contacts.create.assert_awaited_once()
        created = contacts.create.await_args.args[0]
        assert created.brand_id == BRAND_ID
        assert created.preferred_language == "en"
        assert created.status is ContactStatus.ACTIVE

        [invitations] = events.create_invitations.await_args.args
        assert [i.channel for i in invitations] == [Channel.EMAIL]
        assert invitations[0].status is InvitationStatus.QUEUED
        assert invitations[0].scheduled_for == NOW + timedelta(hours=2)
        assert invitations[0].sent_at is None

        assert result.status is TriggerStatus.QUEUED
        assert result.contact_id == created.id
        assert result.scheduled_for == NOW + timedelta(hours=2)

    @pytest.mark.asyncio
    async def test_unknown_event_is_checked_before_the_key(self, service, events, api_keys) -> None:
        event = _event()

        with pytest.raises(EventNotFoundError):
            await service.trigger("upk_key", _request(event), now=NOW)

        api_keys.authenticate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_key_stops_before_contact_upsert(
        self, service, events, contacts, api_keys
    ) -> None:
        event = _event()
        events.get_event.return_value = event
        api_keys.authenticate.side_effect = InvalidApiKeyError()

        with pytest.raises(InvalidApiKeyError):
            await service.trigger("upk_wrong", _request(event), now=NOW)

        contacts.find_by_identity.assert_not_awaited()
        contacts.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_draft_event_raises(self, service, events, contacts) -> None:
        event = _event(status=EventStatus.DRAFT)
        events.get_event.return_value = event

        with pytest.raises(EventNotSendableError):
            await service.trigger("upk_key", _request(event), now=NOW)

        contacts.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_same_event_within_window_is_rejected(self, service, events, contacts) -> None:
        event = _event()
        stored = _stored_contact()
        events.get_event.return_value = event
        contacts.find_by_identity.return_value = stored
        events.list_invitations_for_contact.return_value = [
            SurveyInvitation(
                id=uuid4(),
                contact_id=stored.id,
                event_id=event.id,
                channel=Channel.EMAIL,
                sent_at=NOW - timedelta(days=89),
            )
        ]

        result = await service.trigger("upk_key", _request(event), now=NOW)

        assert result.status is TriggerStatus.REJECTED
        assert result.reason == "Surveyed for this event 89 days ago; throttle window is 90 days"
        events.create_invitations.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_event_default_throttle_applies(self, events, contacts, api_keys) -> None:
        service = SurveyTriggerService(
            events=events,
            contacts=contacts,
            api_keys=api_keys,
            settings=Settings(default_throttle_days=30),
        )
        event = _event(throttle_days=None)
        stored = _stored_contact()
        events.get_event.return_value = event
        contacts.find_by_identity.return_value = stored
        events.list_invitations_for_contact.return_value = [
            SurveyInvitation(
                id=uuid4(),
                contact_id=stored.id,
                event_id=event.id,
                channel=Channel.EMAIL,
                sent_at=NOW - timedelta(days=45),
            )
        ]

        result = await service.trigger("upk_key", _request(event), now=NOW)

        assert result.status is TriggerStatus.QUEUED


class TestContactUpsert:
    @pytest.mark.asyncio
    async def test_only_provided_fields_are_updated(self, service, events, contacts) -> None:
        event = _event()
        stored = _stored_contact(phone="+1-555-000-0000", preferred_language="fr")
        events.get_event.return_value = event
        contacts.find_by_identity.return_value = stored

        await service.trigger("upk_key", _request(event, first_name="Johnny", phone=None), now=NOW)

        contacts.create.assert_not_awaited()
        assert stored.first_name == "Johnny"
        assert stored.last_name == "Doe"
        assert stored.phone == "+1-555-000-0000"
        assert stored.preferred_language == "fr"

    @pytest.mark.asyncio
    async def test_language_is_updated_only_when_sent(self, service, events, contacts) -> None:
        event = _event()
        stored = _stored_contact(preferred_language="fr")
        events.get_event.return_value = event
        contacts.find_by_identity.return_value = stored

        await service.trigger("upk_key", _request(event, preferred_language="es"), now=NOW)

        assert stored.preferred_language == "es"

    @pytest.mark.asyncio
    async def test_unsubscribe_is_sticky(self, service, events, contacts) -> None:
        event = _event()
        stored = _stored_contact(status=ContactStatus.UNSUBSCRIBED, unsubscribed_at=NOW - timedelta(days=3))
        events.get_event.return_value = event
        contacts.find_by_identity.return_value = stored

        result = await service.trigger("upk_key", _request(event, status="active"), now=NOW)

        assert stored.status is ContactStatus.UNSUBSCRIBED
        assert stored.unsubscribed_at == NOW - timedelta(days=3)
        assert result.status is TriggerStatus.REJECTED

    @pytest.mark.asyncio
    async def test_webhook_can_unsubscribe(self, service, events, contacts) -> None:
        event = _event()
        stored = _stored_contact()
        events.get_event.return_value = event
        contacts.find_by_identity.return_value = stored

        result = await service.trigger("upk_key", _request(event, status="unsubscribed"), now=NOW)

        assert stored.status is ContactStatus.UNSUBSCRIBED
        assert stored.unsubscribed_at == NOW
        assert result.status is TriggerStatus.REJECTED

    @pytest.mark.asyncio
    async def test_tags_are_appended(self, service, events, contacts) -> None:
        event = _event()
        existing = Tag(id=uuid4(), brand_id=BRAND_ID, name="New Patient")
        added = Tag(id=uuid4(), brand_id=BRAND_ID, name="IVF Patient")
        stored = _stored_contact(tags=[existing])
        events.get_event.return_value = event
        contacts.find_by_identity.return_value = stored
        contacts.get_or_create_tags.return_value = [existing, added]

        await service.trigger("upk_key", _request(event, tags=["New Patient", "IVF Patient"]), now=NOW)

        contacts.get_or_create_tags.assert_awaited_once_with(BRAND_ID, ["New Patient", "IVF Patient"])
        assert [tag.name for tag in stored.tags] == ["New Patient", "IVF Patient"]
