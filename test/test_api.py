"""
End-to-end API tests against an in-memory SQLite database.
"""

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID, uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.api_keys.models import ApiKey
from survey_engine.automation.models import AutomationRule
from survey_engine.contacts.models import Contact, ContactStatus, PreferredChannel
from survey_engine.distribution.channels import Channel
from survey_engine.events.models import (
    EventStatus,
    InvitationStatus,
    Location,
    SurveyEvent,
    SurveyInvitation,
)
from survey_engine.responses.models import SurveyResponse

PLACE_ID = "ChIJN1t_tDeuEmsRUsoyG83frY4"


async def _seed_event(
    session: AsyncSession,
    brand_id: UUID,
    status: EventStatus = EventStatus.ACTIVE,
    **overrides: Any,
) -> SurveyEvent:
    values: dict[str, Any] = {
        "brand_id": brand_id,
        "name": "Post-visit NPS",
        "status": status,
        "throttle_days": 90,
    }
    values.update(overrides)
    event = SurveyEvent(**values)
    session.add(event)
    await session.flush()
    return event


async def _seed_contact(session: AsyncSession, brand_id: UUID, **overrides: Any) -> Contact:
    values: dict[str, Any] = {
        "brand_id": brand_id,
        "external_id": "PAT-001234",
        "first_name": "John",
        "last_name": "Doe",
        "email": "john@example.com",
        "phone": "+1-555-123-4567",
        "preferred_channel": PreferredChannel.EMAIL,
        "status": ContactStatus.ACTIVE,
        "tags": [],
    }
    values.update(overrides)
    contact = Contact(**values)
    session.add(contact)
    await session.flush()
    return contact


async def _issue_key(client: AsyncClient, brand_id: UUID, name: str = "Zapier") -> dict:
    response = await client.post(f"/api/v1/brands/{brand_id}/api-keys", json={"name": name})
    assert response.status_code == 201
    return response.json()


def _trigger_body(event_id: UUID, **contact: Any) -> dict:
    body_contact = {
        "first_name": "John",
        "last_name": "Doe",
        "email": "john@example.com",
        "phone": "+1-555-123-4567",
        "preferred_channel": "email",
        "tags": ["IVF Patient"],
        "external_id": "PAT-001234",
    }
    body_contact.update(contact)
    return {
        "event_id": str(event_id),
        "contact": body_contact,
        "channel": "preferred",
        "scheduling": {"type": "immediate"},
    }


def _bearer(key: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {key}"}


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


class TestApiKeys:
    @pytest.mark.asyncio
    async def test_full_key_only_returned_at_creation(
        self, client: AsyncClient, db_session: AsyncSession, brand_id: UUID
    ) -> None:
        created = await _issue_key(client, brand_id)

        assert created["key"].startswith("upk_")
        assert created["key_prefix"] == created["key"][:12]
        assert created["revoked_at"] is None

        listing = await client.get(f"/api/v1/brands/{brand_id}/api-keys")
        assert listing.status_code == 200
        body = listing.json()
        assert body["total"] == 1
        assert "key" not in body["items"][0]
        assert "key_hash" not in body["items"][0]

        stored = (await db_session.execute(select(ApiKey))).scalars().one()
        assert stored.key_hash != created["key"]
        assert len(stored.key_hash) == 64

    @pytest.mark.asyncio
    async def test_blank_name_is_rejected(self, client: AsyncClient, brand_id: UUID) -> None:
        response = await client.post(f"/api/v1/brands/{brand_id}/api-keys", json={"name": "   "})

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_revoke(self, client: AsyncClient, brand_id: UUID) -> None:
        created = await _issue_key(client, brand_id)

        response = await client.delete(f"/api/v1/brands/{brand_id}/api-keys/{created['id']}")
        assert response.status_code == 200
        assert response.json()["revoked_at"] is not None

        listing = (await client.get(f"/api/v1/brands/{brand_id}/api-keys")).json()
        assert listing["total"] == 1
        assert listing["items"][0]["revoked_at"] is not None

    @pytest.mark.asyncio
    async def test_revoke_other_brands_key_is_not_found(
        self, client: AsyncClient, brand_id: UUID
    ) -> None:
        created = await _issue_key(client, brand_id)

        response = await client.delete(f"/api/v1/brands/{uuid4()}/api-keys/{created['id']}")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "API_KEY_NOT_FOUND"


class TestTrigger:
    @pytest.mark.asyncio
    async def test_queues_invitation(
        self, client: AsyncClient, db_session: AsyncSession, brand_id: UUID
    ) -> None:
        event = await _seed_event(db_session, brand_id)
        key = (await _issue_key(client, brand_id))["key"]

        response = await client.post(
            "/api/v1/surveys/trigger", json=_trigger_body(event.id), headers=_bearer(key)
        )

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "queued"
        assert body["channels"] == ["email"]
        assert len(body["invitation_ids"]) == 1

        invitation = (await db_session.execute(select(SurveyInvitation))).scalars().one()
        assert invitation.status is InvitationStatus.QUEUED
        assert invitation.sent_at is None

        contact = (await db_session.execute(select(Contact))).scalars().one()
        assert contact.brand_id == brand_id
        assert [tag.name for tag in contact.tags] == ["IVF Patient"]

    @pytest.mark.asyncio
    async def test_explicit_channel_both(
        self, client: AsyncClient, db_session: AsyncSession, brand_id: UUID
    ) -> None:
        event = await _seed_event(db_session, brand_id)
        key = (await _issue_key(client, brand_id))["key"]
        body = _trigger_body(event.id)
        body["channel"] = "both"

        response = await client.post("/api/v1/surveys/trigger", json=body, headers=_bearer(key))

        assert response.status_code == 202
        assert response.json()["channels"] == ["email", "sms"]

    @pytest.mark.asyncio
    async def test_throttled_for_same_event(
        self, client: AsyncClient, db_session: AsyncSession, brand_id: UUID
    ) -> None:
        event = await _seed_event(db_session, brand_id)
        contact = await _seed_contact(db_session, brand_id)
        db_session.add(
            SurveyInvitation(
                contact_id=contact.id,
                event_id=event.id,
                channel=Channel.EMAIL,
                status=InvitationStatus.SENT,
                sent_at=datetime.now(timezone.utc) - timedelta(days=30),
            )
        )
        await db_session.flush()
        key = (await _issue_key(client, brand_id))["key"]

        response = await client.post(
            "/api/v1/surveys/trigger", json=_trigger_body(event.id), headers=_bearer(key)
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "rejected"
        assert body["contact_id"] == str(contact.id)
        assert "throttle window is 90 days" in body["reason"]
        assert body["invitation_ids"] == []

    @pytest.mark.asyncio
    async def test_other_event_history_does_not_throttle(
        self, client: AsyncClient, db_session: AsyncSession, brand_id: UUID
    ) -> None:
        earlier = await _seed_event(db_session, brand_id, name="Intake survey")
        event = await _seed_event(db_session, brand_id)
        contact = await _seed_contact(db_session, brand_id)
        db_session.add(
            SurveyInvitation(
                contact_id=contact.id,
                event_id=earlier.id,
                channel=Channel.EMAIL,
                status=InvitationStatus.SENT,
                sent_at=datetime.now(timezone.utc) - timedelta(days=5),
            )
        )
        await db_session.flush()
        key = (await _issue_key(client, brand_id))["key"]

        response = await client.post(
            "/api/v1/surveys/trigger", json=_trigger_body(event.id), headers=_bearer(key)
        )

        assert response.status_code == 202
        assert response.json()["contact_id"] == str(contact.id)

    @pytest.mark.asyncio
    async def test_unsubscribed_contact_is_rejected(
        self, client: AsyncClient, db_session: AsyncSession, brand_id: UUID
    ) -> None:
        event = await _seed_event(db_session, brand_id)
        await _seed_contact(db_session, brand_id, status=ContactStatus.UNSUBSCRIBED)
        key = (await _issue_key(client, brand_id))["key"]

        # A webhook cannot resubscribe a contact.
        response = await client.post(
            "/api/v1/surveys/trigger",
            json=_trigger_body(event.id, status="active"),
            headers=_bearer(key),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "rejected"

    @pytest.mark.asyncio
    async def test_draft_event_conflicts(
        self, client: AsyncClient, db_session: AsyncSession, brand_id: UUID
    ) -> None:
        event = await _seed_event(db_session, brand_id, status=EventStatus.DRAFT)
        key = (await _issue_key(client, brand_id))["key"]

        response = await client.post(
            "/api/v1/surveys/trigger", json=_trigger_body(event.id), headers=_bearer(key)
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "EVENT_NOT_SENDABLE"

    @pytest.mark.asyncio
    async def test_unknown_event(self, client: AsyncClient, brand_id: UUID) -> None:
        key = (await _issue_key(client, brand_id))["key"]

        response = await client.post(
            "/api/v1/surveys/trigger", json=_trigger_body(uuid4()), headers=_bearer(key)
        )

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "EVENT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_missing_key(
        self, client: AsyncClient, db_session: AsyncSession, brand_id: UUID
    ) -> None:
        event = await _seed_event(db_session, brand_id)

        response = await client.post("/api/v1/surveys/trigger", json=_trigger_body(event.id))

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["detail"]["code"] == "INVALID_API_KEY"

    @pytest.mark.asyncio
    async def test_wrong_key(
        self, client: AsyncClient, db_session: AsyncSession, brand_id: UUID
    ) -> None:
        event = await _seed_event(db_session, brand_id)
        await _issue_key(client, brand_id)

        response = await client.post(
            "/api/v1/surveys/trigger",
            json=_trigger_body(event.id),
            headers=_bearer("upk_" + "0" * 64),
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_key_of_another_brand(
        self, client: AsyncClient, db_session: AsyncSession, brand_id: UUID
    ) -> None:
        event = await _seed_event(db_session, brand_id)
        foreign_key = (await _issue_key(client, uuid4()))["key"]

        response = await client.post(
            "/api/v1/surveys/trigger", json=_trigger_body(event.id), headers=_bearer(foreign_key)
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_revoked_key(
        self, client: AsyncClient, db_session: AsyncSession, brand_id: UUID
    ) -> None:
        event = await _seed_event(db_session, brand_id)
        created = await _issue_key(client, brand_id)
        await client.delete(f"/api/v1/brands/{brand_id}/api-keys/{created['id']}")

        response = await client.post(
            "/api/v1/surveys/trigger", json=_trigger_body(event.id), headers=_bearer(created["key"])
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_contact_without_email_or_phone(
        self, client: AsyncClient, db_session: AsyncSession, brand_id: UUID
    ) -> None:
        event = await _seed_event(db_session, brand_id)
        key = (await _issue_key(client, brand_id))["key"]

        response = await client.post(
            "/api/v1/surveys/trigger",
            json=_trigger_body(event.id, email="", phone=None),
            headers=_bearer(key),
        )

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "VALIDATION_ERROR"


class TestResponseOutcomes:
    async def _seed_response(
        self,
        session: AsyncSession,
        brand_id: UUID,
        score: int,
        answers: Any = None,
    ) -> tuple[SurveyResponse, Contact]:
        location = Location(brand_id=brand_id, name="Downtown Clinic", google_place_id=PLACE_ID)
        session.add(location)
        await session.flush()
        event = await _seed_event(
            session,
            brand_id,
            location_id=location.id,
            thank_you_config={
                "promoters": {
                    "message": "Thanks for the kind words!",
                    "buttons": [{"label": "Review us on Google", "type": "google_review"}],
                },
                "detractors": {"message": "We are sorry to hear that."},
            },
        )
        contact = await _seed_contact(session, brand_id)
        response = SurveyResponse(
            event_id=event.id,
            contact_id=contact.id,
            nps_score=score,
            consent_given=True,
            answers=answers,
            completed_at=datetime.now(timezone.utc) - timedelta(hours=1),
        )
        session.add(response)
        await session.flush()
        return response, contact

    @pytest.mark.asyncio
    async def test_promoter_thank_you(
        self, client: AsyncClient, db_session: AsyncSession, brand_id: UUID
    ) -> None:
        response, _ = await self._seed_response(db_session, brand_id, score=10)

        result = await client.get(f"/api/v1/responses/{response.id}/thank-you")

        assert result.status_code == 200
        body = result.json()
        assert body["message"] == "Thanks for the kind words!"
        assert body["buttons"] == [
            {
                "label": "Review us on Google",
                "type": "google_review",
                "url": f"https://search.google.com/local/writereview?placeid={PLACE_ID}",
            }
        ]

    @pytest.mark.asyncio
    async def test_unconfigured_tier_is_empty(
        self, client: AsyncClient, db_session: AsyncSession, brand_id: UUID
    ) -> None:
        response, _ = await self._seed_response(db_session, brand_id, score=7)

        body = (await client.get(f"/api/v1/responses/{response.id}/thank-you")).json()

        assert body == {"message": "", "buttons": []}

    @pytest.mark.asyncio
    async def test_unknown_response(self, client: AsyncClient) -> None:
        result = await client.get(f"/api/v1/responses/{uuid4()}/thank-you")

        assert result.status_code == 404
        assert result.json()["detail"]["code"] == "RESPONSE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_follow_ups_are_scheduled_once_per_throttle_window(
        self, client: AsyncClient, db_session: AsyncSession, brand_id: UUID
    ) -> None:
        response, contact = await self._seed_response(
            db_session, brand_id, score=9, answers=[{"question_id": "q1", "type": "text", "value": "Great"}]
        )
        rule = AutomationRule(
            name="Promoter thank-you",
            brand_id=brand_id,
            trigger_group="promoter",
            feedback_condition="with_feedback",
            channel="email",
            delay_hours=24,
            throttle_days=30,
            status="active",
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        db_session.add(rule)
        await db_session.flush()

        first = await client.post(f"/api/v1/responses/{response.id}/follow-ups")

        assert first.status_code == 201
        body = first.json()
        assert body["total"] == 1
        assert body["items"][0]["rule_id"] == str(rule.id)
        assert body["items"][0]["contact_id"] == str(contact.id)
        assert body["items"][0]["channel"] == "email"

        second = await client.post(f"/api/v1/responses/{response.id}/follow-ups")
        assert second.status_code == 201
        assert second.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_detractor_does_not_fire_promoter_rule(
        self, client: AsyncClient, db_session: AsyncSession, brand_id: UUID
    ) -> None:
        response, _ = await self._seed_response(db_session, brand_id, score=3)
        db_session.add(
            AutomationRule(
                name="Promoter review ask",
                brand_id=brand_id,
                trigger_group="promoter",
                channel="email",
                created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            )
        )
        await db_session.flush()

        result = await client.post(f"/api/v1/responses/{response.id}/follow-ups")

        assert result.status_code == 201
        assert result.json() == {"items": [], "total": 0}
