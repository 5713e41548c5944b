"""
Service layer for webhook-triggered survey sends.

Flow for one trigger call: load the event, authenticate the bearer key against
the event's brand, upsert the contact, run eligibility with the throttle
enforced, resolve channels, and queue one invitation per channel.
"""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.api_keys.service import ApiKeyService
from survey_engine.config import Settings, get_settings
from survey_engine.contacts.domain import ContactSnapshot
from survey_engine.contacts.models import Contact, ContactStatus
from survey_engine.contacts.repository import ContactRepository, ContactRepositoryProtocol
from survey_engine.distribution.channels import ChannelSettings, resolve_channels
from survey_engine.distribution.eligibility import EligibilityFilter, FilterCriteria
from survey_engine.events.domain import InvitationSnapshot, SurveyEventSnapshot
from survey_engine.events.models import InvitationStatus, SurveyInvitation
from survey_engine.events.repository import EventRepository, EventRepositoryProtocol
from survey_engine.shared.exceptions import EventNotFoundError, EventNotSendableError
from survey_engine.shared.logging import get_logger
from survey_engine.webhooks.schemas import (
    TriggerStatus,
    TriggerSurveyRequest,
    TriggerSurveyResponse,
    WebhookContact,
)

logger = get_logger(__name__)

SENDABLE_STATUSES = frozenset({ContactStatus.ACTIVE})
DEFAULT_LANGUAGE = "en"


class SurveyTriggerService:
    """Handles ``POST /api/v1/surveys/trigger``."""

    def __init__(
        self,
        session: AsyncSession | None = None,
        *,
        events: EventRepositoryProtocol | None = None,
        contacts: ContactRepositoryProtocol | None = None,
        api_keys: ApiKeyService | None = None,
        eligibility: EligibilityFilter | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize service.

        Args:
            session: Async database session backing the default repositories.
            events: Event repository override.
            contacts: Contact repository override.
            api_keys: API key service override.
            eligibility: Eligibility filter override.
            settings: Application settings.
        """
        if session is None and (events is None or contacts is None or api_keys is None):
            raise ValueError("SurveyTriggerService needs a session or explicit repositories")
        self._events = events or EventRepository(session)
        self._contacts = contacts or ContactRepository(session)
        self._api_keys = api_keys or ApiKeyService(session=session)
        self._eligibility = eligibility or EligibilityFilter()
        self._settings = settings or get_settings()

    async def trigger(
        self,
        presented_key: str | None,
        request: TriggerSurveyRequest,
        now: datetime | None = None,
    ) -> TriggerSurveyResponse:
        """Queue a survey for the payload's contact, or explain why not.

        Raises:
            EventNotFoundError: Unknown event.
            InvalidApiKeyError: Key missing, revoked or not for the event's brand.
            EventNotSendableError: Event is still a draft.
        """
        now = now or datetime.now(timezone.utc)

        event_row = await self._events.get_event(request.event_id)
        if event_row is None:
            raise EventNotFoundError(request.event_id)

        await self._api_keys.authenticate(presented_key, event_row.brand_id)

        event = SurveyEventSnapshot.from_orm(event_row, self._settings.default_throttle_days)
        if event.is_draft:
            raise EventNotSendableError(event.id, event.status.value)

        contact_row = await self._upsert_contact(
            event.brand_id, request.location_id, request.contact, now
        )
        contact = ContactSnapshot.from_orm(contact_row)

        invitations = [
            InvitationSnapshot.from_orm(invitation)
            for invitation in await self._events.list_invitations_for_contact(contact.id)
        ]
        channel_settings = ChannelSettings.from_override(request.channel)
        criteria = FilterCriteria(statuses=SENDABLE_STATUSES, channel_settings=channel_settings)

        result = self._eligibility.is_eligible(
            contact,
            event,
            now,
            criteria=criteria,
            invitations=invitations,
            enforce_throttle=True,
        )
        if not result.eligible:
            logger.info(
                "Survey trigger rejected",
                extra={
                    "event_id": str(event.id),
                    "contact_id": str(contact.id),
                    "reason": result.reason.value if result.reason else None,
                },
            )
            return TriggerSurveyResponse(
                status=TriggerStatus.REJECTED,
                contact_id=contact.id,
                reason=result.message,
            )

        channels = sorted(resolve_channels(contact, channel_settings), key=lambda c: c.value)
        scheduled_for = request.scheduling.scheduled_for(now)
        queued = await self._events.create_invitations(
            [
                SurveyInvitation(
                    contact_id=contact.id,
                    event_id=event.id,
                    channel=channel,
                    status=InvitationStatus.QUEUED,
                    scheduled_for=scheduled_for,
                )
                for channel in channels
            ]
        )

        logger.info(
            "Survey trigger queued",
            extra={
                "event_id": str(event.id),
                "contact_id": str(contact.id),
                "channels": [channel.value for channel in channels],
                "scheduled_for": scheduled_for.isoformat(),
            },
        )
        return TriggerSurveyResponse(
            status=TriggerStatus.QUEUED,
            contact_id=contact.id,
            invitation_ids=[invitation.id for invitation in queued],
            channels=channels,
            scheduled_for=scheduled_for,
        )

    async def _upsert_contact(
        self,
        brand_id: UUID,
        location_id: UUID | None,
        payload: WebhookContact,
        now: datetime,
    ) -> Contact:
        tags = await self._contacts.get_or_create_tags(brand_id, payload.tags)
        email = str(payload.email) if payload.email else None

        contact = await self._contacts.find_by_identity(
            brand_id,
            external_id=payload.external_id,
            email=email,
            phone=payload.phone,
        )
        if contact is None:
            return await self._contacts.create(
                Contact(
                    brand_id=brand_id,
                    location_id=location_id,
                    external_id=payload.external_id,
                    first_name=payload.first_name,
                    last_name=payload.last_name,
                    email=email,
                    phone=payload.phone,
                    preferred_channel=payload.preferred_channel,
                    preferred_language=payload.preferred_language or DEFAULT_LANGUAGE,
                    status=payload.status,
                    unsubscribed_at=now if payload.status is ContactStatus.UNSUBSCRIBED else None,
                    tags=list(tags),
                )
            )

        # Only fill in what the payload provides; never clear stored data.
        for field_name, value in (
            ("external_id", payload.external_id),
            ("first_name", payload.first_name),
            ("last_name", payload.last_name),
            ("email", email),
            ("phone", payload.phone),
            ("preferred_channel", payload.preferred_channel),
            ("preferred_language", payload.preferred_language),
            ("location_id", location_id),
        ):
            if value is not None:
                setattr(contact, field_name, value)

        # An unsubscribe is sticky: a webhook may unsubscribe but never resubscribe.
        if payload.status is ContactStatus.UNSUBSCRIBED and contact.status is not ContactStatus.UNSUBSCRIBED:
            contact.status = ContactStatus.UNSUBSCRIBED
            contact.unsubscribed_at = now

        known = {tag.id for tag in contact.tags}
        for tag in tags:
            if tag.id not in known:
                contact.tags.append(tag)
        return contact
