"""
Post-response outcomes: thank-you content and automated follow-ups.
"""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.automation.domain import AutomationRuleSnapshot, AutomationSendSnapshot
from survey_engine.automation.matcher import AutomationMatcher
from survey_engine.automation.models import AutomationSend
from survey_engine.automation.repository import AutomationRepository, AutomationRepositoryProtocol
from survey_engine.config import Settings, get_settings
from survey_engine.contacts.domain import ContactSnapshot
from survey_engine.contacts.repository import ContactRepository
from survey_engine.events.domain import SurveyEventSnapshot
from survey_engine.events.repository import EventRepository
from survey_engine.responses.domain import ResponseSnapshot
from survey_engine.responses.repository import ResponseRepository, ResponseRepositoryProtocol
from survey_engine.shared.exceptions import EventNotFoundError, ResponseNotFoundError
from survey_engine.shared.logging import get_logger
from survey_engine.thank_you.router import ThankYouContent, ThankYouRouter

logger = get_logger(__name__)


class ResponseOutcomeService:
    """Resolves what happens after a response is submitted."""

    def __init__(
        self,
        session: AsyncSession | None = None,
        *,
        responses: ResponseRepositoryProtocol | None = None,
        events: EventRepository | None = None,
        contacts: ContactRepository | None = None,
        automation: AutomationRepositoryProtocol | None = None,
        matcher: AutomationMatcher | None = None,
        settings: Settings | None = None,
    ) -> None:
        if session is None and None in (responses, events, contacts, automation):
            raise ValueError("ResponseOutcomeService needs a session or explicit repositories")
        self._responses = responses or ResponseRepository(session)
        self._events = events or EventRepository(session)
        self._contacts = contacts or ContactRepository(session)
        self._automation = automation or AutomationRepository(session)
        self._matcher = matcher or AutomationMatcher()
        self._settings = settings or get_settings()

    async def _load(self, response_id: UUID) -> tuple[ResponseSnapshot, SurveyEventSnapshot]:
        row = await self._responses.get_response(response_id)
        if row is None:
            raise ResponseNotFoundError(response_id)
        event_row = await self._events.get_event(row.event_id)
        if event_row is None:
            raise EventNotFoundError(row.event_id)
        return (
            ResponseSnapshot.from_orm(row),
            SurveyEventSnapshot.from_orm(event_row, self._settings.default_throttle_days),
        )

    async def thank_you(self, response_id: UUID) -> ThankYouContent:
        """Thank-you message and buttons for a response.

        The review link targets the response's location, falling back to the
        event's location.
        """
        response, event = await self._load(response_id)
        location_id = response.location_id or event.location_id
        place_ids = await self._events.get_place_ids([location_id] if location_id else [])
        router = ThankYouRouter(place_id_lookup=place_ids.get, settings=self._settings)
        return router.route(response.nps_score, event.thank_you_config, location_id)

    async def schedule_follow_ups(
        self,
        response_id: UUID,
        now: datetime | None = None,
    ) -> list[AutomationSend]:
        """Evaluate automation rules and record one pending send per channel.

        Returns:
            The created AutomationSend rows (empty when no rule fires).
        """
        now = now or datetime.now(timezone.utc)
        response, event = await self._load(response_id)

        contact: ContactSnapshot | None = None
        if response.contact_id is not None:
            contact_row = await self._contacts.get_by_id(response.contact_id)
            if contact_row is not None:
                contact = ContactSnapshot.from_orm(contact_row)

        brand_id = contact.brand_id if contact and contact.brand_id else event.brand_id
        rules = [
            AutomationRuleSnapshot.from_orm(rule)
            for rule in await self._automation.list_candidate_rules(brand_id)
        ]
        prior_sends = []
        if contact is not None:
            prior_sends = [
                AutomationSendSnapshot.from_orm(send)
                for send in await self._automation.list_sends_for_contact(contact.id)
            ]

        plans = self._matcher.plan_follow_ups(
            response, contact, rules, now, prior_sends=prior_sends, event=event
        )
        sends = [
            AutomationSend(
                rule_id=plan.rule.id,
                contact_id=contact.id,
                response_id=response.id,
                channel=channel.value,
                scheduled_for=plan.send_at,
            )
            for plan in plans
            if contact is not None
            for channel in sorted(plan.channels, key=lambda c: c.value)
        ]
        created = await self._automation.create_sends(sends)

        logger.info(
            "Follow-ups scheduled",
            extra={
                "response_id": str(response.id),
                "rules_evaluated": len(rules),
                "rules_matched": len(plans),
                "sends_created": len(created),
            },
        )
        return created
