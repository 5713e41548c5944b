"""
Automation rule matching.

Evaluates every configured rule against a completed response and returns the
ones that should fire. All matches are returned; choosing between them is up
to the scheduler.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Sequence
from uuid import UUID

from survey_engine.automation.domain import AutomationRuleSnapshot, AutomationSendSnapshot
from survey_engine.contacts.domain import ContactSnapshot
from survey_engine.distribution.channels import Channel, ChannelSettings, resolve_channels
from survey_engine.distribution.eligibility import days_since
from survey_engine.events.domain import SurveyEventSnapshot
from survey_engine.responses.domain import ResponseSnapshot
from survey_engine.shared.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class FollowUpPlan:
    """A matched rule with its computed send time and channels."""

    rule: AutomationRuleSnapshot
    send_at: datetime
    channels: frozenset[Channel]


_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _created_at_key(rule: AutomationRuleSnapshot) -> tuple[bool, datetime]:
    created_at = rule.created_at
    if created_at is None:
        return (False, _OLDEST)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return (True, created_at)


class AutomationMatcher:
    """Selects the automation rules triggered by a response."""

    def explain(
        self,
        rule: AutomationRuleSnapshot,
        response: ResponseSnapshot,
        contact: ContactSnapshot | None,
        now: datetime,
        prior_sends: Sequence[AutomationSendSnapshot] = (),
        event: SurveyEventSnapshot | None = None,
    ) -> str | None:
        """Return why ``rule`` does not fire, or None when it does."""
        if not rule.is_active:
            return "rule inactive"

        tier = response.tier
        if tier is None or tier not in rule.trigger_groups:
            return "tier not targeted"

        if rule.event_id is not None and rule.event_id != response.event_id:
            return "event out of scope"

        if rule.brand_id is not None and rule.brand_id != self._response_brand(contact, event):
            return "brand out of scope"

        if not rule.feedback_matches(response.has_feedback):
            return "feedback condition not met"

        if rule.throttle_days > 0:
            contact_id = contact.id if contact is not None else response.contact_id
            if self._throttled(rule, contact_id, now, prior_sends):
                return "throttled"

        return None

    def matching_rules(
        self,
        response: ResponseSnapshot,
        contact: ContactSnapshot | None,
        rules: Iterable[AutomationRuleSnapshot],
        now: datetime,
        prior_sends: Sequence[AutomationSendSnapshot] = (),
        event: SurveyEventSnapshot | None = None,
    ) -> list[AutomationRuleSnapshot]:
        """Return every rule that fires for the response.

        Args:
            response: Completed response.
            contact: Respondent, when known. Provides the brand and throttle key.
            rules: Candidate rules.
            now: Evaluation time.
            prior_sends: Earlier follow-ups for this contact.
            event: The response's event; brand fallback when the contact has none.

        Returns:
            Matching rules, newest first.
        """
        matched = [
            rule
            for rule in rules
            if self.explain(rule, response, contact, now, prior_sends, event) is None
        ]
        matched.sort(key=_created_at_key, reverse=True)
        return matched

    def plan_follow_ups(
        self,
        response: ResponseSnapshot,
        contact: ContactSnapshot | None,
        rules: Iterable[AutomationRuleSnapshot],
        now: datetime,
        prior_sends: Sequence[AutomationSendSnapshot] = (),
        event: SurveyEventSnapshot | None = None,
    ) -> list[FollowUpPlan]:
        """Turn matching rules into scheduled follow-ups.

        Rules whose channel the contact cannot be reached on are left out.
        """
        base = response.completed_at or now
        plans: list[FollowUpPlan] = []
        for rule in self.matching_rules(response, contact, rules, now, prior_sends, event):
            channels: frozenset[Channel] = frozenset()
            if contact is not None:
                channels = resolve_channels(
                    contact, ChannelSettings.for_preferred_channel(rule.channel)
                )
            if not channels:
                logger.info(
                    "Skipping follow-up without a reachable channel",
                    extra={"rule_id": str(rule.id), "response_id": str(response.id)},
                )
                continue
            plans.append(
                FollowUpPlan(
                    rule=rule,
                    send_at=base + timedelta(hours=rule.delay_hours),
                    channels=channels,
                )
            )
        return plans

    @staticmethod
    def _response_brand(
        contact: ContactSnapshot | None,
        event: SurveyEventSnapshot | None,
    ) -> UUID | None:
        if contact is not None and contact.brand_id is not None:
            return contact.brand_id
        if event is not None:
            return event.brand_id
        return None

    @staticmethod
    def _throttled(
        rule: AutomationRuleSnapshot,
        contact_id: UUID | None,
        now: datetime,
        prior_sends: Sequence[AutomationSendSnapshot],
    ) -> bool:
        if contact_id is None:
            return False
        for send in prior_sends:
            if send.rule_id != rule.id or send.contact_id != contact_id:
                continue
            if send.occurred_at is None:
                continue
            if days_since(now, send.occurred_at) < rule.throttle_days:
                return True
        return False
