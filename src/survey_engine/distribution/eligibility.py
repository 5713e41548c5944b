"""
Contact eligibility for survey distribution.

Each predicate is a pure function over already-fetched snapshots, so the same
rules run for a wizard preview over thousands of contacts and for a single
webhook-triggered send. Predicates are evaluated in a fixed order and the
first failure decides the reason reported back to the caller.

Two time-based rules coexist and are independent:

* the survey-history filter looks at the most recent invitation of *any*
  event (``min_days_since_survey``, never/previously surveyed);
* the throttle only looks at invitations of the *same* event and only runs
  when ``enforce_throttle`` is set, i.e. at actual send time.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Iterable, Sequence
from uuid import UUID

from survey_engine.contacts.domain import ContactSnapshot
from survey_engine.contacts.models import ContactStatus, PreferredChannel
from survey_engine.distribution.channels import ChannelSettings, resolve_channels
from survey_engine.events.domain import InvitationSnapshot, SurveyEventSnapshot
from survey_engine.shared.logging import get_logger

logger = get_logger(__name__)

ONE_DAY = timedelta(days=1)


class IneligibilityReason(str, Enum):
    """Why a contact was excluded from a send."""

    NO_CONTACT_INFO = "No contact info"
    STATUS_EXCLUDED = "Contact status excluded"
    BRAND_MISMATCH = "Brand not selected"
    LOCATION_MISMATCH = "Location not selected"
    TAG_MISMATCH = "No selected tag"
    CHANNEL_MISMATCH = "Preferred channel not selected"
    SEARCH_MISMATCH = "Does not match search"
    NEVER_SURVEYED = "Never surveyed"
    PREVIOUSLY_SURVEYED = "Previously surveyed"
    SURVEYED_RECENTLY = "Surveyed too recently"
    THROTTLED = "Within throttle window"


class SurveyHistoryFilter(str, Enum):
    """Survey-history segmentation."""

    ANY = "any"
    NEVER_SURVEYED = "never_surveyed"
    PREVIOUSLY_SURVEYED = "previously_surveyed"


@dataclass(frozen=True)
class FilterCriteria:
    """Segmentation applied to candidate recipients.

    Empty collections mean "no restriction" for that dimension. Dimensions are
    combined with AND; tags are matched with OR (any selected tag admits).
    """

    statuses: frozenset[ContactStatus] = frozenset()
    brand_ids: frozenset[UUID] = frozenset()
    location_ids: frozenset[UUID] = frozenset()
    tag_ids: frozenset[UUID] = frozenset()
    preferred_channels: frozenset[PreferredChannel] = frozenset()
    search: str | None = None
    survey_history: SurveyHistoryFilter = SurveyHistoryFilter.ANY
    min_days_since_survey: int | None = None
    channel_settings: ChannelSettings = field(default_factory=ChannelSettings)

    def __post_init__(self) -> None:
        if self.min_days_since_survey is not None and self.min_days_since_survey < 0:
            raise ValueError("min_days_since_survey must be >= 0")


@dataclass(frozen=True)
class EligibilityResult:
    """Admit/reject outcome for one contact."""

    eligible: bool
    reason: IneligibilityReason | None = None
    detail: str | None = None

    @property
    def message(self) -> str | None:
        if self.reason is None:
            return None
        return self.detail or self.reason.value


ADMITTED = EligibilityResult(eligible=True)


def _reject(reason: IneligibilityReason, detail: str | None = None) -> EligibilityResult:
    return EligibilityResult(eligible=False, reason=reason, detail=detail)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def days_since(now: datetime, then: datetime) -> int:
    """Whole days elapsed between ``then`` and ``now`` (floor)."""
    return (_as_utc(now) - _as_utc(then)) // ONE_DAY


def last_sent_at(
    invitations: Iterable[InvitationSnapshot],
    contact_id: UUID,
    event_id: UUID | None = None,
) -> datetime | None:
    """Most recent ``sent_at`` for the contact, optionally restricted to one event."""
    latest: datetime | None = None
    for invitation in invitations:
        if invitation.contact_id != contact_id or invitation.sent_at is None:
            continue
        if event_id is not None and invitation.event_id != event_id:
            continue
        sent_at = _as_utc(invitation.sent_at)
        if latest is None or sent_at > latest:
            latest = sent_at
    return latest


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

def check_contact_info(contact: ContactSnapshot, criteria: FilterCriteria) -> EligibilityResult:
    if not resolve_channels(contact, criteria.channel_settings):
        return _reject(IneligibilityReason.NO_CONTACT_INFO)
    return ADMITTED


def check_status(contact: ContactSnapshot, criteria: FilterCriteria) -> EligibilityResult:
    if criteria.statuses and contact.status not in criteria.statuses:
        return _reject(
            IneligibilityReason.STATUS_EXCLUDED,
            f"Contact is {contact.status.value}",
        )
    return ADMITTED


def check_segmentation(contact: ContactSnapshot, criteria: FilterCriteria) -> EligibilityResult:
    if criteria.brand_ids and contact.brand_id not in criteria.brand_ids:
        return _reject(IneligibilityReason.BRAND_MISMATCH)
    if criteria.location_ids and contact.location_id not in criteria.location_ids:
        return _reject(IneligibilityReason.LOCATION_MISMATCH)
    if criteria.tag_ids and criteria.tag_ids.isdisjoint(contact.tag_ids):
        return _reject(IneligibilityReason.TAG_MISMATCH)
    if criteria.preferred_channels and contact.preferred_channel not in criteria.preferred_channels:
        return _reject(IneligibilityReason.CHANNEL_MISMATCH)
    return ADMITTED


def check_search(contact: ContactSnapshot, criteria: FilterCriteria) -> EligibilityResult:
    query = (criteria.search or "").strip().lower()
    if not query:
        return ADMITTED
    haystacks = (contact.full_name, contact.email or "", contact.phone or "")
    if any(query in value.lower() for value in haystacks):
        return ADMITTED
    return _reject(IneligibilityReason.SEARCH_MISMATCH)


def check_survey_history(
    contact: ContactSnapshot,
    criteria: FilterCriteria,
    invitations: Sequence[InvitationSnapshot],
    now: datetime,
) -> EligibilityResult:
    latest = last_sent_at(invitations, contact.id)

    if criteria.survey_history is SurveyHistoryFilter.NEVER_SURVEYED and latest is not None:
        return _reject(IneligibilityReason.PREVIOUSLY_SURVEYED)
    if criteria.survey_history is SurveyHistoryFilter.PREVIOUSLY_SURVEYED and latest is None:
        return _reject(IneligibilityReason.NEVER_SURVEYED)

    if criteria.min_days_since_survey is not None and latest is not None:
        elapsed = days_since(now, latest)
        if elapsed < criteria.min_days_since_survey:
            return _reject(
                IneligibilityReason.SURVEYED_RECENTLY,
                f"Last surveyed {elapsed} days ago (minimum {criteria.min_days_since_survey})",
            )
    return ADMITTED


def check_throttle(
    contact: ContactSnapshot,
    event: SurveyEventSnapshot,
    invitations: Sequence[InvitationSnapshot],
    now: datetime,
) -> EligibilityResult:
    if event.throttle_days <= 0:
        return ADMITTED
    latest = last_sent_at(invitations, contact.id, event_id=event.id)
    if latest is None:
        return ADMITTED
    elapsed = days_since(now, latest)
    if elapsed < event.throttle_days:
        return _reject(
            IneligibilityReason.THROTTLED,
            f"Surveyed for this event {elapsed} days ago; throttle window is {event.throttle_days} days",
        )
    return ADMITTED


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EligibilityReport:
    """Outcome of filtering a batch of contacts."""

    admitted: list[ContactSnapshot] = field(default_factory=list)
    rejected: list[tuple[ContactSnapshot, EligibilityResult]] = field(default_factory=list)

    def reason_counts(self) -> dict[IneligibilityReason, int]:
        counts: dict[IneligibilityReason, int] = defaultdict(int)
        for _, result in self.rejected:
            if result.reason is not None:
                counts[result.reason] += 1
        return dict(counts)


class EligibilityFilter:
    """Composes the eligibility predicates into one admit/reject decision."""

    def is_eligible(
        self,
        contact: ContactSnapshot,
        event: SurveyEventSnapshot,
        now: datetime,
        criteria: FilterCriteria | None = None,
        invitations: Sequence[InvitationSnapshot] = (),
        enforce_throttle: bool = False,
    ) -> EligibilityResult:
        """Decide whether ``contact`` may receive ``event`` right now.

        Args:
            contact: Candidate recipient.
            event: Event being distributed. Draft status is not checked here.
            now: Decision time.
            criteria: Segmentation filters; defaults to no restriction.
            invitations: The contact's invitations across all events.
            enforce_throttle: Apply the same-event throttle (send time only).

        Returns:
            The first failing predicate's result, or an admitted result.
        """
        criteria = criteria or FilterCriteria()
        checks: list[Callable[[], EligibilityResult]] = [
            lambda: check_contact_info(contact, criteria),
            lambda: check_status(contact, criteria),
            lambda: check_segmentation(contact, criteria),
            lambda: check_search(contact, criteria),
            lambda: check_survey_history(contact, criteria, invitations, now),
        ]
        if enforce_throttle:
            checks.append(lambda: check_throttle(contact, event, invitations, now))

        for check in checks:
            result = check()
            if not result.eligible:
                return result
        return ADMITTED

    def filter_contacts(
        self,
        contacts: Iterable[ContactSnapshot],
        event: SurveyEventSnapshot,
        now: datetime,
        criteria: FilterCriteria | None = None,
        invitations: Iterable[InvitationSnapshot] = (),
        enforce_throttle: bool = False,
    ) -> EligibilityReport:
        """Evaluate a batch of contacts in a single pass."""
        by_contact: dict[UUID, list[InvitationSnapshot]] = defaultdict(list)
        for invitation in invitations:
            by_contact[invitation.contact_id].append(invitation)

        report = EligibilityReport()
        for contact in contacts:
            result = self.is_eligible(
                contact,
                event,
                now,
                criteria=criteria,
                invitations=by_contact.get(contact.id, ()),
                enforce_throttle=enforce_throttle,
            )
            if result.eligible:
                report.admitted.append(contact)
            else:
                report.rejected.append((contact, result))

        logger.debug(
            "Eligibility batch evaluated",
            extra={
                "event_id": str(event.id),
                "admitted": len(report.admitted),
                "rejected": len(report.rejected),
                "enforce_throttle": enforce_throttle,
            },
        )
        return report
