"""
Automation rule value objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TypeVar
from uuid import UUID

from survey_engine.automation.models import AutomationRule, AutomationSend, AutomationStatus
from survey_engine.contacts.models import PreferredChannel
from survey_engine.scoring.classifier import SentimentTier
from survey_engine.shared.logging import get_logger

logger = get_logger(__name__)

E = TypeVar("E", bound=Enum)


class FeedbackCondition(str, Enum):
    """Whether a rule cares about free-text feedback being present."""

    EITHER = "either"
    WITH_FEEDBACK = "with_feedback"
    WITHOUT_FEEDBACK = "without_feedback"

    def holds(self, has_feedback: bool) -> bool:
        if self is FeedbackCondition.WITH_FEEDBACK:
            return has_feedback
        if self is FeedbackCondition.WITHOUT_FEEDBACK:
            return not has_feedback
        return True


def parse_multi_select(raw: str | None, enum_cls: type[E]) -> frozenset[E]:
    """Parse a comma-joined multi-selection such as ``"promoter,passive"``.

    Unknown values are skipped with a warning.
    """
    values: set[E] = set()
    for part in (raw or "").split(","):
        part = part.strip().lower()
        if not part:
            continue
        try:
            values.add(enum_cls(part))
        except ValueError:
            logger.warning(
                "Ignoring unknown automation rule value",
                extra={"value": part, "expected": enum_cls.__name__},
            )
    return frozenset(values)


def parse_single(raw: str | None, enum_cls: type[E]) -> E | None:
    """Parse one stored enum value; unknown values log a warning and give None."""
    value = (raw or "").strip().lower()
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning(
            "Ignoring unknown automation rule value",
            extra={"value": value, "expected": enum_cls.__name__},
        )
        return None


def join_multi_select(values: frozenset[Enum] | set[Enum]) -> str:
    return ",".join(sorted(value.value for value in values))


@dataclass(frozen=True)
class AutomationRuleSnapshot:
    """Read-only view of an automation rule."""

    id: UUID
    name: str = ""
    trigger_groups: frozenset[SentimentTier] = field(default_factory=frozenset)
    feedback_conditions: frozenset[FeedbackCondition] = frozenset({FeedbackCondition.EITHER})
    event_id: UUID | None = None
    brand_id: UUID | None = None
    channel: PreferredChannel = PreferredChannel.EMAIL
    template_id: UUID | None = None
    delay_hours: int = 0
    throttle_days: int = 0
    status: AutomationStatus = AutomationStatus.ACTIVE
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.delay_hours < 0:
            raise ValueError("delay_hours must be >= 0")
        if self.throttle_days < 0:
            raise ValueError("throttle_days must be >= 0")

    @property
    def is_active(self) -> bool:
        return self.status is AutomationStatus.ACTIVE

    def feedback_matches(self, has_feedback: bool) -> bool:
        """True when any selected feedback condition holds."""
        conditions = self.feedback_conditions or frozenset({FeedbackCondition.EITHER})
        return any(condition.holds(has_feedback) for condition in conditions)

    @classmethod
    def from_orm(cls, rule: AutomationRule) -> "AutomationRuleSnapshot":
        """Build a snapshot; an unknown channel or status makes the rule inactive."""
        channel = parse_single(rule.channel, PreferredChannel)
        status = parse_single(rule.status, AutomationStatus)
        if channel is None or status is None:
            status = AutomationStatus.INACTIVE
        return cls(
            id=rule.id,
            name=rule.name,
            trigger_groups=parse_multi_select(rule.trigger_group, SentimentTier),
            feedback_conditions=(
                parse_multi_select(rule.feedback_condition, FeedbackCondition)
                or frozenset({FeedbackCondition.EITHER})
            ),
            event_id=rule.event_id,
            brand_id=rule.brand_id,
            channel=channel or PreferredChannel.EMAIL,
            template_id=rule.template_id,
            delay_hours=rule.delay_hours or 0,
            throttle_days=rule.throttle_days or 0,
            status=status,
            created_at=rule.created_at,
        )


@dataclass(frozen=True)
class AutomationSendSnapshot:
    """A prior follow-up for a (rule, contact) pair."""

    rule_id: UUID
    contact_id: UUID
    sent_at: datetime | None = None
    scheduled_for: datetime | None = None
    response_id: UUID | None = None

    @property
    def occurred_at(self) -> datetime | None:
        """When the follow-up went out, or is due to if it is still pending."""
        return self.sent_at or self.scheduled_for

    @classmethod
    def from_orm(cls, send: AutomationSend) -> "AutomationSendSnapshot":
        return cls(
            rule_id=send.rule_id,
            contact_id=send.contact_id,
            sent_at=send.sent_at,
            scheduled_for=send.scheduled_for,
            response_id=send.response_id,
        )
