"""
Immutable response snapshots consumed by the automation matcher.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Mapping
from uuid import UUID

from survey_engine.responses.models import SurveyResponse
from survey_engine.scoring.classifier import SentimentTier, classify

# Answer types whose value is free text typed by the respondent.
FREE_TEXT_TYPES = frozenset({"text", "textarea", "free_text", "comment"})


@dataclass(frozen=True)
class SurveyAnswer:
    """One answer of a response."""

    question_id: str | None
    value: Any
    type: str | None = None

    @property
    def is_free_text(self) -> bool:
        if self.type is None:
            return isinstance(self.value, str)
        return self.type.lower() in FREE_TEXT_TYPES

    @property
    def has_text(self) -> bool:
        return self.is_free_text and isinstance(self.value, str) and bool(self.value.strip())


def parse_answers(raw: Iterable[Any] | Mapping[str, Any] | None) -> tuple[SurveyAnswer, ...]:
    """Normalise persisted answers.

    Accepts a list of ``{question_id, type, value}`` objects or a plain
    ``{question_id: value}`` mapping. Unrecognised entries are skipped.
    """
    if not raw:
        return ()
    if isinstance(raw, Mapping):
        return tuple(SurveyAnswer(question_id=str(key), value=value) for key, value in raw.items())

    answers: list[SurveyAnswer] = []
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        question_id = item.get("question_id") or item.get("questionId")
        answers.append(
            SurveyAnswer(
                question_id=str(question_id) if question_id is not None else None,
                value=item.get("value", item.get("answer")),
                type=item.get("type"),
            )
        )
    return tuple(answers)


@dataclass(frozen=True)
class ResponseSnapshot:
    """Read-only view of a completed response."""

    id: UUID
    event_id: UUID
    contact_id: UUID | None = None
    location_id: UUID | None = None
    nps_score: int | None = None
    completed_at: datetime | None = None
    consent_given: bool = False
    answers: tuple[SurveyAnswer, ...] = field(default_factory=tuple)

    @property
    def tier(self) -> SentimentTier | None:
        return classify(self.nps_score)

    @property
    def has_feedback(self) -> bool:
        """True when at least one free-text answer is non-empty."""
        return any(answer.has_text for answer in self.answers)

    @classmethod
    def from_orm(cls, response: SurveyResponse) -> "ResponseSnapshot":
        return cls(
            id=response.id,
            event_id=response.event_id,
            contact_id=response.contact_id,
            location_id=response.location_id,
            nps_score=response.nps_score,
            completed_at=response.completed_at,
            consent_given=bool(response.consent_given),
            answers=parse_answers(response.answers),
        )
