"""
NPS score classification.

Maps a 0-10 likelihood-to-recommend score onto the canonical sentiment tiers:
9-10 promoter, 7-8 passive, 0-6 detractor. Anything else has no tier.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

MIN_SCORE = 0
MAX_SCORE = 10
PROMOTER_MIN = 9
PASSIVE_MIN = 7


class SentimentTier(str, Enum):
    """Sentiment tier derived from an NPS score."""

    PROMOTER = "promoter"
    PASSIVE = "passive"
    DETRACTOR = "detractor"

    @property
    def config_key(self) -> str:
        """Key used for this tier in persisted thank-you configs."""
        return f"{self.value}s"


def classify(score: int | None) -> SentimentTier | None:
    """Classify an NPS score into a sentiment tier.

    Args:
        score: Integer score in 0..10, or None when the question was not answered.

    Returns:
        The tier, or None when the score is missing or outside the NPS domain.
    """
    # bool is an int subclass; a True/False "score" is a caller bug, not a 1/0.
    if score is None or isinstance(score, bool) or not isinstance(score, int):
        return None
    if score < MIN_SCORE or score > MAX_SCORE:
        return None
    if score >= PROMOTER_MIN:
        return SentimentTier.PROMOTER
    if score >= PASSIVE_MIN:
        return SentimentTier.PASSIVE
    return SentimentTier.DETRACTOR


@dataclass(frozen=True)
class NpsSummary:
    """Tier counts and the resulting Net Promoter Score."""

    promoters: int = 0
    passives: int = 0
    detractors: int = 0

    @property
    def total(self) -> int:
        return self.promoters + self.passives + self.detractors

    @property
    def nps(self) -> int | None:
        """Percentage of promoters minus percentage of detractors, rounded."""
        if self.total == 0:
            return None
        return round(100 * (self.promoters - self.detractors) / self.total)


def summarize(scores: Iterable[int | None]) -> NpsSummary:
    """Aggregate scores into an NpsSummary, ignoring unclassifiable values."""
    counts = {tier: 0 for tier in SentimentTier}
    for score in scores:
        tier = classify(score)
        if tier is not None:
            counts[tier] += 1
    return NpsSummary(
        promoters=counts[SentimentTier.PROMOTER],
        passives=counts[SentimentTier.PASSIVE],
        detractors=counts[SentimentTier.DETRACTOR],
    )
