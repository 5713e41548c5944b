"""
Thank-you routing.

Selects the message and call-to-action buttons shown after a response is
submitted, based on the response's sentiment tier.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping
from urllib.parse import quote
from uuid import UUID

from survey_engine.config import Settings, get_settings
from survey_engine.scoring.classifier import classify
from survey_engine.shared.logging import get_logger
from survey_engine.thank_you.schemas import ButtonType, ThankYouButton, ThankYouConfig

logger = get_logger(__name__)

PlaceIdLookup = Callable[[UUID], str | None]


@dataclass(frozen=True)
class ResolvedButton:
    """A button with its final, clickable URL."""

    label: str
    type: ButtonType
    url: str


@dataclass(frozen=True)
class ThankYouContent:
    """What the respondent sees after submitting."""

    message: str = ""
    buttons: tuple[ResolvedButton, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.message and not self.buttons


EMPTY_CONTENT = ThankYouContent()


class ThankYouRouter:
    """Maps a response score onto its tier's thank-you block."""

    def __init__(
        self,
        place_id_lookup: PlaceIdLookup | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the router.

        Args:
            place_id_lookup: Returns the Google place id of a location, or None.
            settings: Application settings (review URL template).
        """
        self._place_id_lookup = place_id_lookup
        self._settings = settings or get_settings()

    def route(
        self,
        score: int | None,
        config: ThankYouConfig | Mapping[str, Any] | None,
        location_id: UUID | None = None,
    ) -> ThankYouContent:
        """Resolve thank-you content for a score.

        Never raises: an unclassifiable score or an unconfigured tier yields
        empty content, and buttons whose URL cannot be resolved are dropped.
        """
        tier = classify(score)
        if tier is None:
            return EMPTY_CONTENT

        if not isinstance(config, ThankYouConfig):
            config = ThankYouConfig.from_stored(config)
        block = config.block_for(tier)
        if block is None:
            return EMPTY_CONTENT

        buttons = []
        for button in block.buttons:
            url = self._resolve_url(button, location_id)
            if url is None:
                logger.info(
                    "Dropping thank-you button without a resolvable url",
                    extra={
                        "tier": tier.value,
                        "button_type": button.type.value,
                        "location_id": str(location_id) if location_id else None,
                    },
                )
                continue
            buttons.append(ResolvedButton(label=button.label, type=button.type, url=url))

        return ThankYouContent(message=block.message, buttons=tuple(buttons))

    def google_review_url(self, location_id: UUID | None) -> str | None:
        if location_id is None or self._place_id_lookup is None:
            return None
        place_id = self._place_id_lookup(location_id)
        if not place_id or not place_id.strip():
            return None
        return self._settings.google_review_url_template.format(
            place_id=quote(place_id.strip(), safe=""),
        )

    def _resolve_url(self, button: ThankYouButton, location_id: UUID | None) -> str | None:
        if button.type is ButtonType.GOOGLE_REVIEW:
            # The stored url is ignored; the link always targets the location's listing.
            return self.google_review_url(location_id)
        if button.type is ButtonType.CUSTOM_LINK:
            return button.url.strip() if button.url else None
        return None
