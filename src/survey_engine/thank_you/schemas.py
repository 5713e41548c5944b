"""
Pydantic schemas for per-tier thank-you configuration.

Persisted shape::

    {
      "promoters":  {"message": "...", "buttons": [{"id", "label", "type", "url"}]},
      "passives":   {...},
      "detractors": {...}
    }

or ``{"same": {...}}`` when one block applies to every tier.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from survey_engine.scoring.classifier import SentimentTier
from survey_engine.shared.exceptions import ThankYouConfigError
from survey_engine.shared.logging import get_logger

logger = get_logger(__name__)

SAME_FOR_ALL_KEY = "same"


class ButtonType(str, Enum):
    """Call-to-action button kinds."""

    GOOGLE_REVIEW = "google_review"
    CUSTOM_LINK = "custom_link"
    FACEBOOK = "facebook"
    YELP = "yelp"


# Only these have a URL resolution path today.
SUPPORTED_BUTTON_TYPES = frozenset({ButtonType.GOOGLE_REVIEW, ButtonType.CUSTOM_LINK})


class ThankYouButton(BaseModel):
    """A call-to-action button shown after a response is submitted."""

    model_config = ConfigDict(frozen=True)

    id: str | None = Field(default=None, max_length=100)
    label: str = Field(..., min_length=1, max_length=100)
    type: ButtonType
    url: str | None = Field(default=None, max_length=2000)

    @field_validator("label")
    @classmethod
    def strip_label(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Button label must not be blank")
        return v

    @field_validator("type")
    @classmethod
    def reject_unresolvable_types(cls, v: ButtonType) -> ButtonType:
        if v not in SUPPORTED_BUTTON_TYPES:
            raise ValueError(f"Button type '{v.value}' is not supported yet")
        return v

    @model_validator(mode="after")
    def require_url_for_custom_link(self) -> "ThankYouButton":
        if self.type is ButtonType.CUSTOM_LINK:
            if not self.url or not self.url.strip().lower().startswith(("http://", "https://")):
                raise ValueError("custom_link buttons require an http(s) url")
        return self


class ThankYouBlock(BaseModel):
    """Message and ordered buttons for one sentiment tier."""

    model_config = ConfigDict(frozen=True)

    message: str = Field(default="", max_length=5000)
    buttons: tuple[ThankYouButton, ...] = Field(default_factory=tuple)


class ThankYouConfig(BaseModel):
    """Thank-you content keyed by tier; a missing tier routes to empty content."""

    model_config = ConfigDict(frozen=True)

    promoters: ThankYouBlock | None = None
    passives: ThankYouBlock | None = None
    detractors: ThankYouBlock | None = None

    @model_validator(mode="before")
    @classmethod
    def expand_same_for_all(cls, data: Any) -> Any:
        if isinstance(data, Mapping) and SAME_FOR_ALL_KEY in data:
            block = data[SAME_FOR_ALL_KEY]
            return {tier.config_key: block for tier in SentimentTier}
        return data

    def block_for(self, tier: SentimentTier) -> ThankYouBlock | None:
        return getattr(self, tier.config_key)

    @classmethod
    def parse_strict(cls, raw: Mapping[str, Any]) -> "ThankYouConfig":
        """Validate an admin-authored config, raising ThankYouConfigError on any problem."""
        try:
            return cls.model_validate(raw)
        except ValueError as exc:
            raise ThankYouConfigError(
                "Invalid thank-you configuration",
                details={"errors": str(exc)},
            ) from exc

    @classmethod
    def from_stored(cls, raw: Mapping[str, Any] | None) -> "ThankYouConfig":
        """Leniently load a persisted config.

        Buttons that no longer validate (e.g. unsupported types saved before the
        editor rejected them) are dropped instead of failing the whole config.
        The single-button legacy shape ``{message, buttonText, buttonUrl}`` is
        converted to one custom_link button. The message length cap applies to
        authoring only, so blocks are built without re-validating the message.
        """
        if not raw:
            return cls()
        if SAME_FOR_ALL_KEY in raw:
            raw = {tier.config_key: raw[SAME_FOR_ALL_KEY] for tier in SentimentTier}

        blocks: dict[str, ThankYouBlock] = {}
        for tier in SentimentTier:
            block_raw = raw.get(tier.config_key)
            if not isinstance(block_raw, Mapping):
                continue
            blocks[tier.config_key] = ThankYouBlock.model_construct(
                message=str(block_raw.get("message") or ""),
                buttons=tuple(_load_buttons(block_raw, tier)),
            )
        return cls(**blocks)


def _load_buttons(block_raw: Mapping[str, Any], tier: SentimentTier) -> list[ThankYouButton]:
    raw_buttons = block_raw.get("buttons")
    if raw_buttons is None and block_raw.get("buttonText"):
        raw_buttons = [
            {
                "label": block_raw.get("buttonText"),
                "type": ButtonType.CUSTOM_LINK.value,
                "url": block_raw.get("buttonUrl"),
            }
        ]

    buttons: list[ThankYouButton] = []
    for raw_button in raw_buttons or []:
        try:
            buttons.append(ThankYouButton.model_validate(raw_button))
        except ValueError:
            logger.warning(
                "Dropping invalid thank-you button",
                extra={"tier": tier.value, "button_type": _safe_type(raw_button)},
            )
    return buttons


def _safe_type(raw_button: Any) -> str | None:
    if isinstance(raw_button, Mapping):
        value = raw_button.get("type")
        return str(value) if value is not None else None
    return None
