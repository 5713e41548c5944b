"""
Delivery channel resolution.

Given a contact and the sender's channel settings, decide which concrete
channels (email, sms) a survey invitation goes out on. A channel is only ever
returned when the contact holds the matching address; an empty result means
the contact cannot be reached at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from survey_engine.contacts.domain import ContactSnapshot
from survey_engine.contacts.models import PreferredChannel


class Channel(str, Enum):
    """Concrete delivery medium for an invitation."""

    EMAIL = "email"
    SMS = "sms"


class ChannelOverride(str, Enum):
    """Channel selector accepted by the trigger webhook."""

    PREFERRED = "preferred"
    EMAIL = "email"
    SMS = "sms"


@dataclass(frozen=True)
class ChannelSettings:
    """Sender-side channel choice for a distribution run."""

    respect_preferred: bool = True
    override_email: bool = True
    override_sms: bool = True

    @classmethod
    def from_override(cls, override: ChannelOverride | str | None) -> "ChannelSettings":
        """Map a webhook ``channel`` value onto settings."""
        if override is None:
            return cls()
        value = ChannelOverride(override)
        if value is ChannelOverride.EMAIL:
            return cls(respect_preferred=False, override_email=True, override_sms=False)
        if value is ChannelOverride.SMS:
            return cls(respect_preferred=False, override_email=False, override_sms=True)
        return cls()

    @classmethod
    def for_preferred_channel(cls, channel: PreferredChannel | str) -> "ChannelSettings":
        """Settings that force the given email/sms/both selection."""
        value = PreferredChannel(channel)
        return cls(
            respect_preferred=False,
            override_email=value in (PreferredChannel.EMAIL, PreferredChannel.BOTH),
            override_sms=value in (PreferredChannel.SMS, PreferredChannel.BOTH),
        )


def available_channels(contact: ContactSnapshot) -> frozenset[Channel]:
    """Channels the contact can physically be reached on."""
    available = set()
    if contact.has_email:
        available.add(Channel.EMAIL)
    if contact.has_phone:
        available.add(Channel.SMS)
    return frozenset(available)


def resolve_channels(
    contact: ContactSnapshot,
    settings: ChannelSettings = ChannelSettings(),
) -> frozenset[Channel]:
    """Resolve the channels to use for a contact.

    Args:
        contact: Contact snapshot.
        settings: Whether to honour the stored preference or apply overrides.

    Returns:
        Subset of {email, sms}; empty when no usable channel exists.
    """
    available = available_channels(contact)
    if not available:
        return frozenset()

    if not settings.respect_preferred:
        requested = set()
        if settings.override_email:
            requested.add(Channel.EMAIL)
        if settings.override_sms:
            requested.add(Channel.SMS)
        return frozenset(requested) & available

    preferred = contact.preferred_channel
    if preferred is None:
        # Email is the default; fall back to SMS only when there is no address.
        if Channel.EMAIL in available:
            return frozenset({Channel.EMAIL})
        return frozenset({Channel.SMS})
    if preferred is PreferredChannel.BOTH:
        return available
    return frozenset({Channel(preferred.value)}) & available


@dataclass(frozen=True)
class ChannelBreakdown:
    """Recipient counts per resolved channel for a batch preview."""

    email: int = 0
    sms: int = 0
    no_channel: int = 0
    total: int = 0


def channel_breakdown(
    contacts: Iterable[ContactSnapshot],
    settings: ChannelSettings = ChannelSettings(),
) -> ChannelBreakdown:
    """Count how many messages each channel would carry for ``contacts``."""
    email = sms = no_channel = total = 0
    for contact in contacts:
        total += 1
        channels = resolve_channels(contact, settings)
        if not channels:
            no_channel += 1
            continue
        email += Channel.EMAIL in channels
        sms += Channel.SMS in channels
    return ChannelBreakdown(email=email, sms=sms, no_channel=no_channel, total=total)
