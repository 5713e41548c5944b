"""
API key issuance and verification.

A key looks like ``upk_<64 hex chars>``: a fixed tag followed by 32 bytes from
the OS CSPRNG. Only its SHA-256 hex digest and its first 12 characters are
kept. The plaintext exists solely in the ``IssuedApiKey`` returned by
``issue`` and must be handed to the caller once, then dropped.
"""

from __future__ import annotations

import hashlib
import hmac
import re
import secrets
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Iterable, Protocol
from uuid import UUID

from survey_engine.api_keys.models import ApiKey
from survey_engine.config import Settings, get_settings
from survey_engine.shared.exceptions import ApiKeyIssuanceError
from survey_engine.shared.logging import get_logger

logger = get_logger(__name__)

_SHA256_HEX = re.compile(r"^[0-9a-f]{64}$")


class SecureRandom(Protocol):
    """Source of cryptographically secure random bytes."""

    def token_bytes(self, n: int) -> bytes:
        ...


class Hasher(Protocol):
    """One-way digest of a key, returned as lowercase hex."""

    def hexdigest(self, value: str) -> str:
        ...


class SecretsRandom:
    """SecureRandom backed by :mod:`secrets`."""

    def token_bytes(self, n: int) -> bytes:
        return secrets.token_bytes(n)


class Sha256Hasher:
    """Hasher producing SHA-256 hex digests."""

    def hexdigest(self, value: str) -> str:
        return hashlib.sha256(value.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class IssuedApiKey:
    """Result of a successful issuance. ``full_key`` is never part of repr."""

    name: str
    prefix: str
    key_hash: str
    full_key: str = field(repr=False)


@dataclass(frozen=True)
class ApiKeyRecord:
    """Stored view of an API key (no plaintext)."""

    id: UUID
    brand_id: UUID
    name: str
    key_prefix: str
    key_hash: str = field(repr=False)
    created_at: datetime | None = None
    last_used_at: datetime | None = None
    revoked_at: datetime | None = None

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    @classmethod
    def from_orm(cls, key: ApiKey) -> "ApiKeyRecord":
        return cls(
            id=key.id,
            brand_id=key.brand_id,
            name=key.name,
            key_prefix=key.key_prefix,
            key_hash=key.key_hash,
            created_at=key.created_at,
            last_used_at=key.last_used_at,
            revoked_at=key.revoked_at,
        )


class ApiKeyIssuer:
    """Generates, hashes, verifies and revokes webhook API keys."""

    def __init__(
        self,
        random: SecureRandom | None = None,
        hasher: Hasher | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._random = random or SecretsRandom()
        self._hasher = hasher or Sha256Hasher()
        self._settings = settings or get_settings()

    def hash_key(self, full_key: str) -> str:
        return self._hasher.hexdigest(full_key)

    def issue(self, name: str) -> IssuedApiKey:
        """Generate a new key.

        Raises:
            ApiKeyIssuanceError: If randomness or hashing fails or yields a
                malformed result. No partial key is ever returned.
        """
        n_bytes = self._settings.api_key_random_bytes
        try:
            raw = self._random.token_bytes(n_bytes)
            if not isinstance(raw, bytes) or len(raw) != n_bytes:
                raise ApiKeyIssuanceError(
                    "Random source returned an unexpected number of bytes",
                    details={"expected": n_bytes},
                )
            full_key = f"{self._settings.api_key_prefix}{raw.hex()}"
            key_hash = self.hash_key(full_key)
        except ApiKeyIssuanceError:
            raise
        except Exception as exc:
            raise ApiKeyIssuanceError(details={"reason": type(exc).__name__}) from exc

        if not isinstance(key_hash, str) or not _SHA256_HEX.match(key_hash):
            raise ApiKeyIssuanceError("Hasher returned a malformed digest")

        prefix = full_key[: self._settings.api_key_display_length]
        logger.info("API key issued", extra={"key_name": name, "key_prefix": prefix})
        return IssuedApiKey(name=name, prefix=prefix, key_hash=key_hash, full_key=full_key)

    def verify(
        self,
        presented: str | None,
        keys: Iterable[ApiKeyRecord],
        brand_id: UUID | None = None,
    ) -> ApiKeyRecord | None:
        """Find the non-revoked key matching ``presented``.

        Args:
            presented: Plaintext key from the Authorization header.
            keys: Candidate stored keys.
            brand_id: When set, only keys of this brand can match.

        Returns:
            The matching record, or None.
        """
        if not presented or not presented.strip():
            return None
        presented_hash = self.hash_key(presented.strip())
        match: ApiKeyRecord | None = None
        for key in keys:
            if key.is_revoked:
                continue
            if brand_id is not None and key.brand_id != brand_id:
                continue
            # compare every candidate so timing does not reveal the position
            if hmac.compare_digest(key.key_hash, presented_hash) and match is None:
                match = key
        return match

    @staticmethod
    def revoke(key: ApiKeyRecord, now: datetime) -> ApiKeyRecord:
        """Mark a key revoked. Already-revoked keys keep their original timestamp."""
        if key.is_revoked:
            return key
        return replace(key, revoked_at=now)
