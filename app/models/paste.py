"""Paste entity and lifecycle primitives shared by stores and services."""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

# 6 random bytes -> 8 url-safe characters, 48 bits of entropy
PASTE_ID_BYTES = 6


class ExpiryOption(str, Enum):
    """Caller-selectable paste lifetimes."""

    ONE_HOUR = "1h"
    ONE_DAY = "24h"
    ONE_WEEK = "7d"

    @property
    def duration(self) -> timedelta:
        return EXPIRY_DURATIONS[self]


EXPIRY_DURATIONS: dict[ExpiryOption, timedelta] = {
    ExpiryOption.ONE_HOUR: timedelta(hours=1),
    ExpiryOption.ONE_DAY: timedelta(hours=24),
    ExpiryOption.ONE_WEEK: timedelta(days=7),
}


def generate_paste_id() -> str:
    """Generate a short, URL-safe paste identifier."""
    return secrets.token_urlsafe(PASTE_ID_BYTES)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class NewPaste:
    """Creation input handed to a paste store.

    Attributes:
        content: Opaque ciphertext, never interpreted server-side.
        expires_at: Absolute expiry instant (UTC).
        has_password: True when the key was derived from a password.
        salt: Base64 PBKDF2 salt, present iff ``has_password``.
        burn_after_read: Delete after the first acknowledged read.
        language: Cosmetic content-type tag.
    """

    content: str
    expires_at: datetime
    has_password: bool = False
    salt: str | None = None
    burn_after_read: bool = False
    language: str | None = None


@dataclass(frozen=True)
class PasteRecord:
    """A stored paste as seen by the lifecycle layer."""

    id: str
    content: str
    created_at: datetime
    expires_at: datetime
    has_password: bool = False
    salt: str | None = None
    burn_after_read: bool = False
    language: str | None = None

    @classmethod
    def from_new(cls, paste_id: str, new: NewPaste, created_at: datetime) -> "PasteRecord":
        return cls(
            id=paste_id,
            content=new.content,
            # created_at never exceeds expires_at
            created_at=min(ensure_utc(created_at), ensure_utc(new.expires_at)),
            expires_at=ensure_utc(new.expires_at),
            has_password=new.has_password,
            salt=new.salt if new.has_password else None,
            burn_after_read=new.burn_after_read,
            language=new.language,
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        """A record is readable while ``now <= expires_at``."""
        return (now or utcnow()) > ensure_utc(self.expires_at)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for key/value stores (ISO timestamps)."""
        return {
            "id": self.id,
            "content": self.content,
            "created_at": ensure_utc(self.created_at).isoformat(),
            "expires_at": ensure_utc(self.expires_at).isoformat(),
            "has_password": self.has_password,
            "salt": self.salt,
            "burn_after_read": self.burn_after_read,
            "language": self.language,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PasteRecord":
        return cls(
            id=data["id"],
            content=data["content"],
            created_at=ensure_utc(datetime.fromisoformat(data["created_at"])),
            expires_at=ensure_utc(datetime.fromisoformat(data["expires_at"])),
            has_password=bool(data.get("has_password", False)),
            salt=data.get("salt"),
            burn_after_read=bool(data.get("burn_after_read", False)),
            language=data.get("language"),
        )
