"""Pydantic schemas for the paste API.

Wire names are camelCase (``hasPassword``, ``burnAfterRead``...); Python code
uses snake_case. Key material never appears in any of these models.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models.paste import PasteRecord


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreatePasteRequest(_CamelModel):
    """Body of ``POST /api/paste``."""

    content: str = Field(
        ...,
        description="Client-side encrypted ciphertext (base64 of nonce || ciphertext || tag).",
    )
    expiry: str = Field(
        ...,
        description='Lifetime of the paste: "1h", "24h" or "7d".',
        examples=["24h"],
    )
    has_password: bool = Field(
        default=False,
        description="True if the key was derived from a password (PBKDF2).",
    )
    salt: str | None = Field(
        default=None,
        description="Base64 16-byte PBKDF2 salt; required iff hasPassword.",
    )
    burn_after_read: bool = Field(
        default=False,
        description="Delete the paste once the reader acknowledges it.",
    )
    language: str | None = Field(
        default=None,
        description="Cosmetic content-type tag used for highlighting.",
    )


class CreatePasteResponse(_CamelModel):
    id: str = Field(..., description="Public paste identifier.")


class PasteResponse(_CamelModel):
    """Stored ciphertext plus lifecycle metadata."""

    id: str
    content: str = Field(..., description="Ciphertext exactly as submitted.")
    created_at: datetime
    expires_at: datetime
    has_password: bool
    salt: str | None = None
    burn_after_read: bool
    language: str | None = None

    @classmethod
    def from_record(cls, record: PasteRecord) -> "PasteResponse":
        return cls(
            id=record.id,
            content=record.content,
            created_at=record.created_at,
            expires_at=record.expires_at,
            has_password=record.has_password,
            salt=record.salt,
            burn_after_read=record.burn_after_read,
            language=record.language,
        )


class DeletePasteResponse(_CamelModel):
    deleted: bool = Field(
        ...,
        description="True if this request removed the paste; false if it was already gone.",
    )


class CleanupResponse(_CamelModel):
    deleted: int = Field(..., description="Number of expired pastes removed.")


class StorageStatusResponse(_CamelModel):
    backend: str = Field(..., description="Configured storage backend.")
    healthy: bool = Field(..., description="Whether the backend answered a health check.")
