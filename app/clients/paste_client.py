"""CloakBin client: encrypt locally, share a link, open it again.

The server never sees plaintext or keys. A share link looks like::

    https://bin.example/p/<id>#<key>      random key in the fragment
    https://bin.example/p/<id>            password paste, key re-derived

Fragments are never sent in HTTP requests, so the key stays with whoever
holds the link.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from urllib.parse import urlsplit

import httpx

from app.core import crypto
from app.core.errors import NotFoundAppError, ValidationAppError

logger = logging.getLogger(__name__)

PASTE_PATH_PREFIX = "/p/"


@dataclass(frozen=True)
class ShareLink:
    """A parsed share link."""

    paste_id: str
    key: str | None = None

    def to_url(self, base_url: str) -> str:
        url = f"{base_url.rstrip('/')}{PASTE_PATH_PREFIX}{self.paste_id}"
        return f"{url}#{self.key}" if self.key else url

    @classmethod
    def parse(cls, url: str) -> "ShareLink":
        parts = urlsplit(url)
        if not parts.path.startswith(PASTE_PATH_PREFIX):
            raise ValidationAppError(code="invalid_share_link", message="Not a paste link")
        paste_id = parts.path[len(PASTE_PATH_PREFIX):].strip("/")
        if not paste_id:
            raise ValidationAppError(code="invalid_share_link", message="Paste link has no id")
        return cls(paste_id=paste_id, key=parts.fragment or None)


@dataclass(frozen=True)
class OpenedPaste:
    paste_id: str
    plaintext: str
    burned: bool
    language: str | None = None


@dataclass(frozen=True)
class PasteInfo:
    """Public metadata of a paste, read without decrypting or consuming it."""

    paste_id: str
    burn_after_read: bool
    has_password: bool
    expires_at: datetime
    language: str | None = None


class PasteClient:
    """Thin synchronous client for the paste API.

    Args:
        base_url: Public base URL used when building share links.
        http: Optional preconfigured ``httpx.Client`` (FastAPI's TestClient
            works too). Created from ``base_url`` when omitted.
    """

    def __init__(self, base_url: str, *, http: httpx.Client | None = None, timeout: float = 30.0) -> None:
        self.base_url = base_url.rstrip("/")
        self._http = http or httpx.Client(base_url=self.base_url, timeout=timeout)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "PasteClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _raise_for_error(self, response: httpx.Response) -> None:
        if response.status_code == 404:
            raise NotFoundAppError(code="paste_not_found", message="Paste not found or has expired")
        response.raise_for_status()

    def create_paste(
        self,
        plaintext: str,
        expiry: str = "24h",
        *,
        password: str | None = None,
        burn_after_read: bool = False,
        language: str | None = None,
    ) -> str:
        """Encrypt ``plaintext`` locally, upload it and return the share URL."""
        salt_b64: str | None = None
        if password:
            salt = crypto.generate_salt()
            key = crypto.derive_key_from_password(password, salt)
            salt_b64 = crypto.salt_to_base64(salt)
        else:
            key = crypto.generate_key()

        body = {
            "content": crypto.encrypt_text(plaintext, key),
            "expiry": expiry,
            "hasPassword": bool(password),
            "salt": salt_b64,
            "burnAfterRead": burn_after_read,
            "language": language,
        }
        response = self._http.post("/api/paste", json=body)
        self._raise_for_error(response)
        paste_id = response.json()["id"]

        logger.info("client.paste_created", extra={"paste_id": paste_id, "expiry": expiry})
        # Password pastes carry no key; the reader re-derives it.
        link = ShareLink(paste_id, None if password else crypto.key_to_base64url(key))
        return link.to_url(self.base_url)

    def open_paste(self, share_url: str, *, password: str | None = None) -> OpenedPaste:
        """Fetch and decrypt a paste.

        For burn-after-read pastes the record is consumed before the
        plaintext is returned, and only if this client's delete removed it;
        a reader losing the race gets ``NotFoundAppError``.

        Raises:
            NotFoundAppError: Missing, expired or already burned.
            ValidationAppError: Key or password missing for the paste.
            CiphertextAuthenticationError: Wrong key or password.
        """
        link = ShareLink.parse(share_url)

        response = self._http.get(f"/api/paste/{link.paste_id}")
        self._raise_for_error(response)
        paste = response.json()

        if paste["hasPassword"]:
            if not password:
                raise ValidationAppError(code="password_required", message="This paste needs a password")
            key = crypto.derive_key_from_password(password, crypto.salt_from_base64(paste["salt"]))
        elif link.key:
            key = crypto.key_from_base64url(link.key)
        else:
            raise ValidationAppError(code="key_missing", message="Share link has no key fragment")

        # Decrypt first: a wrong key must not burn the paste.
        plaintext = crypto.decrypt_text(paste["content"], key)

        if paste["burnAfterRead"]:
            if not self.consume(link.paste_id):
                raise NotFoundAppError(code="paste_not_found", message="Paste was already read")

        return OpenedPaste(
            paste_id=link.paste_id,
            plaintext=plaintext,
            burned=paste["burnAfterRead"],
            language=paste.get("language"),
        )

    def consume(self, paste_id: str) -> bool:
        """Delete a paste; True iff this call removed it."""
        response = self._http.delete(f"/api/paste/{paste_id}")
        self._raise_for_error(response)
        return bool(response.json()["deleted"])

    def inspect(self, share_url: str) -> PasteInfo:
        """Read a paste's metadata without decrypting or burning it.

        Lets a caller warn before opening a burn-after-read link.
        """
        link = ShareLink.parse(share_url)
        response = self._http.get(f"/api/paste/{link.paste_id}")
        self._raise_for_error(response)
        paste = response.json()
        return PasteInfo(
            paste_id=link.paste_id,
            burn_after_read=paste["burnAfterRead"],
            has_password=paste["hasPassword"],
            expires_at=datetime.fromisoformat(paste["expiresAt"]),
            language=paste.get("language"),
        )
