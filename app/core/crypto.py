"""Client-side authenticated encryption for paste content.

Everything here runs on the client. The server only ever stores the output of
``encrypt_text`` and the base64 salt; the key travels in the URL fragment.

Scheme:
- AES-256-GCM with a fresh random 96-bit nonce per message
- Wire blob is ``nonce || ciphertext || tag``
- Password keys via PBKDF2-HMAC-SHA256, 100,000 iterations, 128-bit salt
- Keys encoded as unpadded URL-safe base64 for the fragment
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from app.core.errors import CiphertextAuthenticationError, CiphertextFormatError

KEY_BYTES = 32
NONCE_BYTES = 12
TAG_BYTES = 16
SALT_BYTES = 16
PBKDF2_ITERATIONS = 100_000


# ---------- KEYS ----------

def generate_key() -> bytes:
    """Generate a fresh random AES-256 key."""
    return AESGCM.generate_key(bit_length=KEY_BYTES * 8)


def generate_salt() -> bytes:
    """Generate a random 128-bit salt, one per password-protected paste."""
    return os.urandom(SALT_BYTES)


def derive_key_from_password(password: str, salt: bytes) -> bytes:
    """Derive an AES-256 key from a password with PBKDF2-HMAC-SHA256.

    Same password and salt always yield the same key, so a recipient who
    knows the password can re-derive it from the salt stored with the paste.

    Args:
        password: User supplied password.
        salt: 16 random bytes from ``generate_salt``.

    Returns:
        32-byte key.

    Raises:
        CiphertextFormatError: If the salt has the wrong length.
    """
    if len(salt) != SALT_BYTES:
        raise CiphertextFormatError(
            code="invalid_salt",
            message=f"Salt must be {SALT_BYTES} bytes",
            details={"actual_value": len(salt)},
        )

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_BYTES,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(password.encode("utf-8"))


async def derive_key_from_password_async(password: str, salt: bytes) -> bytes:
    """Run ``derive_key_from_password`` in the default executor.

    PBKDF2 is CPU bound; keep it off the event loop.
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, derive_key_from_password, password, salt)


def _check_key(key: bytes) -> None:
    if len(key) != KEY_BYTES:
        raise CiphertextFormatError(
            code="invalid_key",
            message=f"Key must be {KEY_BYTES} bytes",
            details={"actual_value": len(key)},
        )


# ---------- ENCRYPTION ----------

def encrypt(plaintext: bytes, key: bytes) -> bytes:
    """
    AES-GCM → nonce (12) + ciphertext + tag (16)
    """
    _check_key(key)
    nonce = os.urandom(NONCE_BYTES)
    return nonce + AESGCM(key).encrypt(nonce, plaintext, None)


def decrypt(blob: bytes, key: bytes) -> bytes:
    """Decrypt a ``nonce || ciphertext || tag`` blob.

    Raises:
        CiphertextFormatError: If the blob is too short or the key is malformed.
        CiphertextAuthenticationError: If the tag does not verify.
    """
    _check_key(key)
    if len(blob) < NONCE_BYTES + TAG_BYTES:
        raise CiphertextFormatError(
            code="ciphertext_too_short",
            message="Ciphertext is shorter than nonce and tag",
            details={"actual_value": len(blob)},
        )

    nonce, ciphertext = blob[:NONCE_BYTES], blob[NONCE_BYTES:]
    try:
        return AESGCM(key).decrypt(nonce, ciphertext, None)
    except InvalidTag as exc:
        raise CiphertextAuthenticationError(
            code="decryption_failed",
            message="Decryption failed: wrong key or tampered ciphertext",
        ) from exc


# ---------- TRANSPORT ENCODING ----------

def key_to_base64url(key: bytes) -> str:
    """Encode a key as unpadded URL-safe base64 for a URL fragment."""
    _check_key(key)
    return base64.urlsafe_b64encode(key).decode("ascii").rstrip("=")


def key_from_base64url(text: str) -> bytes:
    """Decode a key from URL-safe base64, tolerating missing padding."""
    padded = text.strip() + "=" * (-len(text.strip()) % 4)
    try:
        key = base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, ValueError) as exc:
        raise CiphertextFormatError(
            code="invalid_key",
            message="Key is not valid URL-safe base64",
        ) from exc
    _check_key(key)
    return key


def salt_to_base64(salt: bytes) -> str:
    return base64.b64encode(salt).decode("ascii")


def salt_from_base64(text: str) -> bytes:
    """Decode a standard base64 salt and check its length."""
    try:
        salt = base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CiphertextFormatError(
            code="invalid_salt",
            message="Salt is not valid base64",
        ) from exc
    if len(salt) != SALT_BYTES:
        raise CiphertextFormatError(
            code="invalid_salt",
            message=f"Salt must be {SALT_BYTES} bytes",
            details={"actual_value": len(salt)},
        )
    return salt


def encrypt_text(text: str, key: bytes) -> str:
    """Encrypt UTF-8 text and return the blob as standard base64.

    This is the ``content`` value sent to and stored by the server.
    """
    return base64.b64encode(encrypt(text.encode("utf-8"), key)).decode("ascii")


def decrypt_text(payload: str, key: bytes) -> str:
    """Reverse ``encrypt_text``."""
    try:
        blob = base64.b64decode(payload.encode("ascii"), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CiphertextFormatError(
            code="invalid_ciphertext",
            message="Ciphertext is not valid base64",
        ) from exc
    plaintext = decrypt(blob, key)
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise CiphertextFormatError(
            code="invalid_plaintext",
            message="Decrypted content is not valid UTF-8",
        ) from exc
