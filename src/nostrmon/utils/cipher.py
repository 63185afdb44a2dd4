"""Encryption at rest for the stored private key.

AES-256-GCM under a key derived with PBKDF2-HMAC-SHA256 from an embedded
passphrase and salt. The stored form is ``base64(iv || ciphertext || tag)``
with a fresh 12-byte iv drawn from ``os.urandom`` for every encryption.

Warning:
    The passphrase and salt are fixed constants, so every installation
    derives the same key. This keeps the secret out of the settings file in
    clear text; it does not protect it from anyone who has this source code.
    Changing ``PASSPHRASE``, ``SALT`` or ``PBKDF2_ITERATIONS`` makes every
    previously stored ciphertext undecryptable.

Examples:
    ```python
    from nostrmon.utils.cipher import default_key, seal, unseal

    blob = seal("nsec1...", default_key())  # pragma: allowlist secret
    unseal(blob, default_key())             # 'nsec1...'
    ```
"""

from __future__ import annotations

import base64
import binascii
import functools
import os
from typing import Final

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from nostrmon.core.exceptions import AuthenticationError, MalformedInputError


PASSPHRASE: Final[bytes] = b"nostrmon-device-bound-vault"
SALT: Final[bytes] = b"nostrmon-salt-v1"
PBKDF2_ITERATIONS: Final[int] = 100_000
KEY_LENGTH: Final[int] = 32
NONCE_LENGTH: Final[int] = 12
TAG_LENGTH: Final[int] = 16


def derive_key(
    passphrase: bytes = PASSPHRASE,
    salt: bytes = SALT,
    iterations: int = PBKDF2_ITERATIONS,
) -> bytes:
    """Derive a 256-bit AES key with PBKDF2-HMAC-SHA256.

    CPU bound; call through ``asyncio.to_thread`` from async code.
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(passphrase)


@functools.cache
def default_key() -> bytes:
    """Return the process-wide key derived from the embedded constants."""
    return derive_key()


def encrypt(plaintext: bytes, key: bytes) -> tuple[bytes, bytes]:
    """Encrypt *plaintext* under *key*.

    Returns:
        ``(iv, sealed)`` where ``sealed`` is the ciphertext followed by the
        16-byte authentication tag.
    """
    iv = os.urandom(NONCE_LENGTH)
    sealed = AESGCM(key).encrypt(iv, plaintext, None)
    return iv, sealed


def decrypt(iv: bytes, sealed: bytes, key: bytes) -> bytes:
    """Decrypt and authenticate ``sealed`` (ciphertext plus tag).

    Raises:
        MalformedInputError: If the iv is not 12 bytes or ``sealed`` is
            shorter than the tag.
        AuthenticationError: If the tag does not verify.
    """
    if len(iv) != NONCE_LENGTH:
        raise MalformedInputError(f"iv must be {NONCE_LENGTH} bytes, got {len(iv)}")
    if len(sealed) < TAG_LENGTH:
        raise MalformedInputError(f"ciphertext shorter than the {TAG_LENGTH}-byte tag")
    try:
        return AESGCM(key).decrypt(iv, sealed, None)
    except InvalidTag:
        raise AuthenticationError("ciphertext failed authentication") from None


def encode(iv: bytes, sealed: bytes) -> str:
    """Concatenate ``iv || sealed`` and encode as base64 text."""
    return base64.b64encode(iv + sealed).decode("ascii")


def decode(text: str) -> tuple[bytes, bytes]:
    """Split base64 text back into ``(iv, sealed)``.

    Raises:
        MalformedInputError: If *text* is not valid base64 or the decoded
            blob is not longer than the iv.
    """
    try:
        raw = base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise MalformedInputError(f"stored secret is not valid base64: {e}") from None
    if len(raw) <= NONCE_LENGTH:
        raise MalformedInputError(f"stored secret too short ({len(raw)} bytes)")
    return raw[:NONCE_LENGTH], raw[NONCE_LENGTH:]


def seal(text: str, key: bytes) -> str:
    """Encrypt a UTF-8 string and return its stored form."""
    return encode(*encrypt(text.encode("utf-8"), key))


def unseal(blob: str, key: bytes) -> str:
    """Decode, decrypt, and UTF-8 decode a stored blob.

    Raises:
        MalformedInputError: If the blob is malformed or the plaintext is
            not valid UTF-8.
        AuthenticationError: If the tag does not verify.
    """
    iv, sealed = decode(blob)
    plaintext = decrypt(iv, sealed, key)
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError:
        raise MalformedInputError("decrypted secret is not valid UTF-8") from None
