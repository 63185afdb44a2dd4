"""Nostr private key input handling.

Validates user-supplied secret input before it reaches the vault, reads it
from an environment variable for unattended setups, and parses a stored
``nsec1`` string into ``nostr_sdk.Keys`` to show the derived public key.

Warning:
    Private keys must **never** be logged, printed, or written anywhere in
    clear text. None of the functions here include the key in exception
    messages or log records.

Examples:
    ```python
    secret = validate_secret_input(load_secret_from_env("NOSTR_SECRET"))
    keys = parse_keys(secret)
    print(keys.public_key().to_bech32())
    ```
"""

from __future__ import annotations

import os
from typing import Final

from nostr_sdk import Keys

from nostrmon.core.exceptions import InvalidSecretError


PRIVATE_KEY_PREFIX: Final[str] = "nsec1"
ENV_SECRET: Final[str] = "NOSTR_SECRET"  # pragma: allowlist secret


def validate_secret_input(value: str) -> str:
    """Return the trimmed secret, or ``""`` for a clear request.

    Only the exact empty string clears. Whitespace around a key is trimmed.

    Raises:
        InvalidSecretError: If the value is non-empty and its trimmed form
            does not start with ``nsec1``, including whitespace-only input.
    """
    if value == "":
        return ""
    secret = value.strip()
    if not secret.startswith(PRIVATE_KEY_PREFIX):
        raise InvalidSecretError(f"Secret must be empty or start with {PRIVATE_KEY_PREFIX!r}")
    return secret


def load_secret_from_env(env_var: str = ENV_SECRET) -> str:
    """Read a secret from an environment variable.

    Raises:
        ValueError: If the variable is not set or is empty.
    """
    value = os.getenv(env_var)
    if not value:
        raise ValueError(f"{env_var} environment variable is not set")
    return value


def parse_keys(secret: str) -> Keys:
    """Parse an ``nsec1`` string into a ``nostr_sdk.Keys`` pair.

    Raises:
        nostr_sdk.NostrSdkError: If the string is not a valid private key.
    """
    return Keys.parse(secret)
