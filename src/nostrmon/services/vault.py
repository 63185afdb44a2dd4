"""
Credential vault for the single stored private key.

The vault owns the plaintext key in memory and the ciphertext in the
settings record. It moves between two states:

```text
EMPTY --initialize(valid ciphertext)--> LOADED
EMPTY --initialize(none / corrupt)----> EMPTY
any   --set_secret("nsec1...")--------> LOADED
any   --set_secret("")----------------> EMPTY
```

Storing a key always runs encrypt, then persist, then update memory. If
encryption or persistence fails, nothing changes, the caller gets
``False``, and the failure is reported through the alert sink. Loading
never raises: a corrupt or foreign ciphertext leaves the vault empty.

Warning:
    The plaintext key is never logged, never included in exception
    messages, and never written anywhere. Only the ciphertext produced by
    [seal()][nostrmon.utils.cipher.seal] reaches the settings file.

See Also:
    [nostrmon.utils.cipher][nostrmon.utils.cipher]: Key derivation and
        AES-GCM primitives, including the fixed-constant limitation.
    [SettingsManager][nostrmon.services.common.settings.SettingsManager]:
        Persists the ciphertext.
"""

from __future__ import annotations

import asyncio
from enum import StrEnum
from typing import TYPE_CHECKING

from nostr_sdk import Keys, NostrSdkError

from nostrmon.core.exceptions import CipherError, ConfigurationError
from nostrmon.core.logger import Logger
from nostrmon.models.constants import ServiceName
from nostrmon.utils import cipher
from nostrmon.utils.keys import parse_keys, validate_secret_input


if TYPE_CHECKING:
    from nostrmon.services.common.alerts import AlertSink
    from nostrmon.services.common.settings import SettingsManager


class VaultState(StrEnum):
    EMPTY = "empty"
    LOADED = "loaded"


class CredentialVault:
    """Holds one private key, encrypted at rest.

    Args:
        settings: Manager that persists the ciphertext.
        alert_sink: Receives a user-visible message when storing fails.
        key: AES key override. Defaults to
            [default_key()][nostrmon.utils.cipher.default_key], derived
            lazily in a worker thread.
    """

    def __init__(
        self,
        settings: SettingsManager,
        alert_sink: AlertSink,
        key: bytes | None = None,
    ) -> None:
        self._settings = settings
        self._alerts = alert_sink
        self._key = key
        self._secret = ""
        self._state = VaultState.EMPTY
        self._logger = Logger(ServiceName.VAULT)

    def __repr__(self) -> str:
        return f"CredentialVault(state={self._state.value})"

    @property
    def state(self) -> VaultState:
        return self._state

    async def _cipher_key(self) -> bytes:
        if self._key is None:
            self._key = await asyncio.to_thread(cipher.default_key)
        return self._key

    async def initialize(self, encrypted_secret: str | None) -> VaultState:
        """Load the key from its stored ciphertext.

        Never raises. A missing, malformed, tampered, or foreign ciphertext
        leaves the vault ``EMPTY`` and is logged.
        """
        self._secret = ""
        self._state = VaultState.EMPTY

        if not encrypted_secret:
            self._logger.info("vault_empty")
            return self._state

        try:
            key = await self._cipher_key()
            secret = await asyncio.to_thread(cipher.unseal, encrypted_secret, key)
        except (CipherError, ValueError) as e:
            self._logger.warning("secret_decrypt_failed", error_type=type(e).__name__, error=str(e))
            return self._state

        self._secret = secret
        self._state = VaultState.LOADED
        self._logger.info("secret_loaded")
        return self._state

    async def set_secret(self, plaintext: str) -> bool:
        """Store, replace, or clear the key.

        Args:
            plaintext: An ``nsec1`` key, or ``""`` to clear the stored key.

        Returns:
            ``True`` when the change was persisted and applied, ``False``
            when storing failed (vault unchanged, alert sent).

        Raises:
            InvalidSecretError: If *plaintext* is neither empty nor an
                ``nsec1`` string. Nothing is persisted.
        """
        secret = validate_secret_input(plaintext)

        try:
            if secret:
                key = await self._cipher_key()
                blob: str | None = await asyncio.to_thread(cipher.seal, secret, key)
            else:
                blob = None
            await self._settings.update(encrypted_secret=blob)
        except (CipherError, ConfigurationError, OSError, ValueError) as e:
            await self._report_store_failure(e)
            return False

        self._secret = secret
        self._state = VaultState.LOADED if secret else VaultState.EMPTY
        self._logger.info("secret_cleared" if not secret else "secret_stored")
        return True

    def get_secret(self) -> str:
        """Return the in-memory key, ``""`` when empty."""
        return self._secret

    def keys(self) -> Keys | None:
        """Parse the loaded key into ``nostr_sdk.Keys``.

        Returns ``None`` when the vault is empty or the stored string is not
        a valid private key.
        """
        if not self._secret:
            return None
        try:
            return parse_keys(self._secret)
        except NostrSdkError:
            self._logger.warning("secret_parse_failed")
            return None

    async def _report_store_failure(self, error: Exception) -> None:
        self._logger.error(
            "secret_store_failed",
            error_type=type(error).__name__,
            error=str(error),
        )
        await self._alerts.notify(f"Failed to store the Nostr private key: {type(error).__name__}")
