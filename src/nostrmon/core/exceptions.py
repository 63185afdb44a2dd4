"""nostrmon exception hierarchy.

Typed exceptions let each boundary catch exactly what it can recover from
while ``CancelledError`` and other control-flow exceptions propagate
untouched.

Exception hierarchy:

```text
NostrmonError (base -- never raised directly)
├── ConfigurationError       -- bad YAML, invalid settings record
│   ├── InvalidPatternError  -- search pattern is not a valid regular expression
│   └── InvalidSecretError   -- secret input is neither empty nor an nsec1 key
├── CipherError              -- encryption at rest failures
│   ├── AuthenticationError  -- AEAD tag did not verify (tampered, wrong key)
│   └── MalformedInputError  -- blob is not decodable or too short
└── TransportError           -- relay subscription could not be opened
```

See Also:
    [CredentialVault][nostrmon.services.vault.CredentialVault]: Downgrades
        [CipherError][nostrmon.core.exceptions.CipherError] to an empty vault.
    [Monitor][nostrmon.services.monitor.Monitor]: Logs
        [TransportError][nostrmon.core.exceptions.TransportError] and retries
        on the next cycle.
"""

from __future__ import annotations


class NostrmonError(Exception):
    """Base exception for all nostrmon errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(NostrmonError):
    """Invalid or missing configuration (YAML, settings record, CLI input)."""


class InvalidPatternError(ConfigurationError):
    """The proposed search pattern does not compile as a regular expression.

    The edit is rejected and the previously stored pattern stays active.
    """

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"Invalid search pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


class InvalidSecretError(ConfigurationError):
    """The proposed secret is neither empty nor a private key string.

    The message never includes the rejected value.
    """


# ---------------------------------------------------------------------------
# Cipher
# ---------------------------------------------------------------------------


class CipherError(NostrmonError):
    """Base for encryption-at-rest failures."""


class AuthenticationError(CipherError):
    """The authentication tag did not verify.

    Raised for corrupted blobs, blobs sealed under a different key, and any
    tampering. Decryption never returns unverified plaintext.
    """


class MalformedInputError(CipherError):
    """The stored blob cannot be decoded or is shorter than the nonce."""


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class TransportError(NostrmonError):
    """A relay subscription could not be opened.

    Raised by the transport. The monitor logs it and retries on the next
    cycle; faults inside the event handler are logged and counted without
    tearing down the active subscription.
    """
