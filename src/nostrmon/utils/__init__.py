"""Encryption at rest, pattern matching, key handling, and relay transport.

The utils layer depends on [nostrmon.models][nostrmon.models] and on the
dependency-free [nostrmon.core.exceptions][nostrmon.core.exceptions]
module only. It never imports services.

Attributes:
    cipher: PBKDF2 key derivation and AES-256-GCM sealing of the stored key.
    matching: Cached, fail-closed regular-expression matching.
    keys: ``nsec1`` input validation and ``nostr_sdk.Keys`` parsing.
    transport: [RelayTransport][nostrmon.utils.transport.RelayTransport]
        protocol and its nostr-sdk implementation.
"""
