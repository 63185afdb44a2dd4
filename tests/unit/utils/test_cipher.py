"""
Unit tests for utils.cipher module.

Tests:
- derive_key() / default_key() PBKDF2 derivation
- encrypt()/decrypt() authenticated round trip and tamper detection
- iv freshness across many encryptions
- encode()/decode() stored form and malformed input
- seal()/unseal() string helpers
"""

import base64

import pytest

from nostrmon.core.exceptions import AuthenticationError, MalformedInputError
from nostrmon.utils import cipher
from nostrmon.utils.cipher import (
    KEY_LENGTH,
    NONCE_LENGTH,
    PBKDF2_ITERATIONS,
    TAG_LENGTH,
    decode,
    decrypt,
    default_key,
    derive_key,
    encode,
    encrypt,
    seal,
    unseal,
)
from tests.conftest import TEST_KEY, VALID_NSEC_KEY


OTHER_KEY = bytes(range(32, 64))


# =============================================================================
# Key Derivation
# =============================================================================


class TestDeriveKey:
    """PBKDF2-HMAC-SHA256 key derivation."""

    def test_length(self):
        assert len(derive_key(iterations=1_000)) == KEY_LENGTH

    def test_deterministic(self):
        assert derive_key(b"pw", b"salt", 1_000) == derive_key(b"pw", b"salt", 1_000)

    def test_salt_changes_key(self):
        assert derive_key(b"pw", b"salt-a", 1_000) != derive_key(b"pw", b"salt-b", 1_000)

    def test_passphrase_changes_key(self):
        assert derive_key(b"pw-a", b"salt", 1_000) != derive_key(b"pw-b", b"salt", 1_000)

    def test_iterations_constant(self):
        assert PBKDF2_ITERATIONS == 100_000

    def test_default_key_cached(self):
        assert default_key() is default_key()
        assert default_key() == derive_key()

    def test_default_key_stable_across_processes(self):
        assert default_key() == derive_key(cipher.PASSPHRASE, cipher.SALT, PBKDF2_ITERATIONS)


# =============================================================================
# encrypt() / decrypt()
# =============================================================================


class TestEncryptDecrypt:
    """AES-GCM primitives."""

    @pytest.mark.parametrize("plaintext", [b"", b"x", VALID_NSEC_KEY.encode(), "テスト".encode()])
    def test_round_trip(self, plaintext):
        iv, sealed = encrypt(plaintext, TEST_KEY)
        assert decrypt(iv, sealed, TEST_KEY) == plaintext

    def test_output_layout(self):
        iv, sealed = encrypt(b"hello", TEST_KEY)
        assert len(iv) == NONCE_LENGTH
        assert len(sealed) == len(b"hello") + TAG_LENGTH

    def test_iv_unique(self):
        ivs = {encrypt(b"same plaintext", TEST_KEY)[0] for _ in range(10_000)}
        assert len(ivs) == 10_000

    def test_same_plaintext_different_ciphertext(self):
        assert encrypt(b"same", TEST_KEY)[1] != encrypt(b"same", TEST_KEY)[1]

    def test_wrong_key(self):
        iv, sealed = encrypt(b"secret", TEST_KEY)
        with pytest.raises(AuthenticationError):
            decrypt(iv, sealed, OTHER_KEY)

    def test_every_single_bit_flip_detected(self):
        iv, sealed = encrypt(b"nsec1", TEST_KEY)
        blob = iv + sealed
        for byte_index in range(len(blob)):
            for bit in range(8):
                tampered = bytearray(blob)
                tampered[byte_index] ^= 1 << bit
                with pytest.raises(AuthenticationError):
                    decrypt(bytes(tampered[:NONCE_LENGTH]), bytes(tampered[NONCE_LENGTH:]), TEST_KEY)

    def test_truncated_tag(self):
        iv, sealed = encrypt(b"secret", TEST_KEY)
        with pytest.raises(AuthenticationError):
            decrypt(iv, sealed[:-1], TEST_KEY)

    def test_bad_iv_length(self):
        _, sealed = encrypt(b"secret", TEST_KEY)
        with pytest.raises(MalformedInputError, match="iv must be 12 bytes"):
            decrypt(b"short", sealed, TEST_KEY)

    def test_sealed_shorter_than_tag(self):
        with pytest.raises(MalformedInputError, match="shorter than"):
            decrypt(b"\x00" * NONCE_LENGTH, b"\x00" * (TAG_LENGTH - 1), TEST_KEY)


# =============================================================================
# encode() / decode()
# =============================================================================


class TestEncoding:
    """Stored form: base64(iv || ciphertext || tag)."""

    def test_encode_layout(self):
        iv, sealed = b"\x01" * NONCE_LENGTH, b"\x02" * 20
        assert base64.b64decode(encode(iv, sealed)) == iv + sealed

    def test_decode_splits_iv(self):
        iv, sealed = b"\x01" * NONCE_LENGTH, b"\x02" * 20
        assert decode(encode(iv, sealed)) == (iv, sealed)

    @pytest.mark.parametrize("text", ["not base64!!", "QUJD=x", "ｱｲｳ"])
    def test_invalid_base64(self, text):
        with pytest.raises(MalformedInputError, match="not valid base64"):
            decode(text)

    @pytest.mark.parametrize("size", [0, 1, NONCE_LENGTH])
    def test_too_short(self, size):
        text = base64.b64encode(b"\x00" * size).decode()
        with pytest.raises(MalformedInputError, match="too short"):
            decode(text)


# =============================================================================
# seal() / unseal()
# =============================================================================


class TestSealUnseal:
    """String helpers used by the vault."""

    def test_round_trip(self):
        blob = seal(VALID_NSEC_KEY, TEST_KEY)
        assert unseal(blob, TEST_KEY) == VALID_NSEC_KEY

    def test_blob_is_ascii_base64(self):
        blob = seal(VALID_NSEC_KEY, TEST_KEY)
        assert blob.isascii()
        assert VALID_NSEC_KEY not in blob
        assert len(base64.b64decode(blob)) == NONCE_LENGTH + len(VALID_NSEC_KEY) + TAG_LENGTH

    def test_round_trip_with_default_key(self):
        blob = seal(VALID_NSEC_KEY, default_key())
        assert unseal(blob, default_key()) == VALID_NSEC_KEY

    def test_wrong_key(self):
        blob = seal(VALID_NSEC_KEY, TEST_KEY)
        with pytest.raises(AuthenticationError):
            unseal(blob, OTHER_KEY)

    def test_tampered_blob(self):
        raw = bytearray(base64.b64decode(seal(VALID_NSEC_KEY, TEST_KEY)))
        raw[NONCE_LENGTH + 3] ^= 0x01
        with pytest.raises(AuthenticationError):
            unseal(base64.b64encode(bytes(raw)).decode(), TEST_KEY)

    def test_malformed_blob(self):
        with pytest.raises(MalformedInputError):
            unseal("%%%", TEST_KEY)

    def test_invalid_utf8_plaintext(self):
        blob = encode(*encrypt(b"\xff\xfe", TEST_KEY))
        with pytest.raises(MalformedInputError, match="not valid UTF-8"):
            unseal(blob, TEST_KEY)
