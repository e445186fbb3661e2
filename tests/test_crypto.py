"""Tests for key derivation and vault blob encryption."""
import struct

import pytest

from wpdocker.data import SecretStore
from wpdocker.vault.crypto import (
    HEADER_SIZE,
    MAGIC,
    TAG_SIZE,
    decrypt_store,
    derive_key,
    encrypt_store,
)
from wpdocker.vault.exceptions import EncryptionError, WrongPinOrCorrupt

ITERATIONS = 1_000


@pytest.fixture
def secrets():
    return SecretStore({'A': 'x', 'GITHUB_TOKEN': 'ghp_example'})


class TestDeriveKey:

    def test_deterministic(self):
        salt = b"s" * 16
        assert derive_key("1234", salt, ITERATIONS) == derive_key("1234", salt, ITERATIONS)

    def test_length(self):
        assert len(derive_key("1234", b"s" * 16, ITERATIONS)) == 32

    def test_different_pins_differ(self):
        salt = b"s" * 16
        assert derive_key("1234", salt, ITERATIONS) != derive_key("1235", salt, ITERATIONS)

    def test_different_salts_differ(self):
        assert derive_key("1234", b"a" * 16, ITERATIONS) != derive_key("1234", b"b" * 16, ITERATIONS)


class TestEncryptDecrypt:

    @pytest.mark.parametrize("backend", ["aesgcm", "chacha20"])
    def test_round_trip(self, secrets, backend):
        blob = encrypt_store(secrets, "1234", ITERATIONS, backend)
        assert decrypt_store(blob, "1234") == secrets

    def test_empty_store_round_trip(self):
        blob = encrypt_store(SecretStore(), "1234", ITERATIONS)
        assert decrypt_store(blob, "1234").empty is True

    def test_fresh_salt_and_nonce(self, secrets):
        a = encrypt_store(secrets, "1234", ITERATIONS)
        b = encrypt_store(secrets, "1234", ITERATIONS)
        assert a != b
        assert a[:4] == MAGIC

    def test_header_records_iterations(self, secrets):
        blob = encrypt_store(secrets, "1234", 1_234)
        assert struct.unpack("!I", blob[6:10])[0] == 1_234

    def test_plaintext_not_in_blob(self, secrets):
        blob = encrypt_store(secrets, "1234", ITERATIONS)
        assert b"ghp_example" not in blob
        assert b"GITHUB_TOKEN" not in blob

    def test_wrong_pin(self, secrets):
        blob = encrypt_store(secrets, "1234", ITERATIONS)
        with pytest.raises(WrongPinOrCorrupt):
            decrypt_store(blob, "9999")

    def test_undecodable_pin_is_a_wrong_pin(self, secrets):
        blob = encrypt_store(secrets, "1234", ITERATIONS)
        with pytest.raises(WrongPinOrCorrupt):
            decrypt_store(blob, "12\udcff4")

    def test_unknown_backend(self, secrets):
        with pytest.raises(EncryptionError):
            encrypt_store(secrets, "1234", ITERATIONS, "rot13")


class TestCorruption:

    def test_every_byte_flip_is_detected(self, secrets):
        blob = encrypt_store(secrets, "1234", ITERATIONS)
        for index in range(len(blob)):
            damaged = bytearray(blob)
            damaged[index] ^= 0x01
            with pytest.raises(WrongPinOrCorrupt):
                decrypt_store(bytes(damaged), "1234")

    @pytest.mark.parametrize("length", [0, 4, HEADER_SIZE, HEADER_SIZE + TAG_SIZE - 1])
    def test_truncated(self, secrets, length):
        blob = encrypt_store(secrets, "1234", ITERATIONS)
        with pytest.raises(WrongPinOrCorrupt):
            decrypt_store(blob[:length], "1234")

    def test_truncated_ciphertext(self, secrets):
        blob = encrypt_store(secrets, "1234", ITERATIONS)
        with pytest.raises(WrongPinOrCorrupt):
            decrypt_store(blob[:-1], "1234")

    def test_wrong_pin_and_corruption_look_the_same(self, secrets):
        blob = encrypt_store(secrets, "1234", ITERATIONS)
        damaged = bytearray(blob)
        damaged[-1] ^= 0xFF
        with pytest.raises(WrongPinOrCorrupt) as wrong_pin:
            decrypt_store(blob, "0000")
        with pytest.raises(WrongPinOrCorrupt) as corrupt:
            decrypt_store(bytes(damaged), "1234")
        assert str(wrong_pin.value) == str(corrupt.value)
